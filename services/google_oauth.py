"""Google OAuth bridge.

Turns an authorization code into a Google identity. Only the code
exchange and the userinfo lookup are needed; everything else about the
session is handled locally.
"""

from dataclasses import dataclass
from urllib.parse import urlencode

import httpx

from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class OAuthIdentity:
    """Identity asserted by the provider."""

    external_id: str
    email: str
    display_name: str
    email_verified: bool = True


class OAuthBridgeError(Exception):
    """The provider could not be reached or rejected the exchange."""


class GoogleOAuthClient:
    AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"

    def __init__(self, client_id: str, client_secret: str, timeout: float = 10.0,
                 transport: httpx.AsyncBaseTransport | None = None):
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout
        self.transport = transport

    def get_authorization_url(self, redirect_uri: str, state: str, prompt: str | None = None) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "state": state,
        }
        if prompt:
            params["prompt"] = prompt
        return f"{self.AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str, redirect_uri: str) -> OAuthIdentity:
        """
        Exchange the code for a Google access token and fetch the profile.

        Raises:
            OAuthBridgeError: on timeout, transport failure, non-200
                answers or a profile without id or email
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                token_response = await client.post(
                    self.TOKEN_URL,
                    data={
                        "grant_type": "authorization_code",
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "code": code,
                        "redirect_uri": redirect_uri,
                    },
                    headers={"Accept": "application/json"},
                )
                if token_response.status_code != 200:
                    raise OAuthBridgeError(f"Token exchange failed with status {token_response.status_code}")

                access_token = token_response.json().get("access_token")
                if not access_token:
                    raise OAuthBridgeError("Token response without access_token")

                userinfo_response = await client.get(
                    self.USERINFO_URL,
                    headers={
                        "Authorization": f"Bearer {access_token}",
                        "Accept": "application/json",
                    },
                )
                if userinfo_response.status_code != 200:
                    raise OAuthBridgeError(f"Userinfo failed with status {userinfo_response.status_code}")

                profile = userinfo_response.json()
        except httpx.TimeoutException as e:
            raise OAuthBridgeError("Timed out talking to Google") from e
        except httpx.HTTPError as e:
            raise OAuthBridgeError(f"HTTP error talking to Google: {type(e).__name__}") from e
        except ValueError as e:
            # Body was not JSON
            raise OAuthBridgeError("Malformed response from Google") from e

        external_id = profile.get("sub")
        email = profile.get("email")
        if not external_id or not email:
            raise OAuthBridgeError("Google profile without sub or email")

        return OAuthIdentity(
            external_id=str(external_id),
            email=email,
            display_name=profile.get("name") or email.split("@")[0],
            # Boolean in userinfo v3, accept the string form too
            email_verified=profile.get("email_verified") in (True, "true"),
        )
