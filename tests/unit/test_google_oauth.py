import httpx
import pytest
from urllib.parse import urlparse, parse_qs
from services.google_oauth import GoogleOAuthClient, OAuthBridgeError

REDIRECT_URI = "http://test/auth/oauth/callback"


def make_client(handler) -> GoogleOAuthClient:
    return GoogleOAuthClient("client-id", "client-secret", timeout=2.0,
                             transport=httpx.MockTransport(handler))


def google(token_status=200, token_body=None, userinfo_status=200, userinfo_body=None):
    """Handler answering the token and userinfo endpoints."""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.host == "oauth2.googleapis.com":
            body = token_body if token_body is not None else {"access_token": "google-access-token"}
            return httpx.Response(token_status, json=body)
        body = userinfo_body if userinfo_body is not None else {
            "sub": "108", "email": "someone@example.com", "email_verified": True, "name": "Someone"
        }
        return httpx.Response(userinfo_status, json=body)

    handler.seen = seen
    return handler


def test_authorization_url():
    client = GoogleOAuthClient("client-id", "client-secret")

    url = urlparse(client.get_authorization_url(REDIRECT_URI, "state-1", prompt="select_account"))
    query = parse_qs(url.query)

    assert url.netloc == "accounts.google.com"
    assert query["client_id"] == ["client-id"]
    assert query["redirect_uri"] == [REDIRECT_URI]
    assert query["response_type"] == ["code"]
    assert query["state"] == ["state-1"]
    assert query["prompt"] == ["select_account"]
    assert "openid" in query["scope"][0]


async def test_exchange_code_returns_identity():
    handler = google()

    identity = await make_client(handler).exchange_code("auth-code", REDIRECT_URI)

    assert identity.external_id == "108"
    assert identity.email == "someone@example.com"
    assert identity.display_name == "Someone"
    assert identity.email_verified is True

    token_request, userinfo_request = handler.seen
    assert b"code=auth-code" in token_request.content
    assert userinfo_request.headers["Authorization"] == "Bearer google-access-token"


async def test_exchange_code_without_name():
    handler = google(userinfo_body={"sub": "108", "email": "someone@example.com"})

    identity = await make_client(handler).exchange_code("auth-code", REDIRECT_URI)

    assert identity.display_name == "someone"


@pytest.mark.parametrize("kwargs", [
    {"token_status": 400, "token_body": {"error": "invalid_grant"}},
    {"token_body": {}},
    {"userinfo_status": 401, "userinfo_body": {"error": "invalid_token"}},
    {"userinfo_body": {"email": "someone@example.com"}},
    {"userinfo_body": {"sub": "108"}},
])
async def test_exchange_code_failures(kwargs):
    with pytest.raises(OAuthBridgeError):
        await make_client(google(**kwargs)).exchange_code("auth-code", REDIRECT_URI)


async def test_exchange_code_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(OAuthBridgeError):
        await make_client(handler).exchange_code("auth-code", REDIRECT_URI)


async def test_exchange_code_non_json_body():
    def handler(request):
        return httpx.Response(200, content=b"<html>oops</html>")

    with pytest.raises(OAuthBridgeError):
        await make_client(handler).exchange_code("auth-code", REDIRECT_URI)


async def test_exchange_code_unverified_email():
    handler = google(userinfo_body={"sub": "108", "email": "someone@example.com", "email_verified": False})

    identity = await make_client(handler).exchange_code("auth-code", REDIRECT_URI)

    assert identity.email_verified is False
