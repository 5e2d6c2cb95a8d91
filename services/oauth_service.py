"""
Google sign-in with optional PKCE.

initiate() -> redirect to Google
handle_callback() -> redirect to the app deep link with tokens (direct
flow), with a short-lived auth code (PKCE flow), or with an error
exchange_code() -> PKCE code + verifier for an access/refresh pair
"""

import hmac
import secrets
from urllib.parse import urlencode

from sqlalchemy.orm import Session
from starlette import status

from core.config import settings
from core.exceptions import OAuthTokenError, NOT_APPROVED
from models.users import User
from services.approval_service import ApprovalService
from services.google_oauth import GoogleOAuthClient, OAuthIdentity
from services.token_service import TokenService, TokenError, AUTH_CODE
from utils.pkce import normalize_method, verify_code_challenge
from utils.session import SessionContext
from utils.logger import get_logger

logger = get_logger(__name__)


class OAuthFlowError(Exception):
    """
    Failure in a redirect-based step. error is the coarse code placed in
    the error deep link; details stay in the logs.
    """

    def __init__(self, error: str):
        super().__init__(error)
        self.error = error


def deep_link(path: str, **params) -> str:
    query = urlencode({k: v for k, v in params.items() if v is not None})
    url = f"{settings.APP_DEEP_LINK_SCHEME}://{path}"
    return f"{url}?{query}" if query else url


def error_link(error: str) -> str:
    return deep_link("auth-error", error=error)


def _invalid_grant(description: str = "Invalid authorization code or code verifier") -> OAuthTokenError:
    return OAuthTokenError("invalid_grant", description)


class OAuthService:

    @staticmethod
    def initiate(session: SessionContext, oauth_client: GoogleOAuthClient, state: str | None = None,
                 code_challenge: str | None = None, code_challenge_method: str | None = None,
                 prompt: str | None = None) -> str:
        """
        Store CSRF state (and the PKCE challenge, if any) in the session and
        return the Google consent URL.

        Raises:
            OAuthFlowError: invalid_request for an unsupported challenge method
        """
        if code_challenge:
            try:
                method = normalize_method(code_challenge_method)
            except ValueError:
                logger.warning("OAuth start rejected - unsupported challenge method",
                               extra={"method": code_challenge_method})
                raise OAuthFlowError("invalid_request")
            session.set_pkce_challenge(code_challenge, method)
        else:
            # One outstanding challenge per session; no challenge means direct flow
            session.clear_pkce_challenge()

        state = state or secrets.token_urlsafe(32)
        session.set_oauth_state(state)
        session.clear_temp_auth_code()

        logger.info("OAuth flow initiated", extra={"pkce": bool(code_challenge), "prompt": prompt})
        return oauth_client.get_authorization_url(settings.oauth_redirect_uri, state, prompt=prompt)

    @staticmethod
    def check_state(session: SessionContext, state: str | None) -> None:
        """
        Compare the returned state with the stored one and clear it.

        Without a stored state there is nothing to compare and the check
        passes. An expired stored state counts as a mismatch.
        """
        stored = session.get_oauth_state()
        session.clear_oauth_state()
        if stored is None:
            logger.info("OAuth callback without stored state, skipping CSRF check")
            return

        # state is opaque client input and may hold non-ASCII characters
        if stored.expired or state is None or not hmac.compare_digest(
            str(stored.value).encode("utf-8"), state.encode("utf-8")
        ):
            logger.warning("OAuth callback rejected - state mismatch",
                           extra={"expired": stored.expired, "state_present": state is not None})
            raise OAuthFlowError("invalid_state")

    @staticmethod
    def resolve_user(identity: OAuthIdentity, db: Session) -> User:
        """
        Find the local account by Google id, then by email (linking the
        Google id to an existing local account), or create one.

        Raises:
            OAuthFlowError: email_not_verified when a new Google identity
                comes with an email Google has not verified
        """
        user = db.query(User).filter(User.google_id == identity.external_id).one_or_none()
        if user:
            return user

        # An unverified address must not claim an existing account or the gate's email
        if not identity.email_verified:
            logger.warning("OAuth sign-in rejected - email not verified by Google")
            raise OAuthFlowError("email_not_verified")

        email = ApprovalService.normalize_email(identity.email)
        user = db.query(User).filter(User.email == email).one_or_none()
        if user:
            user.google_id = identity.external_id
            if not user.display_name:
                user.display_name = identity.display_name
            db.commit()
            db.refresh(user)
            logger.info("Linked Google identity to existing account", extra={"user_id": user.id})
            return user

        user = User(
            email=email,
            display_name=identity.display_name,
            google_id=identity.external_id,
            hashed_password=None,
            approved=ApprovalService.is_preapproved(email, db),
            is_admin=False
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("Created account from Google identity", extra={"user_id": user.id})
        return user

    @staticmethod
    async def handle_callback(session: SessionContext, oauth_client: GoogleOAuthClient, db: Session,
                              code: str | None, state: str | None, error: str | None = None) -> str:
        """
        Returns the deep link to redirect the browser to.

        Raises:
            OAuthFlowError: access_denied, no_code, invalid_state, email_not_verified
                or session_expired
            OAuthBridgeError: when Google cannot complete the exchange
        """
        if error:
            session.clear_oauth_state()
            logger.warning("OAuth provider returned an error", extra={"provider_error": error})
            raise OAuthFlowError("access_denied")

        if not code:
            raise OAuthFlowError("no_code")

        OAuthService.check_state(session, state)

        identity = await oauth_client.exchange_code(code, settings.oauth_redirect_uri)
        user = OAuthService.resolve_user(identity, db)

        if not ApprovalService.is_approved(user):
            ApprovalService.record_pending(user.email, db, name=user.display_name)
            session.clear_pkce_challenge()
            logger.info("OAuth sign-in held for approval", extra={"user_id": user.id})
            return deep_link("auth/pending", status="pending")

        challenge = session.get_pkce_challenge()
        if challenge is not None:
            if challenge.expired:
                session.clear_pkce_challenge()
                logger.warning("OAuth callback with expired PKCE challenge", extra={"user_id": user.id})
                raise OAuthFlowError("session_expired")

            auth_code = TokenService.create_auth_code(user.id)
            session.set_temp_auth_code(auth_code)
            logger.info("Issued PKCE authorization code", extra={"user_id": user.id})
            return deep_link("auth/callback", code=auth_code, state=state)

        tokens = TokenService.create_tokens(user, db)
        logger.info("OAuth sign-in completed", extra={"user_id": user.id})
        return deep_link(
            "auth/callback",
            access_token=tokens["access_token"],
            refresh_token=tokens["refresh_token"],
            expires_in=tokens["expires_in"],
            state=state
        )

    @staticmethod
    def exchange_code(session: SessionContext, db: Session, code: str | None,
                      code_verifier: str | None, ip_address: str | None = None,
                      grant_type: str | None = None) -> dict:
        """
        Redeem a PKCE authorization code.

        The code is blacklisted on success, so the same code can only ever
        be redeemed once.

        Raises:
            OAuthTokenError: unsupported_grant_type, invalid_request, invalid_grant
                or access_denied
        """
        # Older clients omit grant_type; anything else than a code grant is refused
        if grant_type is not None and grant_type != "authorization_code":
            raise OAuthTokenError("unsupported_grant_type", "Only authorization_code is supported")

        if not code or not code_verifier:
            raise OAuthTokenError("invalid_request", "code and code_verifier are required")

        try:
            payload = TokenService.verify_token(code, db)
        except TokenError as e:
            logger.warning("Code exchange rejected", extra={"reason": e.kind, "client_ip": ip_address})
            raise _invalid_grant()

        if payload.get("type") != AUTH_CODE:
            TokenService.blacklist_token(code, db, reason="token_type_misuse", ip_address=ip_address)
            logger.warning("Code exchange rejected - wrong token type",
                           extra={"token_type": payload.get("type"), "client_ip": ip_address})
            raise _invalid_grant()

        challenge = session.get_pkce_challenge()
        if challenge is None or challenge.expired:
            session.clear_pkce_challenge()
            logger.warning("Code exchange rejected - no PKCE challenge in session",
                           extra={"user_id": payload["sub"]})
            raise _invalid_grant()

        issued = session.get_temp_auth_code()
        if issued is not None and not hmac.compare_digest(
            str(issued.value).encode("utf-8"), code.encode("utf-8")
        ):
            logger.warning("Code exchange rejected - code not issued to this session",
                           extra={"user_id": payload["sub"]})
            raise _invalid_grant()

        try:
            matches = verify_code_challenge(
                code_verifier,
                challenge.value["code_challenge"],
                challenge.value.get("method")
            )
        except (ValueError, KeyError, TypeError):
            matches = False

        if not matches:
            logger.warning("Code exchange rejected - PKCE verification failed",
                           extra={"user_id": payload["sub"], "client_ip": ip_address})
            raise _invalid_grant()

        session.clear_pkce_challenge()
        session.clear_temp_auth_code()

        if not TokenService.blacklist_token(code, db, reason="auth_code_used", ip_address=ip_address):
            # A concurrent exchange already consumed this code
            logger.warning("Code exchange rejected - code already redeemed",
                           extra={"user_id": payload["sub"]})
            raise _invalid_grant()

        user = db.query(User).filter(User.id == int(payload["sub"])).one_or_none()
        if user is None:
            raise _invalid_grant()

        if not ApprovalService.is_approved(user):
            raise OAuthTokenError("access_denied", NOT_APPROVED, status.HTTP_403_FORBIDDEN)

        tokens = TokenService.create_tokens(user, db)
        logger.info("PKCE code exchanged", extra={"user_id": user.id})

        return {
            "access_token": tokens["access_token"],
            "token_type": "Bearer",
            "expires_in": tokens["expires_in"],
            "refresh_token": tokens["refresh_token"],
        }
