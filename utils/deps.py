from core.database import SessionLocal
from typing import Annotated
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from starlette import status
from core.config import settings
from core.exceptions import AuthError, invalid_token
from models.users import User
from services.auth_service import AuthService
from services.google_oauth import GoogleOAuthClient
from services.token_service import TokenService, TokenError, ACCESS
from utils.session import SessionContext
from utils.logger import get_logger

logger = get_logger(__name__)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

db_dependency = Annotated[Session, Depends(get_db)]

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login")
token_dependency = Annotated[str, Depends(oauth2_scheme)]


def get_client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


def get_current_user(request: Request, token: token_dependency, db: db_dependency) -> User:
    """
    Resolve the bearer access token to a user.

    Every rejection (revoked, forged, expired, wrong type) gets the same
    401; the specific kind only goes to the log.
    """
    try:
        payload = TokenService.verify_token(token, db)
    except TokenError as e:
        logger.info("Access token rejected", extra={"reason": e.kind, "path": request.url.path})
        raise invalid_token()

    if payload.get("type") != ACCESS:
        logger.warning(
            "Access token rejected - wrong token type",
            extra={"token_type": payload.get("type"), "path": request.url.path}
        )
        raise invalid_token()

    user = AuthService.get_user_by_id(int(payload["sub"]), db)
    if user is None:
        TokenService.blacklist_token(token, db, reason="token_for_nonexistent_user",
                                     ip_address=get_client_ip(request))
        raise invalid_token()

    return user


user_dependency = Annotated[User, Depends(get_current_user)]


def get_approved_user(user: user_dependency) -> User:
    return AuthService.ensure_approved(user)


approved_user_dependency = Annotated[User, Depends(get_approved_user)]


def get_admin_user(user: approved_user_dependency) -> User:
    if not user.is_admin:
        logger.warning("Admin endpoint denied", extra={"user_id": user.id})
        raise AuthError(status.HTTP_403_FORBIDDEN, "Admin access required", "forbidden")
    return user


admin_dependency = Annotated[User, Depends(get_admin_user)]


def get_session_context(request: Request) -> SessionContext:
    return SessionContext.from_settings(request.session)


session_dependency = Annotated[SessionContext, Depends(get_session_context)]


def get_oauth_client() -> GoogleOAuthClient:
    return GoogleOAuthClient(
        client_id=settings.GOOGLE_CLIENT_ID,
        client_secret=settings.GOOGLE_CLIENT_SECRET,
        timeout=settings.OAUTH_HTTP_TIMEOUT_SECONDS
    )


oauth_client_dependency = Annotated[GoogleOAuthClient, Depends(get_oauth_client)]
