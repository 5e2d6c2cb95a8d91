from fastapi import APIRouter, Request
from utils.deps import db_dependency, user_dependency, token_dependency, get_client_ip
from starlette import status
from core.exceptions import AuthError
from schemas.auth_schemas import (Token, LoginResponse, LoginRequest, CreateUserRequest,
                                  RefreshTokenRequest, RevokeTokenRequest, UserSummary)
from services.auth_service import AuthService
from services.token_service import TokenService
from middleware.rate_limiter import limiter
from utils.logger import get_logger

# Setup logger
logger = get_logger(__name__)


router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=UserSummary)
@limiter.limit("3/minute")
async def register(request: Request, body: CreateUserRequest, db: db_dependency):
    """
    Create a local account. No tokens are issued: the account waits for
    admin approval unless its email was pre-approved.
    """
    user = AuthService.create_user(body, db)

    logger.info(
        "User registered successfully",
        extra={"user_id": user.id, "approved": user.approved}
    )

    return user


@router.post("/login", response_model=LoginResponse)
@limiter.limit("5/minute")
async def login(request: Request, body: LoginRequest, db: db_dependency):
    tokens = AuthService.login(body.email, body.password, db)

    logger.info(
        "User logged in successfully",
        extra={"user_id": tokens["user"].id}
    )

    return tokens


@router.post("/refresh", response_model=Token)
@limiter.limit("10/minute")
async def refresh_token(request: Request, body: RefreshTokenRequest, db: db_dependency):
    """
    Rotate a refresh token into a new access + refresh pair.
    """
    if not body.refresh_token:
        raise AuthError(status.HTTP_400_BAD_REQUEST, "Refresh token is required", "missing_refresh_token")

    token = TokenService.refresh_access_token(
        body.refresh_token,
        db,
        ip_address=get_client_ip(request),
        device_info=request.headers.get("User-Agent")
    )

    logger.info("Access token refreshed")

    return token


@router.post("/logout", status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
async def logout(request: Request, body: RevokeTokenRequest, user: user_dependency,
                 token: token_dependency, db: db_dependency):
    """
    Revoke the refresh token and the access token used for this call.
    Succeeds even if the refresh token is already gone.
    """
    AuthService.logout(user, token, body.refresh_token, db, ip_address=get_client_ip(request))

    logger.info("User logged out", extra={"user_id": user.id})

    return {"message": "Logged out successfully"}


@router.get("/me", status_code=status.HTTP_200_OK, response_model=UserSummary)
@limiter.limit("30/minute")
async def get_user_info(request: Request, user: user_dependency):
    """
    Get current user info (protected endpoint).
    """
    return AuthService.ensure_approved(user)
