from fastapi import APIRouter, Request, Response
from fastapi.responses import RedirectResponse
from starlette import status
from utils.deps import db_dependency, session_dependency, oauth_client_dependency, get_client_ip
from schemas.auth_schemas import OAuthTokenRequest, OAuthTokenResponse
from services.google_oauth import OAuthBridgeError
from services.oauth_service import OAuthService, OAuthFlowError, error_link
from middleware.rate_limiter import limiter
from utils.logger import get_logger, sanitize_log_data

logger = get_logger(__name__)


router = APIRouter(
    prefix="/auth/oauth",
    tags=["oauth"]
)


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)


@router.get("/start")
@limiter.limit("10/minute")
async def oauth_start(request: Request, session: session_dependency, oauth_client: oauth_client_dependency,
                      state: str | None = None, code_challenge: str | None = None,
                      code_challenge_method: str | None = None, prompt: str | None = None,
                      force_login: bool = False):
    """
    Start Google sign-in. Redirects to Google, or to the app's error deep
    link when the request is malformed.
    """
    if prompt is None:
        prompt = "select_account" if force_login else "none"

    try:
        url = OAuthService.initiate(
            session,
            oauth_client,
            state=state,
            code_challenge=code_challenge,
            code_challenge_method=code_challenge_method,
            prompt=prompt
        )
    except OAuthFlowError as e:
        return _redirect(error_link(e.error))

    return _redirect(url)


@router.get("/callback")
async def oauth_callback(request: Request, session: session_dependency, oauth_client: oauth_client_dependency,
                         db: db_dependency, code: str | None = None, state: str | None = None,
                         error: str | None = None):
    """
    Google redirects here. The browser is mid-redirect, so every outcome
    is a redirect to the app's deep link, never a JSON error.
    """
    logger.debug("OAuth callback received", extra=sanitize_log_data(dict(request.query_params)))

    try:
        url = await OAuthService.handle_callback(session, oauth_client, db, code, state, error=error)
    except OAuthFlowError as e:
        return _redirect(error_link(e.error))
    except OAuthBridgeError as e:
        logger.error("OAuth exchange with Google failed", extra={"error": str(e)})
        return _redirect(error_link("server_error"))
    except Exception as e:
        logger.error(
            f"OAuth callback failed: {type(e).__name__}",
            extra={"error_type": type(e).__name__},
            exc_info=True
        )
        return _redirect(error_link("server_error"))

    return _redirect(url)


@router.post("/token", response_model=OAuthTokenResponse)
@limiter.limit("10/minute")
async def oauth_token(request: Request, response: Response, body: OAuthTokenRequest,
                      session: session_dependency, db: db_dependency):
    """
    Exchange a PKCE authorization code and its code_verifier for tokens.
    """
    response.headers["Cache-Control"] = "no-store"
    response.headers["Pragma"] = "no-cache"
    return OAuthService.exchange_code(
        session,
        db,
        body.code,
        body.code_verifier,
        ip_address=get_client_ip(request),
        grant_type=body.grant_type
    )
