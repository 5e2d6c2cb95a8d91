from fastapi import APIRouter, Request
from starlette import status
from utils.deps import db_dependency
from schemas.admin_schemas import AccessRequestCreate, AccessStatusCheck, AccessStatusOut
from services.approval_service import ApprovalService
from middleware.rate_limiter import limiter
from utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/access-requests",
    tags=["access-requests"]
)


@router.post("", status_code=status.HTTP_202_ACCEPTED)
@limiter.limit("3/minute")
async def request_access(request: Request, body: AccessRequestCreate, db: db_dependency):
    """
    Ask an admin for access. The answer is the same whatever the current
    state of the email, so it cannot be used to probe for accounts.
    """
    access_request = ApprovalService.request_access(body.email, db, name=body.name, notes=body.notes)

    logger.info("Access requested", extra={"access_request_id": access_request.id})

    return {"message": "Your access request has been recorded."}


@router.post("/check", response_model=AccessStatusOut)
@limiter.limit("10/minute")
async def check_access(request: Request, body: AccessStatusCheck, db: db_dependency):
    """
    Tell the app whether an email may sign in yet. Unknown emails are
    recorded as pending requests.
    """
    return ApprovalService.check_status(body.email, db)
