from sqlalchemy.orm import Session
from models.access_requests import AccessRequest
from models.users import User
from core.config import settings
from utils.logger import get_logger

logger = get_logger(__name__)


class ApprovalService:
    """
    The approval gate: no path grants access to an account until an admin
    approves it, except the configured test allow-list outside production.
    """

    @staticmethod
    def normalize_email(email: str) -> str:
        return email.strip().lower()

    @staticmethod
    def bypass_applies(email: str) -> bool:
        if settings.ENV == "production":
            return False
        email = ApprovalService.normalize_email(email)
        if email in {e.strip().lower() for e in settings.APPROVAL_BYPASS_EMAILS}:
            return True
        domain = email.rpartition("@")[2]
        return domain in {d.strip().lower().lstrip("@") for d in settings.APPROVAL_BYPASS_DOMAINS}

    @staticmethod
    def is_approved(user: User) -> bool:
        return bool(user.approved) or ApprovalService.bypass_applies(user.email)

    @staticmethod
    def is_preapproved(email: str, db: Session) -> bool:
        """
        True when an admin already approved an access request for this email.
        """
        request = db.query(AccessRequest).filter(
            AccessRequest.email == ApprovalService.normalize_email(email)
        ).one_or_none()
        return request is not None and request.status == AccessRequest.STATUS_APPROVED

    @staticmethod
    def record_pending(email: str, db: Session, name: str | None = None,
                       notes: str = "Auto-created during sign-in attempt") -> AccessRequest:
        """
        Make sure an access request exists for an identity that was stopped
        by the gate. Existing requests keep their status.
        """
        email = ApprovalService.normalize_email(email)
        request = db.query(AccessRequest).filter(AccessRequest.email == email).one_or_none()
        if request is not None:
            return request

        request = AccessRequest(
            email=email,
            name=name,
            status=AccessRequest.STATUS_PENDING,
            notes=notes
        )
        db.add(request)
        db.commit()
        db.refresh(request)

        logger.info("Access request recorded", extra={"access_request_id": request.id})
        return request

    @staticmethod
    def request_access(email: str, db: Session, name: str | None = None,
                       notes: str | None = None) -> AccessRequest:
        """
        Explicit request from the public endpoint. A rejected request goes
        back to pending; an approved one is left alone.
        """
        email = ApprovalService.normalize_email(email)
        request = db.query(AccessRequest).filter(AccessRequest.email == email).one_or_none()

        if request is None:
            return ApprovalService.record_pending(email, db, name=name, notes=notes or "")

        if request.status != AccessRequest.STATUS_APPROVED:
            request.status = AccessRequest.STATUS_PENDING
            request.name = name or request.name
            request.notes = notes or request.notes
            db.commit()
            db.refresh(request)

        return request

    @staticmethod
    def check_status(email: str, db: Session) -> dict:
        """
        Where an email stands with the gate. An unknown email is recorded
        as a pending request on the way.
        """
        request = ApprovalService.record_pending(email, db, notes="Auto-created during status check")

        if request.status == AccessRequest.STATUS_APPROVED:
            return {"approved": True, "status": request.status}

        if request.status == AccessRequest.STATUS_REJECTED:
            message = "Your access request has been declined."
        else:
            message = "Your access request is pending approval."
        return {"approved": False, "status": request.status, "message": message}
