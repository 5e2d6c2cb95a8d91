from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette import status
from models.access_requests import AccessRequest
from models.users import User
from core.exceptions import AuthError
from services.approval_service import ApprovalService
from services.token_service import TokenService
from utils.expiry import utc_now
from utils.logger import get_logger

logger = get_logger(__name__)


def _not_found(what: str) -> AuthError:
    return AuthError(status.HTTP_404_NOT_FOUND, f"{what} not found", "not_found")


class AdminService:

    @staticmethod
    def list_access_requests(db: Session, status_filter: str | None = None):
        query = db.query(AccessRequest)
        if status_filter:
            query = query.filter(AccessRequest.status == status_filter)
        return query.order_by(AccessRequest.created_at.desc(), AccessRequest.id.desc()).all()

    @staticmethod
    def approve_access_request(request_id: int, admin: User, db: Session):
        request = db.query(AccessRequest).filter(AccessRequest.id == request_id).one_or_none()
        if not request:
            raise _not_found("Access request")

        request.status = AccessRequest.STATUS_APPROVED
        request.notes = f"Approved by admin {admin.email} on {utc_now().isoformat()}"

        # The account may not exist yet; it is then created approved on first sign-in
        user = db.query(User).filter(User.email == request.email).one_or_none()
        if user:
            user.approved = True

        db.commit()
        db.refresh(request)

        logger.info(
            "Access request approved",
            extra={"access_request_id": request.id, "admin_id": admin.id,
                   "user_id": user.id if user else None}
        )
        return request

    @staticmethod
    def add_access_request(email: str, admin: User, db: Session, name: str | None = None,
                           notes: str | None = None, approved: bool = True):
        """
        Create an entry directly, approved by default, so an admin can let
        someone in before they ever ask.
        """
        email = ApprovalService.normalize_email(email)
        if db.query(AccessRequest).filter(AccessRequest.email == email).one_or_none():
            raise AuthError(status.HTTP_400_BAD_REQUEST, "Access request already exists",
                            "access_request_exists")

        request = AccessRequest(
            email=email,
            name=name,
            status=AccessRequest.STATUS_APPROVED if approved else AccessRequest.STATUS_PENDING,
            notes=notes or f"Added by admin {admin.email}"
        )
        db.add(request)

        user = db.query(User).filter(User.email == email).one_or_none()
        if user and approved:
            user.approved = True

        try:
            db.commit()
        except IntegrityError:
            # A public request for the same email landed first
            db.rollback()
            raise AuthError(status.HTTP_400_BAD_REQUEST, "Access request already exists",
                            "access_request_exists")
        db.refresh(request)

        logger.info(
            "Access request added by admin",
            extra={"access_request_id": request.id, "admin_id": admin.id, "approved": approved}
        )
        return request

    @staticmethod
    def delete_access_request(request_id: int, admin: User, db: Session) -> None:
        """
        Remove an entry. The matching account, if any, keeps its approval flag.
        """
        request = db.query(AccessRequest).filter(AccessRequest.id == request_id).one_or_none()
        if not request:
            raise _not_found("Access request")

        db.delete(request)
        db.commit()

        logger.info(
            "Access request deleted",
            extra={"access_request_id": request_id, "admin_id": admin.id}
        )

    @staticmethod
    def reject_access_request(request_id: int, admin: User, db: Session, notes: str | None = None):
        request = db.query(AccessRequest).filter(AccessRequest.id == request_id).one_or_none()
        if not request:
            raise _not_found("Access request")

        request.status = AccessRequest.STATUS_REJECTED
        request.notes = notes or f"Rejected by admin {admin.email} on {utc_now().isoformat()}"
        db.commit()
        db.refresh(request)

        logger.info(
            "Access request rejected",
            extra={"access_request_id": request.id, "admin_id": admin.id}
        )
        return request

    @staticmethod
    def list_users(db: Session, approved: bool | None = None):
        query = db.query(User)
        if approved is not None:
            query = query.filter(User.approved == approved)
        return query.order_by(User.id).all()

    @staticmethod
    def set_user_approval(user_id: int, approved: bool, admin: User, db: Session):
        """
        Flip the approval flag. Withdrawing approval also drops every stored
        refresh token so the account cannot rotate its way back in.
        """
        user = db.query(User).filter(User.id == user_id).one_or_none()
        if not user:
            raise _not_found("User")

        user.approved = approved

        # Keep the admin queue in step with the account
        request = db.query(AccessRequest).filter(AccessRequest.email == user.email).one_or_none()
        if request:
            request.status = AccessRequest.STATUS_APPROVED if approved else AccessRequest.STATUS_REJECTED
            request.notes = (f"{'Approved' if approved else 'Approval revoked'} by admin {admin.email} "
                             f"on {utc_now().isoformat()}")

        db.commit()

        if not approved:
            TokenService.revoke_all_user_tokens(user.id, db)

        db.refresh(user)
        logger.info(
            "User approval changed",
            extra={"user_id": user.id, "approved": approved, "admin_id": admin.id}
        )
        return user
