from utils.hashing import verify_password, get_password_hash
from models.users import User
from schemas.auth_schemas import CreateUserRequest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette import status
from core.exceptions import AuthError, invalid_credentials, not_approved
from services.approval_service import ApprovalService
from services.token_service import TokenService
from utils.logger import get_logger

logger = get_logger(__name__)

class AuthService:

    @staticmethod
    def get_user_by_email(email: str, db: Session) -> User | None:
        return db.query(User).filter(User.email == ApprovalService.normalize_email(email)).one_or_none()

    @staticmethod
    def get_user_by_id(user_id: int, db: Session) -> User | None:
        return db.query(User).filter(User.id == user_id).one_or_none()

    @staticmethod
    def create_user(request: CreateUserRequest, db: Session):
        """
        Creates a new local account.
        
        Flow:
        1. Check if email already exists (case-insensitive)
        2. Create user, approved only if an admin pre-approved the email
        3. Return the user; no tokens are issued at registration
        """
        email = ApprovalService.normalize_email(request.email)

        if AuthService.get_user_by_email(email, db):
            logger.warning("Registration attempt with existing email", extra={"email": email})
            raise AuthError(status.HTTP_400_BAD_REQUEST, "Email already registered", "email_taken")

        model = User(
            email=email,
            display_name=request.display_name or email.split("@")[0],
            hashed_password=get_password_hash(request.password),
            approved=ApprovalService.is_preapproved(email, db),
            is_admin=False
        )

        db.add(model)
        try:
            db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration
            db.rollback()
            raise AuthError(status.HTTP_400_BAD_REQUEST, "Email already registered", "email_taken")

        db.refresh(model)
        return model


    @staticmethod
    def authenticate_user(email: str, password: str, db: Session):
        user = AuthService.get_user_by_email(email, db)

        if not user:
            logger.warning("Login failed - user not found", extra={"email": email})
            raise invalid_credentials()

        if not verify_password(password, user.hashed_password):
            logger.warning(
                "Login failed - invalid password",
                extra={"user_id": user.id, "email": email}
            )
            raise invalid_credentials()

        # Checked after the password so the 403 never reveals an account
        if not ApprovalService.is_approved(user):
            logger.warning(
                "Login attempt on unapproved account",
                extra={"user_id": user.id, "email": email}
            )
            raise not_approved()

        logger.debug(
            "User authenticated successfully",
            extra={"user_id": user.id, "email": email}
        )

        return user

    @staticmethod
    def login(email: str, password: str, db: Session):
        user = AuthService.authenticate_user(email, password, db)
        tokens = TokenService.create_tokens(user, db)
        tokens["user"] = user
        return tokens

    @staticmethod
    def logout(user: User, access_token: str, refresh_token: str | None, db: Session,
               ip_address: str | None = None):
        """
        Ends the session: deletes and blacklists the refresh token when one
        is given, and blacklists the access token used for the call.
        """
        if refresh_token:
            TokenService.revoke_token(refresh_token, db, user_id=user.id, ip_address=ip_address)

        TokenService.blacklist_token(access_token, db, reason="logout", ip_address=ip_address)

    @staticmethod
    def ensure_approved(user: User) -> User:
        if not ApprovalService.is_approved(user):
            raise not_approved()
        return user
