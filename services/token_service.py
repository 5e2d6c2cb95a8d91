import secrets
import hashlib
from datetime import datetime, timezone, timedelta
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette import status
from jose import jwt, JWTError, ExpiredSignatureError
from models.refresh_tokens import RefreshToken
from models.users import User
from core.config import settings
from core.exceptions import AuthError, INVALID_REFRESH_TOKEN, not_approved
from services.blacklist_service import BlacklistService
from services.approval_service import ApprovalService
from utils.expiry import utc_now
from utils.logger import get_logger

logger = get_logger(__name__)

ACCESS = "access"
REFRESH = "refresh"
AUTH_CODE = "auth_code"


class TokenError(Exception):
    """
    Raised when a token fails verification.

    kind is one of invalid / expired / revoked. It is meant for logging;
    callers answer every kind with the same message.
    """
    INVALID = "invalid"
    EXPIRED = "expired"
    REVOKED = "revoked"

    def __init__(self, kind: str):
        super().__init__(kind)
        self.kind = kind


def _invalid_refresh(code: str = "invalid_refresh_token") -> AuthError:
    return AuthError(status.HTTP_401_UNAUTHORIZED, INVALID_REFRESH_TOKEN, code)


class TokenService:
    """
    Handles all token operations: creation, validation, rotation, and revocation.
    """

    @staticmethod
    def fingerprint(token: str) -> str:
        """
        SHA-256 hex digest of the raw token string.

        Used as the key in the refresh token store and the revocation
        ledger so neither holds live bearer tokens.
        """
        return hashlib.sha256(token.encode("utf-8")).hexdigest()

    @staticmethod
    def issue(kind: str, user_id: int, ttl: timedelta, claims: dict | None = None) -> str:
        """
        Sign a token of the given kind.

        Every token carries sub, type, jti, iat and exp. Extra claims are
        copied in first so they can never override the reserved ones.
        """
        now = datetime.now(timezone.utc)
        payload = dict(claims or {})
        payload.update({
            "sub": str(user_id),
            "type": kind,
            "jti": secrets.token_urlsafe(16),
            "iat": now,
            "exp": now + ttl,
        })
        return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def create_access_token(user_id: int, expires_delta: timedelta = None, claims: dict | None = None):
        if expires_delta is None:
            expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        return TokenService.issue(ACCESS, user_id, expires_delta, claims)

    @staticmethod
    def create_refresh_token(user_id: int, expires_delta: timedelta = None):
        """
        Returns:
            Tuple of (refresh_token_string, expires_at)
        """
        if expires_delta is None:
            expires_delta = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
        token = TokenService.issue(REFRESH, user_id, expires_delta)
        return token, utc_now() + expires_delta

    @staticmethod
    def create_auth_code(user_id: int, expires_delta: timedelta = None):
        if expires_delta is None:
            expires_delta = timedelta(minutes=settings.AUTH_CODE_EXPIRE_MINUTES)
        return TokenService.issue(AUTH_CODE, user_id, expires_delta)

    @staticmethod
    def verify_token(token: str, db: Session) -> dict:
        """
        Verify a token and return its claims.

        Order: revocation ledger, then signature and structure, then expiry.

        Raises:
            TokenError: with kind revoked, invalid or expired
        """
        if not token:
            raise TokenError(TokenError.INVALID)

        if BlacklistService.is_blacklisted(db, TokenService.fingerprint(token)):
            raise TokenError(TokenError.REVOKED)

        try:
            payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        except ExpiredSignatureError:
            # jose checks the signature before exp, so this one is authentic
            raise TokenError(TokenError.EXPIRED)
        except JWTError:
            raise TokenError(TokenError.INVALID)

        sub = payload.get("sub")
        if not sub or not str(sub).isdigit() or payload.get("type") not in (ACCESS, REFRESH, AUTH_CODE):
            raise TokenError(TokenError.INVALID)

        return payload

    @staticmethod
    def expires_in(token: str) -> int:
        """
        Seconds left before the token's real exp claim.
        """
        exp = jwt.get_unverified_claims(token)["exp"]
        return max(int(exp) - int(utc_now().timestamp()), 0)

    @staticmethod
    def blacklist_token(
        token: str,
        db: Session,
        reason: str,
        ip_address: str | None = None,
        device_info: str | None = None,
        commit: bool = True,
    ) -> bool:
        """
        Put a token's fingerprint in the revocation ledger.

        Type and owner are read from the unverified claims; they are
        bookkeeping only. Returns False if the token was already there,
        including when a concurrent request won the insert.
        """
        try:
            claims = jwt.get_unverified_claims(token)
        except JWTError:
            claims = {}

        token_type = claims.get("type")
        if token_type not in BlacklistService.TOKEN_TYPES:
            token_type = ACCESS
        sub = claims.get("sub")
        user_id = int(sub) if sub is not None and str(sub).isdigit() else None

        entry = BlacklistService.add(
            db,
            fingerprint=TokenService.fingerprint(token),
            token_type=token_type,
            reason=reason,
            user_id=user_id,
            ip_address=ip_address,
            device_info=device_info,
        )
        if entry is None:
            return False

        if commit:
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                return False

        logger.info(
            "Token blacklisted",
            extra={"token_type": token_type, "user_id": user_id, "reason": reason}
        )
        return True

    @staticmethod
    def _store_refresh_token(user_id: int, db: Session):
        refresh_token, expires_at = TokenService.create_refresh_token(user_id)
        db.add(RefreshToken(
            user_id=user_id,
            token_hash=TokenService.fingerprint(refresh_token),
            expires_at=expires_at
        ))
        return refresh_token

    @staticmethod
    def create_tokens(user: User, db: Session, commit: bool = True):
        """
        Creates access token + refresh token pair.
        Stores the refresh token fingerprint in database.
        
        Returns:
            Dictionary with access_token, refresh_token, token_type and expires_in
        """
        access_token = TokenService.create_access_token(user.id)
        refresh_token = TokenService._store_refresh_token(user.id, db)

        if commit:
            db.commit()

        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer",
            # From the decoded exp, not the nominal TTL
            "expires_in": TokenService.expires_in(access_token)
        }

    @staticmethod
    def refresh_access_token(refresh_token: str, db: Session, ip_address: str | None = None,
                             device_info: str | None = None):
        """
        Validates refresh token and issues new access + refresh tokens.

        The stored record is consumed with a single conditional DELETE, so
        when two requests race on the same token only one sees a deleted
        row. The old token is also blacklisted in the same transaction.

        Raises:
            AuthError: invalid_refresh_token, refresh_token_not_found
                or account_not_approved
        """
        try:
            payload = TokenService.verify_token(refresh_token, db)
        except TokenError as e:
            logger.warning("Refresh rejected", extra={"reason": e.kind, "client_ip": ip_address})
            raise _invalid_refresh()

        if payload.get("type") != REFRESH:
            # Someone is presenting an access token or auth code as a refresh token
            TokenService.blacklist_token(refresh_token, db, reason="token_type_misuse",
                                         ip_address=ip_address, device_info=device_info)
            logger.warning(
                "Refresh rejected - wrong token type",
                extra={"token_type": payload.get("type"), "user_id": payload.get("sub"),
                       "client_ip": ip_address}
            )
            raise _invalid_refresh()

        user_id = int(payload["sub"])

        deleted = db.query(RefreshToken).filter(
            RefreshToken.token_hash == TokenService.fingerprint(refresh_token),
            RefreshToken.expires_at > utc_now()
        ).delete(synchronize_session=False)

        if deleted != 1:
            db.rollback()
            logger.warning(
                "Refresh rejected - token not in store",
                extra={"user_id": user_id, "client_ip": ip_address}
            )
            raise _invalid_refresh("refresh_token_not_found")

        user = db.query(User).filter(User.id == user_id).one_or_none()
        if user is None:
            db.commit()
            raise _invalid_refresh()

        if not ApprovalService.is_approved(user):
            # Keep the stored token deleted
            db.commit()
            logger.warning("Refresh rejected - account not approved", extra={"user_id": user_id})
            raise not_approved()

        TokenService.blacklist_token(refresh_token, db, reason="rotated", ip_address=ip_address,
                                     device_info=device_info, commit=False)
        tokens = TokenService.create_tokens(user, db, commit=False)
        db.commit()

        return tokens

    @staticmethod
    def revoke_token(refresh_token: str, db: Session, user_id: int | None = None,
                     ip_address: str | None = None):
        """
        Revokes a refresh token (logout). Safe to call repeatedly.

        When user_id is given only a record owned by that user is deleted.
        Tokens that do not even carry a valid signature are ignored.
        """
        query = db.query(RefreshToken).filter(
            RefreshToken.token_hash == TokenService.fingerprint(refresh_token)
        )
        if user_id is not None:
            query = query.filter(RefreshToken.user_id == user_id)
        deleted = query.delete(synchronize_session=False)

        try:
            payload = jwt.decode(refresh_token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM],
                                 options={"verify_exp": False})
        except JWTError:
            db.commit()
            return deleted

        if user_id is not None and payload.get("sub") != str(user_id):
            # Never revoke a token on behalf of someone else
            db.commit()
            return deleted

        TokenService.blacklist_token(refresh_token, db, reason="logout", ip_address=ip_address,
                                     commit=False)
        db.commit()
        return deleted

    @staticmethod
    def revoke_all_user_tokens(user_id: int, db: Session):
        """
        Deletes every stored refresh token of a user (logout from all devices).
        """
        deleted = db.query(RefreshToken).filter(
            RefreshToken.user_id == user_id
        ).delete(synchronize_session=False)
        db.commit()
        return deleted

    @staticmethod
    def purge_expired_refresh_tokens(db: Session, now: datetime | None = None):
        deleted = db.query(RefreshToken).filter(
            RefreshToken.expires_at <= (now or utc_now())
        ).delete(synchronize_session=False)
        db.commit()

        logger.info("Expired refresh tokens purged", extra={"deleted": deleted})
        return deleted
