from datetime import datetime, timedelta
from sqlalchemy.orm import Session
from models.blacklisted_tokens import BlacklistedToken
from core.config import settings
from utils.expiry import utc_now, expires_after
from utils.logger import get_logger

logger = get_logger(__name__)


class BlacklistService:
    """
    Revocation ledger. Works on token fingerprints only; producing the
    fingerprint is the token service's job.
    """

    TOKEN_TYPES = ("access", "refresh", "auth_code")

    @staticmethod
    def is_blacklisted(db: Session, fingerprint: str) -> bool:
        return db.query(BlacklistedToken.id).filter(
            BlacklistedToken.token_fingerprint == fingerprint
        ).first() is not None

    @staticmethod
    def add(
        db: Session,
        fingerprint: str,
        token_type: str,
        reason: str,
        user_id: int | None = None,
        ip_address: str | None = None,
        device_info: str | None = None,
        expires_at: datetime | None = None,
    ) -> BlacklistedToken | None:
        """
        Stage a ledger entry on the session without committing.

        Returns None when the fingerprint is already in the ledger.
        """
        if token_type not in BlacklistService.TOKEN_TYPES:
            raise ValueError(f"Unknown token type: {token_type}")

        if BlacklistService.is_blacklisted(db, fingerprint):
            return None

        if expires_at is None:
            expires_at = expires_after(timedelta(days=settings.BLACKLIST_RETENTION_DAYS))

        entry = BlacklistedToken(
            token_fingerprint=fingerprint,
            token_type=token_type,
            user_id=user_id,
            reason=reason,
            ip_address=ip_address,
            device_info=device_info[:255] if device_info else None,
            blacklisted_at=utc_now(),
            expires_at=expires_at,
        )
        db.add(entry)
        return entry

    @staticmethod
    def cleanup_expired(db: Session, now: datetime | None = None) -> int:
        """
        Delete ledger entries whose own expires_at has passed.

        Entries are only ever removed after expires_at, so a skipped run
        just leaves extra rows behind.
        """
        cutoff = now or utc_now()
        deleted = db.query(BlacklistedToken).filter(
            BlacklistedToken.expires_at < cutoff
        ).delete(synchronize_session=False)
        db.commit()

        logger.info("Blacklist cleanup finished", extra={"deleted": deleted})
        return deleted
