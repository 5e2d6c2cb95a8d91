from core.database import Base
from sqlalchemy import Column, DateTime, String, Integer, ForeignKey
from sqlalchemy.sql import func


class BlacklistedToken(Base):
    """
    Revocation ledger entry.

    Keyed by the token fingerprint, never the raw token. expires_at only
    drives ledger cleanup and is independent of the token's own exp claim.
    """
    __tablename__ = "blacklisted_tokens"

    id = Column(Integer, primary_key=True, index=True)

    token_fingerprint = Column(String(64), nullable=False, unique=True, index=True)
    # access / refresh / auth_code
    token_type = Column(String(16), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    reason = Column(String(64), nullable=False)
    ip_address = Column(String(64), nullable=True)
    device_info = Column(String(255), nullable=True)

    blacklisted_at = Column(DateTime(timezone=True), default=func.now(), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
