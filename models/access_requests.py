from core.database import Base
from sqlalchemy import Column, Integer, String, Text
from models.mixins import CreatedAtMixin, UpdatedAtMixin


class AccessRequest(Base, CreatedAtMixin, UpdatedAtMixin):
    """
    Access request from an identity that is not approved yet.

    Created the first time an unapproved account signs in with Google, or
    explicitly through the public request endpoint. Admins move it to
    approved or rejected.
    """
    __tablename__ = "access_requests"

    STATUS_PENDING = "pending"
    STATUS_APPROVED = "approved"
    STATUS_REJECTED = "rejected"

    id = Column(Integer, primary_key=True, index=True)

    email = Column(String(320), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    status = Column(String(16), nullable=False, default=STATUS_PENDING, index=True)
    notes = Column(Text, nullable=False, default="")
