from core.database import Base
from sqlalchemy import Column, Boolean, DateTime, String, ForeignKey
from sqlalchemy.orm import relationship
from models.mixins import CreatedAtMixin
from models.users import new_id


class VerificationToken(Base, CreatedAtMixin):
    """
    One-time proof of email ownership, valid for 24 hours.

    There is no lookup column: consuming a token checks the presented value
    against the bcrypt digest of every outstanding candidate.
    """
    __tablename__ = "verification_tokens"

    #pk
    id = Column(String(36), primary_key=True, default=new_id)

    #fk
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    #relationships
    user = relationship("User", back_populates="verification_tokens")

    token_hash = Column(String(255), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used = Column(Boolean, default=False, nullable=False)
