from core.database import Base
from sqlalchemy import Column, DateTime, String, ForeignKey
from sqlalchemy.orm import relationship
from models.users import new_id


class UserSession(Base):
    """
    Short-lived authenticated context behind the session cookie.

    expires_at is fixed at insert time (created_at + session lifetime) and is
    never pushed forward; renewing means inserting a new row.
    """
    __tablename__ = "sessions"

    #pk
    id = Column(String(36), primary_key=True, default=new_id)

    #fk
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    #relationships
    user = relationship("User", back_populates="sessions")

    # HMAC of the token for indexed lookup, bcrypt digest for verification
    token_lookup = Column(String(64), nullable=False, unique=True, index=True)
    token_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    ip_address = Column(String(64))
    user_agent = Column(String(512))
