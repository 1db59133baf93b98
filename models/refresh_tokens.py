from core.database import Base
from sqlalchemy import Column, DateTime, String, ForeignKey
from sqlalchemy.orm import relationship
from models.users import new_id


class RefreshToken(Base):
    """
    Stores refresh tokens for user authentication.

    Refresh tokens are long-lived (30 days) and single-use: a successful
    refresh deletes the row and inserts a new one in the same transaction.
    Only digests are stored. Each token is linked to the session it was
    issued with, since the refresh cookie is never sent to the logout route.
    """
    __tablename__ = "refresh_tokens"

    #pk
    id = Column(String(36), primary_key=True, default=new_id)

    #fk
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # Session issued together with this token; logging that session out deletes both.
    # Nulled when the janitor purges the session, the token stays usable.
    session_id = Column(String(36), ForeignKey("sessions.id", ondelete="SET NULL"), nullable=True, index=True)

    #relationships
    user = relationship("User", back_populates="refresh_tokens")

    token_lookup = Column(String(64), nullable=False, unique=True, index=True)
    token_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    last_used_at = Column(DateTime(timezone=True), nullable=True)
