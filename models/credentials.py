from core.database import Base
from sqlalchemy import Column, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from models.mixins import CreatedAtMixin
from models.users import new_id

CREDENTIALS_PROVIDER = "credentials"


class Credential(Base, CreatedAtMixin):
    """
    Login secret of a user for one provider.

    Only the "credentials" (email + password) provider exists today; the
    provider column keeps the table one row per (user, provider).
    """
    __tablename__ = "credentials"
    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_credentials_user_provider"),
    )

    #pk
    id = Column(String(36), primary_key=True, default=new_id)

    #fk
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    #relationships
    user = relationship("User", back_populates="credentials")

    provider = Column(String(50), nullable=False, default=CREDENTIALS_PROVIDER)
    password_hash = Column(String(255), nullable=False)
