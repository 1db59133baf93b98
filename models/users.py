import uuid

from core.database import Base
from sqlalchemy import Column, String, Boolean
from sqlalchemy.orm import relationship
from models.mixins import CreatedAtMixin, UpdatedAtMixin


def new_id() -> str:
    return str(uuid.uuid4())


class User(Base, CreatedAtMixin, UpdatedAtMixin):
    __tablename__ = "users"

    #pk
    id = Column(String(36), primary_key=True, default=new_id)

    #relationships
    credentials = relationship("Credential", back_populates="user", passive_deletes=True)
    sessions = relationship("UserSession", back_populates="user", passive_deletes=True)
    refresh_tokens = relationship("RefreshToken", back_populates="user", passive_deletes=True)
    verification_tokens = relationship("VerificationToken", back_populates="user", passive_deletes=True)

    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    avatar_url = Column(String(512), nullable=True)
    # Flips false -> true once, on email verification
    is_verified = Column(Boolean, default=False, nullable=False)
