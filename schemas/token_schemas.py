from datetime import datetime
from pydantic import BaseModel, ConfigDict


class TokenPair(BaseModel):
    """Plaintext tokens handed to the caller once; only digests are stored."""
    user_id: str
    session_token: str
    refresh_token: str
    session_expires_at: datetime
    refresh_expires_at: datetime


class SessionUser(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    avatar_url: str | None = None
    is_verified: bool
    session_id: str


class SessionInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime
    expires_at: datetime


class Registration(BaseModel):
    user_id: str
    email: str
    name: str
    verification_token: str


class VerifiedEmail(BaseModel):
    user_id: str
    email: str
