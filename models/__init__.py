from models.users import User
from models.credentials import Credential
from models.sessions import UserSession
from models.refresh_tokens import RefreshToken
from models.verification_tokens import VerificationToken

__all__ = ["User", "Credential", "UserSession", "RefreshToken", "VerificationToken"]
