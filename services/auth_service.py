from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from core.config import Settings
from core.errors import AuthFailure, StoreUnavailable
from models.credentials import Credential, CREDENTIALS_PROVIDER
from models.users import User, new_id
from schemas.token_schemas import Registration, SessionInfo, SessionUser, TokenPair, VerifiedEmail
from services.session_service import SessionService
from services.token_service import TokenService
from services.verification_service import VerificationService
from utils.hashing import SecretHasher
from utils.logger import get_logger
from utils.tokens import TokenCodec

logger = get_logger(__name__)


class AuthService:
    """
    Entry points used by the route layer: registration, email verification,
    login, refresh, logout and the per-request session check.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        password_hasher: SecretHasher,
        tokens: TokenService,
        sessions: SessionService,
        verification: VerificationService,
    ):
        self._session_factory = session_factory
        self._password_hasher = password_hasher
        self.tokens = tokens
        self.sessions = sessions
        self.verification = verification

    @classmethod
    def from_settings(cls, session_factory: sessionmaker, settings: Settings) -> "AuthService":
        codec = TokenCodec(
            settings.SECRET_KEY,
            SecretHasher(rounds=settings.TOKEN_HASH_ROUNDS),
            default_bytes=settings.TOKEN_BYTES,
        )
        return cls(
            session_factory=session_factory,
            password_hasher=SecretHasher(rounds=settings.PASSWORD_HASH_ROUNDS),
            tokens=TokenService(
                session_factory,
                codec,
                session_minutes=settings.SESSION_TOKEN_EXPIRE_MINUTES,
                refresh_days=settings.REFRESH_TOKEN_EXPIRE_DAYS,
                session_retention_days=settings.SESSION_RETENTION_DAYS,
                max_active_sessions=settings.MAX_ACTIVE_SESSIONS,
            ),
            sessions=SessionService(session_factory, codec),
            verification=VerificationService(
                session_factory, codec, expire_hours=settings.VERIFICATION_TOKEN_EXPIRE_HOURS
            ),
        )

    def register(self, email: str, name: str, password: str) -> Registration | AuthFailure:
        """
        Creates a new, unverified user with a password credential and a
        verification token, all in one transaction.

        Sending the verification email is up to the caller.
        """
        email = email.lower().strip()
        password_hash = self._password_hasher.hash(password)

        try:
            with self._session_factory.begin() as db:
                existing = db.scalar(select(User.id).where(User.email == email))
                if existing:
                    logger.warning(
                        "Registration attempt with existing email",
                        extra={"email": email}
                    )
                    return AuthFailure.EMAIL_ALREADY_REGISTERED

                user = User(id=new_id(), email=email, name=name, is_verified=False)
                db.add(user)
                db.flush()
                db.add(Credential(user_id=user.id, provider=CREDENTIALS_PROVIDER, password_hash=password_hash))
                verification_token = self.verification.issue_in(db, user.id)
        except IntegrityError:
            # Lost a race against a concurrent registration of the same email
            logger.warning(
                "Registration attempt with existing email",
                extra={"email": email}
            )
            return AuthFailure.EMAIL_ALREADY_REGISTERED
        except SQLAlchemyError as e:
            logger.error(
                "Registration failed, transaction rolled back",
                extra={"email": email, "error_type": type(e).__name__},
                exc_info=True
            )
            raise StoreUnavailable("Could not register user") from e

        logger.info(
            "User registered successfully",
            extra={"user_id": user.id, "email": email}
        )
        return Registration(user_id=user.id, email=email, name=name, verification_token=verification_token)

    def verify_email(self, token: str) -> VerifiedEmail | AuthFailure:
        return self.verification.consume(token)

    def login(self, email: str, password: str, client_ip: str, user_agent: str) -> TokenPair | AuthFailure:
        """
        Checks email + password and issues a token pair.

        Unknown email and wrong password both cost one bcrypt verification and
        both return INVALID_CREDENTIALS. The verification flag is only reported
        once the password has matched.
        """
        email = email.lower().strip()

        try:
            with self._session_factory() as db:
                user = db.execute(
                    select(User.id, User.is_verified, Credential.password_hash)
                    .join(Credential, Credential.user_id == User.id)
                    .where(User.email == email, Credential.provider == CREDENTIALS_PROVIDER)
                ).first()
        except SQLAlchemyError as e:
            logger.error(
                "Login lookup failed",
                extra={"error_type": type(e).__name__},
                exc_info=True
            )
            raise StoreUnavailable("Could not look up user") from e

        if user is None:
            self._password_hasher.dummy_verify()
            logger.warning(
                "Login failed - invalid credentials",
                extra={"email": email, "client_ip": client_ip}
            )
            return AuthFailure.INVALID_CREDENTIALS

        if not self._password_hasher.verify(password, user.password_hash):
            logger.warning(
                "Login failed - invalid credentials",
                extra={"email": email, "client_ip": client_ip}
            )
            return AuthFailure.INVALID_CREDENTIALS

        if not user.is_verified:
            logger.warning(
                "Login attempt with unverified email",
                extra={"user_id": user.id, "email": email}
            )
            return AuthFailure.EMAIL_NOT_VERIFIED

        pair = self.tokens.create_pair(user.id, client_ip, user_agent)

        logger.info(
            "User logged in successfully",
            extra={"user_id": user.id, "client_ip": client_ip}
        )
        return pair

    def refresh(self, refresh_token: str, client_ip: str, user_agent: str) -> TokenPair | AuthFailure:
        return self.tokens.refresh(refresh_token, client_ip, user_agent)

    def logout(self, session_token: str | None, user_id: str, logout_all: bool = False) -> None:
        """
        Ends the current session together with its refresh token, or every
        session of the user with ``logout_all``.

        Idempotent: tokens that are already gone are ignored.
        """
        if logout_all:
            self.tokens.revoke_all(user_id)
            logger.info("User logged out from all devices", extra={"user_id": user_id})
            return

        if session_token:
            self.tokens.revoke_session_token(session_token, user_id)

        logger.info("User logged out from current session", extra={"user_id": user_id})

    def authenticate(self, session_token: str | None) -> SessionUser | AuthFailure:
        user = self.sessions.validate(session_token)
        if user is None:
            return AuthFailure.UNAUTHENTICATED
        return user

    def list_sessions(self, user_id: str) -> list[SessionInfo]:
        return self.tokens.list_active(user_id)

    def revoke_session(self, session_id: str, user_id: str) -> bool:
        revoked = self.tokens.revoke_one(session_id, user_id)
        if revoked:
            logger.info("Session revoked", extra={"user_id": user_id, "session_id": session_id})
        return revoked
