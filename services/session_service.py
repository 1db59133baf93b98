from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from core.database import store_now
from core.errors import StoreUnavailable
from models.sessions import UserSession
from models.users import User
from schemas.token_schemas import SessionUser
from utils.logger import get_logger
from utils.tokens import TokenCodec

logger = get_logger(__name__)


class SessionService:
    """
    Resolves a presented session token to a live, verified user.
    """

    def __init__(self, session_factory: sessionmaker, codec: TokenCodec):
        self._session_factory = session_factory
        self._codec = codec

    def validate(self, session_token: str) -> SessionUser | None:
        """
        Returns the session's user, or None.

        Unknown token, expired session, unverified user and digest mismatch
        all give the same None. A store error is raised as StoreUnavailable,
        never returned as a user.
        """
        if not session_token:
            return None

        try:
            with self._session_factory() as db:
                row = db.execute(
                    select(
                        User.id,
                        User.email,
                        User.name,
                        User.avatar_url,
                        User.is_verified,
                        UserSession.id.label("session_id"),
                        UserSession.token_hash,
                    )
                    .join(User, User.id == UserSession.user_id)
                    .where(
                        UserSession.token_lookup == self._codec.lookup_key(session_token),
                        UserSession.expires_at > store_now(),
                        User.is_verified.is_(True),
                    )
                ).first()
        except SQLAlchemyError as e:
            logger.error(
                "Session lookup failed",
                extra={"error_type": type(e).__name__},
                exc_info=True
            )
            raise StoreUnavailable("Could not validate session") from e

        if row is None:
            self._codec.dummy_verify()
            return None

        if not self._codec.verify(session_token, row.token_hash):
            return None

        return SessionUser.model_validate(row)
