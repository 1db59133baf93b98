from datetime import timedelta

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from core.database import store_now
from core.errors import StoreUnavailable
from models.refresh_tokens import RefreshToken
from models.sessions import UserSession
from utils.logger import get_logger

logger = get_logger(__name__)


class JanitorService:
    """
    Periodic cleanup of expired sessions and refresh tokens.

    Each sweep is a single DELETE scoped by an expiry predicate, so it is
    idempotent and never touches live rows. Scheduling is left to the caller
    (see cleanup.py).
    """

    def __init__(self, session_factory: sessionmaker, session_retention_days: int = 7,
                 refresh_retention_days: int = 1):
        self._session_factory = session_factory
        self.session_retention = timedelta(days=session_retention_days)
        self.refresh_retention = timedelta(days=refresh_retention_days)

    def purge_expired_sessions(self) -> int:
        count = self._sweep(UserSession, self.session_retention)
        logger.info(f"Cleaned up {count} expired sessions", extra={"deleted": count})
        return count

    def purge_expired_refresh_tokens(self) -> int:
        count = self._sweep(RefreshToken, self.refresh_retention)
        logger.info(f"Cleaned up {count} expired refresh tokens", extra={"deleted": count})
        return count

    def run(self) -> dict[str, int]:
        return {
            "sessions": self.purge_expired_sessions(),
            "refresh_tokens": self.purge_expired_refresh_tokens(),
        }

    def _sweep(self, model, retention: timedelta) -> int:
        try:
            with self._session_factory.begin() as db:
                result = db.execute(
                    delete(model)
                    .where(model.expires_at < store_now(int(retention.total_seconds())))
                    .execution_options(synchronize_session=False)
                )
        except SQLAlchemyError as e:
            logger.error(
                f"Cleanup of {model.__tablename__} failed",
                extra={"table": model.__tablename__, "error_type": type(e).__name__},
                exc_info=True
            )
            raise StoreUnavailable(f"Could not clean up {model.__tablename__}") from e
        return result.rowcount
