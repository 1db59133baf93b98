from datetime import datetime, timezone, timedelta

from sqlalchemy import select, insert, delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from core.database import store_now
from core.errors import AuthFailure, StoreUnavailable
from models.refresh_tokens import RefreshToken
from models.sessions import UserSession
from models.users import User, new_id
from schemas.token_schemas import TokenPair, SessionInfo
from utils.logger import get_logger
from utils.tokens import TokenCodec

logger = get_logger(__name__)


class TokenService:
    """
    Handles the session/refresh token pair lifecycle: creation, rotation, and revocation.

    Every public method runs in its own transaction, taken from the session
    factory and released on every exit path. Store errors roll the transaction
    back and surface as StoreUnavailable.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        codec: TokenCodec,
        session_minutes: int = 15,
        refresh_days: int = 30,
        session_retention_days: int = 7,
        max_active_sessions: int = 5,
    ):
        self._session_factory = session_factory
        self._codec = codec
        self.session_lifetime = timedelta(minutes=session_minutes)
        self.refresh_lifetime = timedelta(days=refresh_days)
        self.session_retention = timedelta(days=session_retention_days)
        self.max_active_sessions = max_active_sessions

    def create_pair(self, user_id: str, client_ip: str, user_agent: str) -> TokenPair:
        """
        Creates a session + refresh token pair for a user.

        Both rows are inserted in one transaction: either both exist or neither does.
        The plaintext tokens in the result are never retrievable again.
        """
        try:
            with self._session_factory.begin() as db:
                pair = self._insert_pair(db, user_id, client_ip, user_agent)
        except SQLAlchemyError as e:
            logger.error(
                "Failed to create token pair",
                extra={"user_id": user_id, "error_type": type(e).__name__},
                exc_info=True
            )
            raise StoreUnavailable("Could not create token pair") from e

        logger.info(
            "Token pair issued",
            extra={"user_id": user_id, "client_ip": client_ip}
        )
        return pair

    def refresh(self, refresh_token: str, client_ip: str, user_agent: str) -> TokenPair | AuthFailure:
        """
        Consumes a refresh token and issues a replacement pair.

        Flow (single transaction):
        1. Lock the matching, unexpired refresh token row
        2. Verify the digest and that the owner is still verified
        3. Delete the consumed row
        4. Drop the owner's sessions that expired beyond the retention window
        5. Insert the new pair

        A concurrent refresh with the same token either waits on the row lock
        and then finds nothing, or deletes zero rows; both end as
        INVALID_OR_EXPIRED_REFRESH_TOKEN.
        """
        if not refresh_token:
            return AuthFailure.INVALID_OR_EXPIRED_REFRESH_TOKEN

        lookup = self._codec.lookup_key(refresh_token)

        try:
            with self._session_factory.begin() as db:
                record = db.execute(
                    select(
                        RefreshToken.id,
                        RefreshToken.user_id,
                        RefreshToken.token_hash,
                        User.is_verified,
                    )
                    .join(User, User.id == RefreshToken.user_id)
                    .where(
                        RefreshToken.token_lookup == lookup,
                        RefreshToken.expires_at > store_now(),
                    )
                    .with_for_update(of=RefreshToken)
                ).first()

                if record is None:
                    self._codec.dummy_verify()

                if (
                    record is None
                    or not self._codec.verify(refresh_token, record.token_hash)
                    or not record.is_verified
                ):
                    logger.warning(
                        "Refresh rejected - unknown, expired or unverified",
                        extra={"client_ip": client_ip}
                    )
                    return AuthFailure.INVALID_OR_EXPIRED_REFRESH_TOKEN

                consumed = db.execute(
                    delete(RefreshToken)
                    .where(RefreshToken.id == record.id)
                    .execution_options(synchronize_session=False)
                )
                if consumed.rowcount != 1:
                    logger.warning(
                        "Refresh rejected - token consumed concurrently",
                        extra={"user_id": record.user_id, "client_ip": client_ip}
                    )
                    return AuthFailure.INVALID_OR_EXPIRED_REFRESH_TOKEN

                db.execute(
                    delete(UserSession)
                    .where(
                        UserSession.user_id == record.user_id,
                        UserSession.expires_at < store_now(int(self.session_retention.total_seconds())),
                    )
                    .execution_options(synchronize_session=False)
                )

                pair = self._insert_pair(db, record.user_id, client_ip, user_agent)
        except SQLAlchemyError as e:
            logger.error(
                "Token refresh failed, transaction rolled back",
                extra={"client_ip": client_ip, "error_type": type(e).__name__},
                exc_info=True
            )
            raise StoreUnavailable("Could not refresh session") from e

        logger.info(
            "Token pair rotated",
            extra={"user_id": record.user_id, "client_ip": client_ip}
        )
        return pair

    def revoke_all(self, user_id: str) -> None:
        """
        Deletes every session and refresh token of a user (logout from all devices).

        Idempotent. Best-effort as of call time: a refresh committing afterwards
        is not covered.
        """
        try:
            with self._session_factory.begin() as db:
                sessions = db.execute(
                    delete(UserSession)
                    .where(UserSession.user_id == user_id)
                    .execution_options(synchronize_session=False)
                )
                refresh_tokens = db.execute(
                    delete(RefreshToken)
                    .where(RefreshToken.user_id == user_id)
                    .execution_options(synchronize_session=False)
                )
        except SQLAlchemyError as e:
            logger.error(
                "Failed to revoke user tokens",
                extra={"user_id": user_id, "error_type": type(e).__name__},
                exc_info=True
            )
            raise StoreUnavailable("Could not revoke tokens") from e

        logger.info(
            "All user tokens revoked",
            extra={
                "user_id": user_id,
                "sessions": sessions.rowcount,
                "refresh_tokens": refresh_tokens.rowcount
            }
        )

    def revoke_one(self, session_id: str, user_id: str) -> bool:
        """Deletes one session and its paired refresh token, only if they belong to ``user_id``."""
        return self._revoke_sessions(UserSession.id == session_id, UserSession.user_id == user_id)

    def revoke_session_token(self, session_token: str, user_id: str) -> bool:
        """
        Deletes the presented session and the refresh token issued with it.

        The refresh cookie is scoped to the refresh route, so logout can only
        reach the refresh token through the pair link.
        """
        return self._revoke_sessions(
            UserSession.token_lookup == self._codec.lookup_key(session_token),
            UserSession.user_id == user_id,
        )

    def list_active(self, user_id: str) -> list[SessionInfo]:
        """Non-expired sessions of a user, most recent first."""
        try:
            with self._session_factory() as db:
                rows = db.scalars(
                    select(UserSession)
                    .where(UserSession.user_id == user_id, UserSession.expires_at > store_now())
                    .order_by(UserSession.created_at.desc(), UserSession.id)
                ).all()
                return [SessionInfo.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(
                "Failed to list sessions",
                extra={"user_id": user_id, "error_type": type(e).__name__},
                exc_info=True
            )
            raise StoreUnavailable("Could not list sessions") from e

    def count_active(self, user_id: str) -> int:
        try:
            with self._session_factory() as db:
                return self._count_live(db, UserSession, user_id)
        except SQLAlchemyError as e:
            raise StoreUnavailable("Could not count sessions") from e

    def _insert_pair(self, db: Session, user_id: str, client_ip: str, user_agent: str) -> TokenPair:
        session_token = self._codec.generate()
        refresh_token = self._codec.generate()

        # Expiries are fixed once from the creation instant
        now = datetime.now(timezone.utc)
        session_expires_at = now + self.session_lifetime
        refresh_expires_at = now + self.refresh_lifetime

        if self.max_active_sessions > 0:
            self._enforce_session_limit(db, user_id)

        session_id = new_id()
        db.execute(
            insert(UserSession).values(
                id=session_id,
                user_id=user_id,
                token_lookup=self._codec.lookup_key(session_token),
                token_hash=self._codec.digest(session_token),
                created_at=now,
                expires_at=session_expires_at,
                ip_address=client_ip,
                user_agent=user_agent,
            )
        )
        db.execute(
            insert(RefreshToken).values(
                user_id=user_id,
                session_id=session_id,
                token_lookup=self._codec.lookup_key(refresh_token),
                token_hash=self._codec.digest(refresh_token),
                created_at=now,
                expires_at=refresh_expires_at,
                last_used_at=now,
            )
        )

        return TokenPair(
            user_id=user_id,
            session_token=session_token,
            refresh_token=refresh_token,
            session_expires_at=session_expires_at,
            refresh_expires_at=refresh_expires_at,
        )

    @staticmethod
    def _count_live(db: Session, model, user_id: str) -> int:
        return db.scalar(
            select(func.count(model.id))
            .where(model.user_id == user_id, model.expires_at > store_now())
        )

    def _enforce_session_limit(self, db: Session, user_id: str) -> None:
        """Evicts the oldest live sessions and refresh tokens so the new pair fits the limit."""
        keep = self.max_active_sessions - 1

        for model in (UserSession, RefreshToken):
            if self._count_live(db, model, user_id) <= keep:
                continue

            evicted = db.scalars(
                select(model.id)
                .where(model.user_id == user_id, model.expires_at > store_now())
                .order_by(model.created_at.desc(), model.id)
                .offset(keep)
            ).all()
            db.execute(
                delete(model)
                .where(model.id.in_(evicted))
                .execution_options(synchronize_session=False)
            )
            logger.info(
                "Session limit reached, evicted oldest",
                extra={"user_id": user_id, "table": model.__tablename__, "evicted": len(evicted)}
            )

    def _revoke_sessions(self, *criteria) -> bool:
        """Deletes the matching sessions and their paired refresh tokens in one transaction."""
        try:
            with self._session_factory.begin() as db:
                session_ids = db.scalars(select(UserSession.id).where(*criteria)).all()
                if not session_ids:
                    return False

                refresh_tokens = db.execute(
                    delete(RefreshToken)
                    .where(RefreshToken.session_id.in_(session_ids))
                    .execution_options(synchronize_session=False)
                )
                db.execute(
                    delete(UserSession)
                    .where(UserSession.id.in_(session_ids))
                    .execution_options(synchronize_session=False)
                )
        except SQLAlchemyError as e:
            logger.error(
                "Failed to revoke session",
                extra={"error_type": type(e).__name__},
                exc_info=True
            )
            raise StoreUnavailable("Could not revoke session") from e

        logger.info(
            "Session revoked with its refresh token",
            extra={"sessions": len(session_ids), "refresh_tokens": refresh_tokens.rowcount}
        )
        return True
