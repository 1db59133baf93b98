from datetime import datetime, timezone, timedelta

from sqlalchemy import select, insert, update, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from core.database import store_now
from core.errors import AuthFailure, StoreUnavailable
from models.users import User
from models.verification_tokens import VerificationToken
from schemas.token_schemas import VerifiedEmail
from utils.logger import get_logger
from utils.tokens import TokenCodec

logger = get_logger(__name__)


class VerificationService:
    """
    Single-use, time-boxed email verification tokens.
    """

    def __init__(self, session_factory: sessionmaker, codec: TokenCodec, expire_hours: int = 24):
        self._session_factory = session_factory
        self._codec = codec
        self.lifetime = timedelta(hours=expire_hours)

    def issue(self, user_id: str) -> str:
        """Stores a new token digest for the user and returns the plaintext token."""
        try:
            with self._session_factory.begin() as db:
                token = self.issue_in(db, user_id)
        except SQLAlchemyError as e:
            logger.error(
                "Failed to issue verification token",
                extra={"user_id": user_id, "error_type": type(e).__name__},
                exc_info=True
            )
            raise StoreUnavailable("Could not issue verification token") from e
        return token

    def issue_in(self, db: Session, user_id: str) -> str:
        """Same as issue(), inside the caller's transaction."""
        token = self._codec.generate()
        db.execute(
            insert(VerificationToken).values(
                user_id=user_id,
                token_hash=self._codec.digest(token),
                expires_at=datetime.now(timezone.utc) + self.lifetime,
                used=False,
            )
        )
        return token

    def consume(self, token: str) -> VerifiedEmail | AuthFailure:
        """
        Verifies a user's email with the provided token.

        Checks the token against every unexpired, unused token of a not yet
        verified user. On the first match, in one transaction:
        - mark it used
        - flip the user's is_verified flag
        - delete the user's other verification tokens

        Cost grows with the number of outstanding tokens.
        """
        if not token:
            return AuthFailure.INVALID_VERIFICATION_TOKEN

        try:
            with self._session_factory.begin() as db:
                candidates = db.execute(
                    select(
                        VerificationToken.id,
                        VerificationToken.user_id,
                        VerificationToken.token_hash,
                        User.email,
                    )
                    .join(User, User.id == VerificationToken.user_id)
                    .where(
                        VerificationToken.expires_at > store_now(),
                        VerificationToken.used.is_(False),
                        User.is_verified.is_(False),
                    )
                ).all()

                match = next(
                    (c for c in candidates if self._codec.verify(token, c.token_hash)),
                    None
                )
                if match is None:
                    logger.warning(
                        "Email verification failed - no matching token",
                        extra={"candidates": len(candidates)}
                    )
                    return AuthFailure.INVALID_VERIFICATION_TOKEN

                marked = db.execute(
                    update(VerificationToken)
                    .where(VerificationToken.id == match.id, VerificationToken.used.is_(False))
                    .values(used=True)
                    .execution_options(synchronize_session=False)
                )
                if marked.rowcount != 1:
                    return AuthFailure.INVALID_VERIFICATION_TOKEN

                db.execute(
                    update(User)
                    .where(User.id == match.user_id, User.is_verified.is_(False))
                    .values(is_verified=True)
                    .execution_options(synchronize_session=False)
                )
                db.execute(
                    delete(VerificationToken)
                    .where(VerificationToken.user_id == match.user_id, VerificationToken.id != match.id)
                    .execution_options(synchronize_session=False)
                )
        except SQLAlchemyError as e:
            logger.error(
                "Email verification failed, transaction rolled back",
                extra={"error_type": type(e).__name__},
                exc_info=True
            )
            raise StoreUnavailable("Could not verify email") from e

        logger.info(
            "Email verified successfully",
            extra={"user_id": match.user_id}
        )
        return VerifiedEmail(user_id=match.user_id, email=match.email)
