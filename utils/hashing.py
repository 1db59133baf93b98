from passlib.context import CryptContext


class SecretHasher:
    """
    bcrypt hashing with a per-instance cost factor.

    Passwords use a high cost; token digests use a lower one because they
    are verified on every authenticated request.
    """

    def __init__(self, rounds: int = 12):
        self.rounds = rounds
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def hash(self, secret: str) -> str:
        # Bcrypt has a 72-byte limit, truncate if necessary
        return self._context.hash(secret[:72])

    def verify(self, secret: str, hashed: str) -> bool:
        return self._context.verify(secret[:72], hashed)

    def dummy_verify(self) -> bool:
        """Burn one verification worth of time when there is nothing to compare against."""
        return self._context.dummy_verify()
