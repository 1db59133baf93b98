import hashlib
import hmac
import secrets

from core.errors import EntropyFailure
from utils.hashing import SecretHasher


class TokenCodec:
    """
    Random opaque tokens and the digests stored in their place.

    A token is stored as two values:
    - lookup key: HMAC-SHA256 under the app secret, for an indexed equality match
    - digest: bcrypt over the SHA-256 of the token, verified after the lookup
    """

    def __init__(self, secret_key: str, hasher: SecretHasher, default_bytes: int = 32):
        self._secret = secret_key.encode()
        self._hasher = hasher
        self.default_bytes = default_bytes

    def generate(self, byte_length: int | None = None) -> str:
        try:
            return secrets.token_hex(byte_length or self.default_bytes)
        except (OSError, NotImplementedError) as e:
            raise EntropyFailure("Secure random source unavailable") from e

    def lookup_key(self, token: str) -> str:
        return hmac.new(self._secret, token.encode(), hashlib.sha256).hexdigest()

    def digest(self, token: str) -> str:
        return self._hasher.hash(self._sha256(token))

    def verify(self, token: str, digest: str) -> bool:
        return self._hasher.verify(self._sha256(token), digest)

    def dummy_verify(self) -> bool:
        """Same cost as verify(), for lookups that found nothing."""
        return self._hasher.dummy_verify()

    @staticmethod
    def _sha256(token: str) -> str:
        return hashlib.sha256(token.encode()).hexdigest()
