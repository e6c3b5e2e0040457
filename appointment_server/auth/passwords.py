import hashlib
import hmac
import secrets

from appointment_server.core import config


DIGEST_SIZE = 32


class PasswordHasher:
    """PBKDF2-HMAC-SHA256 over the password plus a server-wide pepper."""

    def __init__(
        self,
        pepper: str = config.PASSWORD_PEPPER,
        iterations: int = config.PASSWORD_HASH_ITERATIONS,
        salt_bytes: int = config.PASSWORD_SALT_BYTES,
    ):
        self.pepper = pepper
        self.iterations = iterations
        self.salt_bytes = salt_bytes

    def random_salt(self, size: int | None = None) -> bytes:
        return secrets.token_bytes(size or self.salt_bytes)

    def hash(self, password: str, salt: bytes) -> bytes:
        return hashlib.pbkdf2_hmac(
            "sha256",
            (password + self.pepper).encode("utf-8"),
            salt,
            self.iterations,
            dklen=DIGEST_SIZE,
        )

    def verify(self, password: str, salt: bytes, digest: bytes) -> bool:
        if not salt or not digest:
            return False
        return hmac.compare_digest(self.hash(password, salt), digest)

    def new_credentials(self, password: str) -> tuple[bytes, bytes]:
        salt = self.random_salt()
        return salt, self.hash(password, salt)
