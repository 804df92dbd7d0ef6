"""Password hashing, verification and strength rules."""

import logging
import re
from dataclasses import dataclass, field

import bcrypt
from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from app.config import Settings, settings
from app.services.auth.exceptions import HashingError

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128

_BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")
_SPECIAL_CHARACTERS = re.compile(r"""[!@#$%^&*()_+\-=\[\]{};':"\\|,.<>/?]""")


@dataclass(frozen=True)
class PasswordStrengthResult:
    """Outcome of a strength check; ``errors`` lists every violated rule."""

    valid: bool
    errors: list[str] = field(default_factory=list)


class PasswordService:
    """Argon2id password hashing.

    Hashes created by the previous bcrypt scheme still verify, but always
    report ``needs_rehash`` so they are upgraded on the next sign-in.
    """

    def __init__(
        self,
        memory_cost: int,
        time_cost: int,
        parallelism: int,
        hash_length: int = 32,
    ) -> None:
        self._hasher = PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            hash_len=hash_length,
            type=Type.ID,
        )
        self._dummy_hash: str | None = None

    @classmethod
    def from_settings(cls, config: Settings) -> "PasswordService":
        return cls(
            memory_cost=config.argon2_memory_cost,
            time_cost=config.argon2_time_cost,
            parallelism=config.argon2_parallelism,
            hash_length=config.argon2_hash_length,
        )

    def hash_password(self, password: str) -> str:
        """Hash a password using Argon2id."""
        try:
            return self._hasher.hash(password)
        except Exception as e:
            logger.exception("Failed to hash password")
            raise HashingError() from e

    def verify_password(self, hashed: str, password: str) -> bool:
        """Verify a password against its hash. Never raises."""
        if not hashed:
            return False
        if hashed.startswith(_BCRYPT_PREFIXES):
            return self._verify_bcrypt(hashed, password)
        try:
            return self._hasher.verify(hashed, password)
        except VerifyMismatchError:
            return False
        except (InvalidHashError, VerificationError) as e:
            logger.error(f"Password verification error: {e}")
            return False
        except Exception:
            logger.exception("Unexpected password verification error")
            return False

    def needs_rehash(self, hashed: str) -> bool:
        """True if the hash was made with a different scheme or cost."""
        if hashed.startswith(_BCRYPT_PREFIXES):
            return True
        try:
            return self._hasher.check_needs_rehash(hashed)
        except Exception as e:
            logger.error(f"Failed to check rehash: {e}")
            return False

    def get_dummy_hash(self) -> str:
        """A hash to verify against when the user doesn't exist.

        Keeps the unknown-email path as slow as the wrong-password path.
        """
        if self._dummy_hash is None:
            self._dummy_hash = self.hash_password("dummy-password-for-timing")
        return self._dummy_hash

    @staticmethod
    def validate_strength(password: str) -> PasswordStrengthResult:
        """Check every strength rule and report all violations at once."""
        errors = []

        if len(password) < MIN_PASSWORD_LENGTH:
            errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
        if len(password) > MAX_PASSWORD_LENGTH:
            errors.append(f"Password cannot exceed {MAX_PASSWORD_LENGTH} characters")
        if not re.search(r"[A-Z]", password):
            errors.append("Password must contain at least one uppercase letter")
        if not re.search(r"[a-z]", password):
            errors.append("Password must contain at least one lowercase letter")
        if not re.search(r"[0-9]", password):
            errors.append("Password must contain at least one number")
        if not _SPECIAL_CHARACTERS.search(password):
            errors.append("Password must contain at least one special character")

        return PasswordStrengthResult(valid=not errors, errors=errors)

    @staticmethod
    def _verify_bcrypt(hashed: str, password: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
        except Exception as e:
            logger.error(f"Password verification error: {e}")
            return False


password_service = PasswordService.from_settings(settings)
