"""Single-use password reset tokens.

A reset token is a codec-signed JWT handed to the user; only its SHA-256 and
expiry are stored, on the user row. Verification checks both the JWT and the
stored row, since either can go stale independently.
"""

import logging
from datetime import UTC, datetime, timedelta
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.models import User
from app.services.auth.exceptions import PersistenceError
from app.services.auth.token_codec import (
    PASSWORD_RESET_TOKEN_TYPE,
    AccessTokenClaims,
    AccessTokenCodec,
)
from app.services.auth.token_hashing import hash_token, verify_token_hash
from app.services.repositories import UserRepository

logger = logging.getLogger(__name__)

PASSWORD_RESET_ROLE = "password_reset"


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class ResetTokenService:
    """Issues, verifies and consumes password reset tokens.

    ``codec`` is needed to issue or verify; sweeps and ``consume`` run without one.
    """

    def __init__(
        self,
        db: Session,
        codec: AccessTokenCodec | None = None,
        ttl: timedelta | None = None,
    ) -> None:
        self._db = db
        self._codec = codec
        self._users = UserRepository(db)
        self.ttl = ttl or timedelta(seconds=settings.reset_token_expire_seconds)

    def issue(
        self,
        user: User,
        device_info: str | None = None,
        ip_address: str | None = None,
    ) -> str:
        """Create a reset token for ``user``, replacing any pending one."""
        token = self._codec.create_token(
            {
                "user_id": user.id,
                "company_id": user.company_id,
                "email": user.email,
                "roles": [PASSWORD_RESET_ROLE],
                # Two resets in the same second must still differ
                "jti": str(uuid4()),
            },
            PASSWORD_RESET_TOKEN_TYPE,
            self.ttl,
        )
        try:
            saved = self._users.set_reset_token(
                user.id,
                token_hash=hash_token(token),
                expires_at=datetime.now(UTC) + self.ttl,
                device_info=device_info,
                ip_address=ip_address,
            )
            if not saved:
                self._db.rollback()
                logger.error(f"Failed to save password reset token for user {user.id}")
                raise PersistenceError()
            self._db.commit()
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.exception(f"Failed to save password reset token for user {user.id}")
            raise PersistenceError() from e

        logger.info(f"Password reset token issued for user {user.id}")
        return token

    def verify(self, raw_token: str) -> AccessTokenClaims | None:
        """Return the token's claims if both the JWT and the stored hash check out."""
        claims = self._codec.verify_token(raw_token, PASSWORD_RESET_TOKEN_TYPE)
        if claims is None:
            logger.warning("Reset token failed signature or expiry verification")
            return None
        if not self._matches_stored_token(claims.user_id, raw_token):
            return None
        return claims

    def verify_for_user(self, user_id: str, raw_token: str) -> bool:
        """Both checks must pass: the JWT itself and the row stored for ``user_id``."""
        claims = self._codec.verify_token(raw_token, PASSWORD_RESET_TOKEN_TYPE)
        if claims is None or claims.user_id != user_id:
            return False
        return self._matches_stored_token(user_id, raw_token)

    def _matches_stored_token(self, user_id: str, raw_token: str) -> bool:
        try:
            user = self._users.find_active_by_id(user_id)
        except SQLAlchemyError as e:
            logger.exception(f"Failed to load reset token for user {user_id}")
            raise PersistenceError() from e

        if user is None or not user.reset_token_hash or user.reset_token_expiry is None:
            logger.warning(f"Reset token not found or user inactive: {user_id}")
            return False
        if _as_utc(user.reset_token_expiry) <= datetime.now(UTC):
            logger.warning(f"Reset token expired in database for user {user_id}")
            return False
        if not verify_token_hash(raw_token, user.reset_token_hash):
            logger.error(f"Reset token hash mismatch for user {user_id}")
            return False
        return True

    def consume(self, user_id: str) -> bool:
        """Clear the stored token so it can never be used again.

        Returns False instead of raising; by the time this runs the password
        has already changed.
        """
        try:
            cleared = self._users.clear_reset_token(user_id)
            self._db.commit()
        except SQLAlchemyError:
            self._db.rollback()
            logger.exception(f"Failed to revoke reset token for user {user_id}")
            return False
        if not cleared:
            logger.warning(f"No reset token to revoke for user {user_id}")
        return cleared

    def cleanup(self, grace_hours: int | None = None) -> int:
        """Clear reset fields that expired more than ``grace_hours`` ago."""
        if grace_hours is None:
            grace_hours = settings.reset_token_cleanup_grace_hours
        cutoff = datetime.now(UTC) - timedelta(hours=grace_hours)
        try:
            cleared = self._users.clear_expired_reset_tokens(cutoff)
            self._db.commit()
        except SQLAlchemyError:
            self._db.rollback()
            raise
        return cleared
