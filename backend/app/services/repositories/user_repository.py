"""User data access layer."""

import logging
from datetime import UTC, datetime

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from app.models import User

logger = logging.getLogger(__name__)


class UserRepository:
    """Centralized user data access.

    Naming conventions:
    - find_* : Query that may return None
    - set_* / clear_* : Writes; the caller owns the commit
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def find_by_id(self, user_id: str) -> User | None:
        """Find user by primary key."""
        return self._db.query(User).filter(User.id == user_id).first()

    def find_by_email(self, email: str) -> User | None:
        """Find non-deleted user by email (case-insensitive)."""
        return (
            self._db.query(User)
            .filter(func.lower(User.email) == email.lower(), User.deleted_at.is_(None))
            .first()
        )

    def find_active_by_id(self, user_id: str) -> User | None:
        """Find active, non-deleted user by ID."""
        return (
            self._db.query(User)
            .filter(
                User.id == user_id,
                User.is_active.is_(True),
                User.deleted_at.is_(None),
            )
            .first()
        )

    def find_reset_eligible_by_email(self, email: str) -> User | None:
        """Find an active, verified, non-deleted user allowed to reset a password."""
        return (
            self._db.query(User)
            .filter(
                func.lower(User.email) == email.lower(),
                User.is_active.is_(True),
                User.email_verified.is_(True),
                User.deleted_at.is_(None),
            )
            .first()
        )

    def set_password_hash(self, user_id: str, password_hash: str) -> bool:
        """Replace a user's password hash. False if the user is gone."""
        result = self._db.execute(
            update(User)
            .where(User.id == user_id, User.deleted_at.is_(None))
            .values(password_hash=password_hash)
        )
        return result.rowcount > 0

    def redeem_reset_token(self, user_id: str, token_hash: str, password_hash: str) -> bool:
        """Set a new password if ``token_hash`` is still the live reset token.

        The token fields are cleared in the same UPDATE, so of several callers
        racing on one token only the first matches a row.
        """
        result = self._db.execute(
            update(User)
            .where(
                User.id == user_id,
                User.is_active.is_(True),
                User.deleted_at.is_(None),
                User.reset_token_hash == token_hash,
                User.reset_token_expiry > datetime.now(UTC),
            )
            .values(
                password_hash=password_hash,
                reset_token_hash=None,
                reset_token_expiry=None,
                reset_token_device_info=None,
                reset_token_ip_address=None,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    def set_last_login(self, user_id: str) -> None:
        self._db.execute(
            update(User).where(User.id == user_id).values(last_login_at=datetime.now(UTC))
        )

    def set_reset_token(
        self,
        user_id: str,
        token_hash: str,
        expires_at: datetime,
        device_info: str | None,
        ip_address: str | None,
    ) -> bool:
        """Store a reset token hash, overwriting any previous one."""
        result = self._db.execute(
            update(User)
            .where(User.id == user_id, User.deleted_at.is_(None))
            .values(
                reset_token_hash=token_hash,
                reset_token_expiry=expires_at,
                reset_token_device_info=device_info,
                reset_token_ip_address=ip_address,
            )
        )
        return result.rowcount > 0

    def clear_reset_token(self, user_id: str) -> bool:
        """Clear the reset token fields. False if there was no such user."""
        result = self._db.execute(
            update(User)
            .where(User.id == user_id, User.deleted_at.is_(None))
            .values(
                reset_token_hash=None,
                reset_token_expiry=None,
                reset_token_device_info=None,
                reset_token_ip_address=None,
            )
        )
        return result.rowcount > 0

    def clear_expired_reset_tokens(self, cutoff: datetime) -> int:
        """Clear reset fields whose expiry is before ``cutoff``."""
        result = self._db.execute(
            update(User)
            .where(User.reset_token_hash.is_not(None), User.reset_token_expiry < cutoff)
            .values(
                reset_token_hash=None,
                reset_token_expiry=None,
                reset_token_device_info=None,
                reset_token_ip_address=None,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
