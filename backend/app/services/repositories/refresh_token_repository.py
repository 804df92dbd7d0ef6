"""Refresh token data access layer."""

import logging
from datetime import UTC, datetime

from sqlalchemy import delete, or_, update
from sqlalchemy.orm import Session

from app.models import RefreshToken

logger = logging.getLogger(__name__)


class RefreshTokenRepository:
    """Persistence for hashed refresh tokens.

    Writes never commit; the owning service decides the transaction boundary.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def add(
        self,
        user_id: str,
        hashed_token: str,
        expires_at: datetime,
        device_info: str | None,
        ip_address: str | None,
    ) -> RefreshToken:
        record = RefreshToken(
            user_id=user_id,
            hashed_token=hashed_token,
            expires_at=expires_at,
            device_info=device_info,
            ip_address=ip_address,
        )
        self._db.add(record)
        self._db.flush()
        return record

    def find_valid_by_hash(self, hashed_token: str) -> RefreshToken | None:
        """Find a non-revoked, non-expired record by token hash."""
        return (
            self._db.query(RefreshToken)
            .filter(
                RefreshToken.hashed_token == hashed_token,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > datetime.now(UTC),
            )
            .first()
        )

    def mark_revoked(self, token_id: str, mark_used: bool = False) -> int:
        """Revoke a record if it is still live.

        This is the compare-and-swap behind rotation: the affected-row count
        is 1 for exactly one caller, however many race on the same token.
        """
        now = datetime.now(UTC)
        values = {"revoked_at": now}
        if mark_used:
            values["last_used_at"] = now
        result = self._db.execute(
            update(RefreshToken)
            .where(RefreshToken.token_id == token_id, RefreshToken.revoked_at.is_(None))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def revoke_all_for_user(self, user_id: str) -> int:
        result = self._db.execute(
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete_stale(self, expired_before: datetime) -> int:
        """Delete revoked records and records that expired before the cutoff."""
        result = self._db.execute(
            delete(RefreshToken)
            .where(
                or_(
                    RefreshToken.expires_at < expired_before,
                    RefreshToken.revoked_at.is_not(None),
                )
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
