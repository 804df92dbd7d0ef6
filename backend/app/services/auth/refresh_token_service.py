"""Opaque refresh tokens: issue, validate, rotate, revoke, sweep."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.models import RefreshToken
from app.services.auth.exceptions import InvalidOrExpiredTokenError, PersistenceError
from app.services.auth.token_hashing import generate_opaque_token, hash_token, timing_safe_equal
from app.services.repositories import RefreshTokenRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedRefreshToken:
    """A freshly persisted record plus the raw token for the client.

    The raw token exists only here; the database holds its hash.
    """

    record: RefreshToken
    raw_token: str


class RefreshTokenService:
    """Refresh token lifecycle: ISSUED -> USED -> ROTATED/REVOKED (terminal)."""

    def __init__(self, db: Session, ttl: timedelta | None = None) -> None:
        self._db = db
        self._tokens = RefreshTokenRepository(db)
        self._ttl = ttl or timedelta(days=settings.refresh_token_expire_days)

    @staticmethod
    def generate() -> tuple[str, str]:
        """Return ``(raw_token, sha256_hex)``."""
        return generate_opaque_token()

    def issue(
        self,
        user_id: str,
        device_info: str | None = None,
        ip_address: str | None = None,
    ) -> IssuedRefreshToken:
        """Persist a new session for ``user_id`` and commit."""
        try:
            issued = self._add(user_id, device_info, ip_address)
            self._db.commit()
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.exception(f"Failed to save refresh token for user {user_id}")
            raise PersistenceError() from e
        logger.info(f"Refresh token issued: token_id={issued.record.token_id} user_id={user_id}")
        return issued

    def validate(self, raw_token: str | None) -> RefreshToken | None:
        """Return the live record for ``raw_token``, or None."""
        if not raw_token:
            return None
        hashed = hash_token(raw_token)
        try:
            record = self._tokens.find_valid_by_hash(hashed)
        except SQLAlchemyError as e:
            logger.exception("Failed to look up refresh token")
            raise PersistenceError() from e

        if record is None:
            logger.warning(f"Refresh token not found or invalid: {hashed[:10]}...")
            return None
        if not timing_safe_equal(hashed, record.hashed_token):
            logger.error(f"Token hash verification failed: token_id={record.token_id}")
            return None
        return record

    def rotate(
        self,
        old_record: RefreshToken,
        device_info: str | None = None,
        ip_address: str | None = None,
    ) -> IssuedRefreshToken:
        """Revoke ``old_record`` and issue its replacement in one transaction.

        Raises InvalidOrExpiredTokenError if another request already rotated
        or revoked the record; no new token is issued in that case.
        """
        try:
            if self._tokens.mark_revoked(old_record.token_id, mark_used=True) != 1:
                self._db.rollback()
                logger.warning(
                    f"Refresh token already rotated or revoked: token_id={old_record.token_id}"
                )
                raise InvalidOrExpiredTokenError()
            issued = self._add(old_record.user_id, device_info, ip_address)
            self._db.commit()
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.exception(f"Failed to rotate refresh token {old_record.token_id}")
            raise PersistenceError() from e

        logger.info(
            f"Refresh token rotated: {old_record.token_id} -> {issued.record.token_id}"
        )
        return issued

    def revoke(self, token_id: str) -> bool:
        """Idempotent revoke. True only if this call did the revoking."""
        try:
            revoked = self._tokens.mark_revoked(token_id) == 1
            self._db.commit()
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.exception(f"Failed to revoke refresh token {token_id}")
            raise PersistenceError() from e
        if not revoked:
            logger.warning(f"Refresh token already revoked: token_id={token_id}")
        return revoked

    def revoke_all_for_user(self, user_id: str) -> int:
        """Revoke every live session of a user. The caller commits."""
        return self._tokens.revoke_all_for_user(user_id)

    def cleanup(self, retention_days: int | None = None) -> int:
        """Delete revoked records and records expired longer than the retention."""
        if retention_days is None:
            retention_days = settings.refresh_token_retention_days
        cutoff = datetime.now(UTC) - timedelta(days=retention_days)
        try:
            deleted = self._tokens.delete_stale(cutoff)
            self._db.commit()
        except SQLAlchemyError:
            self._db.rollback()
            raise
        return deleted

    def _add(
        self, user_id: str, device_info: str | None, ip_address: str | None
    ) -> IssuedRefreshToken:
        raw_token, hashed = self.generate()
        record = self._tokens.add(
            user_id=user_id,
            hashed_token=hashed,
            expires_at=datetime.now(UTC) + self._ttl,
            device_info=device_info,
            ip_address=ip_address,
        )
        return IssuedRefreshToken(record=record, raw_token=raw_token)
