"""Forgot-password and reset-password flows."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.services.auth.exceptions import (
    EmailDeliveryError,
    InvalidOrExpiredTokenError,
    PersistenceError,
    ValidationError,
)
from app.services.auth.password_service import PasswordService, password_service
from app.services.auth.refresh_token_service import RefreshTokenService
from app.services.auth.reset_token_service import ResetTokenService
from app.services.auth.session_service import mask_email
from app.services.auth.token_codec import AccessTokenCodec
from app.services.auth.token_hashing import hash_token
from app.services.email_service import EmailService
from app.services.repositories import UserRepository

logger = logging.getLogger(__name__)


class PasswordResetService:
    """Sends reset links and completes resets with single-use tokens."""

    def __init__(
        self,
        db: Session,
        codec: AccessTokenCodec,
        passwords: PasswordService | None = None,
    ) -> None:
        self._db = db
        self._passwords = passwords or password_service
        self._users = UserRepository(db)
        self._reset_tokens = ResetTokenService(db, codec)
        self._refresh_tokens = RefreshTokenService(db)

    def request_reset(
        self,
        email: str,
        device_info: str | None = None,
        ip_address: str | None = None,
    ) -> None:
        """Email a reset link if the account is eligible.

        Returns normally for unknown emails so callers can't probe which
        accounts exist. Raises EmailDeliveryError if the email can't be sent.
        """
        try:
            user = self._users.find_reset_eligible_by_email(email)
        except SQLAlchemyError as e:
            logger.exception("Failed to look up user for password reset")
            raise PersistenceError() from e

        if user is None:
            logger.warning(
                f"Password reset requested for unknown or ineligible account: "
                f"{mask_email(email)} ip={ip_address}"
            )
            return

        token = self._reset_tokens.issue(user, device_info, ip_address)
        sent = EmailService.send_password_reset_email(
            user.email,
            EmailService.build_reset_link(token),
            first_name=user.first_name,
            expiry_minutes=max(1, int(self._reset_tokens.ttl.total_seconds() // 60)),
        )
        if not sent:
            logger.error(f"Failed to send password reset email for user {user.id}")
            raise EmailDeliveryError()
        logger.info(f"Password reset email sent for user {user.id}")

    def reset_password(
        self,
        raw_token: str,
        new_password: str,
        confirm_password: str,
        device_info: str | None = None,
        ip_address: str | None = None,
    ) -> None:
        """Set a new password using a reset token. The token works once."""
        if new_password != confirm_password:
            raise ValidationError("Passwords do not match", ["Passwords do not match"])
        strength = self._passwords.validate_strength(new_password)
        if not strength.valid:
            raise ValidationError("Password is too weak", strength.errors)

        claims = self._reset_tokens.verify(raw_token)
        if claims is None:
            raise InvalidOrExpiredTokenError()

        user_id = claims.user_id
        password_hash = self._passwords.hash_password(new_password)
        try:
            user = self._users.find_active_by_id(user_id)
            if user is None or not self._users.redeem_reset_token(
                user_id, hash_token(raw_token), password_hash
            ):
                self._db.rollback()
                logger.warning(f"Reset token already used or expired for user {user_id}")
                raise InvalidOrExpiredTokenError()
            revoked = self._refresh_tokens.revoke_all_for_user(user_id)
            self._db.commit()
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.exception(f"Failed to update password for user {user_id}")
            raise PersistenceError() from e
        logger.info(f"Password reset for user {user_id}, {revoked} session(s) revoked")

        if not self._reset_tokens.consume(user_id):
            logger.warning(f"Password changed but reset token not revoked for user {user_id}")

        if not EmailService.send_password_changed_notification(
            user.email,
            first_name=user.first_name,
            device_info=device_info,
            ip_address=ip_address,
        ):
            logger.warning(f"Failed to send password changed notification for user {user_id}")
