"""Sign-in, refresh and sign-out flows."""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import User
from app.services.auth.exceptions import (
    AccountNotActiveError,
    HashingError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
    PersistenceError,
)
from app.services.auth.password_service import PasswordService, password_service
from app.services.auth.refresh_token_service import RefreshTokenService
from app.services.auth.token_codec import AccessTokenCodec
from app.services.repositories import UserRepository

logger = logging.getLogger(__name__)


def mask_email(email: str) -> str:
    return f"{email[:3]}***"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    refresh_expires_at: datetime


@dataclass(frozen=True)
class SignInResult(TokenPair):
    user: User


class SessionService:
    """Composes credential checks, access tokens and refresh tokens."""

    def __init__(
        self,
        db: Session,
        codec: AccessTokenCodec,
        passwords: PasswordService | None = None,
    ) -> None:
        self._db = db
        self._codec = codec
        self._passwords = passwords or password_service
        self._users = UserRepository(db)
        self._refresh_tokens = RefreshTokenService(db)

    def sign_in(
        self,
        email: str,
        password: str,
        device_info: str | None = None,
        ip_address: str | None = None,
    ) -> SignInResult:
        """Authenticate and open a new session.

        Unknown email, wrong password and inactive account all raise the same
        InvalidCredentialsError.
        """
        try:
            user = self._users.find_by_email(email)
        except SQLAlchemyError as e:
            logger.exception("Failed to look up user for sign-in")
            raise PersistenceError() from e

        if user is None or not user.password_hash:
            # Burn the same time as a real verification to hide which emails exist
            self._passwords.verify_password(self._passwords.get_dummy_hash(), password)
            logger.warning(f"Sign-in failed, user not found: {mask_email(email)}")
            raise InvalidCredentialsError()

        if not self._passwords.verify_password(user.password_hash, password):
            logger.warning(f"Sign-in failed, invalid password: user_id={user.id}")
            raise InvalidCredentialsError()

        if not user.is_active:
            logger.warning(f"Sign-in failed, account inactive: user_id={user.id}")
            raise InvalidCredentialsError()

        if self._passwords.needs_rehash(user.password_hash):
            self._upgrade_password_hash(user, password)

        access_token = self._create_access_token(user)
        try:
            self._users.set_last_login(user.id)
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.exception(f"Failed to update last login for user {user.id}")
            raise PersistenceError() from e
        # issue() commits the last-login and any rehash along with the new session
        issued = self._refresh_tokens.issue(user.id, device_info, ip_address)

        logger.info(f"User signed in: {mask_email(user.email)}")
        return SignInResult(
            access_token=access_token,
            refresh_token=issued.raw_token,
            refresh_expires_at=issued.record.expires_at,
            user=user,
        )

    def refresh(
        self,
        raw_refresh_token: str | None,
        device_info: str | None = None,
        ip_address: str | None = None,
    ) -> TokenPair:
        """Rotate a refresh token and mint a new access token.

        The user is reloaded on every refresh, so a disabled account loses its
        sessions at the next refresh even though its access token lives on.
        """
        record = self._refresh_tokens.validate(raw_refresh_token)
        if record is None:
            raise InvalidOrExpiredTokenError()

        try:
            user = self._users.find_by_id(record.user_id)
        except SQLAlchemyError as e:
            logger.exception(f"Failed to load user {record.user_id} for refresh")
            raise PersistenceError() from e

        if user is None or not user.is_active or user.deleted_at is not None:
            logger.warning(f"Refresh rejected, account not active: user_id={record.user_id}")
            self._refresh_tokens.revoke(record.token_id)
            raise AccountNotActiveError()

        issued = self._refresh_tokens.rotate(record, device_info, ip_address)
        return TokenPair(
            access_token=self._create_access_token(user),
            refresh_token=issued.raw_token,
            refresh_expires_at=issued.record.expires_at,
        )

    def sign_out(self, raw_refresh_token: str | None) -> None:
        """Revoke the session if the token is live. Unknown tokens are ignored."""
        record = self._refresh_tokens.validate(raw_refresh_token)
        if record is None:
            logger.info("Sign-out with unknown or already revoked token")
            return
        self._refresh_tokens.revoke(record.token_id)
        logger.info(f"User signed out: user_id={record.user_id}")

    def _create_access_token(self, user: User) -> str:
        return self._codec.create_access_token(
            user_id=user.id,
            company_id=user.company_id,
            email=user.email,
            roles=user.roles or [],
        )

    def _upgrade_password_hash(self, user: User, password: str) -> None:
        try:
            self._users.set_password_hash(user.id, self._passwords.hash_password(password))
        except (HashingError, SQLAlchemyError):
            # The old hash still works; try again next sign-in
            self._db.rollback()
            logger.warning(f"Failed to upgrade password hash for user {user.id}")
            return
        logger.info(f"Password hash upgraded for user {user.id}")
