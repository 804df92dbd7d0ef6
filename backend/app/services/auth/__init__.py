"""Authentication services.

Handles credential verification, token issuance and rotation, and the
password reset flow.
"""

from .exceptions import (
    AccountNotActiveError,
    AuthError,
    EmailDeliveryError,
    HashingError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
    KeyLoadError,
    PersistenceError,
    ValidationError,
)
from .password_reset_service import PasswordResetService
from .password_service import PasswordService, PasswordStrengthResult, password_service
from .refresh_token_service import IssuedRefreshToken, RefreshTokenService
from .reset_token_service import ResetTokenService
from .session_service import SessionService, SignInResult, TokenPair
from .token_cleanup import TokenCleanupTask, run_token_cleanup
from .token_codec import AccessTokenClaims, AccessTokenCodec

__all__ = [
    "AccessTokenClaims",
    "AccessTokenCodec",
    "AccountNotActiveError",
    "AuthError",
    "EmailDeliveryError",
    "HashingError",
    "InvalidCredentialsError",
    "InvalidOrExpiredTokenError",
    "IssuedRefreshToken",
    "KeyLoadError",
    "PasswordResetService",
    "PasswordService",
    "PasswordStrengthResult",
    "PersistenceError",
    "RefreshTokenService",
    "ResetTokenService",
    "SessionService",
    "SignInResult",
    "TokenCleanupTask",
    "TokenPair",
    "ValidationError",
    "password_service",
    "run_token_cleanup",
]
