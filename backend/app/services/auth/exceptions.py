"""Authentication error taxonomy.

Every error carries a stable ``code`` and an HTTP ``status_code``. The
``detail`` message is what clients see, so security-sensitive failures share
one generic message per category (an unknown email and a wrong password are
indistinguishable).
"""


class AuthError(Exception):
    """Base exception for credential and session operations."""

    code = "INTERNAL_ERROR"
    status_code = 500
    detail = "Internal server error"

    def __init__(self, message: str | None = None, errors: list[str] | None = None):
        self.errors = errors or []
        super().__init__(message or self.detail)


class ValidationError(AuthError):
    """Malformed or unacceptable input."""

    code = "VALIDATION_ERROR"
    status_code = 400
    detail = "Validation failed"


class InvalidCredentialsError(AuthError):
    """Unknown email, wrong password or disabled account."""

    code = "INVALID_CREDENTIALS"
    status_code = 401
    detail = "Invalid email or password"


class InvalidOrExpiredTokenError(AuthError):
    """A refresh or reset token failed any check."""

    code = "INVALID_OR_EXPIRED_TOKEN"
    status_code = 401
    detail = "Invalid or expired token"


class AccountNotActiveError(AuthError):
    """The account was disabled or deleted after the session began."""

    code = "ACCOUNT_NOT_ACTIVE"
    status_code = 403
    detail = "Account is not active"


class HashingError(AuthError):
    """Password hashing failed."""


class PersistenceError(AuthError):
    """The database rejected or failed an operation."""


class EmailDeliveryError(AuthError):
    """A transactional email could not be sent."""

    code = "EMAIL_DELIVERY_FAILED"
    status_code = 502
    detail = "Failed to send email, please try again later"


class KeyLoadError(RuntimeError):
    """Signing or verifying key material could not be loaded."""
