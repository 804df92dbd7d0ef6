"""Services layer - business logic and external integrations.

This module is organized into domain-based subpackages:
- auth/: Authentication, tokens and password reset
- repositories/: Data access layer

Common imports for convenience:
    from app.services import SessionService, UserRepository
"""

# Re-export commonly used components for convenience
from app.services.auth import (
    AccessTokenCodec,
    PasswordResetService,
    SessionService,
)
from app.services.repositories import (
    RefreshTokenRepository,
    UserRepository,
)

__all__ = [
    # Auth
    "AccessTokenCodec",
    "PasswordResetService",
    "SessionService",
    # Repositories
    "RefreshTokenRepository",
    "UserRepository",
]
