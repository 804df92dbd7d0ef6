"""SQLAlchemy ORM models."""

from app.models.refresh_token import RefreshToken
from app.models.user import User

__all__ = [
    "RefreshToken",
    "User",
]
