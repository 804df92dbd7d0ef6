"""Pydantic schemas for API validation."""

from app.schemas.auth import (
    AccessTokenResponse,
    ErrorResponse,
    ForgotPasswordRequest,
    MessageResponse,
    ResetPasswordRequest,
    SignInRequest,
    SignInResponse,
    UserInfo,
)

__all__ = [
    "AccessTokenResponse",
    "ErrorResponse",
    "ForgotPasswordRequest",
    "MessageResponse",
    "ResetPasswordRequest",
    "SignInRequest",
    "SignInResponse",
    "UserInfo",
]
