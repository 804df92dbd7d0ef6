"""Schemas for authentication endpoints."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class SignInRequest(BaseModel):
    """Schema for signing in."""

    email: str = Field(min_length=1, max_length=255)  # Any string; lookup is case-insensitive
    password: str = Field(min_length=1)


class UserInfo(BaseModel):
    """Schema for user info in auth responses."""

    id: str
    company_id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    roles: list[str] = []
    is_active: bool = True
    email_verified: bool = False

    model_config = {"from_attributes": True}


class AccessTokenResponse(BaseModel):
    """Schema for a freshly minted access token.

    The refresh token never appears in a body; it travels in an HttpOnly cookie.
    """

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    refresh_expires_at: datetime


class SignInResponse(AccessTokenResponse):
    """Schema for sign-in response."""

    user: UserInfo


class ForgotPasswordRequest(BaseModel):
    """Schema for requesting password reset."""

    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """Schema for resetting password with token.

    Strength rules are enforced by the service so every failing rule is
    reported together.
    """

    token: str = Field(min_length=1)
    new_password: str
    confirm_password: str


class MessageResponse(BaseModel):
    """Schema for simple message response."""

    message: str


class ErrorResponse(BaseModel):
    """Schema for error bodies rendered from AuthError."""

    detail: str
    code: str
    errors: list[str] = []
