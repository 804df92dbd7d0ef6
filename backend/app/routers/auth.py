"""Authentication router."""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.dependencies.auth import get_current_user, get_token_codec
from app.models.user import User
from app.rate_limiter import limiter
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
from app.services.auth import PasswordResetService, SessionService
from app.services.auth.token_codec import AccessTokenCodec

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])

_ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse},
    status.HTTP_403_FORBIDDEN: {"model": ErrorResponse},
}


def extract_device_info(user_agent: str | None) -> str:
    """Coarse device class from a User-Agent header."""
    if not user_agent:
        return "unknown"
    if "Mobile" in user_agent:
        return "mobile"
    if "Tablet" in user_agent:
        return "tablet"
    return "desktop"


def get_request_info(request: Request) -> tuple[str | None, str]:
    """Extract IP address and device class from a FastAPI request."""
    ip_address = None
    # Get IP from X-Forwarded-For header (if behind proxy) or client host
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        ip_address = forwarded_for.split(",")[0].strip() or None
    elif request.client:
        ip_address = request.client.host

    return ip_address, extract_device_info(request.headers.get("User-Agent"))


def _set_refresh_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=token,
        max_age=settings.refresh_token_expire_days * 24 * 60 * 60,
        path=settings.refresh_cookie_path,
        domain=settings.refresh_cookie_domain,
        secure=settings.refresh_cookie_secure,
        httponly=settings.refresh_cookie_http_only,
        samesite=settings.refresh_cookie_same_site,
    )


def _clear_refresh_cookie(response: Response) -> None:
    # Browsers only drop the cookie when path, domain and flags match the ones it was set with
    response.delete_cookie(
        key=settings.refresh_cookie_name,
        path=settings.refresh_cookie_path,
        domain=settings.refresh_cookie_domain,
        secure=settings.refresh_cookie_secure,
        httponly=settings.refresh_cookie_http_only,
        samesite=settings.refresh_cookie_same_site,
    )


def _token_response(access_token: str, refresh_expires_at: datetime) -> dict:
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "expires_in": settings.access_token_expire_seconds,
        "refresh_expires_at": refresh_expires_at,
    }


@router.post("/signin", response_model=SignInResponse, responses=_ERROR_RESPONSES)
@limiter.limit("5/minute")
def signin(
    request: Request,
    response: Response,
    data: SignInRequest,
    db: Session = Depends(get_db),
    codec: AccessTokenCodec = Depends(get_token_codec),
) -> dict:
    """Sign in with email and password.

    The access token is returned in the body; the refresh token is set as an
    HttpOnly cookie.
    """
    ip_address, device_info = get_request_info(request)
    result = SessionService(db, codec).sign_in(
        data.email, data.password, device_info=device_info, ip_address=ip_address
    )

    _set_refresh_cookie(response, result.refresh_token)
    return {
        **_token_response(result.access_token, result.refresh_expires_at),
        "user": UserInfo.model_validate(result.user),
    }


@router.post("/refresh", response_model=AccessTokenResponse, responses=_ERROR_RESPONSES)
def refresh(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    codec: AccessTokenCodec = Depends(get_token_codec),
) -> dict:
    """Rotate the refresh cookie and mint a new access token."""
    ip_address, device_info = get_request_info(request)
    pair = SessionService(db, codec).refresh(
        request.cookies.get(settings.refresh_cookie_name),
        device_info=device_info,
        ip_address=ip_address,
    )

    _set_refresh_cookie(response, pair.refresh_token)
    return _token_response(pair.access_token, pair.refresh_expires_at)


@router.post("/signout", response_model=MessageResponse)
def signout(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    codec: AccessTokenCodec = Depends(get_token_codec),
) -> dict:
    """Revoke the current session and clear the refresh cookie."""
    SessionService(db, codec).sign_out(request.cookies.get(settings.refresh_cookie_name))
    _clear_refresh_cookie(response)
    return {"message": "Signed out successfully"}


@router.post("/forgot-password", response_model=MessageResponse)
@limiter.limit("3/hour")
def forgot_password(
    request: Request,
    data: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    codec: AccessTokenCodec = Depends(get_token_codec),
) -> dict:
    """Request password reset email."""
    ip_address, device_info = get_request_info(request)
    PasswordResetService(db, codec).request_reset(
        data.email, device_info=device_info, ip_address=ip_address
    )

    # Always return success (don't reveal if email exists)
    return {"message": "If that email exists, we sent a password reset link."}


@router.post("/reset-password", response_model=MessageResponse, responses=_ERROR_RESPONSES)
@limiter.limit("5/minute")
def reset_password(
    request: Request,
    data: ResetPasswordRequest,
    db: Session = Depends(get_db),
    codec: AccessTokenCodec = Depends(get_token_codec),
) -> dict:
    """Reset password with token from email."""
    ip_address, device_info = get_request_info(request)
    PasswordResetService(db, codec).reset_password(
        data.token,
        data.new_password,
        data.confirm_password,
        device_info=device_info,
        ip_address=ip_address,
    )
    return {"message": "Password reset successfully. You can now sign in with your new password."}


@router.get("/me", response_model=UserInfo)
def get_me(current_user: User = Depends(get_current_user)) -> User:
    """Get the current authenticated user's information."""
    return current_user
