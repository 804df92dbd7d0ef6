"""Authentication dependencies for protected routes."""

from collections.abc import Callable

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.services.auth.token_codec import AccessTokenClaims, AccessTokenCodec
from app.services.repositories import UserRepository


def get_token_codec(request: Request) -> AccessTokenCodec:
    """Return the codec loaded at startup."""
    return request.app.state.token_codec


def get_current_claims(
    request: Request,
    codec: AccessTokenCodec = Depends(get_token_codec),
) -> AccessTokenClaims:
    """
    Verify the bearer access token and return its claims.

    No database lookup happens here, so a disabled account keeps access until
    its token expires. Use get_current_user when that matters.

    Usage:
        @router.get("/protected")
        def protected_route(claims: AccessTokenClaims = Depends(get_current_claims)):
            return {"user_id": claims.user_id}
    """
    token = codec.extract_bearer_token(request.headers.get("Authorization"))
    claims = codec.verify_access_token(token) if token else None

    if claims is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return claims


def get_current_user(
    claims: AccessTokenClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
) -> User:
    """Load the active user behind the bearer token."""
    user = UserRepository(db).find_by_id(claims.user_id)

    if not user or user.deleted_at is not None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled",
        )

    return user


def require_roles(*roles: str) -> Callable[..., AccessTokenClaims]:
    """Build a dependency that passes when the token carries any of ``roles``.

    Usage:
        @router.get("/admin", dependencies=[Depends(require_roles("admin"))])
    """
    allowed = set(roles)

    def dependency(claims: AccessTokenClaims = Depends(get_current_claims)) -> AccessTokenClaims:
        if not allowed.intersection(claims.roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return claims

    return dependency
