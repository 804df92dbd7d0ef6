"""RS256 signing and verification of short-lived bearer tokens."""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path

import jwt
from cryptography.hazmat.primitives import serialization

from app.config import Settings
from app.services.auth.exceptions import KeyLoadError

logger = logging.getLogger(__name__)

ALGORITHM = "RS256"
ACCESS_TOKEN_TYPE = "access"
PASSWORD_RESET_TOKEN_TYPE = "password_reset"

_REQUIRED_CLAIMS = ["exp", "iat", "iss", "aud", "type", "user_id"]


@dataclass(frozen=True)
class AccessTokenClaims:
    """Claims reconstructed from a verified token. Never persisted."""

    user_id: str
    company_id: str | None
    email: str | None
    roles: list[str] = field(default_factory=list)
    type: str = ACCESS_TOKEN_TYPE
    issuer: str | None = None
    audience: str | None = None
    issued_at: datetime | None = None
    expires_at: datetime | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "AccessTokenClaims":
        return cls(
            user_id=payload["user_id"],
            company_id=payload.get("company_id"),
            email=payload.get("email"),
            roles=list(payload.get("roles") or []),
            type=payload["type"],
            issuer=payload.get("iss"),
            audience=payload.get("aud"),
            issued_at=datetime.fromtimestamp(payload["iat"], UTC),
            expires_at=datetime.fromtimestamp(payload["exp"], UTC),
        )


class AccessTokenCodec:
    """Signs tokens with a private key and verifies them with the public key.

    Keys are loaded once, at startup. The codec is type-agnostic about the
    payload beyond the ``type`` discriminator it stamps on every token.
    """

    def __init__(
        self,
        private_key,
        public_key,
        issuer: str,
        audience: str,
        access_token_ttl: timedelta = timedelta(seconds=900),
    ) -> None:
        self._private_key = private_key
        self._public_key = public_key
        self.issuer = issuer
        self.audience = audience
        self.access_token_ttl = access_token_ttl

    @classmethod
    def from_pem_files(
        cls,
        private_key_path: str | Path,
        public_key_path: str | Path,
        issuer: str,
        audience: str,
        access_token_ttl: timedelta = timedelta(seconds=900),
    ) -> "AccessTokenCodec":
        """Load both PEM keys. Raises KeyLoadError if either is unusable."""
        try:
            private_key = serialization.load_pem_private_key(
                Path(private_key_path).read_bytes(), password=None
            )
            public_key = serialization.load_pem_public_key(Path(public_key_path).read_bytes())
        except (OSError, ValueError, TypeError) as e:
            logger.error(f"Failed to load JWT keys: {e}")
            raise KeyLoadError("JWT keys not found or invalid") from e

        logger.info("JWT keys loaded successfully")
        return cls(private_key, public_key, issuer, audience, access_token_ttl)

    @classmethod
    def from_settings(cls, config: Settings) -> "AccessTokenCodec":
        return cls.from_pem_files(
            config.jwt_private_key_path,
            config.jwt_public_key_path,
            issuer=config.jwt_issuer,
            audience=config.jwt_audience,
            access_token_ttl=timedelta(seconds=config.access_token_expire_seconds),
        )

    def create_token(
        self,
        claims: dict,
        token_type: str,
        expires_delta: timedelta | None = None,
    ) -> str:
        """Sign ``claims`` stamped with ``type``, issuer, audience and expiry."""
        if expires_delta is None:
            expires_delta = self.access_token_ttl

        now = datetime.now(UTC)
        payload = {
            **claims,
            "type": token_type,
            "iss": self.issuer,
            "aud": self.audience,
            "iat": now,
            "exp": now + expires_delta,
        }
        return jwt.encode(payload, self._private_key, algorithm=ALGORITHM)

    def create_access_token(
        self,
        user_id: str,
        company_id: str | None,
        email: str | None,
        roles: list[str],
        expires_delta: timedelta | None = None,
    ) -> str:
        """Create a short-lived access token."""
        claims = {
            "user_id": user_id,
            "company_id": company_id,
            "email": email,
            "roles": list(roles),
        }
        return self.create_token(claims, ACCESS_TOKEN_TYPE, expires_delta)

    def verify_token(self, token: str, expected_type: str) -> AccessTokenClaims | None:
        """Verify signature, issuer, audience, expiry and type.

        Returns None on any failure.
        """
        try:
            payload = jwt.decode(
                token,
                self._public_key,
                algorithms=[ALGORITHM],
                issuer=self.issuer,
                audience=self.audience,
                options={"require": _REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError:
            logger.debug("Token expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.debug(f"Invalid token: {e}")
            return None

        if payload.get("type") != expected_type:
            logger.warning(f"Invalid token type: {payload.get('type')!r}")
            return None

        try:
            return AccessTokenClaims.from_payload(payload)
        except (KeyError, TypeError, ValueError) as e:
            logger.debug(f"Malformed token claims: {e}")
            return None

    def verify_access_token(self, token: str) -> AccessTokenClaims | None:
        """Verify a bearer token. Rejects anything not typed ``access``."""
        return self.verify_token(token, ACCESS_TOKEN_TYPE)

    @staticmethod
    def decode_without_verification(token: str) -> dict | None:
        """Decode a token without checking anything. Debugging only."""
        try:
            return jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError as e:
            logger.debug(f"Failed to decode token: {e}")
            return None

    @staticmethod
    def extract_bearer_token(header_value: str | None) -> str | None:
        """Return the token from an ``Authorization: Bearer <token>`` value."""
        if not header_value or not header_value.startswith("Bearer "):
            return None
        token = header_value[len("Bearer "):].strip()
        return token or None
