"""Hashing and comparison primitives shared by refresh and reset tokens."""

import hashlib
import hmac
import secrets
from uuid import uuid4


def hash_token(token: str) -> str:
    """Hash a token using SHA-256 (hex digest)."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def timing_safe_equal(a: str | bytes, b: str | bytes) -> bool:
    """Constant-time comparison. Returns False for length or type mismatches."""
    try:
        if isinstance(a, str):
            a = a.encode("utf-8")
        if isinstance(b, str):
            b = b.encode("utf-8")
        return hmac.compare_digest(a, b)
    except TypeError:
        return False


def verify_token_hash(token: str, hashed: str) -> bool:
    """Verify a raw token against its stored SHA-256 hash."""
    return timing_safe_equal(hash_token(token), hashed)


def generate_opaque_token() -> tuple[str, str]:
    """Generate a refresh token and its hash.

    The token is ``<uuid4 hex>.<32 hex chars>``; the suffix alone carries 128
    random bits. Only the hash is ever persisted.
    """
    token = f"{uuid4().hex}.{secrets.token_hex(16)}"
    return token, hash_token(token)
