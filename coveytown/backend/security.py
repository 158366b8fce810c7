"""Token and identifier helpers for sessions, towns and video credentials."""

from __future__ import annotations

import hashlib
import hmac
import secrets
import uuid


TOKEN_BYTES = 24


def generate_token() -> str:
    """Generate a URL-safe token for session and update-password use."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def generate_id() -> str:
    return str(uuid.uuid4())


def sign_value(value: str, secret: str) -> str:
    """Create a deterministic HMAC-SHA256 signature of value under secret."""
    return hmac.new(secret.encode("utf-8"), value.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_signature(value: str, signature: str, secret: str) -> bool:
    """Compare a signature against the one expected for value."""
    return hmac.compare_digest(sign_value(value, secret), signature)
