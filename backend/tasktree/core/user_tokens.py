"""API token generation and hashing for task owners."""

from __future__ import annotations

import hashlib
import secrets

TOKEN_BYTES = 32


def generate_user_token() -> str:
    """Generate a new opaque bearer token; it is shown to the user once."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def hash_user_token(token: str) -> str:
    """Return the hex SHA-256 digest stored for a token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()

