"""Password reset token generation and hashing utilities."""

from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timedelta

RESET_TOKEN_BYTES = 32
RESET_TOKEN_TTL = timedelta(hours=1)


def generate_reset_token() -> tuple[str, str]:
    """Generate a reset token, return (token, token_hash).

    The token is 256 random bits, hex-encoded. It is sent to the user
    only; the hash is what gets stored.

    Returns:
        Tuple of (token, token_hash).
    """
    token = secrets.token_hex(RESET_TOKEN_BYTES)
    return token, hash_reset_token(token)


def hash_reset_token(token: str) -> str:
    """Hash a reset token for lookup.

    Args:
        token: The token string from the reset link.

    Returns:
        SHA-256 hex digest of the token.
    """
    return hashlib.sha256(token.encode()).hexdigest()


def reset_token_expiry(issued_at: datetime) -> datetime:
    return issued_at + RESET_TOKEN_TTL


def is_expired(expires_at: datetime, now: datetime) -> bool:
    return now > expires_at
