"""Tests for password reset token helpers."""

import hashlib
from datetime import UTC, datetime, timedelta

from helpdesk.auth.reset_tokens import (
    RESET_TOKEN_TTL,
    generate_reset_token,
    hash_reset_token,
    is_expired,
    reset_token_expiry,
)


class TestGenerateResetToken:
    def test_token_is_256_bits_hex(self) -> None:
        token, _ = generate_reset_token()
        assert len(token) == 64
        int(token, 16)

    def test_hash_matches_token(self) -> None:
        token, token_hash = generate_reset_token()
        assert token_hash == hashlib.sha256(token.encode()).hexdigest()
        assert token_hash == hash_reset_token(token)

    def test_tokens_are_unique(self) -> None:
        tokens = {generate_reset_token()[0] for _ in range(50)}
        assert len(tokens) == 50


class TestExpiry:
    def test_valid_for_one_hour(self) -> None:
        issued = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
        expires = reset_token_expiry(issued)

        assert expires - issued == RESET_TOKEN_TTL == timedelta(hours=1)
        assert not is_expired(expires, expires)
        assert is_expired(expires, expires + timedelta(seconds=1))
