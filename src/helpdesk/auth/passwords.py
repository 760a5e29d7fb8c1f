"""Password hashing (bcrypt)."""

from __future__ import annotations

import re
from typing import Protocol

import bcrypt

# bcrypt ignores everything past 72 bytes.
_BCRYPT_MAX_BYTES = 72

_UPPERCASE = re.compile(r"[A-Z]")
MIN_PASSWORD_LENGTH = 6


class PasswordHasher(Protocol):
    def hash(self, password: str) -> str: ...

    def verify(self, password: str, hashed: str) -> bool: ...


class BcryptPasswordHasher:
    def __init__(self, rounds: int = 12) -> None:
        self._rounds = rounds

    def hash(self, password: str) -> str:
        pwd_bytes = password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(pwd_bytes, salt).decode("utf-8")

    def verify(self, password: str, hashed: str) -> bool:
        pwd_bytes = password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
        try:
            return bcrypt.checkpw(pwd_bytes, hashed.encode("utf-8"))
        except ValueError:
            # Malformed stored hash.
            return False


def is_strong_enough(password: str) -> bool:
    """At least 6 characters with one uppercase letter."""
    return len(password) >= MIN_PASSWORD_LENGTH and bool(_UPPERCASE.search(password))
