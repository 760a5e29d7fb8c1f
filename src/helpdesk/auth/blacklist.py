"""Revoked token registry."""

from __future__ import annotations

import time
from threading import Lock


class TokenBlacklist:
    """Token ids (``jti``) revoked before their natural expiry.

    An entry only matters until the token's own ``exp``: after that the
    signature check already rejects the token, so the entry is pruned.
    Read on every authenticated request and written on every revoke;
    all access goes through one lock.
    """

    def __init__(self) -> None:
        self._entries: dict[str, float] = {}
        self._lock = Lock()

    def revoke(self, jti: str, expires_at: float) -> None:
        """Blacklist ``jti`` until ``expires_at`` (unix timestamp)."""
        with self._lock:
            current = self._entries.get(jti)
            if current is None or expires_at > current:
                self._entries[jti] = expires_at

    def is_blacklisted(self, jti: str) -> bool:
        with self._lock:
            expires_at = self._entries.get(jti)
        return expires_at is not None and time.time() < expires_at

    def prune(self) -> int:
        """Drop entries whose token has expired.

        Returns:
            Number of entries removed.
        """
        now = time.time()
        with self._lock:
            expired = [jti for jti, exp in self._entries.items() if exp <= now]
            for jti in expired:
                del self._entries[jti]
        return len(expired)

    # Lets the rate limiter reaper sweep the blacklist too.
    cleanup = prune

    def __len__(self) -> int:
        return len(self._entries)
