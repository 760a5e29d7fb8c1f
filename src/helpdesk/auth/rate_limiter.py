"""In-memory fixed window rate limiters."""

from __future__ import annotations

import asyncio
import math
import time
from collections.abc import Iterable
from dataclasses import dataclass
from threading import Lock
from typing import Protocol

import structlog

logger = structlog.get_logger()

DEFAULT_WINDOW_SECONDS = 60.0


@dataclass(frozen=True)
class TenantRateLimitConfig:
    requests_per_minute: int
    burst: int


DEFAULT_TENANT_RATE_LIMIT = TenantRateLimitConfig(requests_per_minute=100, burst=20)


class _Visitor:
    """Counter for one key. Mutated only while holding its own lock."""

    __slots__ = ("count", "last_seen", "lock")

    def __init__(self, now: float) -> None:
        self.count = 1
        self.last_seen = now
        self.lock = Lock()


class FixedWindowRateLimiter:
    """Fixed window counter per key (client IP, or ``tenant:ip``).

    A key's window restarts when more than ``window_seconds`` passed since
    its last admitted request. Within a window at most ``rate`` requests
    are admitted.

    Thread-safe. The map lock only covers lookup/insert; counters are
    updated under a per-key lock, so requests for different keys never
    wait on each other. Single-instance only; for multi-instance
    deployments replace with a Redis backend.
    """

    def __init__(
        self,
        rate: int,
        burst: int = 0,
        *,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        ttl_seconds: float = DEFAULT_WINDOW_SECONDS,
    ) -> None:
        self.rate = rate
        self.burst = burst
        self._window = window_seconds
        self._ttl = ttl_seconds
        self._visitors: dict[str, _Visitor] = {}
        self._lock = Lock()

    def allow(self, key: str) -> bool:
        allowed, _ = self.check(key)
        return allowed

    def check(self, key: str) -> tuple[bool, int]:
        """Count a request for ``key``.

        Returns:
            (allowed, retry_after_seconds).
            If allowed: (True, 0).
            If denied: (False, seconds until the key's window restarts).
        """
        now = time.monotonic()

        while True:
            with self._lock:
                visitor = self._visitors.get(key)
                if visitor is None:
                    self._visitors[key] = _Visitor(now)
                    return True, 0

            with visitor.lock:
                # Evicted between the two locks: count against a fresh entry.
                if self._visitors.get(key) is not visitor:
                    continue
                return self._count(visitor, now)

    def _count(self, visitor: _Visitor, now: float) -> tuple[bool, int]:
        """Apply one request to ``visitor``. Caller holds ``visitor.lock``."""
        elapsed = now - visitor.last_seen
        if elapsed > self._window:
            visitor.count = 1
            visitor.last_seen = now
            return True, 0

        if visitor.count >= self.rate:
            retry_after = math.ceil(self._window - elapsed)
            return False, max(retry_after, 1)

        visitor.count += 1
        visitor.last_seen = now
        return True, 0

    def cleanup(self) -> int:
        """Evict visitors idle for longer than the TTL. Call periodically.

        Snapshot under the map lock, test each visitor under its own lock,
        then delete under the map lock again, holding the visitor lock so a
        request cannot be counted against an entry that is going away. Lock
        order is map then visitor; ``check`` never holds a visitor lock
        while waiting for the map lock.

        Returns:
            Number of keys removed.
        """
        now = time.monotonic()
        with self._lock:
            snapshot = list(self._visitors.items())

        stale: list[tuple[str, _Visitor]] = []
        for key, visitor in snapshot:
            with visitor.lock:
                if now - visitor.last_seen > self._ttl:
                    stale.append((key, visitor))

        removed = 0
        with self._lock:
            for key, visitor in stale:
                # Skip entries replaced or touched since the scan.
                if self._visitors.get(key) is not visitor:
                    continue
                with visitor.lock:
                    if now - visitor.last_seen <= self._ttl:
                        continue
                    del self._visitors[key]
                removed += 1
        return removed

    def __len__(self) -> int:
        return len(self._visitors)


class TenantRateLimiterRegistry:
    """One limiter per tenant, created lazily on first use.

    A tenant uses its override config if one was set, otherwise
    ``default``. Setting an override discards the tenant's existing
    limiter so the new limits apply from the next request.
    """

    def __init__(
        self,
        default: TenantRateLimitConfig = DEFAULT_TENANT_RATE_LIMIT,
        *,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
    ) -> None:
        self._default = default
        self._window = window_seconds
        self._limiters: dict[str, FixedWindowRateLimiter] = {}
        self._overrides: dict[str, TenantRateLimitConfig] = {}
        self._lock = Lock()

    def config_for(self, tenant_id: str) -> TenantRateLimitConfig:
        return self._overrides.get(tenant_id, self._default)

    def has_override(self, tenant_id: str) -> bool:
        return tenant_id in self._overrides

    def set_override(self, tenant_id: str, config: TenantRateLimitConfig) -> None:
        with self._lock:
            self._overrides[tenant_id] = config
            self._limiters.pop(tenant_id, None)
        logger.info(
            "tenant_rate_limit_set",
            tenant_id=tenant_id,
            requests_per_minute=config.requests_per_minute,
            burst=config.burst,
        )

    def clear_override(self, tenant_id: str) -> bool:
        """Return the tenant to the default limits.

        Returns:
            True if an override existed.
        """
        with self._lock:
            existed = self._overrides.pop(tenant_id, None) is not None
            if existed:
                self._limiters.pop(tenant_id, None)
        return existed

    def get(self, tenant_id: str) -> FixedWindowRateLimiter:
        """Get or create the tenant's limiter.

        Construction happens under the registry lock with a second lookup,
        so concurrent first requests for a tenant share one limiter.
        """
        limiter = self._limiters.get(tenant_id)
        if limiter is not None:
            return limiter

        with self._lock:
            limiter = self._limiters.get(tenant_id)
            if limiter is not None:
                return limiter
            config = self._overrides.get(tenant_id, self._default)
            limiter = FixedWindowRateLimiter(
                config.requests_per_minute,
                config.burst,
                window_seconds=self._window,
                ttl_seconds=self._window,
            )
            self._limiters[tenant_id] = limiter
            return limiter

    def cleanup(self) -> int:
        with self._lock:
            limiters = list(self._limiters.values())
        return sum(limiter.cleanup() for limiter in limiters)


class SupportsCleanup(Protocol):
    def cleanup(self) -> int: ...


async def run_reaper(
    targets: Iterable[SupportsCleanup],
    interval_seconds: float = DEFAULT_WINDOW_SECONDS,
) -> None:
    """Periodic cleanup of idle rate limit entries (and other expiring state).

    Each sweep runs in a worker thread; a failing target is logged and the
    loop keeps going. Runs until cancelled.
    """
    targets = list(targets)
    while True:
        await asyncio.sleep(interval_seconds)
        for target in targets:
            try:
                cleaned = await asyncio.to_thread(target.cleanup)
                if cleaned:
                    logger.debug(
                        "reaper_cleanup",
                        target=type(target).__name__,
                        keys_removed=cleaned,
                    )
            except Exception:
                logger.exception("reaper_cleanup_error", target=type(target).__name__)
