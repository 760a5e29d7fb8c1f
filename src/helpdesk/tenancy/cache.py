"""Short-lived in-process cache of resolved tenants."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from threading import Lock

from helpdesk.tenancy.context import TenantSnapshot

SLUG_KEY_PREFIX = "slug:"


def id_key(tenant_id: uuid.UUID | str) -> str:
    return str(tenant_id)


def slug_key(slug: str) -> str:
    return SLUG_KEY_PREFIX + slug


@dataclass(frozen=True)
class CachedTenantEntry:
    tenant: TenantSnapshot
    expires_at: float


class TenantCache:
    """Tenant snapshots keyed by id or by ``slug:<slug>``.

    Entries are immutable, so readers never lock: a lookup is a single
    dict read. Writers take the lock, so an expired entry is not removed
    after a concurrent request replaced it and a store cannot slip in
    behind an invalidation.

    Expired entries are never served and are evicted lazily on the next
    lookup of the same key.

    Each key also has a generation, bumped by :meth:`invalidate`. A caller
    that loads a tenant from the store reads the generation first and hands
    it to :meth:`put`; if the key was invalidated while the load was in
    flight the stale snapshot is dropped instead of stored.
    """

    def __init__(self, ttl_seconds: float = 300.0) -> None:
        self._ttl = ttl_seconds
        self._entries: dict[str, CachedTenantEntry] = {}
        self._generations: dict[str, int] = {}
        self._lock = Lock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, key: str) -> TenantSnapshot | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if time.monotonic() < entry.expires_at:
            return entry.tenant
        with self._lock:
            if self._entries.get(key) is entry:
                del self._entries[key]
        return None

    def generation(self, key: str) -> int:
        return self._generations.get(key, 0)

    def put(
        self,
        key: str,
        tenant: TenantSnapshot,
        *,
        generation: int | None = None,
    ) -> bool:
        """Store ``tenant`` under ``key``.

        With ``generation``, the write only happens if ``key`` has not been
        invalidated since that generation was read.

        Returns:
            True if the entry was stored.
        """
        entry = CachedTenantEntry(
            tenant=tenant,
            expires_at=time.monotonic() + self._ttl,
        )
        with self._lock:
            if generation is not None and self.generation(key) != generation:
                return False
            self._entries[key] = entry
        return True

    def invalidate(self, tenant_id: uuid.UUID | str | None, slug: str | None) -> None:
        """Drop both the id-keyed and slug-keyed entries of a tenant.

        Must be called after any tenant mutation. Idempotent.
        """
        keys = []
        if tenant_id:
            keys.append(id_key(tenant_id))
        if slug:
            keys.append(slug_key(slug))
        with self._lock:
            for key in keys:
                self._entries.pop(key, None)
                self._generations[key] = self.generation(key) + 1

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generations.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
