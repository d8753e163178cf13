"""TTL caches for scan and selection results.

Both caches are owned by a ``CacheService`` created once per workspace
session and injected into the scanner and the selection controller. Entries
carry a ``scope`` (the workspace root) so a single workspace can be cleared
without touching others.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

logger = logging.getLogger("contextkit.cache")

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    key: str
    timestamp: float
    payload: T
    ttl: float
    scope: str = ""

    def is_expired(self, now: float) -> bool:
        return now - self.timestamp > self.ttl


@dataclass
class CacheEntryStats:
    key: str
    age_ms: float


@dataclass
class CacheStats:
    size: int
    entries: list[CacheEntryStats] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "size": self.size,
            "entries": [{"key": e.key, "age_ms": round(e.age_ms, 1)} for e in self.entries],
        }


class TTLCache(Generic[T]):
    """A keyed memo table whose entries expire after a TTL."""

    def __init__(
        self,
        name: str,
        default_ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}

    def get(self, key: str) -> T | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            logger.debug("%s cache entry expired: %s", self.name, key)
            return None
        return entry.payload

    def set(self, key: str, payload: T, ttl: float | None = None, scope: str = "") -> None:
        self._entries[key] = CacheEntry(
            key=key,
            timestamp=self._clock(),
            payload=payload,
            ttl=self.default_ttl if ttl is None else ttl,
            scope=scope or key,
        )

    def invalidate(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self, scope: str | None = None) -> int:
        """Drop every entry, or only the entries belonging to `scope`.

        Returns:
            The number of entries removed.
        """
        if scope is None:
            removed = len(self._entries)
            self._entries.clear()
        else:
            keys = [k for k, e in self._entries.items() if e.scope == scope]
            for k in keys:
                del self._entries[k]
            removed = len(keys)
        if removed:
            logger.debug("Cleared %d %s cache entries (scope=%s)", removed, self.name, scope)
        return removed

    def stats(self) -> CacheStats:
        now = self._clock()
        return CacheStats(
            size=len(self._entries),
            entries=[
                CacheEntryStats(key=e.key, age_ms=(now - e.timestamp) * 1000)
                for e in self._entries.values()
            ],
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None


class CacheService:
    """Holds the scan cache and the selection cache for one session."""

    def __init__(
        self,
        scan_ttl: float = 300.0,
        selection_ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.scan: TTLCache = TTLCache("scan", scan_ttl, clock)
        self.selection: TTLCache = TTLCache("selection", selection_ttl, clock)
        self._closed = False

    def invalidate_workspace(self, root: str) -> None:
        self.scan.clear(root)
        self.selection.clear(root)

    def clear(self) -> None:
        self.scan.clear()
        self.selection.clear()

    def stats(self) -> dict[str, CacheStats]:
        return {"scan": self.scan.stats(), "selection": self.selection.stats()}

    def close(self) -> None:
        self.clear()
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed
