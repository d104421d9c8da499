"""In-process TTL cache for provider responses.

Expiry is lazy: an entry is only dropped when a ``get`` finds it stale. There
is no background sweep and no size bound, so keys that are never read again
stay in memory until the process restarts.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable

import structlog

logger = structlog.get_logger(__name__)

MISS = object()


@dataclass
class CacheEntry:
    key: str
    payload: Any
    stored_at: float
    ttl: float


def listing_key(mode: str, folder_id: str, search: str | None) -> str:
    return f"listing:{mode}:{folder_id}:{search or ''}"


def detail_key(mode: str, file_id: str) -> str:
    return f"detail:{mode}:{file_id}"


def path_key(folder_id: str, mode: str) -> str:
    return f"path:{folder_id}:{mode}"


class TTLCache:
    """Keyed store where every entry lives for the same ``ttl`` seconds."""

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> Any:
        """Return the cached payload, or ``MISS`` if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return MISS
        if self._clock() - entry.stored_at >= entry.ttl:
            del self._entries[key]
            logger.debug("cache_expired", key=key)
            return MISS
        return entry.payload

    def set(self, key: str, payload: Any) -> None:
        self._entries[key] = CacheEntry(key=key, payload=payload, stored_at=self._clock(), ttl=self.ttl)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
