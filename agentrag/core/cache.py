"""Lightweight in-memory TTL cache for retrieval results.

Identical (query, document set) lookups within the TTL window return the
cached context string instead of re-scoring every section. The cache is an
explicit object handed to the retrieval engine, so tests can pass their own
instance (or a fake clock) instead of sharing process state.
"""

import time
from collections import OrderedDict
from collections.abc import Callable, Hashable
from functools import lru_cache
from typing import Any, Protocol

from agentrag.core.config import get_settings

# Default TTL in seconds
DEFAULT_TTL = 60 * 60


class Cache(Protocol):
    def get(self, key: Hashable) -> Any | None: ...

    def set(self, key: Hashable, value: Any, ttl: float | None = None) -> None: ...


class TTLCache:
    """Bounded key/value store where every entry carries its own expiry."""

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[Hashable, tuple[float, Any]] = OrderedDict()

    def get(self, key: Hashable) -> Any | None:
        """Return cached value if present and not expired, else None."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: Hashable, value: Any, ttl: float | None = None) -> None:
        """Store a value; the oldest entry is evicted once the cache is full."""
        ttl = self.default_ttl if ttl is None else ttl
        self._entries.pop(key, None)
        self._entries[key] = (self._clock() + ttl, value)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def invalidate(self, key: Hashable) -> None:
        """Remove a specific cache entry."""
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Clear all cached entries."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


@lru_cache
def get_context_cache() -> TTLCache:
    """Process-wide cache used by the API and worker wiring."""
    settings = get_settings()
    return TTLCache(
        default_ttl=settings.context_cache_ttl_seconds,
        max_entries=settings.context_cache_max_entries,
    )
