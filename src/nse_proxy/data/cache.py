"""
Short-TTL response cache.

Keeps the last good payload per logical resource. Entries are never evicted;
freshness is decided lazily when an entry is read.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """A stored payload and the (monotonic) time it was stored."""

    value: Any
    stored_at: float

    def age(self, now: float) -> float:
        return now - self.stored_at


class CacheStore:
    """
    Keyed, TTL-gated storage of last-good payloads.

    Not internally synchronized: reads and writes for a key are plain dict
    operations, so the last writer wins.

    Example:
        >>> cache = CacheStore(ttl_seconds=5.0)
        >>> cache.put("nifty50", {"data": []})
        >>> cache.get("nifty50").value
        {'data': []}
    """

    def __init__(
        self,
        ttl_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the cache.

        Args:
            ttl_seconds: Age at which an entry stops being served.
            clock: Monotonic time source, in seconds.
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str, now: float | None = None) -> CacheEntry | None:
        """Return the entry for ``key`` if it is younger than the TTL."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        now = self._clock() if now is None else now
        if entry.age(now) >= self.ttl_seconds:
            logger.debug(f"Cache entry for {key} is stale ({entry.age(now):.3f}s old)")
            return None
        return entry

    def put(self, key: str, value: Any, now: float | None = None) -> CacheEntry:
        """Store ``value`` under ``key``, replacing whatever was there."""
        now = self._clock() if now is None else now
        entry = CacheEntry(value=value, stored_at=now)
        self._entries[key] = entry
        return entry

    def peek(self, key: str) -> CacheEntry | None:
        """Return the entry for ``key`` regardless of its age."""
        return self._entries.get(key)

    def keys(self) -> list[str]:
        return list(self._entries)

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()
        logger.info("Cache cleared")

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)


__all__ = ["CacheEntry", "CacheStore"]
