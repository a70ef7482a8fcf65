"""In-memory LRU cache with sliding TTL.

Values are stored as JSON strings so a cached value can never be mutated
through a reference held by the caller.
"""

import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, NamedTuple, Optional

from .config import CACHE_MAX_ITEMS, CACHE_TTL

_LOGGER = logging.getLogger(__name__)


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True)


class CacheKeys(NamedTuple):
    """Cache keys derived from a device id."""

    state: str
    auto_discovery: str


@dataclass
class CacheEntry:
    """One stored value."""

    key: str
    serialized_value: str
    inserted_at: float
    last_accessed_at: float


class Cache:
    """Key -> JSON value store with max size, TTL and reset-on-access."""

    def __init__(
        self,
        max_size: int = CACHE_MAX_ITEMS,
        ttl: float = CACHE_TTL,
        reset_ttl: bool = True,
        timer: Callable[[], float] = time.monotonic,
    ):
        """Initialize the cache.

        Args:
            max_size: Maximum number of entries before LRU eviction
            ttl: Seconds an entry lives after its last access (or insert)
            reset_ttl: Extend the TTL on every successful read
            timer: Clock function, monotonic seconds

        Raises:
            ValueError: If max_size is smaller than 1
        """
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")
        self.max_size = max_size
        self.ttl = ttl
        self.reset_ttl = reset_ttl
        self._timer = timer
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def cache_key(key: str) -> CacheKeys:
        return CacheKeys(state=f"{key}:state", auto_discovery=f"{key}:auto-discovery")

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return self.ttl > 0 and now - entry.last_accessed_at >= self.ttl

    def _lookup(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        now = self._timer()
        if self._is_expired(entry, now):
            del self._entries[key]
            return None
        return entry

    def get(self, key: str) -> Any:
        """Return the cached value, or None if missing or expired."""
        entry = self._lookup(key)
        if entry is None:
            return None
        if self.reset_ttl:
            entry.last_accessed_at = self._timer()
        self._entries.move_to_end(key)
        return json.loads(entry.serialized_value)

    def set(self, key: str, value: Any) -> "Cache":
        """Store value under key, replacing any previous value."""
        serialized = json.dumps(value)
        now = self._timer()

        if key in self._entries:
            del self._entries[key]
        while len(self._entries) >= self.max_size:
            evicted, _ = self._entries.popitem(last=False)
            _LOGGER.debug('Evicted "%s" from cache', evicted)

        self._entries[key] = CacheEntry(
            key=key,
            serialized_value=serialized,
            inserted_at=now,
            last_accessed_at=now,
        )
        _LOGGER.debug('Set "%s" value: %s', key, serialized)
        return self

    def has(self, key: str) -> bool:
        return self._lookup(key) is not None

    def delete(self, key: str) -> "Cache":
        self._entries.pop(key, None)
        return self

    def match_by_value(self, key: str, value: Any) -> bool:
        """Check value against the cached one, storing it when it differs.

        Args:
            key: Cache key
            value: JSON-compatible value

        Returns:
            True if the cached value is structurally equal to value (nothing
            stored), False if value was stored.
        """
        entry = self._lookup(key)
        # Compare JSON text so True and 1 differ and key order does not matter
        if entry is not None and _canonical(json.loads(entry.serialized_value)) == _canonical(value):
            if self.reset_ttl:
                entry.last_accessed_at = self._timer()
            self._entries.move_to_end(key)
            _LOGGER.debug('Key "%s" value has not changed.', key)
            return True

        self.set(key, value)
        return False
