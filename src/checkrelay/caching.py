"""
Check Set Cache

Short-lived cache of decoded registry responses, keyed by registry URL.
Two policies share one interface: a no-op cache used when caching is
disabled, and an in-memory TTL cache.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple

from .config import CacheConfig
from .metrics import CACHE_HITS, CACHE_MISSES

logger = logging.getLogger(__name__)

# Expired entries are purged at most this often
DEFAULT_CLEANUP_INTERVAL = 60.0


class Cache(ABC):
    """Minimal key/value cache."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if absent or expired."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a value, replacing any existing entry."""


class NoOpCache(Cache):
    """Cache that never holds anything."""

    def get(self, key: str) -> Optional[Any]:
        CACHE_MISSES.inc()
        return None

    def set(self, key: str, value: Any) -> None:
        pass


class TTLCache(Cache):
    """
    In-memory cache whose entries expire a fixed time after insertion.

    Expiry is checked on read. Stale entries for keys that are never read
    again are purged by a sweep that runs at most once per cleanup
    interval, piggybacked on cache access.
    """

    def __init__(
        self,
        ttl: float,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.ttl = ttl
        self.cleanup_interval = cleanup_interval
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            now = self._clock()
            self._maybe_sweep(now)
            entry = self._entries.get(key)
            if entry is None or entry[1] <= now:
                CACHE_MISSES.inc()
                return None
            CACHE_HITS.inc()
            return entry[0]

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            now = self._clock()
            self._maybe_sweep(now)
            self._entries[key] = (value, now + self.ttl)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _maybe_sweep(self, now: float) -> None:
        # Caller holds the lock
        if now - self._last_sweep < self.cleanup_interval:
            return
        expired = [k for k, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        self._last_sweep = now
        if expired:
            logger.debug("Purged %d expired cache entries", len(expired))


def create_cache(config: CacheConfig) -> Cache:
    """Pick the cache policy for the configured duration."""
    if config.registry_cache_duration <= 0:
        return NoOpCache()
    return TTLCache(ttl=config.registry_cache_duration)
