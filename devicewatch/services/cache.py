"""
Short-lived cache backends.

Volatile key/value storage with per-key TTL. Losing the contents is always
acceptable: callers treat a missing key (or a backend error) as "not seen".

Backends:
- MemoryCache: in-process, thread-safe; the default when REDIS_URL is unset
- RedisCache: shared across workers/instances; selected when REDIS_URL is set

Usage:
    from devicewatch.services.cache import get_cache

    cache = get_cache()
    cache.set("lastseen_42_abc", "1760000000", ttl=86400)
    cache.get("lastseen_42_abc")  # "1760000000"
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Callable, Optional, Tuple

from devicewatch.core.settings import settings

logger = logging.getLogger("devicewatch.cache")


class CacheBackend(ABC):
    """Abstract base class for cache backends."""

    BACKEND_NAME: str = "base"

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the value for ``key`` or None when absent/expired."""
        pass

    @abstractmethod
    def set(self, key: str, value: str, ttl: int) -> None:
        """Store ``value`` under ``key`` for ``ttl`` seconds."""
        pass

    def ping(self) -> bool:
        """Check the backend is reachable."""
        return True


class MemoryCache(CacheBackend):
    """Thread-safe in-memory TTL cache.

    Suitable for single-process deployments and tests. Entries expire lazily
    on read; the oldest entries are evicted once ``max_size`` is reached.
    """

    BACKEND_NAME = "memory"

    def __init__(self, max_size: int = 100000, clock: Callable[[], float] = time.time):
        self.max_size = max_size
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[str, float]]" = OrderedDict()
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return value

    def set(self, key: str, value: str, ttl: int) -> None:
        with self._lock:
            self._entries.pop(key, None)
            while len(self._entries) >= self.max_size:
                self._entries.popitem(last=False)
            self._entries[key] = (str(value), self._clock() + ttl)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RedisCache(CacheBackend):
    """Redis-backed cache using native key expiry (SET ... EX)."""

    BACKEND_NAME = "redis"

    def __init__(self, url: str, key_prefix: str = "devicewatch:", socket_timeout: int = 2):
        import redis

        self.key_prefix = key_prefix
        self._client = redis.Redis.from_url(
            url,
            socket_connect_timeout=socket_timeout,
            socket_timeout=socket_timeout,
            decode_responses=True,
        )

    def get(self, key: str) -> Optional[str]:
        return self._client.get(self.key_prefix + key)

    def set(self, key: str, value: str, ttl: int) -> None:
        self._client.set(self.key_prefix + key, str(value), ex=max(int(ttl), 1))

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except Exception as e:
            logger.warning(f"[cache] redis ping failed: {e}")
            return False


# Singleton instance
_cache: Optional[CacheBackend] = None


def get_cache() -> CacheBackend:
    """Get or create the process-wide cache backend.

    Uses Redis when REDIS_URL is configured, otherwise an in-memory cache.
    A Redis client that cannot be created falls back to memory so the
    service keeps working (dedup becomes per-process).
    """
    global _cache
    if _cache is None:
        if settings.redis_url:
            try:
                _cache = RedisCache(settings.redis_url)
                logger.info("[cache] using redis backend")
            except Exception as e:
                logger.error(f"[cache] failed to create redis client, using memory: {e}")
                _cache = MemoryCache()
        else:
            _cache = MemoryCache()
            logger.info("[cache] using in-memory backend")
    return _cache


def reset_cache() -> None:
    """Reset the singleton (useful for testing)."""
    global _cache
    _cache = None
