"""Secondary de-duplication for clients that never return the device cookie.

Keyed on (identity, remote address, user agent). Any cache error counts as
"not seen", so an unavailable cache produces an extra email rather than a
missed one.
"""
import hashlib
import logging

from devicewatch.services.cache import CacheBackend

logger = logging.getLogger("devicewatch.device_watch")


def dedup_key(identity_id, remote_address: str, user_agent: str) -> str:
    digest = hashlib.sha256(f"{remote_address}|{user_agent}".encode("utf-8")).hexdigest()
    return f"lastseen_{identity_id}_{digest}"


class DedupGate:
    def __init__(self, cache: CacheBackend, ttl: int):
        self.cache = cache
        self.ttl = ttl

    def seen_recently(self, key: str) -> bool:
        try:
            return self.cache.get(key) is not None
        except Exception as e:
            logger.warning(f"[device_watch] dedup cache read failed, treating as miss: {e}")
            return False

    def mark_seen(self, key: str, now: int) -> None:
        try:
            self.cache.set(key, str(now), self.ttl)
        except Exception as e:
            logger.warning(f"[device_watch] dedup cache write failed: {e}")
