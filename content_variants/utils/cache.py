"""In-memory cache with per-entry TTL and pattern invalidation.

Built on cachetools.TLRUCache. We keep our own index of live keys so callers
can drop everything matching "contents:*" without knowing the exact keys.
"""
import logging
import re
import threading
import time
from typing import Any, Callable, List, NamedTuple, Optional

from cachetools import TLRUCache
from content_variants.config import settings

logger = logging.getLogger(__name__)


class _Entry(NamedTuple):
    value: Any
    ttl: float


def _expires_at(key, entry: _Entry, now: float) -> float:
    return now + entry.ttl


class _IndexedTLRUCache(TLRUCache):
    """TLRUCache that reports every key it drops on its own (expiry or size)."""

    def __init__(self, maxsize, timer, on_evict: Callable[[str], None]):
        super().__init__(maxsize, ttu=_expires_at, timer=timer)
        self._on_evict = on_evict

    def expire(self, time=None):
        expired = super().expire(time)
        for key, _ in expired:
            self._on_evict(key)
        return expired

    def popitem(self):
        key, value = super().popitem()
        self._on_evict(key)
        return key, value


def compile_pattern(pattern: str) -> "re.Pattern":
    """Turn a glob like 'contents:*' into a regex anchored at both ends.

    Only '*' is special, everything else matches literally.
    """
    regex = "^" + ".*".join(re.escape(part) for part in pattern.split("*")) + "$"
    return re.compile(regex, re.IGNORECASE)


class CacheService:
    """Expiring key -> value store shared by all requests.

    Values are returned exactly as stored. One lock guards both the store and
    the key index, so explicit removals and evictions can't interleave.
    """

    def __init__(
        self,
        maxsize: int = settings.cache_max_size,
        default_ttl: float = settings.cache_default_ttl,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self._lock = threading.RLock()
        self._keys = set()
        self._store = _IndexedTLRUCache(maxsize, timer, self._keys.discard)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                # drop anything that timed out, including this key
                self._store.expire()
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None):
        """Store value under key, restarting its expiration window."""
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._store.expire()
            self._store[key] = _Entry(value, ttl)
            # a non-positive ttl never makes it into the store
            if key in self._store:
                self._keys.add(key)
            else:
                self._keys.discard(key)

    def remove(self, key: str):
        with self._lock:
            self._store.pop(key, None)
            self._keys.discard(key)

    def remove_by_pattern(self, pattern: str) -> int:
        """Remove every key matching a '*' glob. Returns how many went."""
        regex = compile_pattern(pattern)
        with self._lock:
            self._store.expire()
            matches = [key for key in self._keys if regex.match(key)]

        # one by one, remove() is idempotent so a partial run is harmless
        for key in matches:
            self.remove(key)

        logger.info("Cache invalidated by pattern %s (%d keys)", pattern, len(matches))
        return len(matches)

    def clear(self) -> int:
        with self._lock:
            all_keys = list(self._keys)

        for key in all_keys:
            self.remove(key)

        logger.info("Cache cleared (%d keys)", len(all_keys))
        return len(all_keys)

    def known_keys(self) -> List[str]:
        """Snapshot of the live key index (expired entries pruned first).

        For inspection and tests; request code goes through get.
        """
        with self._lock:
            self._store.expire()
            return sorted(self._keys)

    def __len__(self):
        with self._lock:
            self._store.expire()
            return len(self._store)


# Request-path wrappers. The cache is only an optimization, so a failing
# cache call is logged and treated as a miss / no-op, never raised.

def safe_get(cache, key: str) -> Optional[Any]:
    try:
        return cache.get(key)
    except Exception:
        logger.warning("Cache read failed for %s, going to the store", key, exc_info=True)
        return None


def safe_set(cache, key: str, value: Any, ttl: Optional[float] = None):
    try:
        cache.set(key, value, ttl)
    except Exception:
        logger.warning("Cache write failed for %s", key, exc_info=True)


def safe_remove(cache, key: str):
    try:
        cache.remove(key)
    except Exception:
        logger.warning("Cache remove failed for %s", key, exc_info=True)


def safe_remove_by_pattern(cache, pattern: str):
    try:
        cache.remove_by_pattern(pattern)
    except Exception:
        logger.warning("Cache invalidation failed for pattern %s", pattern, exc_info=True)


def safe_clear(cache, reason: str):
    try:
        cache.clear()
    except Exception:
        logger.error("Cache clear failed after %s", reason, exc_info=True)
