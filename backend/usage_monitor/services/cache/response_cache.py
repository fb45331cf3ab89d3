"""
In-process response cache for overview and explore results.

One instance lives for the lifetime of the process (created in main.create_app and
kept on app.state); nothing is persisted. Entries expire after a short TTL and the
oldest insertion is evicted first once capacity is exceeded.
"""
import hashlib
import json
import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Optional, Tuple

logger = logging.getLogger(__name__)

_MISS = object()


class ResponseCache:
    """Thread-safe TTL memo with a bounded number of entries."""

    def __init__(
        self,
        ttl_seconds: float = 30.0,
        max_entries: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, Any]]" = OrderedDict()
        self._lock = threading.Lock()

    @staticmethod
    def make_key(kind: str, params: dict) -> str:
        """Stable key for a resolved query; params must be JSON-serializable."""
        payload = json.dumps({"kind": kind, "params": params}, sort_keys=True, default=str)
        return hashlib.sha256(payload.encode()).hexdigest()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str, default=None):
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            stored_at, value = entry
            if self._clock() - stored_at >= self.ttl_seconds:
                del self._entries[key]
                return default
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            now = self._clock()
            # Re-setting a key counts as a fresh insertion
            self._entries.pop(key, None)
            self._entries[key] = (now, value)
            self._purge_expired(now)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        return count

    def _purge_expired(self, now: float) -> None:
        # Insertion order is also expiry order
        while self._entries:
            oldest_key, (stored_at, _) = next(iter(self._entries.items()))
            if now - stored_at < self.ttl_seconds:
                break
            del self._entries[oldest_key]


def get_or_compute(cache: Optional[ResponseCache], key: str, compute: Callable[[], Any]) -> Any:
    """
    Return the cached value for key, or compute and store it.

    Cache faults never reach the caller: a failing cache behaves as a permanent miss.
    Errors from compute propagate unchanged and nothing is stored.
    """
    if cache is not None:
        try:
            cached = cache.get(key, _MISS)
        except Exception as e:
            logger.warning(f"Response cache lookup failed, recomputing: {e}")
            cached = _MISS
        if cached is not _MISS:
            return cached

    value = compute()

    if cache is not None:
        try:
            cache.set(key, value)
        except Exception as e:
            logger.warning(f"Response cache store failed: {e}")
    return value


def safe_clear(cache: Optional[ResponseCache]) -> int:
    """Clear the cache, logging instead of raising on failure."""
    if cache is None:
        return 0
    try:
        cleared = cache.clear()
        logger.debug(f"Cleared {cleared} cached responses")
        return cleared
    except Exception as e:
        logger.warning(f"Response cache clear failed: {e}")
        return 0
