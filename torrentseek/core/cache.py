"""
Memoizing Cache
Thread-safe LRU cache with per-entry TTL, shared by providers and the metadata fetcher
"""
from collections import OrderedDict
from typing import Any, Callable, Generic, Hashable, Optional, Tuple, Type, TypeVar
import logging
import threading
import time

logger = logging.getLogger(__name__)

V = TypeVar("V")

DEFAULT_CAPACITY = 1000
DEFAULT_TTL_SECONDS = 24 * 3600.0
DEFAULT_CLEANUP_INTERVAL_SECONDS = 3600.0


class LRUCache(Generic[V]):
    """LRU cache with expiry; expired entries are never returned"""

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if capacity < 1:
            raise ValueError("Cache capacity must be at least 1.")
        self.capacity = int(capacity)
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        # key -> (expires_at, value); most recently used at the end
        self._entries: "OrderedDict[Hashable, Tuple[float, V]]" = OrderedDict()
        self._lock = threading.RLock()
        self._cleanup_thread: Optional[threading.Thread] = None
        self._stop_cleanup = threading.Event()

    def get(self, key: Hashable) -> Tuple[Optional[V], bool]:
        """Return (value, True) for a live entry, (None, False) otherwise"""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None, False
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None, False
            self._entries.move_to_end(key)
            return value, True

    def set(self, key: Hashable, value: V) -> None:
        """Store value, refreshing recency and expiry"""
        with self._lock:
            self._entries[key] = (self._clock() + self.ttl_seconds, value)
            self._entries.move_to_end(key)
            if len(self._entries) > self.capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Cache evicted %r", evicted)

    def delete(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key)[1]

    def clean_expired(self) -> int:
        """Drop every expired entry; returns how many were removed"""
        with self._lock:
            now = self._clock()
            expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Cache sweep removed %d expired entries", len(expired))
        return len(expired)

    def start_cleanup(self, interval_seconds: float = DEFAULT_CLEANUP_INTERVAL_SECONDS) -> None:
        """Start the background sweep thread (idempotent)"""
        with self._lock:
            if self._cleanup_thread is not None and self._cleanup_thread.is_alive():
                return
            self._stop_cleanup.clear()

            def sweep():
                while not self._stop_cleanup.wait(interval_seconds):
                    try:
                        self.clean_expired()
                    except Exception as e:
                        logger.warning("Cache sweep failed: %s", e)

            self._cleanup_thread = threading.Thread(target=sweep, name="cache-sweep", daemon=True)
            self._cleanup_thread.start()

    def stop_cleanup(self) -> None:
        """Stop the background sweep thread"""
        self._stop_cleanup.set()
        thread = self._cleanup_thread
        if thread is not None:
            thread.join(timeout=1.0)
        self._cleanup_thread = None


class CacheView(Generic[V]):
    """
    Namespaced, typed window onto a shared LRUCache.

    Keys are prefixed with the namespace, and a stored value of the wrong
    type reads as a miss.
    """

    def __init__(self, cache: LRUCache[Any], namespace: str, value_type: Type[V]):
        self.cache = cache
        self.namespace = namespace
        self.value_type = value_type

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def get(self, key: str) -> Tuple[Optional[V], bool]:
        value, found = self.cache.get(self._key(key))
        if not found or not isinstance(value, self.value_type):
            return None, False
        return value, True

    def set(self, key: str, value: V) -> None:
        if not isinstance(value, self.value_type):
            raise TypeError(
                f"Cache namespace '{self.namespace}' holds {self.value_type.__name__}, got {type(value).__name__}."
            )
        self.cache.set(self._key(key), value)

    def delete(self, key: str) -> None:
        self.cache.delete(self._key(key))
