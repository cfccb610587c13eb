"""
Process-local TTL cache for topic / question lookups.

Expiry is checked lazily on read; expired entries are purged on the next
write. There is no size bound. Keys are namespaced ("questions:<topic_id>")
so invalidating one namespace never evicts another.
"""
import logging
import threading
import time
from typing import Any, Callable, Hashable, Optional

logger = logging.getLogger("linguaflow.ttl_cache")

DEFAULT_TTL_SECONDS = 5 * 60
SEP = ":"


def cache_key(namespace: str, *parts: Any) -> str:
    return SEP.join([namespace, *(str(p) for p in parts)])


def _matches(key: Hashable, target: str) -> bool:
    if key == target:
        return True
    if not isinstance(key, str):
        return False
    if target.endswith(SEP):
        return key.startswith(target)
    return key.startswith(target + SEP)


class TTLCache:
    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[Hashable, tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def _expired(self, inserted_at: float, now: float) -> bool:
        return now - inserted_at >= self.ttl_seconds

    def get(self, key: Hashable) -> tuple[Optional[Any], bool]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None, False
            value, inserted_at = entry
            if self._expired(inserted_at, self._clock()):
                return None, False
            return value, True

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            now = self._clock()
            self._purge_expired(now)
            self._entries[key] = (value, now)

    def _purge_expired(self, now: float) -> None:
        stale = [k for k, (_, t) in self._entries.items() if self._expired(t, now)]
        for k in stale:
            del self._entries[k]
        if stale:
            logger.debug("Purged %d expired cache entries", len(stale))

    def invalidate(self, key_or_prefix: str) -> int:
        """Drop ``key_or_prefix`` and every key nested under it.

        "questions:1" removes that key and "questions:1:*" but not
        "questions:10"; "questions:" removes the whole namespace.

        Returns the number of entries removed.
        """
        with self._lock:
            doomed = [k for k in self._entries if _matches(k, key_or_prefix)]
            for k in doomed:
                del self._entries[k]
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def get_or_load(self, key: Hashable, loader: Callable[[], Any]) -> Any:
        """Read-through: return the cached value or load, store and return it.

        Loader exceptions propagate and nothing is cached.
        """
        value, hit = self.get(key)
        if hit:
            return value
        value = loader()
        self.set(key, value)
        return value

    def stats(self) -> dict:
        with self._lock:
            now = self._clock()
            expired = sum(1 for _, t in self._entries.values() if self._expired(t, now))
            return {"entries": len(self._entries), "expired": expired, "ttl_seconds": self.ttl_seconds}

    def __len__(self) -> int:
        return len(self._entries)
