"""Small TTL cache for idempotent upstream reads.

Instances are owned by whoever needs them (the application keeps one on
``app.state``); there is no module-level cache. The clock is injectable so
expiry can be tested without sleeping.

Usage:
    cache = TTLCache(default_ttl=300)
    cached = cache.get("shipping_methods:FR")
    if cached is None:
        cached = load()
        cache.set("shipping_methods:FR", cached)
"""
import threading
import time
from typing import Any, Callable, Optional


class TTLCache:
    """Thread-safe in-memory cache with TTL expiry and max-entry limit."""

    def __init__(self, default_ttl: float = 300, max_entries: int = 80, clock: Callable[[], float] = time.monotonic):
        self._store: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()
        self._max_entries = max_entries
        self.default_ttl = default_ttl
        self.clock = clock

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self.clock() >= expires_at:
                del self._store[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            now = self.clock()
            if len(self._store) >= self._max_entries and key not in self._store:
                expired = [k for k, (exp, _) in self._store.items() if now >= exp]
                for k in expired:
                    del self._store[k]
            # If still at limit, evict the entry closest to expiry
            if len(self._store) >= self._max_entries and key not in self._store:
                oldest_key = min(self._store, key=lambda k: self._store[k][0])
                del self._store[oldest_key]
            self._store[key] = (now + ttl, value)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def invalidate(self, prefix: str) -> int:
        """Remove all keys starting with prefix. Returns count removed."""
        with self._lock:
            keys = [k for k in self._store if k.startswith(prefix)]
            for k in keys:
                del self._store[k]
            return len(keys)

    def __len__(self) -> int:
        return len(self._store)
