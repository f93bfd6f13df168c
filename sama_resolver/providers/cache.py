"""In-memory TTL cache shared by the request layer."""
from __future__ import annotations
import threading
import time
from typing import Any, Optional


class TTLCache:
    def __init__(self, default_ttl: float = 300.0, *, enabled: bool = True, clock=time.monotonic):
        self.default_ttl = default_ttl
        self.enabled = enabled
        self._clock = clock
        self._items: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            expires_at, value = item
            if self._clock() >= expires_at:
                del self._items[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: float | None = None):
        if not self.enabled:
            return
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._items[key] = (self._clock() + ttl, value)

    def clear(self):
        with self._lock:
            self._items.clear()

    def stats(self) -> dict:
        with self._lock:
            return {"size": len(self._items), "keys": sorted(self._items)}
