import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional


# =============================
# Thread-safe in-memory TTL cache
# =============================
@dataclass
class TTLCacheEntry:
    value: Any
    expires_at: float


class TTLCache:
    def __init__(self, max_entries: int = 1024):
        self._store: Dict[str, TTLCacheEntry] = {}
        self._lock = threading.RLock()
        self.max_entries = max_entries

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._store.get(key)
            if not entry or entry.expires_at < time.time():
                self._store.pop(key, None)
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl_sec: int) -> None:
        with self._lock:
            if self._store and len(self._store) >= self.max_entries and key not in self._store:
                # evict the entry closest to expiry
                oldest = min(self._store, key=lambda k: self._store[k].expires_at)
                self._store.pop(oldest, None)
            self._store[key] = TTLCacheEntry(value=value, expires_at=time.time() + ttl_sec)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
