from __future__ import annotations
from collections import OrderedDict
import threading, time
from typing import Any, Callable, Hashable, Optional, Tuple


class LRUCache:
    """Thread-safe LRU with an optional per-entry time-to-live (seconds)."""

    def __init__(self, capacity: int = 1024, ttl: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.capacity = max(1, int(capacity))
        self.ttl = ttl
        self.clock = clock
        self.store: "OrderedDict[Hashable, Tuple[float, Any]]" = OrderedDict()
        self.lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[Any]:
        with self.lock:
            entry = self.store.get(key)
            if entry is None:
                return None
            stamp, value = entry
            if self.ttl is not None and (self.clock() - stamp) > self.ttl:
                del self.store[key]
                return None
            self.store.move_to_end(key)
            return value

    def set(self, key: Hashable, value: Any):
        with self.lock:
            self.store[key] = (self.clock(), value)
            self.store.move_to_end(key)
            while len(self.store) > self.capacity:
                self.store.popitem(last=False)

    def clear(self):
        with self.lock:
            self.store.clear()

    def __len__(self) -> int:
        with self.lock:
            return len(self.store)
