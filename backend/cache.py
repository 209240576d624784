import threading
import time
from collections import OrderedDict


class TtlCache:
    """
    Thread-safe bounded in-memory cache whose entries expire after ttl_seconds.

    The clock is injectable so expiry can be tested without sleeping.
    Least-recently-used entries are evicted once max_size is exceeded.
    """

    def __init__(self, ttl_seconds: float, max_size: int = 128, clock=time.monotonic):
        self.ttl_seconds = max(0.0, float(ttl_seconds))
        self.max_size = max(1, int(max_size))
        self._clock = clock
        self._lock = threading.Lock()
        self._items: OrderedDict[str, tuple[object, float]] = OrderedDict()

    def get(self, key: str):
        with self._lock:
            entry = self._items.get(key)
            if entry is None:
                return None
            value, stored_at = entry
            if self._clock() - stored_at >= self.ttl_seconds:
                del self._items[key]
                return None
            self._items.move_to_end(key)
            return value

    def set(self, key: str, value) -> None:
        with self._lock:
            self._items.pop(key, None)
            self._items[key] = (value, self._clock())
            while len(self._items) > self.max_size:
                self._items.popitem(last=False)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
