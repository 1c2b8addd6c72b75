"""
In-memory implementation of the counter store.

Used for development, tests and single-process deployments. State is lost on
restart and is not shared between processes.
"""

import fnmatch
import logging
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

from sentinel_monitor.errors import StoreUnavailableError
from sentinel_monitor.store.base import CounterStore, Value

logger = logging.getLogger(__name__)


class InMemoryCounterStore(CounterStore):
    """Dict-backed counter store with TTL driven by an injectable clock"""

    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._lock = threading.Lock()
        self._available = True
        logger.info("Initialized in-memory counter store")

    def set_available(self, available: bool) -> None:
        """Simulate an outage: while unavailable every call raises StoreUnavailableError"""
        self._available = available
        logger.info(f"In-memory store availability set to {available}")

    def _check_available(self) -> None:
        if not self._available:
            raise StoreUnavailableError("In-memory store marked unavailable")

    def _live_entry(self, key: str) -> Optional[Tuple[str, Optional[float]]]:
        # Caller holds the lock
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at = entry[1]
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return entry

    def incr(self, key: str) -> int:
        self._check_available()
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                value, expires_at = 0, None
            else:
                try:
                    value = int(entry[0])
                except ValueError:
                    raise ValueError(f"Value at {key} is not an integer")
                expires_at = entry[1]
            value += 1
            self._data[key] = (str(value), expires_at)
            return value

    def expire(self, key: str, seconds: int) -> bool:
        self._check_available()
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return False
            self._data[key] = (entry[0], self._clock() + seconds)
            return True

    def get(self, key: str) -> Optional[str]:
        self._check_available()
        with self._lock:
            entry = self._live_entry(key)
            return entry[0] if entry else None

    def set(self, key: str, value: Value, ttl: Optional[int] = None) -> bool:
        self._check_available()
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        expires_at = self._clock() + ttl if ttl is not None else None
        with self._lock:
            self._data[key] = (str(value), expires_at)
        return True

    def delete(self, *keys: str) -> int:
        self._check_available()
        removed = 0
        with self._lock:
            for key in keys:
                if self._live_entry(key) is not None:
                    del self._data[key]
                    removed += 1
        return removed

    def exists(self, key: str) -> bool:
        self._check_available()
        with self._lock:
            return self._live_entry(key) is not None

    def keys(self, pattern: str) -> List[str]:
        self._check_available()
        with self._lock:
            candidates = list(self._data)
            return sorted(
                key for key in candidates
                if fnmatch.fnmatchcase(key, pattern) and self._live_entry(key) is not None
            )

    def ttl(self, key: str) -> int:
        self._check_available()
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return -2
            if entry[1] is None:
                return -1
            return max(0, int(round(entry[1] - self._clock())))

    def ping(self) -> bool:
        self._check_available()
        return True

    def flush(self) -> None:
        with self._lock:
            self._data.clear()
