"""TTL key/value store backing deduplication and rate limiting"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol


class TTLStore(Protocol):
    """
    Store shared by everything reporting errors

    add and incr must be atomic for the guarantees of the rate limiter to
    hold across concurrent reporters.
    """

    def add(self, key: str, value: Any, ttl: float) -> bool:
        """Set key only if absent; True if it was set"""

    def get(self, key: str, default: Any = None) -> Any:
        """Value for key, or default if missing or expired"""

    def incr(self, key: str, ttl: float) -> int:
        """Increment an integer counter, creating it with ttl; returns the new value"""

    def delete(self, key: str) -> None:
        """Remove key if present"""


@dataclass
class _Entry:
    value: Any
    expires_at: float


class MemoryStore:
    """
    In-process TTL store

    Shared between all reporters of one process. Expired entries are dropped
    lazily on access, and every write sweeps the whole store at most once per
    purge_interval seconds, so keys that are never read again do not pile up.
    """

    def __init__(
        self,
        clock: Optional[Callable[[], float]] = None,
        purge_interval: float = 60.0,
    ):
        """
        Initialize memory store

        Args:
            clock: Seconds source (default time.time); tests pass a fake clock
            purge_interval: Minimum seconds between sweeps triggered by writes
        """
        self.clock = clock or time.time
        self.purge_interval = purge_interval
        self._entries: Dict[str, _Entry] = {}
        self._lock = threading.Lock()
        self._next_purge = self.clock() + purge_interval

    def _purge_locked(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        self._next_purge = now + self.purge_interval
        return len(expired)

    def _maybe_purge(self) -> None:
        now = self.clock()
        if now >= self._next_purge:
            self._purge_locked(now)

    def _live(self, key: str) -> Optional[_Entry]:
        entry = self._entries.get(key)
        if entry is not None and entry.expires_at <= self.clock():
            del self._entries[key]
            return None
        return entry

    def add(self, key: str, value: Any, ttl: float) -> bool:
        with self._lock:
            self._maybe_purge()
            if self._live(key) is not None:
                return False
            self._entries[key] = _Entry(value=value, expires_at=self.clock() + ttl)
            return True

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._live(key)
            return default if entry is None else entry.value

    def incr(self, key: str, ttl: float) -> int:
        with self._lock:
            self._maybe_purge()
            entry = self._live(key)
            if entry is None:
                entry = _Entry(value=0, expires_at=self.clock() + ttl)
                self._entries[key] = entry
            entry.value += 1
            return entry.value

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def purge_expired(self) -> int:
        """Drop expired entries; returns how many were removed"""
        with self._lock:
            return self._purge_locked(self.clock())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
