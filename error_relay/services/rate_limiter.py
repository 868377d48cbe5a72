"""Duplicate suppression and per-minute rate limiting"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from .store import TTLStore

logger = logging.getLogger(__name__)

RATE_BUCKET_TTL = 60


class DedupRateLimiter:
    """
    Drops repeats of the same error and caps reports per minute

    Both checks are no-ops when disabled. The rate window is a fixed
    wall-clock minute, so a burst across a minute boundary can reach twice
    the configured maximum.
    """

    def __init__(
        self,
        store: TTLStore,
        enabled: bool = True,
        max_per_minute: int = 10,
        dedup_window_seconds: int = 60,
        now: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize limiter

        Args:
            store: Shared TTL store
            enabled: When False both checks always pass
            max_per_minute: Reports allowed per UTC minute
            dedup_window_seconds: How long an identical error is suppressed
            now: UTC datetime source used for minute buckets
        """
        self.store = store
        self.enabled = enabled
        self.max_per_minute = max_per_minute
        self.dedup_window_seconds = dedup_window_seconds
        self.now = now or (lambda: datetime.now(timezone.utc))

    @staticmethod
    def dedup_key(error_hash: str) -> str:
        return f"dedup:{error_hash}"

    def rate_key(self) -> str:
        """Counter key for the current UTC minute"""
        return f"ratelimit:{self.now().strftime('%Y-%m-%d-%H-%M')}"

    def is_duplicate(self, error_hash: str) -> bool:
        """
        Check-and-mark an error hash

        Returns:
            True if the same hash was seen within the dedup window
        """
        if not self.enabled:
            return False

        added = self.store.add(self.dedup_key(error_hash), True, self.dedup_window_seconds)
        return not added

    def is_rate_limited(self) -> bool:
        """
        Count a report against the current minute

        Returns:
            True if the minute's budget is already used up; the counter is
            not incremented in that case
        """
        if not self.enabled:
            return False

        key = self.rate_key()
        current = self.store.get(key, 0)

        if current >= self.max_per_minute:
            return True

        self.store.incr(key, RATE_BUCKET_TTL)
        return False
