"""Sliding-window request admission control.

Keys take the form ``"<category>:<caller>"``. Certificate and SSL categories
get a stricter ceiling than everything else since each admission there opens
an outbound TLS connection.
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 60
DEFAULT_LIMIT = 20
STRICT_LIMIT = 5
STRICT_CATEGORIES = ("ssl", "certificate")

# Records idle for longer than window + grace are evicted by sweep()
SWEEP_GRACE_SECONDS = 60

# Retry hint sent with 429 responses
RETRY_AFTER_SECONDS = 60


@dataclass
class RateLimitRecord:
    key: str
    count: int
    window_start: float
    last_seen: float


class RateLimiter:
    """Per-key counting window that resets once its start ages past the window."""

    def __init__(
        self,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        default_limit: int = DEFAULT_LIMIT,
        strict_limit: int = STRICT_LIMIT,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = window_seconds
        self.default_limit = default_limit
        self.strict_limit = strict_limit
        self._clock = clock
        self._records: Dict[str, RateLimitRecord] = {}
        self._lock = threading.Lock()

    @staticmethod
    def category_of(key: str) -> str:
        return key.split(":", 1)[0].lower() if ":" in key else ""

    def limit_for(self, key: str) -> int:
        if self.category_of(key) in STRICT_CATEGORIES:
            return self.strict_limit
        return self.default_limit

    def admit(self, key: str) -> bool:
        """Count one request for ``key``; False once the window's limit is spent."""
        now = self._clock()
        with self._lock:
            record = self._records.get(key)
            if record is None:
                record = RateLimitRecord(key=key, count=0, window_start=now, last_seen=now)
                self._records[key] = record
            elif now - record.window_start > self.window_seconds:
                record.count = 0
                record.window_start = now

            record.last_seen = now
            if record.count >= self.limit_for(key):
                return False
            record.count += 1
            return True

    def get(self, key: str) -> Optional[RateLimitRecord]:
        with self._lock:
            return self._records.get(key)

    def sweep(self) -> int:
        """Evict idle records. Returns the number removed."""
        cutoff = self._clock() - self.window_seconds - SWEEP_GRACE_SECONDS
        with self._lock:
            stale = [key for key, record in self._records.items() if record.last_seen < cutoff]
            for key in stale:
                del self._records[key]
        if stale:
            logger.debug(f"Rate limiter swept {len(stale)} idle records")
        return len(stale)

    def __len__(self) -> int:
        return len(self._records)
