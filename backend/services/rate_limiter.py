"""
Fixed-window rate limiter for the AI analysis endpoint.

Each user gets a counter that starts with their first request and resets
entirely once the window has elapsed. State lives in process memory only,
so a restart resets every quota and two processes never share counts.

Author: MoneyWise Team
"""

import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict


class RateLimited(Exception):
    """Raised when a user has exhausted their quota for the current window."""

    def __init__(self, retry_after: float):
        super().__init__(f"Rate limit exceeded. Try again in {retry_after:.0f} seconds.")
        self.retry_after = retry_after


@dataclass
class RateLimitRecord:
    count: int
    reset_at: float


class RateLimiter:
    """
    Per-user fixed-window counter.

    Expiry is evaluated lazily on each call; a request arriving at or after
    reset_at starts a fresh window instead of being denied.
    """

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            max_requests: Admissions allowed per window.
            window_seconds: Window length in seconds.
            clock: Source of the current time in seconds.
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._records: Dict[str, RateLimitRecord] = {}
        self._lock = Lock()

    def try_acquire(self, user_id: str) -> bool:
        """Admit one request for user_id if the quota allows it."""
        with self._lock:
            now = self._clock()
            record = self._records.get(user_id)

            if record is not None and now >= record.reset_at:
                del self._records[user_id]
                record = None

            if record is None:
                self._records[user_id] = RateLimitRecord(
                    count=1, reset_at=now + self.window_seconds
                )
                return True

            if record.count >= self.max_requests:
                return False

            record.count += 1
            return True

    def retry_after(self, user_id: str) -> float:
        """Seconds until the user's current window resets (0 if none is active)."""
        with self._lock:
            record = self._records.get(user_id)
            if record is None:
                return 0.0
            return max(0.0, record.reset_at - self._clock())

    def remaining(self, user_id: str) -> int:
        """Admissions left for the user in the active window."""
        with self._lock:
            record = self._records.get(user_id)
            if record is None or self._clock() >= record.reset_at:
                return self.max_requests
            return max(0, self.max_requests - record.count)

    def reset(self) -> None:
        """Forget every user's window."""
        with self._lock:
            self._records.clear()
