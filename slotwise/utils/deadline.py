# File: slotwise/utils/deadline.py

import time
from typing import Callable, Optional

from slotwise.core.errors import DeadlineExceededError


class Deadline:
    """A caller-supplied time budget measured on a monotonic clock."""

    def __init__(self, seconds: Optional[float], clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.seconds = seconds
        self.expires_at = clock() + seconds if seconds is not None else None

    def remaining(self) -> Optional[float]:
        """Seconds left, floored at zero; None when unbounded."""
        if self.expires_at is None:
            return None
        return max(self.expires_at - self._clock(), 0.0)

    def expired(self) -> bool:
        return self.expires_at is not None and self._clock() >= self.expires_at

    def cap(self, timeout: float) -> float:
        """Shorten a per-call timeout so it never outlives the deadline."""
        remaining = self.remaining()
        if remaining is None:
            return timeout
        return min(timeout, remaining)

    def check(self, stage: str) -> None:
        if self.expired():
            raise DeadlineExceededError(f"Deadline of {self.seconds}s exceeded during {stage}")
