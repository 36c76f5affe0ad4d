from __future__ import annotations

import threading
import time
from typing import Callable

from .types import WaitableRateLimiter


class PerMinuteRateLimiter(WaitableRateLimiter):
    """Spaces calls evenly so that at most ``requests_per_minute`` start per minute.

    Shared between worker threads; each ``wait`` reserves the next free slot.
    """

    def __init__(
        self,
        requests_per_minute: int,
        monotonic_fn: Callable[[], float] | None = None,
        sleep_fn: Callable[[float], None] | None = None,
    ):
        if requests_per_minute <= 0:
            raise ValueError("requests_per_minute must be a positive integer.")
        self._spacing_s = 60.0 / float(requests_per_minute)
        self._next_slot = 0.0
        self._lock = threading.Lock()
        self._monotonic = monotonic_fn or time.monotonic
        self._sleep = sleep_fn or time.sleep

    def wait(self) -> None:
        with self._lock:
            now = self._monotonic()
            slot = max(self._next_slot, now)
            self._next_slot = slot + self._spacing_s
        delay = slot - now
        if delay > 0:
            self._sleep(delay)


class NoopRateLimiter(WaitableRateLimiter):
    def wait(self) -> None:
        return None


def build_rate_limiter(requests_per_minute: int) -> WaitableRateLimiter:
    if requests_per_minute <= 0:
        return NoopRateLimiter()
    return PerMinuteRateLimiter(requests_per_minute)
