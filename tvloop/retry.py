"""
Retry and rate limiting policies for provider calls
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

from .errors import TransientProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """
    Bounded retry with exponential backoff

    Only TransientProviderError is retried; every other exception
    propagates on the first attempt. With the defaults the delays are
    2s then 4s before the error is surfaced.
    """

    max_attempts: int = 3
    base_delay: float = 2.0
    multiplier: float = 2.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def delay_for(self, attempt: int) -> float:
        """Delay after the given failed attempt (0-based)"""
        return self.base_delay * (self.multiplier**attempt)

    def call(self, func: Callable[..., T], *args, description: str = "", **kwargs) -> T:
        """Call func, retrying transient failures up to max_attempts times"""
        last_error: TransientProviderError | None = None
        for attempt in range(self.max_attempts):
            try:
                return func(*args, **kwargs)
            except TransientProviderError as e:
                last_error = e
                if attempt < self.max_attempts - 1:
                    delay = self.delay_for(attempt)
                    logger.warning(
                        f"{description or func.__name__}: {e}, retrying in {delay:.0f}s "
                        f"(attempt {attempt + 1}/{self.max_attempts})"
                    )
                    self.sleep(delay)
        assert last_error is not None
        raise last_error


class RateLimiter:
    """Enforce a minimum spacing between consecutive calls (thread-safe)"""

    def __init__(
        self,
        min_interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._next_allowed = 0.0
        self._lock = threading.Lock()

    def wait(self):
        """Block until the next call is allowed, then reserve the slot"""
        with self._lock:
            now = self._clock()
            delay = self._next_allowed - now
            self._next_allowed = max(now, self._next_allowed) + self.min_interval
        if delay > 0:
            self._sleep(delay)
