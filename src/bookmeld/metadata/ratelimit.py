# ABOUTME: Thread-safe sliding-window rate limiter keyed by provider name.
# ABOUTME: Enforces max requests per window plus a minimum delay between consecutive requests.

import logging
import threading
import time
from collections import deque
from collections.abc import Callable

from bookmeld.metadata.provider import RateLimitConfig

logger = logging.getLogger(__name__)

# Longest single sleep while waiting for a slot; the loop re-checks afterwards.
_MAX_SINGLE_WAIT = 5.0


class RateLimitExceededError(Exception):
    """Raised when no request slot frees up before the caller's deadline."""


class SlidingWindowRateLimiter:
    """Per-key sliding window of request timestamps.

    One instance belongs to one coordinator. Every read-modify-write of a
    key's window happens under a single lock, so concurrent callers for the
    same provider never over-book the window.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[str, deque[float]] = {}

    def _window(self, key: str, config: RateLimitConfig, now: float) -> deque[float]:
        """Return the key's timestamps with entries older than the window dropped."""
        window = self._windows.setdefault(key, deque())
        cutoff = now - config.window_seconds
        while window and window[0] <= cutoff:
            window.popleft()
        return window

    def _wait_needed(self, window: deque[float], config: RateLimitConfig, now: float) -> float:
        if len(window) >= config.max_requests:
            return window[0] + config.window_seconds - now
        if window and config.request_delay > 0:
            return max(0.0, window[-1] + config.request_delay - now)
        return 0.0

    def try_acquire(self, key: str, config: RateLimitConfig) -> bool:
        """Claim a slot if one is free right now; never waits."""
        with self._lock:
            now = self._clock()
            window = self._window(key, config, now)
            if self._wait_needed(window, config, now) > 0:
                return False
            window.append(now)
            return True

    def acquire(
        self,
        key: str,
        config: RateLimitConfig,
        *,
        deadline: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        """Block until a slot is claimed.

        Args:
            key: Rate-limit bucket, normally the provider name.
            config: The provider's limits.
            deadline: Clock value after which waiting is pointless.
            cancel_event: Set by the caller to abandon the wait early.

        Raises:
            RateLimitExceededError: If the deadline would pass before a slot
                frees up, or the wait was cancelled.
        """
        waiter = cancel_event or threading.Event()
        while True:
            with self._lock:
                now = self._clock()
                window = self._window(key, config, now)
                wait = self._wait_needed(window, config, now)
                if wait <= 0:
                    window.append(now)
                    return

            if deadline is not None and now + wait > deadline:
                raise RateLimitExceededError(
                    f"Rate limit for {key} would not reset before the deadline ({wait:.2f}s needed)"
                )
            logger.debug("Rate limit wait for %s: %.2fs", key, wait)
            if waiter.wait(min(wait, _MAX_SINGLE_WAIT)) and cancel_event is not None:
                raise RateLimitExceededError(f"Rate limit wait for {key} was cancelled")

    def remaining_requests(self, key: str, config: RateLimitConfig) -> int:
        """Slots left in the current window."""
        with self._lock:
            window = self._window(key, config, self._clock())
            return max(0, config.max_requests - len(window))

    def time_until_reset(self, key: str, config: RateLimitConfig) -> float:
        """Seconds until the oldest request leaves the window; 0 when the window is empty."""
        with self._lock:
            now = self._clock()
            window = self._window(key, config, now)
            if not window:
                return 0.0
            return max(0.0, window[0] + config.window_seconds - now)

    def reset(self, key: str | None = None) -> None:
        """Forget recorded requests for one key, or for every key."""
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)
