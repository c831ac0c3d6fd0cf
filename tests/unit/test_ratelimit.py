# ABOUTME: Unit tests for the sliding-window rate limiter.
# ABOUTME: Uses a hand-driven clock so window expiry and spacing are deterministic.

import threading

import pytest

from bookmeld.metadata.provider import RateLimitConfig
from bookmeld.metadata.ratelimit import RateLimitExceededError, SlidingWindowRateLimiter


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


WINDOW = RateLimitConfig(max_requests=2, window_seconds=10.0, request_delay=0.0)


class TestSlidingWindow:
    """Tests for window accounting."""

    def test_allows_up_to_max_requests(self) -> None:
        """The third request inside the window is refused."""
        limiter = SlidingWindowRateLimiter(clock=FakeClock())
        assert limiter.try_acquire("ol", WINDOW)
        assert limiter.try_acquire("ol", WINDOW)
        assert not limiter.try_acquire("ol", WINDOW)
        assert limiter.remaining_requests("ol", WINDOW) == 0

    def test_window_slides(self) -> None:
        """Requests older than the window stop counting."""
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(clock=clock)
        limiter.try_acquire("ol", WINDOW)
        limiter.try_acquire("ol", WINDOW)
        assert limiter.time_until_reset("ol", WINDOW) == pytest.approx(10.0)
        clock.advance(10.0)
        assert limiter.try_acquire("ol", WINDOW)

    def test_keys_are_independent(self) -> None:
        """One provider's usage does not limit another."""
        limiter = SlidingWindowRateLimiter(clock=FakeClock())
        limiter.try_acquire("ol", WINDOW)
        limiter.try_acquire("ol", WINDOW)
        assert limiter.try_acquire("google", WINDOW)

    def test_request_delay_spaces_calls(self) -> None:
        """A second call inside request_delay is refused until the delay passes."""
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(clock=clock)
        spaced = RateLimitConfig(max_requests=10, window_seconds=60.0, request_delay=1.0)
        assert limiter.try_acquire("ol", spaced)
        assert not limiter.try_acquire("ol", spaced)
        clock.advance(1.0)
        assert limiter.try_acquire("ol", spaced)

    def test_empty_window_resets_immediately(self) -> None:
        """An unused key has no wait."""
        limiter = SlidingWindowRateLimiter(clock=FakeClock())
        assert limiter.time_until_reset("ol", WINDOW) == 0.0
        assert limiter.remaining_requests("ol", WINDOW) == 2

    def test_reset_clears_key(self) -> None:
        """reset() forgets recorded requests."""
        limiter = SlidingWindowRateLimiter(clock=FakeClock())
        limiter.try_acquire("ol", WINDOW)
        limiter.try_acquire("ol", WINDOW)
        limiter.reset("ol")
        assert limiter.remaining_requests("ol", WINDOW) == 2


class TestAcquire:
    """Tests for blocking acquisition."""

    def test_acquire_free_slot_returns_immediately(self) -> None:
        """With room in the window acquire() just records the request."""
        limiter = SlidingWindowRateLimiter(clock=FakeClock())
        limiter.acquire("ol", WINDOW)
        assert limiter.remaining_requests("ol", WINDOW) == 1

    def test_acquire_past_deadline_raises(self) -> None:
        """A full window that cannot reset before the deadline raises."""
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(clock=clock)
        limiter.acquire("ol", WINDOW)
        limiter.acquire("ol", WINDOW)
        with pytest.raises(RateLimitExceededError):
            limiter.acquire("ol", WINDOW, deadline=clock.now + 1.0)

    def test_concurrent_callers_never_overbook(self) -> None:
        """Many threads racing for five slots get exactly five."""
        limiter = SlidingWindowRateLimiter()
        config = RateLimitConfig(max_requests=5, window_seconds=60.0, request_delay=0.0)
        granted: list[bool] = []
        lock = threading.Lock()

        def worker() -> None:
            ok = limiter.try_acquire("ol", config)
            with lock:
                granted.append(ok)

        threads = [threading.Thread(target=worker) for _ in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert granted.count(True) == 5
