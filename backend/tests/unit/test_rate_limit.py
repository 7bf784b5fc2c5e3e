"""
Unit tests for the authentication attempt limiter.
"""

import sys
import os

# Add backend to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from middleware.rate_limit import AuthRateLimiter


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestAuthRateLimiter:

    def test_allows_up_to_limit(self):
        limiter = AuthRateLimiter(max_attempts=5, window_seconds=900, clock=FakeClock())

        results = [limiter.hit("10.0.0.1") for _ in range(6)]

        assert [r.allowed for r in results] == [True] * 5 + [False]
        assert results[4].attempts == 5

    def test_retry_after_counts_down(self):
        clock = FakeClock()
        limiter = AuthRateLimiter(max_attempts=1, window_seconds=900, clock=clock)
        limiter.hit("10.0.0.1")

        clock.now += 600
        result = limiter.hit("10.0.0.1")

        assert not result.allowed
        assert result.retry_after_seconds == 300

    def test_window_expiry_resets_budget(self):
        clock = FakeClock()
        limiter = AuthRateLimiter(max_attempts=2, window_seconds=900, clock=clock)
        limiter.hit("10.0.0.1")
        limiter.hit("10.0.0.1")
        assert not limiter.hit("10.0.0.1").allowed

        clock.now += 900
        result = limiter.hit("10.0.0.1")

        assert result.allowed
        assert result.attempts == 1

    def test_clients_counted_separately(self):
        limiter = AuthRateLimiter(max_attempts=1, window_seconds=900, clock=FakeClock())

        assert limiter.hit("10.0.0.1").allowed
        assert limiter.hit("10.0.0.2").allowed
        assert not limiter.hit("10.0.0.1").allowed

    def test_reset(self):
        limiter = AuthRateLimiter(max_attempts=1, window_seconds=900, clock=FakeClock())
        limiter.hit("10.0.0.1")

        limiter.reset()

        assert limiter.hit("10.0.0.1").allowed
