"""Tests for the chat rate limiter."""

import asyncio

import pytest

from app.core.exception import RateLimitExceeded
from app.core.rate_limit import RateLimiter


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> RateLimiter:
    return RateLimiter(limit=10, window_seconds=60, grace_seconds=60, clock=clock)


class TestRateLimiter:
    def test_first_hit_creates_record(self, limiter, clock):
        record = limiter.hit("203.0.113.7")
        assert record.count == 1
        assert record.reset_at == clock.now + 60
        assert len(limiter) == 1

    def test_accepts_up_to_limit(self, limiter):
        for expected in range(1, 11):
            assert limiter.hit("203.0.113.7").count == expected

    def test_rejects_over_limit_with_retry_after(self, limiter, clock):
        for _ in range(10):
            limiter.hit("203.0.113.7")

        clock.advance(15)
        with pytest.raises(RateLimitExceeded) as exc_info:
            limiter.hit("203.0.113.7")

        assert exc_info.value.retry_after == 45
        assert "45 seconds" in str(exc_info.value)

    def test_rejected_hit_is_not_counted(self, limiter):
        for _ in range(10):
            limiter.hit("203.0.113.7")
        for _ in range(3):
            with pytest.raises(RateLimitExceeded):
                limiter.hit("203.0.113.7")

        assert limiter._records["chat:203.0.113.7"].count == 10

    def test_retry_after_is_at_least_one(self, limiter, clock):
        for _ in range(10):
            limiter.hit("203.0.113.7")
        clock.advance(59.9)

        with pytest.raises(RateLimitExceeded) as exc_info:
            limiter.hit("203.0.113.7")
        assert exc_info.value.retry_after == 1

    def test_clients_are_independent(self, limiter):
        for _ in range(10):
            limiter.hit("203.0.113.7")

        assert limiter.hit("198.51.100.2").count == 1

    def test_eleventh_rejected_twelfth_after_window_accepted(self, limiter, clock):
        for _ in range(10):
            limiter.hit("203.0.113.7")
            clock.advance(1)

        with pytest.raises(RateLimitExceeded) as exc_info:
            limiter.hit("203.0.113.7")
        assert exc_info.value.retry_after > 0

        clock.advance(61)
        record = limiter.hit("203.0.113.7")
        assert record.count == 1
        assert record.reset_at == clock.now + 60

    def test_window_boundary_is_inclusive(self, limiter, clock):
        for _ in range(10):
            limiter.hit("203.0.113.7")
        clock.advance(60)

        with pytest.raises(RateLimitExceeded):
            limiter.hit("203.0.113.7")

    def test_reset_forgets_counters(self, limiter):
        for _ in range(10):
            limiter.hit("203.0.113.7")
        limiter.reset()

        assert len(limiter) == 0
        assert limiter.hit("203.0.113.7").count == 1


class TestSweep:
    def test_keeps_records_within_grace_period(self, limiter, clock):
        limiter.hit("203.0.113.7")
        clock.advance(60 + 30)

        assert limiter.sweep() == 0
        assert len(limiter) == 1

    def test_removes_records_past_grace_period(self, limiter, clock):
        limiter.hit("203.0.113.7")
        clock.advance(30)
        limiter.hit("198.51.100.2")
        clock.advance(60 + 45)

        assert limiter.sweep() == 1
        assert "chat:203.0.113.7" not in limiter._records
        assert "chat:198.51.100.2" in limiter._records

    @pytest.mark.asyncio
    async def test_run_sweeper_sweeps_until_cancelled(self, limiter, clock):
        limiter.hit("203.0.113.7")
        clock.advance(200)

        task = asyncio.create_task(limiter.run_sweeper(0.01))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert len(limiter) == 0
