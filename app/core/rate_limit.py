"""Fixed-window rate limiting for chat messages."""

import asyncio
import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass

from app.core.exception import RateLimitExceeded

logger = logging.getLogger(__name__)


@dataclass
class RateLimitRecord:
    """Counter for one client within its current window."""

    count: int
    reset_at: float


class RateLimiter:
    """Per-client fixed-window rate limiter.

    Counters live in process memory and are lost on restart. Under
    multiple worker processes each keeps its own table, so the effective
    limit is per process; move the table to a shared store to scale out.

    Example:
        limiter = RateLimiter(limit=10, window_seconds=60)
        limiter.hit("203.0.113.7")  # raises RateLimitExceeded on the 11th call
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        grace_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the limiter.

        Args:
            limit: Maximum accepted messages per client per window.
            window_seconds: Window length in seconds.
            grace_seconds: How long an expired record is kept before a sweep
                removes it.
            clock: Monotonic time source in seconds.
        """
        self.limit = limit
        self.window_seconds = window_seconds
        self.grace_seconds = grace_seconds
        self._clock = clock
        self._records: dict[str, RateLimitRecord] = {}

    @staticmethod
    def _key(identifier: str) -> str:
        return f"chat:{identifier}"

    def hit(self, identifier: str) -> RateLimitRecord:
        """Count one message for a client.

        Args:
            identifier: Client address or other stable client key.

        Returns:
            The client's record after counting the message.

        Raises:
            RateLimitExceeded: If the client already used its window.
        """
        now = self._clock()
        key = self._key(identifier)
        record = self._records.get(key)

        if record is None:
            record = RateLimitRecord(count=1, reset_at=now + self.window_seconds)
            self._records[key] = record
            return record

        if now > record.reset_at:
            record.count = 1
            record.reset_at = now + self.window_seconds
            return record

        if record.count >= self.limit:
            retry_after = max(1, math.ceil(record.reset_at - now))
            logger.info("Rate limit exceeded for %s, retry in %ds", identifier, retry_after)
            raise RateLimitExceeded(retry_after)

        record.count += 1
        return record

    def sweep(self) -> int:
        """Drop records whose window expired more than the grace period ago.

        Returns:
            Number of records removed.
        """
        now = self._clock()
        expired = [
            key
            for key, record in self._records.items()
            if now > record.reset_at + self.grace_seconds
        ]
        for key in expired:
            del self._records[key]
        if expired:
            logger.debug("Swept %d expired rate-limit records", len(expired))
        return len(expired)

    async def run_sweeper(self, interval_seconds: float) -> None:
        """Sweep periodically until cancelled."""
        while True:
            await asyncio.sleep(interval_seconds)
            self.sweep()

    def reset(self) -> None:
        """Forget all counters."""
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)
