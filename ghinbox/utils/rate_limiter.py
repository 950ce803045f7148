import asyncio
import time
from typing import Callable, Dict, List
import structlog

logger = structlog.get_logger()


class RateLimiter:
    """Token bucket rate limiter for remote API calls"""

    def __init__(
        self,
        requests_per_minute: int = 300,
        burst_size: int = 20,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.rate = requests_per_minute / 60.0
        self.burst_size = burst_size
        self.tokens = float(burst_size)
        self._clock = clock
        self.last_update = clock()
        self.request_times: List[float] = []
        self.requests_by_endpoint: Dict[str, int] = {}

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self.last_update
        self.tokens = min(self.burst_size, self.tokens + elapsed * self.rate)
        self.last_update = now

    async def acquire(self, endpoint: str = "default") -> None:
        """Acquire a token, waiting if necessary"""
        self._refill()

        if self.tokens < 1:
            wait_time = (1 - self.tokens) / self.rate
            logger.debug(
                "rate_limiter_waiting",
                endpoint=endpoint,
                wait_seconds=round(wait_time, 3),
            )
            await asyncio.sleep(wait_time)
            self.tokens = 0
            self.last_update = self._clock()
        else:
            self.tokens -= 1

        self.requests_by_endpoint[endpoint] = (
            self.requests_by_endpoint.get(endpoint, 0) + 1
        )

        # Track the last minute so bursts from a runaway loop are visible
        now = self._clock()
        self.request_times.append(now)
        self.request_times = [t for t in self.request_times if now - t < 60]

        if len(self.request_times) > 1000:  # pragma: no cover
            logger.warning(
                "rate_limit_excessive_requests",
                endpoint=endpoint,
                requests_per_minute=len(self.request_times),
            )
