"""Token bucket pacing for outbound gateway calls."""

import asyncio
import time
from typing import Awaitable, Callable

from originality.schemas.scan import Candidate
from originality.services.originality.contracts import ExternalSourceGateway
from originality.utils.logging import get_logger

LOGGER = get_logger(__name__)


class TokenBucketRateLimiter:
    """Allows ``burst`` calls at once, then one call per ``interval`` seconds.

    The rate holds across concurrent callers: waiters queue on one lock.
    """

    def __init__(
        self,
        interval: float = 0.15,
        burst: int = 1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if interval < 0:
            raise ValueError("interval must not be negative")
        if burst < 1:
            raise ValueError("burst must be at least 1")
        self.interval = interval
        self.burst = burst
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(burst)
        self._updated = clock()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = self._clock()
        if self.interval == 0:
            self._tokens = float(self.burst)
        else:
            self._tokens = min(float(self.burst), self._tokens + (now - self._updated) / self.interval)
        self._updated = now

    async def acquire(self) -> None:
        async with self._lock:
            self._refill()
            if self._tokens < 1:
                wait = (1 - self._tokens) * self.interval
                await self._sleep(wait)
                self._refill()
                # A fake clock may not have advanced during the sleep
                self._tokens = max(self._tokens, 1.0)
            self._tokens -= 1


class RateLimitedGateway:
    """Gateway wrapper that takes a token before every search."""

    def __init__(self, gateway: ExternalSourceGateway, limiter: TokenBucketRateLimiter):
        self.gateway = gateway
        self.limiter = limiter

    async def search(self, text: str) -> list[Candidate]:
        await self.limiter.acquire()
        return await self.gateway.search(text)
