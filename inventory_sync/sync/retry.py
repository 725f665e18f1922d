import asyncio
import logging
from typing import Awaitable, Callable

from inventory_sync.exceptions import RateLimitError

logger = logging.getLogger(__name__)


def is_rate_limited(exc: BaseException) -> bool:
    return isinstance(exc, RateLimitError)


class RetryPolicy:
    """
    Retry an awaitable I/O call with exponential backoff.

    The n-th retry waits `base_delay * 2 ** n` seconds, so a base of 15s
    gives 30s, 60s, 120s. Only errors accepted by `retry_on` are retried;
    anything else, or the last error once `max_retries` is spent, is raised.
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 15.0,
        retry_on: Callable[[BaseException], bool] = is_rate_limited,
        sleep: Callable[[float], Awaitable] = asyncio.sleep,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.retry_on = retry_on
        self.sleep = sleep

    @classmethod
    def from_settings(cls, settings, sleep=asyncio.sleep) -> "RetryPolicy":
        return cls(
            max_retries=settings.RETRY_MAX_RETRIES,
            base_delay=settings.RETRY_BASE_DELAY,
            sleep=sleep,
        )

    def backoff(self, attempt: int) -> float:
        return self.base_delay * (2 ** attempt)

    def delays(self) -> list[float]:
        return [self.backoff(attempt) for attempt in range(1, self.max_retries + 1)]

    async def run(self, fn: Callable[..., Awaitable], *args, **kwargs):
        attempt = 0
        while True:
            try:
                return await fn(*args, **kwargs)
            except Exception as e:
                if not self.retry_on(e) or attempt >= self.max_retries:
                    raise
                attempt += 1
                delay = self.backoff(attempt)
                logger.warning(
                    f"Rate limited, retry {attempt}/{self.max_retries} in {delay:.0f}s"
                )
                await self.sleep(delay)
