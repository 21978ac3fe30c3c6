import asyncio
import collections
import functools
import time
from typing import Any, Awaitable, Callable, Coroutine, Deque, TypeVar

from utils.logger_utils import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class AsyncRateLimiter:
    """
    Sliding-window rate limiter for asyncio code.

    At most `calls` acquisitions are granted within any rolling window of
    `period` seconds. Callers over the limit wait instead of failing; waiters
    are served in arrival order because they queue on a single asyncio.Lock,
    so no request can starve.

    `clock` and `sleep` are injectable so tests can drive time explicitly.
    """

    def __init__(
        self,
        calls: int,
        period: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if calls <= 0:
            raise ValueError(f"calls must be positive, got {calls}")
        if period <= 0:
            raise ValueError(f"period must be positive, got {period}")
        self.calls = calls
        self.period = period
        self._clock = clock
        self._sleep = sleep
        self._grants: Deque[float] = collections.deque()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        async with self._lock:
            while True:
                now = self._clock()
                # Forget grants that fell out of the window
                while self._grants and self._grants[0] <= now - self.period:
                    self._grants.popleft()

                if len(self._grants) < self.calls:
                    self._grants.append(now)
                    return

                wait_time = self._grants[0] + self.period - now
                logger.debug(f"Rate limit of {self.calls}/{self.period}s reached. Waiting {wait_time:.3f}s")
                await self._sleep(wait_time)

    async def __aenter__(self) -> "AsyncRateLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None


def rate_limited(
    limiter: AsyncRateLimiter, func: Callable[..., Awaitable[T]]
) -> Callable[..., Awaitable[T]]:
    """Wraps an async callable so every invocation first acquires from `limiter`."""

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        await limiter.acquire()
        return await func(*args, **kwargs)

    return wrapper


async def gather_with_concurrency(n: int, *tasks: Coroutine[Any, Any, Any]) -> list[Any]:
    """
    Runs coroutines concurrently with at most `n` in flight at a time.
    Uses asyncio.Semaphore.
    """
    semaphore = asyncio.Semaphore(n)

    async def sem_task(task: Coroutine[Any, Any, Any]) -> Any:
        async with semaphore:
            return await task

    return await asyncio.gather(*(sem_task(task) for task in tasks))
