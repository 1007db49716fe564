"""
Backoff retry and a circuit breaker for the Solana RPC endpoint.

The gateway wraps every RPC call in the breaker so a dead endpoint fails
fast instead of stacking timeouts; startup checks use ``async_retry``.
"""

import asyncio
import logging
import time
from functools import wraps
from typing import TypeVar, Callable

logger = logging.getLogger(__name__)

T = TypeVar('T')


def async_retry(
    max_attempts: int = 3,
    delay: float = 1.0,
    backoff: float = 2.0,
    exceptions: tuple = (Exception,),
    max_delay: float = 30.0,
):
    """
    Retry a coroutine function, sleeping ``delay * backoff**n`` between tries.

    Only ``exceptions`` trigger a retry; anything else propagates at once.
    The last failure is re-raised unchanged.

    Example:
        @async_retry(max_attempts=3, delay=1.0, exceptions=(NetworkException,))
        async def check_connection(self):
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= max_attempts:
                        logger.error(f"❌ {func.__qualname__} gave up after {attempt} attempt(s): {e}")
                        raise
                    wait = min(delay * backoff ** (attempt - 1), max_delay)
                    logger.warning(
                        f"⚠️ {func.__qualname__} attempt {attempt}/{max_attempts} failed ({e}), "
                        f"next try in {wait:.1f}s"
                    )
                    await asyncio.sleep(wait)
                    attempt += 1

        return wrapper
    return decorator


class CircuitBreaker:
    """
    Consecutive-failure breaker.

    CLOSED lets calls through and counts failures. At ``failure_threshold``
    it goes OPEN and rejects calls until ``recovery_timeout`` has passed
    since the last failure; the next call then runs as a HALF_OPEN probe.
    A successful probe closes the breaker, a failed one reopens it.
    """

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.name = name
        self.clock = clock

        self.failures = 0
        self.last_failure_time = 0.0
        self.state = self.CLOSED

    def record_success(self):
        if self.state != self.CLOSED:
            logger.info(f"🟢 {self.name} circuit closed, endpoint healthy again")
        self.failures = 0
        self.state = self.CLOSED

    def record_failure(self):
        self.failures += 1
        self.last_failure_time = self.clock()

        tripped = self.state == self.CLOSED and self.failures >= self.failure_threshold
        if tripped or self.state == self.HALF_OPEN:
            self.state = self.OPEN
            logger.warning(
                f"🔴 {self.name} circuit open after {self.failures} failure(s), "
                f"pausing calls for {self.recovery_timeout:.0f}s"
            )

    def retry_after(self) -> float:
        """Seconds until an OPEN breaker allows a probe (0 otherwise)."""
        if self.state != self.OPEN:
            return 0.0
        return max(0.0, self.recovery_timeout - (self.clock() - self.last_failure_time))

    def can_execute(self) -> bool:
        if self.state == self.OPEN and self.retry_after() <= 0:
            self.state = self.HALF_OPEN
            logger.info(f"🟡 {self.name} circuit half-open, probing endpoint")
        return self.state != self.OPEN

    def get_status(self) -> dict:
        return {
            "name": self.name,
            "state": self.state,
            "failures": self.failures,
            "threshold": self.failure_threshold,
        }
