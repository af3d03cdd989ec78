"""
Bounded retry with exponential backoff for external calls.

Usage:
    from crate_swap.retry import RetryPolicy, retry_async

    quote = await retry_async(
        client._fetch_quote, params,
        policy=RetryPolicy(max_attempts=3),
        retry_on=(ConnectionError, asyncio.TimeoutError),
    )
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """
    Configuration for retry behavior.

    Attributes:
        max_attempts: Total attempts including the first call
        base_delay: Initial delay between retries (seconds)
        max_delay: Maximum delay between retries (seconds)
        exponential_base: Base for exponential backoff calculation
        jitter: Fraction of the delay added as random jitter
    """
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 8.0
    exponential_base: float = 2.0
    jitter: float = 0.1

    def get_delay(self, attempt: int) -> float:
        """Calculate delay after the given (zero-based) failed attempt."""
        delay = min(self.max_delay, self.base_delay * (self.exponential_base ** attempt))
        return delay + delay * self.jitter * random.random()

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
        )


async def retry_async(
    func: Callable[..., Awaitable[T]],
    *args,
    policy: RetryPolicy,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    description: str = "",
    **kwargs,
) -> T:
    """
    Call an async function, retrying on the given exceptions.

    Raises:
        The last exception once every attempt has failed. Exceptions outside
        ``retry_on`` propagate immediately.
    """
    label = description or getattr(func, "__name__", "call")
    last_exception = None

    for attempt in range(policy.max_attempts):
        try:
            return await func(*args, **kwargs)
        except retry_on as e:
            last_exception = e
            if attempt < policy.max_attempts - 1:
                delay = policy.get_delay(attempt)
                logger.warning(
                    f"{label} attempt {attempt + 1}/{policy.max_attempts} failed: "
                    f"{e!r}. Retrying in {delay:.2f}s..."
                )
                await asyncio.sleep(delay)

    raise last_exception
