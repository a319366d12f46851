"""
Bounded retry with backoff.

Upstream volume is low, so the default policy is a constant delay between
attempts (``exponential_base=1.0``). Raising the base gives exponential
backoff without changing the attempt bound.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, ParamSpec, TypeVar

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 3                # First attempt plus retries
    base_delay: float = 1.0              # Delay before the first retry
    max_delay: float = 30.0
    exponential_base: float = 1.0        # 1.0 = constant delay
    jitter: bool = False
    jitter_factor: float = 0.1
    retry_exceptions: tuple = (Exception,)
    no_retry_exceptions: tuple = ()

    @classmethod
    def for_retries(cls, retries: int, delay: float, **kwargs) -> "RetryConfig":
        """Config allowing ``retries`` additional attempts after the first."""
        return cls(max_attempts=max(0, retries) + 1, base_delay=delay, **kwargs)


@dataclass
class RetryStats:
    """Statistics from a retry operation."""
    attempts: int = 0
    total_delay: float = 0.0
    success: bool = False
    final_exception: Optional[Exception] = None


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Delay to wait after failed attempt number ``attempt`` (1-based)."""
    delay = config.base_delay * (config.exponential_base ** (attempt - 1))
    delay = min(delay, config.max_delay)

    if config.jitter:
        jitter_range = delay * config.jitter_factor
        delay = delay + random.uniform(-jitter_range, jitter_range)

    return max(0, delay)


def should_retry(exc: Exception, config: RetryConfig) -> bool:
    """Determine if an exception should trigger a retry."""
    if config.no_retry_exceptions and isinstance(exc, config.no_retry_exceptions):
        return False
    return isinstance(exc, config.retry_exceptions)


async def retry_with_backoff(
    func: Callable[P, Awaitable[T]],
    *args: P.args,
    config: RetryConfig = None,
    on_retry: Callable[[int, Exception, float], None] = None,
    stats: RetryStats = None,
    **kwargs: P.kwargs,
) -> T:
    """
    Await ``func`` until it succeeds or the attempt budget is spent.

    Args:
        func: Coroutine function to call
        *args: Positional arguments for func
        config: Retry configuration
        on_retry: Callback called before each retry (attempt, exception, delay)
        stats: Optional RetryStats filled in as attempts happen
        **kwargs: Keyword arguments for func

    Returns:
        Result from the first successful call

    Raises:
        Exception: The last exception once attempts are exhausted, or the
            first exception that is not retryable.
    """
    config = config or RetryConfig()
    stats = stats if stats is not None else RetryStats()
    name = getattr(func, "__name__", repr(func))

    for attempt in range(1, config.max_attempts + 1):
        stats.attempts = attempt
        try:
            result = await func(*args, **kwargs)
            stats.success = True
            return result

        except Exception as e:
            stats.final_exception = e

            if not should_retry(e, config):
                logger.debug(f"Not retrying {name}: {type(e).__name__} not in retry list")
                raise

            if attempt >= config.max_attempts:
                logger.warning(f"All {config.max_attempts} attempts failed for {name}: {e}")
                raise

            delay = calculate_delay(attempt, config)
            stats.total_delay += delay

            logger.info(
                f"Retry {attempt}/{config.max_attempts - 1} for {name} "
                f"after {delay:.2f}s: {type(e).__name__}: {e}"
            )

            if on_retry:
                on_retry(attempt, e, delay)

            await asyncio.sleep(delay)

    raise RuntimeError(f"Retry loop for {name} ran with max_attempts={config.max_attempts}")
