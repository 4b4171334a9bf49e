"""
Retry helpers for venue calls.

Only short transient failures (HTTP 429, timeouts) are retried here, within
a single fetch cycle. Anything longer is left to the next admission of the
fetch task.
"""

import functools
import random
import time
from typing import Callable, Tuple, Type

from trade_ingest.utils.exceptions import NetworkTimeoutError, RateLimitExceededError
from trade_ingest.utils.logging_config import get_logger

logger = get_logger("retry")

TRANSIENT_ERRORS: Tuple[Type[Exception], ...] = (RateLimitExceededError, NetworkTimeoutError)


def backoff_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float = 2.0,
    jitter: float = 0.25,
) -> float:
    """
    Seconds to sleep after the given (1-based) failed attempt.

    The delay grows as base_delay * exponential_base ** (attempt - 1), is
    capped at max_delay and then spread by +/- jitter of itself.
    """
    delay = min(base_delay * (exponential_base ** (attempt - 1)), max_delay)
    spread = delay * jitter * (random.random() * 2 - 1)
    return max(0.0, delay + spread)


def retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential_base: float = 2.0,
    retryable_exceptions: Tuple[Type[Exception], ...] = TRANSIENT_ERRORS,
    sleep: Callable[[float], None] = time.sleep,
):
    """
    Decorator for retrying failed venue calls with exponential backoff.

    Args:
        max_attempts: Total attempts including the first (1 disables retrying)
        base_delay: Delay after the first failure in seconds
        max_delay: Upper bound for any single delay
        exponential_base: Growth factor between attempts
        retryable_exceptions: Exception types worth another attempt
        sleep: Sleep function, replaceable in tests

    Example:
        @retry(max_attempts=2, base_delay=0.5)
        def fetch_trades():
            ...
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    def decorator(func: Callable):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            attempt = 1
            while True:
                try:
                    return func(*args, **kwargs)
                except retryable_exceptions as e:
                    if attempt >= max_attempts:
                        if max_attempts > 1:
                            logger.error(f"Giving up on {func.__name__} after {attempt} attempts: {e}")
                        raise
                    delay = backoff_delay(attempt, base_delay, max_delay, exponential_base)
                    logger.warning(
                        f"Attempt {attempt}/{max_attempts} of {func.__name__} failed, "
                        f"retrying in {delay:.2f}s: {e}"
                    )
                    sleep(delay)
                    attempt += 1

        return wrapper
    return decorator


def retry_from_config(retry_config, **overrides):
    """Build a retry decorator from a RetryConfig."""
    settings = dict(
        max_attempts=retry_config.max_attempts,
        base_delay=retry_config.base_delay,
        max_delay=retry_config.max_delay,
        exponential_base=retry_config.exponential_base,
    )
    settings.update(overrides)
    return retry(**settings)
