"""
Retry utilities with exponential backoff.

Only RateLimited is retried. Everything else propagates on the first attempt.
After the last retry the final RateLimited is re-raised unchanged.
"""

import time
import logging
from typing import Callable, Optional, TypeVar

from .errors import RateLimited

logger = logging.getLogger("docqa.common.retry")

T = TypeVar("T")


# Embedding calls during ingestion and for a single question
EMBEDDING_RETRY_CONFIG = {
    "max_retries": 3,          # Total 4 attempts
    "initial_backoff": 1.0,
    "backoff_multiplier": 2.0,
    "max_backoff": 30.0,
}

# Answer generation
GENERATION_RETRY_CONFIG = {
    "max_retries": 3,
    "initial_backoff": 1.0,
    "backoff_multiplier": 2.0,
    "max_backoff": 30.0,
}


def calculate_backoff(
    attempt: int,
    initial_backoff: float,
    backoff_multiplier: float,
    max_backoff: float,
    retry_after: Optional[float] = None,
) -> float:
    """
    Backoff for a 0-indexed retry attempt.

    The delay doubles (by default) on each attempt and is capped at
    max_backoff. A provider-supplied retry_after wins when it is longer.
    """
    backoff = initial_backoff * (backoff_multiplier ** attempt)
    if retry_after is not None:
        backoff = max(backoff, retry_after)
    return max(0.0, min(backoff, max_backoff))


def retry_with_backoff(
    func: Callable[[], T],
    config: dict,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> T:
    """
    Execute func, retrying on RateLimited with exponential backoff.

    Args:
        func: Zero-argument callable to execute
        config: Retry configuration dict (see EMBEDDING_RETRY_CONFIG)
        on_retry: Optional callback(attempt, exception, backoff) before each retry
        sleep: Sleep function (default time.sleep), replaceable in tests

    Returns:
        Result of func()

    Raises:
        RateLimited: The last rate-limit error once retries are exhausted
        Exception: Any other error, immediately
    """
    max_retries = config["max_retries"]
    sleep = sleep or time.sleep
    attempt = 0

    while True:
        try:
            return func()
        except RateLimited as e:
            if attempt >= max_retries:
                logger.warning("Rate limited after %d attempts, giving up: %s", attempt + 1, e)
                raise

            backoff = calculate_backoff(
                attempt,
                config["initial_backoff"],
                config["backoff_multiplier"],
                config["max_backoff"],
                retry_after=e.retry_after,
            )
            logger.warning(
                "Rate limited on attempt %d/%d. Retrying in %.2fs",
                attempt + 1, max_retries + 1, backoff,
            )
            if on_retry:
                on_retry(attempt, e, backoff)

            sleep(backoff)
            attempt += 1
