"""Retry utilities with per-attempt timeouts."""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RetryError(Exception):
    """Raised when every attempt failed; the message describes the last failure."""

    def __init__(self, description: str, attempts: int):
        super().__init__(description)
        self.description = description
        self.attempts = attempts


async def retry_with_timeout(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 2,
    attempt_timeout: float = 8.0,
    delay: float = 0.5,
    backoff_factor: float = 1.0,
    max_delay: float = 60.0,
    exceptions: tuple = (Exception,)
) -> T:
    """
    Execute an async function with bounded attempts, each under a timeout.

    Args:
        func: Async function to execute
        max_attempts: Maximum number of attempts
        attempt_timeout: Timeout applied to every attempt (seconds)
        delay: Delay before the next attempt (seconds)
        backoff_factor: Multiplier for delay after each failure (1.0 keeps it fixed)
        max_delay: Maximum delay between attempts (seconds)
        exceptions: Tuple of exceptions to catch and retry on

    Returns:
        Result of the first successful attempt

    Raises:
        RetryError: describing the last failed attempt
    """
    description = "unknown error"

    for attempt in range(1, max_attempts + 1):
        try:
            return await asyncio.wait_for(func(), timeout=attempt_timeout)
        except asyncio.TimeoutError:
            description = (
                f"attempt {attempt}/{max_attempts} timed out after {attempt_timeout:g}s"
            )
        except exceptions as e:
            description = f"attempt {attempt}/{max_attempts} failed: {e}"

        if attempt == max_attempts:
            break

        actual_delay = min(delay, max_delay)
        logger.warning(f"{description}. Retrying in {actual_delay:.2f} seconds...")
        await asyncio.sleep(actual_delay)
        delay *= backoff_factor

    logger.error(f"Giving up after {max_attempts} attempts: {description}")
    raise RetryError(description, max_attempts)
