"""Retry logic for cells hit by browser environment failures."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from browser_conformance.browser.base import BrowserEnvironmentError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryManager:
    """
    Retry manager for environment failures.

    PATTERN: Manager class for retry handling
    CRITICAL: Only environment failures are retried; a failing rule or a
    timeout is a result, not a transient error
    GOTCHA: Backoff delay is capped at max_delay
    """

    def __init__(
        self,
        retries: int = 1,
        backoff_s: float = 0.5,
        backoff_factor: float = 2.0,
        max_delay: float = 10.0,
        retry_on: tuple = (BrowserEnvironmentError,),
    ):
        """
        Initialize retry manager.

        Args:
            retries: Retries after the first attempt
            backoff_s: Delay before the first retry (seconds)
            backoff_factor: Exponential backoff multiplier
            max_delay: Maximum delay between retries (seconds)
            retry_on: Tuple of exception types to retry on
        """
        self.retries = retries
        self.backoff_s = backoff_s
        self.backoff_factor = backoff_factor
        self.max_delay = max_delay
        self.retry_on = retry_on

    async def execute_with_retry(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        on_retry: Optional[Callable[[BaseException], Awaitable[None]]] = None,
        **kwargs: Any,
    ) -> T:
        """
        Execute an async function, retrying on environment failures.

        Args:
            func: Async function to execute
            *args: Positional arguments
            on_retry: Hook awaited before each retry (e.g. evict a dead engine)
            **kwargs: Keyword arguments

        Returns:
            Function result

        Raises:
            Exception: The last error once retries are exhausted
        """
        attempts = self.retries + 1

        for attempt in range(attempts):
            try:
                return await func(*args, **kwargs)

            except Exception as e:
                if not self.should_retry(e):
                    raise
                if attempt >= attempts - 1:
                    logger.error(f"All {attempts} attempts failed: {e}")
                    raise

                delay = self.calculate_delay(attempt)
                logger.warning(
                    f"Attempt {attempt + 1}/{attempts} failed: {e}. "
                    f"Retrying in {delay:.2f}s..."
                )
                if on_retry is not None:
                    await on_retry(e)
                await asyncio.sleep(delay)

        raise RuntimeError("Unexpected error in retry logic")

    def should_retry(self, error: BaseException) -> bool:
        """
        Check whether an error is one of the retryable types.

        Args:
            error: Error raised by an attempt

        Returns:
            True if the attempt should be retried
        """
        return isinstance(error, self.retry_on)

    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate retry delay for given attempt.

        Args:
            attempt: Attempt number (0-indexed)

        Returns:
            Delay in seconds
        """
        return min(self.backoff_s * self.backoff_factor**attempt, self.max_delay)
