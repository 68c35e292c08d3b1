"""Retry handler with per-call timeout and linear backoff for LLM API calls."""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from openai import APIConnectionError, APITimeoutError, InternalServerError, RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EmptyResponseError(Exception):
    """Raised when the model returns no content."""


class LLMCallError(Exception):
    """Raised when an LLM call failed for good (retries exhausted or non-retryable)."""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


RETRYABLE_ERRORS = (
    asyncio.TimeoutError,
    APITimeoutError,
    APIConnectionError,
    InternalServerError,
    EmptyResponseError,
)


class RetryHandler:
    """Handles retries with linear backoff for API calls."""

    def __init__(
        self,
        max_retries: int = 2,
        backoff: float = 2.0,
        timeout: float = 100.0,
        max_delay: float = 60.0,
        rate_limit_delay: float = 30.0,
    ):
        """
        Initialize retry handler.

        Args:
            max_retries: Maximum number of retry attempts
            backoff: Seconds multiplied by the attempt number between retries
            timeout: Per-attempt timeout in seconds
            max_delay: Maximum delay in seconds
            rate_limit_delay: Delay for rate limit errors without retry-after
        """
        self.max_retries = max_retries
        self.backoff = backoff
        self.timeout = timeout
        self.max_delay = max_delay
        self.rate_limit_delay = rate_limit_delay

    async def execute(
        self,
        func: Callable[..., Awaitable[T]],
        *args,
        **kwargs,
    ) -> T:
        """
        Execute a function with timeout and retry logic.

        Args:
            func: Async function to execute
            *args: Positional arguments for the function
            **kwargs: Keyword arguments for the function

        Returns:
            Result of the function call

        Raises:
            LLMCallError: When every attempt failed or the error is not retryable
        """
        attempts = self.max_retries + 1
        last_exception: Exception | None = None

        for attempt in range(1, attempts + 1):
            try:
                return await asyncio.wait_for(func(*args, **kwargs), timeout=self.timeout)
            except RateLimitError as e:
                last_exception = e
                delay = self._get_rate_limit_delay(e)
                logger.warning(
                    f"Rate limit hit, waiting {delay:.1f}s "
                    f"(attempt {attempt}/{attempts})"
                )
            except RETRYABLE_ERRORS as e:
                last_exception = e
                delay = self._calculate_delay(attempt)
                logger.warning(
                    f"API error: {e!r}, retrying in {delay:.1f}s "
                    f"(attempt {attempt}/{attempts})"
                )
            except Exception as e:
                logger.error(f"Non-retryable error: {e}")
                raise LLMCallError(f"Non-retryable LLM error: {e}", attempt) from e

            if attempt < attempts:
                await asyncio.sleep(delay)

        logger.error(f"All {attempts} attempts failed")
        raise LLMCallError(
            f"LLM call failed after {attempts} attempts: {last_exception!r}",
            attempts,
        ) from last_exception

    def _get_rate_limit_delay(self, error: RateLimitError) -> float:
        """Get delay from rate limit error or use default."""
        response = getattr(error, "response", None)
        if response is not None:
            retry_after = response.headers.get("retry-after")
            if retry_after:
                try:
                    return min(float(retry_after), self.max_delay)
                except ValueError:
                    pass
        return self.rate_limit_delay

    def _calculate_delay(self, attempt: int) -> float:
        """
        Calculate delay before the next retry.

        Args:
            attempt: Attempt that just failed (1-indexed)

        Returns:
            Delay in seconds
        """
        return min(self.backoff * attempt, self.max_delay)
