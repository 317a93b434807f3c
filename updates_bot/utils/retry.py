"""
Retry mechanism with exponential backoff for the Updates Bot.

Provides a decorator and utilities for retrying remote calls
with configurable backoff strategies.
"""

import time
import random
import functools
import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Optional, List, Tuple, Dict, Callable, Type, TypeVar

import httpx

from .exceptions import TransientFetchError, RetryExhaustedError
from .logger import get_logger

T = TypeVar('T')

logger = get_logger("retry")


@dataclass
class RetryConfig:
    """
    Configuration for retry behavior.

    Attributes:
        max_retries: Maximum number of retry attempts
        initial_delay: Initial delay between retries in seconds
        backoff_factor: Multiplier for exponential backoff
        max_delay: Maximum delay between retries in seconds
        jitter: Whether to add random jitter to delays
        retryable_exceptions: Exception types that should trigger retries
        non_retryable_exceptions: Exception types that should NOT trigger retries
    """
    max_retries: int = 3
    initial_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 60.0
    jitter: bool = True
    retryable_exceptions: Tuple[Type[Exception], ...] = (
        TransientFetchError,
        httpx.TransportError,
        ConnectionError,
    )
    non_retryable_exceptions: Tuple[Type[Exception], ...] = (
        ValueError,
        TypeError,
        KeyError,
        NotImplementedError,
    )

    def should_retry(self, exception: Exception) -> bool:
        """
        Determine if an exception should trigger a retry.

        Args:
            exception: Exception to evaluate

        Returns:
            True if the exception should trigger a retry
        """
        if isinstance(exception, self.non_retryable_exceptions):
            return False
        return isinstance(exception, self.retryable_exceptions)

    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate delay for a given retry attempt.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        delay = min(self.initial_delay * (self.backoff_factor ** attempt), self.max_delay)

        if self.jitter:
            # +/-25% random jitter
            delay *= 0.75 + (random.random() * 0.5)

        return delay


class RetryState:
    """
    State tracking for retry operations.

    Maintains information about retry attempts,
    timing, and error history.
    """

    def __init__(self, config: RetryConfig):
        """Initialize retry state."""
        self.config = config
        self.attempts: List[Tuple[int, float, Exception]] = []  # (attempt, timestamp, exception)
        self.start_time = time.time()

    def record_attempt(self, attempt: int, exception: Exception) -> None:
        """Record a failed attempt."""
        self.attempts.append((attempt, time.time(), exception))

    def should_continue(self, attempt: int, exception: Exception) -> bool:
        """Determine if retrying should continue."""
        return attempt <= self.config.max_retries and self.config.should_retry(exception)

    def get_summary(self) -> Dict[str, Any]:
        """Get summary of retry attempts."""
        return {
            "total_attempts": len(self.attempts) + 1,
            "failed_attempts": len(self.attempts),
            "duration_seconds": time.time() - self.start_time,
            "config": {
                "max_retries": self.config.max_retries,
                "initial_delay": self.config.initial_delay,
                "backoff_factor": self.config.backoff_factor
            }
        }


def _log_retry(func_name: str, attempt: int, config: RetryConfig, error: Exception) -> None:
    logger.warning(
        f"Operation failed, retrying... (attempt {attempt}/{config.max_retries})",
        extra={
            "function": func_name,
            "attempt": attempt,
            "max_retries": config.max_retries,
            "error_type": type(error).__name__,
            "error_message": str(error),
        }
    )


def _log_recovered(func_name: str, attempt: int, state: RetryState) -> None:
    logger.info(
        f"Operation succeeded after {attempt} retries",
        extra={
            "function": func_name,
            "attempts": attempt + 1,
            "duration_seconds": time.time() - state.start_time
        }
    )


def _exhausted(func_name: str, state: RetryState, last_exception: Optional[Exception]) -> Exception:
    # Errors we are not allowed to retry propagate untouched.
    if last_exception is not None and not state.config.should_retry(last_exception):
        return last_exception
    return RetryExhaustedError(
        f"Operation '{func_name}' failed after {len(state.attempts)} attempts",
        attempts=len(state.attempts),
        last_error=last_exception
    )


def retry_with_backoff(
    config: Optional[RetryConfig] = None,
    **config_kwargs
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator for retrying coroutine functions with exponential backoff.

    Exceptions that are not retryable are re-raised as-is on the first
    failure; retryable ones end in ``RetryExhaustedError`` once the attempts run out.

    Args:
        config: Retry configuration (if not provided, created from config_kwargs)
        **config_kwargs: Configuration options for RetryConfig

    Returns:
        Decorated function that retries on failures
    """
    if config is None:
        config = RetryConfig(**config_kwargs)

    def decorator(func):
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"retry_with_backoff requires a coroutine function, got {func.__name__}")

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            state = RetryState(config)
            last_exception = None

            for attempt in range(config.max_retries + 1):
                try:
                    if attempt > 0:
                        await asyncio.sleep(config.calculate_delay(attempt - 1))

                    result = await func(*args, **kwargs)
                    if attempt > 0:
                        _log_recovered(func.__name__, attempt, state)
                    return result

                except Exception as e:
                    last_exception = e
                    state.record_attempt(attempt, e)
                    if not state.should_continue(attempt + 1, e):
                        break
                    _log_retry(func.__name__, attempt + 1, config, e)

            raise _exhausted(func.__name__, state, last_exception) from last_exception

        return async_wrapper

    return decorator
