"""
Utility modules for the Updates Bot.

This package contains shared utilities:
- exceptions: custom exception hierarchy
- logger: logging configuration and redaction
- retry: retry decorator with exponential backoff
"""

from .exceptions import (
    UpdatesBotError,
    ConfigurationError,
    TransientFetchError,
    RunBudgetExceededError,
    MalformedEntryError,
    ClassificationError,
    StorageUnavailableError,
    CursorConflictError,
    NotificationError,
    RetryExhaustedError,
)
from .logger import get_logger, setup_logging, repository_context
from .retry import RetryConfig, retry_with_backoff

__all__ = [
    "UpdatesBotError",
    "ConfigurationError",
    "TransientFetchError",
    "RunBudgetExceededError",
    "MalformedEntryError",
    "ClassificationError",
    "StorageUnavailableError",
    "CursorConflictError",
    "NotificationError",
    "RetryExhaustedError",
    "get_logger",
    "setup_logging",
    "repository_context",
    "RetryConfig",
    "retry_with_backoff",
]
