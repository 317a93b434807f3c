"""
Custom exception classes for the Updates Bot.

Every error carries a machine-readable code and a details mapping so the
run summary can report the error kind and its context per repository.
Errors are scoped to the narrowest unit they affect: a single history
entry, a single classified item, or a single repository pass.
"""

from typing import Optional, Dict, Any


class UpdatesBotError(Exception):
    """
    Base exception for the Updates Bot.

    All custom exceptions should inherit from this class.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            details: Additional error context
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary representation."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }


class ConfigurationError(UpdatesBotError):
    """
    Raised when there's a configuration error.

    This includes invalid environment variables, malformed repository
    target definitions, out-of-range limits, etc.
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[str] = None
    ):
        """Initialize configuration error."""
        details = {}
        if config_key:
            details["config_key"] = config_key
        if config_value:
            details["config_value"] = config_value

        super().__init__(
            message=message,
            error_code="CONFIG_ERROR",
            details=details
        )


class TransientFetchError(UpdatesBotError):
    """
    Raised when a page of upstream history could not be retrieved.

    Network failures and non-success HTTP statuses end up here. The
    repository pass is aborted and its cursor is left untouched so the
    next run retries from the same point.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
        repository: Optional[str] = None
    ):
        """Initialize transient fetch error."""
        details: Dict[str, Any] = {}
        if status_code:
            details["status_code"] = status_code
        if url:
            details["url"] = url
        if repository:
            details["repository"] = repository

        super().__init__(
            message=message,
            error_code="TRANSIENT_FETCH_ERROR",
            details=details
        )


class RunBudgetExceededError(TransientFetchError):
    """
    Raised when the overall run time budget expires while a repository
    is still fetching or classifying.
    """

    def __init__(
        self,
        message: str,
        repository: Optional[str] = None,
        budget_seconds: Optional[float] = None
    ):
        """Initialize run budget error."""
        super().__init__(message, repository=repository)
        self.error_code = "RUN_BUDGET_EXCEEDED"
        if budget_seconds is not None:
            self.details["budget_seconds"] = budget_seconds


class MalformedEntryError(UpdatesBotError):
    """
    Raised when a single history entry lacks the fields we need.

    The entry is skipped and recorded; the rest of the history is
    processed normally.
    """

    def __init__(
        self,
        message: str,
        entry_id: Optional[str] = None,
        missing_fields: Optional[list] = None
    ):
        """Initialize malformed entry error."""
        details: Dict[str, Any] = {}
        if entry_id:
            details["entry_id"] = entry_id
        if missing_fields:
            details["missing_fields"] = list(missing_fields)

        super().__init__(
            message=message,
            error_code="MALFORMED_ENTRY_ERROR",
            details=details
        )


class ClassificationError(UpdatesBotError):
    """
    Raised when a locale resource or version tag cannot be interpreted.

    Only the affected item is skipped; sibling items continue.
    """

    def __init__(
        self,
        message: str,
        entry_id: Optional[str] = None,
        resource_path: Optional[str] = None,
        locale: Optional[str] = None
    ):
        """Initialize classification error."""
        details: Dict[str, Any] = {}
        if entry_id:
            details["entry_id"] = entry_id
        if resource_path:
            details["resource_path"] = resource_path
        if locale:
            details["locale"] = locale

        super().__init__(
            message=message,
            error_code="CLASSIFICATION_ERROR",
            details=details
        )


class StorageUnavailableError(UpdatesBotError):
    """
    Raised when the cursor backend cannot be read or written.

    The repository pass is aborted with its cursor untouched.
    """

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        operation: Optional[str] = None
    ):
        """Initialize storage error."""
        details = {}
        if key:
            details["key"] = key
        if operation:
            details["operation"] = operation

        super().__init__(
            message=message,
            error_code="STORAGE_UNAVAILABLE",
            details=details
        )


class CursorConflictError(UpdatesBotError):
    """
    Raised when a compare-and-set on a cursor finds a different stored value.

    Signals that a concurrent run touched the same repository. The pass
    ends without retrying within the same invocation.
    """

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        emitted_changes: Optional[int] = None
    ):
        """Initialize cursor conflict error."""
        details: Dict[str, Any] = {}
        if key:
            details["key"] = key
        if emitted_changes is not None:
            details["emitted_changes"] = emitted_changes

        super().__init__(
            message=message,
            error_code="CURSOR_CONFLICT",
            details=details
        )


class NotificationError(UpdatesBotError):
    """
    Raised when the notification sink rejects a change-set.

    The cursor is not advanced, so the change-set is offered again on
    the next run.
    """

    def __init__(
        self,
        message: str,
        repository: Optional[str] = None,
        summary_count: Optional[int] = None
    ):
        """Initialize notification error."""
        details: Dict[str, Any] = {}
        if repository:
            details["repository"] = repository
        if summary_count is not None:
            details["summary_count"] = summary_count

        super().__init__(
            message=message,
            error_code="NOTIFICATION_ERROR",
            details=details
        )


class RetryExhaustedError(UpdatesBotError):
    """
    Raised when all retry attempts are exhausted.

    This indicates that an operation failed repeatedly
    despite retry attempts.
    """

    def __init__(
        self,
        message: str,
        attempts: Optional[int] = None,
        last_error: Optional[Exception] = None
    ):
        """Initialize retry exhausted error."""
        details: Dict[str, Any] = {}
        if attempts:
            details["attempts"] = attempts
        if last_error:
            details["last_error_type"] = type(last_error).__name__
            details["last_error_message"] = str(last_error)

        super().__init__(
            message=message,
            error_code="RETRY_EXHAUSTED_ERROR",
            details=details
        )
        self.last_error = last_error
