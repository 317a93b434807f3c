"""
Logging infrastructure for the Updates Bot.

Provides structured logging with configurable formats and levels.

This module offers:
- JSON and text formatters with customizable output
- Repository context injection for every record emitted during a pass
- Secure logging with sensitive data redaction (API tokens, bearer headers)
- A specialized logger for remote API interactions

Example:
    >>> from updates_bot.utils.logger import get_logger, setup_logging
    >>> setup_logging(level="DEBUG", format_type="json")
    >>> logger = get_logger(__name__)
    >>> logger.info("Run started", extra={"targets": 3})
"""

import contextvars
import json
import logging
import re
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, Any, Iterator, Optional, Union, List, Pattern


class LogLevel(Enum):
    """Supported logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(Enum):
    """Supported log formats."""
    JSON = "json"
    TEXT = "text"


class Colors:
    """ANSI color codes for console output."""
    CYAN = '\033[36m'
    GREEN = '\033[32m'
    YELLOW = '\033[33m'
    RED = '\033[31m'
    MAGENTA = '\033[35m'
    RESET = '\033[0m'

    LEVEL_COLORS = {
        LogLevel.DEBUG.value: CYAN,
        LogLevel.INFO.value: GREEN,
        LogLevel.WARNING.value: YELLOW,
        LogLevel.ERROR.value: RED,
        LogLevel.CRITICAL.value: MAGENTA,
    }


# Field names whose values are always redacted in logs
SENSITIVE_FIELDS = {
    'authorization', 'token', 'password', 'secret', 'api_key',
    'access_token', 'bearer', 'credential', 'credentials',
    'github_token', 'webhook_secret', 'cookie',
}

DEFAULT_TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'

# Standard log record fields to exclude when copying extra fields
STANDARD_LOG_FIELDS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName',
    'processName', 'process', 'getMessage', 'exc_info',
    'exc_text', 'stack_info', 'taskName', 'message',
}

# Repository key of the pass currently executing in this task
_repository_context: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "updates_bot_repository", default=None
)


@contextmanager
def repository_context(repository: str) -> Iterator[None]:
    """
    Tag every log record emitted inside the block with a repository key.

    Each asyncio task gets its own copy of the context, so concurrent
    repository passes never see each other's key.
    """
    token = _repository_context.set(repository)
    try:
        yield
    finally:
        _repository_context.reset(token)


def current_repository() -> Optional[str]:
    """Return the repository key bound to the running pass, if any."""
    return _repository_context.get()


# ============================================================================
# Sensitive Data Redaction
# ============================================================================

class RedactionLevel(Enum):
    """Different levels of data redaction."""
    NONE = "none"          # No redaction
    BASIC = "basic"        # Field name matching only
    STANDARD = "standard"  # Field names plus token patterns


class SensitiveDataRedactor:
    """
    Redacts credentials from log messages and structured fields.

    Field names listed in ``SENSITIVE_FIELDS`` always have their values
    replaced. At ``STANDARD`` level string contents are also scanned for
    bearer tokens, GitHub token formats and credentials in URLs.
    """

    def __init__(self, level: RedactionLevel = RedactionLevel.STANDARD):
        """
        Initialize the redactor with specified level.

        Args:
            level: Redaction level to apply
        """
        self.level = level
        self.redaction_placeholder = "***REDACTED***"
        self._compile_patterns()

    def _compile_patterns(self) -> None:
        """Compile regex patterns for sensitive data detection."""
        self.patterns: List[Pattern] = []

        if self.level == RedactionLevel.STANDARD:
            self.patterns.extend([
                # Bearer / token authorization headers
                re.compile(r'(?i)(bearer\s+)([a-zA-Z0-9_\-\.]{8,})'),
                re.compile(r'(?i)(token\s+)([a-zA-Z0-9_\-\.]{20,})'),
                # GitHub personal access tokens and app tokens
                re.compile(r'()(gh[pousr]_[A-Za-z0-9]{20,})'),
                re.compile(r'()(github_pat_[A-Za-z0-9_]{20,})'),
                # Tokens passed as query parameters
                re.compile(r'(?i)([?&](?:access_token|token|api_key)=)([^&\s]+)'),
                # Credentials embedded in URLs
                re.compile(r'(?i)(https?://[^:/\s]+:)([^@\s]+)(?=@)'),
            ])

    def redact_string(self, text: str) -> str:
        """
        Redact sensitive information from a string.

        Args:
            text: String to redact

        Returns:
            Redacted string
        """
        if not isinstance(text, str):
            return text

        redacted_text = text
        for pattern in self.patterns:
            redacted_text = pattern.sub(
                lambda match: f"{match.group(1)}{self.redaction_placeholder}",
                redacted_text,
            )
        return redacted_text

    def redact_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Recursively redact sensitive data in a dictionary.

        Args:
            data: Dictionary to redact

        Returns:
            Dictionary with sensitive data redacted
        """
        if not isinstance(data, dict):
            return data
        return {key: self.redact_value(key, value) for key, value in data.items()}

    def redact_value(self, key: str, value: Any) -> Any:
        """
        Redact a value based on its key and content.

        Args:
            key: The field key
            value: The value to potentially redact

        Returns:
            Original value or redacted version
        """
        if value is None or self.level == RedactionLevel.NONE:
            return value

        if isinstance(value, dict):
            return self.redact_dict(value)
        if isinstance(value, (list, tuple)):
            return type(value)(self.redact_value(key, item) for item in value)

        if is_sensitive_field(key):
            return self.redaction_placeholder

        if isinstance(value, str):
            return self.redact_string(value)
        return value


def is_sensitive_field(key: str) -> bool:
    """Check whether a field name designates a credential."""
    lowered = str(key).lower()
    return lowered in SENSITIVE_FIELDS or any(field in lowered for field in SENSITIVE_FIELDS)


# ============================================================================
# Formatter Classes
# ============================================================================

class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Example output:
        {
            "timestamp": "2024-03-01T10:30:45.123456+00:00",
            "level": "INFO",
            "logger": "updates_bot.orchestrator",
            "message": "Repository pass completed",
            "repository": "github.com/signalapp/Signal-Android@main:commits",
            "emitted": 2
        }
    """

    def __init__(self, ensure_ascii: bool = False, sort_keys: bool = True):
        """
        Initialize JSON formatter.

        Args:
            ensure_ascii: Whether to ensure ASCII encoding in JSON output
            sort_keys: Whether to sort keys in JSON output
        """
        super().__init__()
        self.ensure_ascii = ensure_ascii
        self.sort_keys = sort_keys
        self.redactor = SensitiveDataRedactor(RedactionLevel.STANDARD)

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as JSON string.

        Args:
            record: The log record to format

        Returns:
            JSON-formatted log entry as string
        """
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key, value in record.__dict__.items():
            if key not in STANDARD_LOG_FIELDS and not key.startswith("_"):
                log_entry[key] = self.redactor.redact_value(key, value)

        if record.exc_info:
            log_entry["exception"] = self.redactor.redact_string(
                self.formatException(record.exc_info)
            )

        return json.dumps(
            log_entry,
            default=str,
            ensure_ascii=self.ensure_ascii,
            sort_keys=self.sort_keys
        )


class TextFormatter(logging.Formatter):
    """
    Text formatter for human-readable logging with optional colors.

    Example output:
        [2024-03-01 10:30:45] INFO     updates_bot.orchestrator:120 - Repository pass completed (repo=github.com/signalapp/Signal-Android@main:commits)
    """

    def __init__(self, use_colors: bool = True, timestamp_format: Optional[str] = None):
        """
        Initialize text formatter.

        Args:
            use_colors: Whether to use ANSI colors in output
            timestamp_format: Custom timestamp format string
        """
        super().__init__()
        self.use_colors = use_colors and hasattr(sys.stdout, "isatty") and sys.stdout.isatty()
        self.timestamp_format = timestamp_format or DEFAULT_TIMESTAMP_FORMAT

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as text.

        Args:
            record: The log record to format

        Returns:
            Formatted text log entry
        """
        timestamp = datetime.fromtimestamp(record.created).strftime(self.timestamp_format)
        message = (
            f"[{timestamp}] {record.levelname:8} "
            f"{record.name}:{record.lineno} - {record.getMessage()}"
        )

        repository = getattr(record, "repository", None)
        if repository:
            message += f" (repo={repository})"

        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        if self.use_colors:
            color = Colors.LEVEL_COLORS.get(record.levelname, '')
            message = f"{color}{message}{Colors.RESET}"

        return message


# ============================================================================
# Filter Classes
# ============================================================================

class ContextFilter(logging.Filter):
    """
    Filter to add the current repository key to log records.

    Records that already carry an explicit ``repository`` extra keep it.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "repository", None):
            record.repository = current_repository()
        return True


class SensitiveDataFilter(logging.Filter):
    """
    Filter to sanitize sensitive data in log records.

    Redacts credentials from log messages and from extra fields whose
    names designate credentials.
    """

    def __init__(self, redaction_level: Union[RedactionLevel, str] = RedactionLevel.STANDARD):
        """
        Initialize sensitive data filter.

        Args:
            redaction_level: Level of redaction to apply
        """
        super().__init__()
        if isinstance(redaction_level, str):
            redaction_level = RedactionLevel(redaction_level.lower())

        self.redactor = SensitiveDataRedactor(redaction_level)
        self.redaction_stats = {"records_processed": 0, "fields_redacted": 0}

    def filter(self, record: logging.LogRecord) -> bool:
        self.redaction_stats["records_processed"] += 1

        if isinstance(record.msg, str):
            original_msg = record.msg
            record.msg = self.redactor.redact_string(record.msg)
            if original_msg != record.msg:
                self.redaction_stats["fields_redacted"] += 1

        for key in list(record.__dict__.keys()):
            if key in STANDARD_LOG_FIELDS or not is_sensitive_field(key):
                continue
            original_value = getattr(record, key)
            redacted_value = self.redactor.redact_value(key, original_value)
            if original_value != redacted_value:
                setattr(record, key, redacted_value)
                self.redaction_stats["fields_redacted"] += 1

        return True


# ============================================================================
# Logger Setup and Configuration
# ============================================================================

def validate_log_level(level: str) -> str:
    """
    Validate and normalize log level string.

    Args:
        level: Log level string to validate

    Returns:
        Validated log level string

    Raises:
        ValueError: If the log level is not supported
    """
    if not level:
        raise ValueError("Log level cannot be empty")

    level_upper = level.upper()
    valid_levels = {log_level.value for log_level in LogLevel}
    if level_upper not in valid_levels:
        raise ValueError(f"Invalid log level: {level}. Valid levels: {', '.join(sorted(valid_levels))}")

    return level_upper


def validate_log_format(format_type: str) -> str:
    """
    Validate and normalize log format string.

    Args:
        format_type: Log format string to validate

    Returns:
        Validated log format string

    Raises:
        ValueError: If the log format is not supported
    """
    if not format_type:
        raise ValueError("Log format cannot be empty")

    format_lower = format_type.lower()
    valid_formats = {log_format.value for log_format in LogFormat}
    if format_lower not in valid_formats:
        raise ValueError(f"Invalid log format: {format_type}. Valid formats: {', '.join(sorted(valid_formats))}")

    return format_lower


def setup_logging(
    level: Union[str, LogLevel] = "INFO",
    format_type: Union[str, LogFormat] = "text",
    log_file: Optional[str] = None,
    use_colors: Optional[bool] = None,
    sanitize_sensitive_data: bool = True,
    redaction_level: Union[RedactionLevel, str] = RedactionLevel.STANDARD,
) -> logging.Logger:
    """
    Set up logging configuration with sensitive data protection.

    Configures the root logger with a console handler and an optional
    file handler. File output is always JSON.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Console log format ('json' or 'text')
        log_file: Optional log file path
        use_colors: Whether to use colors in text output (defaults to True on a TTY)
        sanitize_sensitive_data: Whether to filter sensitive information
        redaction_level: Level of sensitive data redaction

    Returns:
        Configured root logger

    Raises:
        ValueError: If validation fails for level or format
    """
    level_value = level.value if isinstance(level, LogLevel) else level
    format_value = format_type.value if isinstance(format_type, LogFormat) else format_type

    validated_level = validate_log_level(level_value)
    validated_format = validate_log_format(format_value)
    numeric_level = getattr(logging, validated_level, logging.INFO)

    logger = logging.getLogger()
    logger.setLevel(numeric_level)
    logger.handlers.clear()

    filters: List[logging.Filter] = [ContextFilter()]
    if sanitize_sensitive_data:
        filters.append(SensitiveDataFilter(redaction_level=redaction_level))

    if validated_format == LogFormat.JSON.value:
        console_formatter: logging.Formatter = JSONFormatter()
    else:
        console_formatter = TextFormatter(use_colors=use_colors if use_colors is not None else True)

    logger.addHandler(_create_handler(logging.StreamHandler(sys.stdout), numeric_level, console_formatter, filters))

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding='utf-8')
        logger.addHandler(_create_handler(file_handler, numeric_level, JSONFormatter(), filters))

    return logger


def _create_handler(
    handler: logging.Handler,
    level: int,
    formatter: logging.Formatter,
    filters: List[logging.Filter]
) -> logging.Handler:
    """Configure a log handler with level, formatter and filters."""
    handler.setLevel(level)
    handler.setFormatter(formatter)
    for filter_obj in filters:
        handler.addFilter(filter_obj)
    return handler


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the specified name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


class APILogger:
    """Specialized logger for remote API interactions with redaction."""

    def __init__(self, logger_name: str = "api", redaction_level: RedactionLevel = RedactionLevel.STANDARD):
        """
        Initialize API logger.

        Args:
            logger_name: Name for the logger
            redaction_level: Level of redaction to apply to API data
        """
        self.logger = get_logger(logger_name)
        self.redactor = SensitiveDataRedactor(redaction_level)

    def log_request(self, api_name: str, method: str, url: str, headers: Dict[str, str]) -> None:
        """
        Log an API request.

        Args:
            api_name: Name of the API service
            method: HTTP method
            url: Request URL
            headers: Request headers (will be redacted)
        """
        sanitized_url = self.redactor.redact_string(url)
        self.logger.debug(
            f"API Request: {method} {sanitized_url}",
            extra={
                "api_name": api_name,
                "method": method,
                "url": sanitized_url,
                "headers": self.redactor.redact_dict(dict(headers)),
            }
        )

    def log_response(
        self,
        api_name: str,
        method: str,
        url: str,
        status_code: int,
        response_time_ms: Optional[float] = None
    ) -> None:
        """
        Log an API response.

        Args:
            api_name: Name of the API service
            method: HTTP method
            url: Request URL
            status_code: HTTP status code
            response_time_ms: Optional response time in milliseconds
        """
        sanitized_url = self.redactor.redact_string(url)
        self.logger.debug(
            f"API Response: {method} {sanitized_url} - {status_code}",
            extra={
                "api_name": api_name,
                "method": method,
                "url": sanitized_url,
                "status_code": status_code,
                "response_time_ms": response_time_ms
            }
        )

    def log_error(
        self,
        api_name: str,
        method: str,
        url: str,
        error: Exception,
        status_code: Optional[int] = None
    ) -> None:
        """
        Log an API error with sensitive data redaction.

        Args:
            api_name: Name of the API service
            method: HTTP method
            url: Request URL
            error: Exception that occurred
            status_code: Optional HTTP status code
        """
        sanitized_url = self.redactor.redact_string(url)
        error_message = self.redactor.redact_string(str(error))
        self.logger.warning(
            f"API Error: {method} {sanitized_url} - {error_message}",
            extra={
                "api_name": api_name,
                "method": method,
                "url": sanitized_url,
                "status_code": status_code,
                "error_type": type(error).__name__,
                "error_message": error_message,
            }
        )


api_logger = APILogger()

__all__ = [
    "setup_logging",
    "get_logger",
    "repository_context",
    "current_repository",
    "SensitiveDataRedactor",
    "SensitiveDataFilter",
    "RedactionLevel",
    "JSONFormatter",
    "TextFormatter",
    "APILogger",
    "api_logger",
]
