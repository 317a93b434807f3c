"""
Configuration management for the Updates Bot.

Settings are read from environment variables (a ``.env`` file is loaded
when present) and validated on instantiation.
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional, List, Dict

from dotenv import load_dotenv

from ..domain.entities import RepositoryTarget, default_targets
from ..utils.exceptions import ConfigurationError

# Load environment variables from .env file
load_dotenv()

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
VALID_LOG_FORMATS = ["json", "text"]
MAX_PER_PAGE = 100


def parse_targets(value: str) -> List[RepositoryTarget]:
    """
    Parse a comma separated list of target definitions.

    Args:
        value: Definitions like ``signalapp/Signal-Android@main:android:releases``

    Returns:
        Parsed targets in definition order

    Raises:
        ConfigurationError: If any definition is malformed
    """
    targets = []
    for definition in value.split(","):
        if not definition.strip():
            continue
        try:
            targets.append(RepositoryTarget.parse(definition))
        except ValueError as e:
            raise ConfigurationError(str(e), config_key="UPDATES_BOT_TARGETS", config_value=definition.strip())
    return targets


@dataclass
class Settings:
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults; the GitHub token is optional
    because the tracked repositories are public.
    """

    # GitHub Configuration
    github_token: str = field(default_factory=lambda: os.getenv("GITHUB_TOKEN", ""))
    github_api_url: str = field(default="https://api.github.com")
    user_agent: str = field(default="updates-bot")
    http_timeout: float = field(default=30.0)

    # History walking
    per_page: int = field(default=100)
    max_pages: int = field(default=10)

    # Version precedence: whether 1.0.0 is newer than 1.0.0-beta.1
    release_outranks_prerelease: bool = field(default=True)

    # Run limits
    run_timeout_seconds: float = field(default=600.0)
    max_concurrent_repositories: int = field(default=3)

    # Cursor storage
    seen_window_size: int = field(default=500)
    cursor_db_path: Optional[str] = field(default=None)

    # Retry Configuration
    max_retries: int = field(default=3)
    retry_delay: float = field(default=1.0)
    retry_backoff_factor: float = field(default=2.0)

    # Logging Configuration
    log_level: str = field(default="INFO")
    log_format: str = field(default="text")
    log_file: Optional[str] = field(default=None)

    # Tracked repositories
    targets: List[RepositoryTarget] = field(default_factory=default_targets)

    def __post_init__(self):
        """Validate settings after initialization."""
        self.log_level = self.log_level.upper()
        self.log_format = self.log_format.lower()
        self.github_api_url = self.github_api_url.rstrip("/")

        if self.log_level not in VALID_LOG_LEVELS:
            raise ConfigurationError(
                f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}",
                config_key="log_level", config_value=self.log_level
            )
        if self.log_format not in VALID_LOG_FORMATS:
            raise ConfigurationError(
                f"log_format must be one of: {', '.join(VALID_LOG_FORMATS)}",
                config_key="log_format", config_value=self.log_format
            )

        if not 1 <= self.per_page <= MAX_PER_PAGE:
            raise ConfigurationError(
                f"per_page must be between 1 and {MAX_PER_PAGE}",
                config_key="per_page", config_value=str(self.per_page)
            )
        if self.max_pages < 1:
            raise ConfigurationError("max_pages must be at least 1", config_key="max_pages",
                                     config_value=str(self.max_pages))
        if self.run_timeout_seconds <= 0:
            raise ConfigurationError("run_timeout_seconds must be positive", config_key="run_timeout_seconds",
                                     config_value=str(self.run_timeout_seconds))
        if self.http_timeout <= 0:
            raise ConfigurationError("http_timeout must be positive", config_key="http_timeout",
                                     config_value=str(self.http_timeout))
        if self.max_concurrent_repositories < 1:
            raise ConfigurationError("max_concurrent_repositories must be at least 1",
                                     config_key="max_concurrent_repositories",
                                     config_value=str(self.max_concurrent_repositories))
        if self.seen_window_size < 1:
            raise ConfigurationError("seen_window_size must be at least 1", config_key="seen_window_size",
                                     config_value=str(self.seen_window_size))
        if self.max_retries < 0:
            raise ConfigurationError("max_retries cannot be negative", config_key="max_retries",
                                     config_value=str(self.max_retries))
        if self.retry_delay < 0 or self.retry_backoff_factor < 1:
            raise ConfigurationError("retry_delay must be >= 0 and retry_backoff_factor >= 1",
                                     config_key="retry_backoff_factor",
                                     config_value=str(self.retry_backoff_factor))

        if not self.targets:
            raise ConfigurationError("At least one repository target is required", config_key="targets")

    def get_github_headers(self) -> Dict[str, str]:
        """Get headers for GitHub API requests."""
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": self.user_agent,
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.github_token:
            headers["Authorization"] = f"Bearer {self.github_token}"
        return headers

    @classmethod
    def from_env(cls, **kwargs) -> "Settings":
        """Create Settings instance from environment variables with optional overrides."""
        env_vars = {}

        # Map environment variables to field names
        env_mapping = {
            "GITHUB_TOKEN": "github_token",
            "GITHUB_API_URL": "github_api_url",
            "UPDATES_BOT_USER_AGENT": "user_agent",
            "HTTP_TIMEOUT": "http_timeout",
            "PER_PAGE": "per_page",
            "MAX_PAGES": "max_pages",
            "RUN_TIMEOUT_SECONDS": "run_timeout_seconds",
            "MAX_CONCURRENT_REPOSITORIES": "max_concurrent_repositories",
            "SEEN_WINDOW_SIZE": "seen_window_size",
            "CURSOR_DB_PATH": "cursor_db_path",
            "MAX_RETRIES": "max_retries",
            "RETRY_DELAY": "retry_delay",
            "RETRY_BACKOFF_FACTOR": "retry_backoff_factor",
            "LOG_LEVEL": "log_level",
            "LOG_FORMAT": "log_format",
            "LOG_FILE": "log_file",
            "UPDATES_BOT_TARGETS": "targets",
            "RELEASE_OUTRANKS_PRERELEASE": "release_outranks_prerelease",
        }

        # Collect environment variables
        for env_var, field_name in env_mapping.items():
            if env_var in os.environ and os.environ[env_var] != "":
                env_vars[field_name] = os.environ[env_var]

        # Convert boolean and numeric strings and target lists
        for key, value in env_vars.items():
            try:
                if key == "release_outranks_prerelease":
                    env_vars[key] = value.lower() in ("true", "1", "yes", "on")
                elif key in ["http_timeout", "run_timeout_seconds", "retry_delay", "retry_backoff_factor"]:
                    env_vars[key] = float(value)
                elif key in ["per_page", "max_pages", "max_concurrent_repositories",
                             "seen_window_size", "max_retries"]:
                    env_vars[key] = int(value)
            except ValueError:
                raise ConfigurationError(f"Invalid numeric value for {key}", config_key=key, config_value=value)

        if "targets" in env_vars:
            env_vars["targets"] = parse_targets(env_vars["targets"])

        # Merge with provided kwargs
        env_vars.update({key: value for key, value in kwargs.items() if value is not None})

        return cls(**env_vars)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, created from the environment on first use."""
    return Settings.from_env()
