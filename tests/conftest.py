"""
Configuration for pytest test suite
"""
import os

import pytest

# Keep the developer's environment out of settings-driven tests
for _name in ("GITHUB_TOKEN", "UPDATES_BOT_TARGETS", "CURSOR_DB_PATH", "LOG_FILE", "LOG_LEVEL", "LOG_FORMAT"):
    os.environ.pop(_name, None)

from updates_bot.config.platforms import Platform
from updates_bot.config.settings import Settings
from updates_bot.deduplication.cursor_store import CursorStore, InMemoryBackend
from updates_bot.domain.entities import HistoryKind, RepositoryTarget

from fixtures import CollectingNotifier, FakeHistorySource


@pytest.fixture
def settings():
    """Settings with instant retries, small pages and no token."""
    return Settings(
        github_token="",
        github_api_url="https://api.github.test",
        max_retries=2,
        retry_delay=0.0,
        retry_backoff_factor=1.0,
        per_page=2,
        max_pages=3,
    )


@pytest.fixture
def android_commits():
    return RepositoryTarget("signalapp", "Signal-Android", "main", Platform.ANDROID, HistoryKind.COMMITS)


@pytest.fixture
def desktop_commits():
    return RepositoryTarget("signalapp", "Signal-Desktop", "main", Platform.DESKTOP, HistoryKind.COMMITS)


@pytest.fixture
def desktop_releases():
    return RepositoryTarget("signalapp", "Signal-Desktop", "main", Platform.DESKTOP, HistoryKind.RELEASES)


@pytest.fixture
def ios_releases():
    return RepositoryTarget("signalapp", "Signal-iOS", "main", Platform.IOS, HistoryKind.RELEASES)


@pytest.fixture
def history():
    return FakeHistorySource()


@pytest.fixture
def notifier():
    return CollectingNotifier()


@pytest.fixture
def backend():
    return InMemoryBackend()


@pytest.fixture
def store(backend):
    return CursorStore(backend, seen_window_size=100)
