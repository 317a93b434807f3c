"""
Builders and fakes shared by the updates bot tests.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from updates_bot.domain.entities import Cursor, FileChange, HistoryEntry
from updates_bot.github.models import Comparison, CommitPayload
from updates_bot.utils.exceptions import MalformedEntryError

BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def at(minutes: int) -> datetime:
    return BASE_TIME + timedelta(minutes=minutes)


def commit_entry(
    sha: str,
    minutes: int,
    files: Tuple[FileChange, ...] = (),
    parent: Optional[str] = None,
    message: str = "Update translations",
) -> HistoryEntry:
    return HistoryEntry(
        identifier=sha,
        timestamp=at(minutes),
        author="Signal Translations",
        message=message,
        parent=parent,
        files=files,
    )


def release_entry(tag: str, minutes: int) -> HistoryEntry:
    return HistoryEntry(identifier=tag, timestamp=at(minutes), author="signal-bot")


def commit_payload(sha: str, message: str, minutes: int = 0, files: Optional[list] = None) -> dict:
    """Raw commit as returned by the GitHub REST API."""
    payload = {
        "sha": sha,
        "commit": {
            "message": message,
            "author": {"name": "Jane Doe", "email": "jane@example.com", "date": at(minutes).isoformat()},
            "committer": {"name": "GitHub", "email": "noreply@github.com", "date": at(minutes).isoformat()},
        },
        "parents": [{"sha": f"parent-{sha}"}],
    }
    if files is not None:
        payload["files"] = files
    return payload


def release_payload(tag: str, minutes: int, draft: bool = False, prerelease: bool = False) -> dict:
    """Raw release as returned by the GitHub REST API."""
    return {
        "tag_name": tag,
        "name": tag,
        "body": "Release notes",
        "draft": draft,
        "prerelease": prerelease,
        "created_at": at(minutes).isoformat(),
        "published_at": at(minutes).isoformat(),
        "author": {"login": "signal-bot"},
    }


def comparison(*commits: Tuple[str, str]) -> Comparison:
    return Comparison(
        total_commits=len(commits),
        commits=[CommitPayload.model_validate(commit_payload(sha, message)) for sha, message in commits],
    )


class FakeHistorySource:
    """
    In-memory stand-in for the paginated fetcher.

    Histories are stored oldest first per target key; file contents are
    keyed by ``(repository name, path, ref)``.
    """

    def __init__(self):
        self.histories: Dict[str, List[HistoryEntry]] = {}
        self.files: Dict[Tuple[str, str, str], str] = {}
        self.comparisons: Dict[Tuple[str, str], Comparison] = {}
        self.failures: Dict[str, Exception] = {}
        self.malformed: Dict[str, List[MalformedEntryError]] = {}
        self.delay = 0.0
        self.compare_calls: List[Tuple[str, str]] = []
        self.active = 0
        self.max_active = 0

    async def history_since(self, target, cursor: Cursor, skipped=None):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if target.key in self.failures:
                raise self.failures[target.key]
            if skipped is not None:
                skipped.extend(self.malformed.get(target.key, []))

            newer = []
            for entry in reversed(self.histories.get(target.key, [])):
                if entry.identifier == cursor.last_identifier:
                    break
                if cursor.last_timestamp is not None and entry.timestamp <= cursor.last_timestamp:
                    break
                newer.append(entry)
        finally:
            self.active -= 1

        for entry in reversed(newer):
            yield entry

    async def compare(self, target, base: str, head: str) -> Comparison:
        self.compare_calls.append((base, head))
        return self.comparisons.get((base, head), Comparison(total_commits=0))

    async def file_content(self, target, path: str, ref: str) -> Optional[str]:
        return self.files.get((target.name, path, ref))


class CollectingNotifier:
    """Notifier that remembers every change-set it was given."""

    def __init__(self):
        self.calls = []

    async def notify(self, target, changes, summaries):
        self.calls.append((target, list(changes), list(summaries)))

    @property
    def changes(self) -> list:
        return [change for _, changes, _ in self.calls for change in changes]

    @property
    def summaries(self) -> List[str]:
        return [summary for _, _, summaries in self.calls for summary in summaries]
