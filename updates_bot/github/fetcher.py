"""
Paginated history walking.

GitHub lists commits and releases newest first. The fetcher walks pages
until it reaches the stored cursor (or the page bound), then yields what
it collected oldest first. Nothing depends on in-memory iteration state
beyond a single call, so a failed walk can simply be restarted from the
same cursor on the next run.
"""

from datetime import datetime
from typing import AsyncIterator, List, Optional

from pydantic import ValidationError

from ..domain.entities import Cursor, HistoryEntry, HistoryKind, RepositoryTarget
from ..utils.exceptions import MalformedEntryError, TransientFetchError
from ..utils.logger import get_logger
from .client import AsyncGitHubClient
from .models import Comparison, CommitPayload, ComparisonPayload, parse_commit, parse_release


def _is_at_or_before_cursor(identifier: str, timestamp: datetime, cursor: Cursor) -> bool:
    if cursor.last_identifier is not None and identifier == cursor.last_identifier:
        return True
    if cursor.last_timestamp is not None and timestamp <= cursor.last_timestamp:
        return True
    return False


class PaginatedFetcher:
    """
    Walks a remote history API page by page.

    Attributes:
        client: GitHub client used for every request
        per_page: Page size requested from the API
        max_pages: Maximum number of pages walked per call
    """

    def __init__(self, client: AsyncGitHubClient, per_page: int = 100, max_pages: int = 10):
        self.client = client
        self.per_page = per_page
        self.max_pages = max_pages
        self.logger = get_logger(__name__)

    def _listing(self, target: RepositoryTarget) -> tuple[str, dict]:
        base = self.client.repo_url(target.owner, target.name)
        if target.kind is HistoryKind.RELEASES:
            return f"{base}/releases", {"per_page": self.per_page}
        return f"{base}/commits", {"sha": target.branch, "per_page": self.per_page}

    def _parse(self, target: RepositoryTarget, item) -> Optional[HistoryEntry]:
        if target.kind is HistoryKind.RELEASES:
            release = parse_release(item)
            # drafts are not published yet
            return None if release.draft else release.to_history_entry()
        return parse_commit(item).to_history_entry()

    async def _collect_newest_first(
        self,
        target: RepositoryTarget,
        cursor: Cursor,
        skipped: List[MalformedEntryError],
    ) -> List[HistoryEntry]:
        url, params = self._listing(target)
        collected: List[HistoryEntry] = []
        seen_ids: set[str] = set()
        pages = 0

        while url:
            page = await self.client.get_page(url, params=params)
            params = None
            pages += 1

            reached_cursor = False
            for item in page.items:
                try:
                    entry = self._parse(target, item)
                except MalformedEntryError as e:
                    self.logger.warning(
                        f"Skipping malformed history entry: {e.message}",
                        extra={"entry_id": e.details.get("entry_id"), "missing_fields": e.details.get("missing_fields")}
                    )
                    skipped.append(e)
                    continue
                if entry is None:
                    continue

                if _is_at_or_before_cursor(entry.identifier, entry.timestamp, cursor):
                    reached_cursor = True
                    break
                if entry.identifier in seen_ids:
                    # history grew between page fetches and shifted entries onto this page
                    continue
                seen_ids.add(entry.identifier)
                collected.append(entry)

            if reached_cursor or not page.next_url:
                break
            if pages >= self.max_pages:
                self.logger.warning(
                    "History truncated at page limit",
                    extra={"max_pages": self.max_pages, "collected": len(collected)}
                )
                break
            url = page.next_url

        self.logger.debug(
            f"Walked {pages} page(s) of {target.kind.value}",
            extra={"pages": pages, "collected": len(collected)}
        )
        return collected

    async def history_since(
        self,
        target: RepositoryTarget,
        cursor: Cursor,
        skipped: Optional[List[MalformedEntryError]] = None,
    ) -> AsyncIterator[HistoryEntry]:
        """
        Yield history entries newer than the cursor, oldest first.

        Commits are enriched with their changed files one at a time as
        they are yielded.

        Args:
            target: Repository history to walk
            cursor: Resume point; entries at or before it are skipped
            skipped: Receives errors for malformed entries

        Raises:
            TransientFetchError: If any page cannot be fetched
        """
        if skipped is None:
            skipped = []

        entries = await self._collect_newest_first(target, cursor, skipped)
        for entry in reversed(entries):
            if target.kind is HistoryKind.COMMITS:
                entry = await self._with_files(target, entry, skipped)
                if entry is None:
                    continue
            yield entry

    async def _with_files(
        self,
        target: RepositoryTarget,
        entry: HistoryEntry,
        skipped: List[MalformedEntryError],
    ) -> Optional[HistoryEntry]:
        payload = await self.client.get_commit(target.owner, target.name, entry.identifier)
        try:
            return parse_commit(payload).to_history_entry()
        except MalformedEntryError as e:
            skipped.append(e)
            return None

    async def compare(self, target: RepositoryTarget, base: str, head: str) -> Comparison:
        """
        Fetch the complete comparison between two refs.

        Raises:
            TransientFetchError: If a page fails or the collected commits
                do not add up to ``total_commits`` (history moved while paging)
        """
        url = f"{self.client.repo_url(target.owner, target.name)}/compare/{base}...{head}"
        params = {"per_page": self.per_page}
        total_commits = 0
        commits: List[CommitPayload] = []
        files = []

        while url:
            page = await self.client.get_comparison_page(url, params=params)
            params = None
            try:
                part = ComparisonPayload.model_validate(page.payload)
            except ValidationError as e:
                raise TransientFetchError(
                    f"Malformed comparison page: {e.error_count()} invalid field(s)",
                    url=page.url,
                    repository=target.key,
                ) from e
            total_commits = part.total_commits
            commits.extend(part.commits)
            files.extend(part.files or [])
            url = page.next_url

        if total_commits != len(commits):
            raise TransientFetchError(
                f"Incomplete comparison {base}...{head}: total_commits={total_commits} "
                f"but {len(commits)} collected",
                repository=target.key,
            )
        return Comparison(total_commits=total_commits, commits=commits, files=files)

    async def file_content(self, target: RepositoryTarget, path: str, ref: str) -> Optional[str]:
        """Raw file text at a ref, or None if the file does not exist there."""
        return await self.client.get_file_content(target.owner, target.name, path, ref)
