"""
Change orchestration for the Updates Bot.

Drives one pass per repository target:

    load cursor -> fetch history -> classify -> fingerprint and filter
    -> render -> notify -> commit cursor

Every pass is isolated: whatever goes wrong in one repository is recorded
in its outcome and never reaches the others. The cursor is advanced only
after the notifier has accepted the change-set, and only through
compare-and-set.
"""

import asyncio
import time
from typing import AsyncIterator, List, Optional, Protocol, Sequence, Tuple

from .classification.credits import CreditDiff
from .classification.locales import LocaleDiffEngine, ResourceSnapshot
from .classification.versions import VersionClassifier, version_text
from .deduplication.cursor_store import CommitResult, CursorStore
from .deduplication.fingerprint import ContentFingerprinter
from .domain.changes import ClassifiedChange, ReleaseChange, ReleaseCommit
from .domain.entities import (
    Cursor,
    FileChange,
    HistoryEntry,
    HistoryKind,
    RepositoryTarget,
)
from .domain.outcomes import PassState, RepositoryOutcome, RunSummary, SkippedItem
from .github.models import Comparison
from .monitoring.metrics import UpdatesMetrics
from .notifications import ChangeNotifier
from .rendering import render_changes
from .utils.exceptions import (
    ClassificationError,
    CursorConflictError,
    MalformedEntryError,
    NotificationError,
    RunBudgetExceededError,
    UpdatesBotError,
)
from .utils.logger import get_logger, repository_context


class HistorySource(Protocol):
    """What the orchestrator needs from the remote history."""

    def history_since(
        self,
        target: RepositoryTarget,
        cursor: Cursor,
        skipped: Optional[List[MalformedEntryError]] = None,
    ) -> AsyncIterator[HistoryEntry]:
        ...

    async def compare(self, target: RepositoryTarget, base: str, head: str) -> Comparison:
        ...

    async def file_content(self, target: RepositoryTarget, path: str, ref: str) -> Optional[str]:
        ...


class ChangeOrchestrator:
    """
    Runs the change pipeline for a set of repository targets.

    This class is responsible for:
    - Bounding how many repositories are processed at once
    - Enforcing the overall run time budget
    - Classifying history entries into releases, locale and credit changes
    - Suppressing changes whose fingerprint was already reported
    - Handing change-sets to the notifier and then committing cursors
    """

    def __init__(
        self,
        fetcher: HistorySource,
        store: CursorStore,
        notifier: ChangeNotifier,
        run_timeout_seconds: float = 600.0,
        max_concurrent_repositories: int = 3,
        seen_window_size: int = 500,
        dry_run: bool = False,
        metrics: Optional[UpdatesMetrics] = None,
        classifier: Optional[VersionClassifier] = None,
        locale_engine: Optional[LocaleDiffEngine] = None,
        credit_diff: Optional[CreditDiff] = None,
        fingerprinter: Optional[ContentFingerprinter] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            fetcher: Source of repository history
            store: Cursor store
            notifier: Sink for rendered change-sets
            run_timeout_seconds: Budget for the whole run, measured from its start
            max_concurrent_repositories: Repositories processed in parallel
            seen_window_size: Fingerprints kept per cursor
            dry_run: Classify and render only; no notification, no cursor commit
            metrics: Optional metrics collector
        """
        self.fetcher = fetcher
        self.store = store
        self.notifier = notifier
        self.run_timeout_seconds = run_timeout_seconds
        self.max_concurrent_repositories = max_concurrent_repositories
        self.seen_window_size = seen_window_size
        self.dry_run = dry_run
        self.metrics = metrics
        self.classifier = classifier or VersionClassifier()
        self.locale_engine = locale_engine or LocaleDiffEngine()
        self.credit_diff = credit_diff or CreditDiff()
        self.fingerprinter = fingerprinter or ContentFingerprinter()
        self.logger = get_logger("orchestrator")

    async def run(self, targets: Sequence[RepositoryTarget]) -> RunSummary:
        """
        Process every target once.

        Targets sharing a key are processed a single time so each cursor
        has exactly one writer per run.

        Returns:
            Outcomes for every distinct target, in first-seen order
        """
        loop = asyncio.get_running_loop()
        started = time.monotonic()
        deadline = loop.time() + self.run_timeout_seconds

        unique: dict[str, RepositoryTarget] = {}
        for target in targets:
            if target.key in unique:
                self.logger.warning("Duplicate target ignored", extra={"repository": target.key})
                continue
            unique[target.key] = target

        self.logger.info(
            f"Processing {len(unique)} repositories with limit {self.max_concurrent_repositories}",
            extra={"dry_run": self.dry_run, "run_timeout_seconds": self.run_timeout_seconds}
        )

        semaphore = asyncio.Semaphore(self.max_concurrent_repositories)

        async def process_single_target(target: RepositoryTarget) -> RepositoryOutcome:
            async with semaphore:
                return await self.process_target(target, deadline)

        outcomes = await asyncio.gather(*[process_single_target(target) for target in unique.values()])
        summary = RunSummary(outcomes=list(outcomes), duration_seconds=time.monotonic() - started)

        if self.metrics is not None:
            self.metrics.record_run(summary.succeeded)

        self.logger.info(
            f"Run completed: {len(summary.outcomes) - len(summary.failed)} succeeded, "
            f"{len(summary.failed)} failed, {summary.total_changes} change(s) emitted",
            extra={"duration_seconds": round(summary.duration_seconds, 3)}
        )
        return summary

    async def process_target(self, target: RepositoryTarget, deadline: float) -> RepositoryOutcome:
        """
        Run one repository pass, capturing any failure in the outcome.

        Args:
            target: Repository target to process
            deadline: Event loop time at which the run budget expires
        """
        outcome = RepositoryOutcome(target=target)
        started = time.monotonic()

        with repository_context(target.key):
            try:
                await self._run_pass(target, outcome, deadline)
            except Exception as e:
                stage = outcome.state
                outcome.fail(e)
                outcome.error_context["stage"] = stage.value
                log = self.logger.warning if isinstance(e, UpdatesBotError) else self.logger.exception
                log(
                    f"Repository pass failed during {stage.value}: {e}",
                    extra={"error_kind": outcome.error_kind, "stage": stage.value}
                )
            finally:
                outcome.duration_seconds = time.monotonic() - started

        if self.metrics is not None:
            self.metrics.record_outcome(outcome)
        return outcome

    async def _run_pass(self, target: RepositoryTarget, outcome: RepositoryOutcome, deadline: float) -> None:
        cursor = await self.store.load(target)

        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            raise RunBudgetExceededError(
                "Run budget exhausted before the repository was fetched",
                repository=target.key, budget_seconds=self.run_timeout_seconds,
            )

        skipped: List[MalformedEntryError] = []
        try:
            changes, last_entry, release_tag = await asyncio.wait_for(
                self._collect(target, cursor, outcome, skipped), timeout=remaining
            )
        except asyncio.TimeoutError:
            raise RunBudgetExceededError(
                f"Run budget of {self.run_timeout_seconds}s expired during {outcome.state.value}",
                repository=target.key, budget_seconds=self.run_timeout_seconds,
            ) from None
        finally:
            outcome.skipped.extend(SkippedItem.from_error(error) for error in skipped)

        outcome.state = PassState.FILTERING
        fresh, fingerprints = self._filter_seen(changes, cursor, outcome)
        outcome.changes = fresh
        outcome.summaries = render_changes(fresh, target)

        if fresh and not self.dry_run:
            await self._notify(target, fresh, outcome.summaries)

        outcome.state = PassState.COMMITTING
        new_cursor = cursor.advance(last_entry, fingerprints, release_tag, self.seen_window_size)
        if new_cursor == cursor:
            self.logger.info("No new history, cursor unchanged")
        elif self.dry_run:
            self.logger.info("Dry run, cursor not committed", extra={"emitted": len(fresh)})
        else:
            result = await self.store.commit(target, new_cursor, expected=cursor)
            if result is CommitResult.CONFLICT:
                self.logger.error(
                    "Cursor conflict after notification, emitted changes may be reported again",
                    extra={"emitted": len(fresh)}
                )
                raise CursorConflictError(
                    "Cursor was modified by a concurrent run",
                    key=target.key, emitted_changes=len(fresh),
                )
            outcome.cursor_committed = True

        outcome.state = PassState.DONE
        self.logger.info(
            "Repository pass completed",
            extra={
                "emitted": len(fresh),
                "duplicates_suppressed": outcome.duplicates_suppressed,
                "skipped": len(outcome.skipped),
            }
        )

    async def _notify(self, target: RepositoryTarget, changes: List[ClassifiedChange], summaries: List[str]) -> None:
        try:
            await self.notifier.notify(target, changes, summaries)
        except NotificationError:
            raise
        except Exception as e:
            raise NotificationError(
                f"Notifier rejected change-set: {e}", repository=target.key, summary_count=len(summaries)
            ) from e

    def _filter_seen(
        self,
        changes: List[ClassifiedChange],
        cursor: Cursor,
        outcome: RepositoryOutcome,
    ) -> Tuple[List[ClassifiedChange], List[str]]:
        """Drop changes already reported, keeping fetcher order."""
        fresh: List[ClassifiedChange] = []
        fingerprints: List[str] = []
        emitted = set()

        for change in changes:
            fingerprint = self.fingerprinter.fingerprint(change)
            if cursor.has_seen(fingerprint) or fingerprint in emitted:
                outcome.duplicates_suppressed += 1
                self.logger.debug(
                    "Suppressed duplicate change",
                    extra={"fingerprint": fingerprint, "entry_id": change.entry_id}
                )
                continue
            emitted.add(fingerprint)
            fresh.append(change)
            fingerprints.append(fingerprint)

        return fresh, fingerprints

    async def _collect(
        self,
        target: RepositoryTarget,
        cursor: Cursor,
        outcome: RepositoryOutcome,
        skipped: List[MalformedEntryError],
    ) -> Tuple[List[ClassifiedChange], Optional[HistoryEntry], Optional[str]]:
        """
        Fetch and classify everything after the cursor.

        A release history without a stored cursor is a baseline: older
        releases only anchor version precedence and the newest reportable
        one is announced.

        Returns:
            Tuple of (changes oldest first, newest entry seen, newly reported release tag)
        """
        outcome.state = PassState.FETCHING
        changes: List[ClassifiedChange] = []
        last_entry: Optional[HistoryEntry] = None
        last_release_tag = cursor.last_release_tag
        reported_tag: Optional[str] = None
        baseline = target.kind is HistoryKind.RELEASES and cursor == Cursor.initial()
        newest: Optional[Tuple[HistoryEntry, Optional[str]]] = None

        async for entry in self.fetcher.history_since(target, cursor, skipped):
            outcome.state = PassState.CLASSIFYING
            last_entry = entry
            try:
                if baseline:
                    if self.classifier.is_new_release(entry.identifier, last_release_tag, target.platform):
                        newest = (entry, last_release_tag)
                        last_release_tag = entry.identifier
                elif target.kind is HistoryKind.RELEASES:
                    release = await self._classify_release(target, entry, last_release_tag)
                    if release is not None:
                        changes.append(release)
                        last_release_tag = reported_tag = release.tag
                else:
                    changes.extend(await self._classify_commit(target, entry, outcome))
            except ClassificationError as e:
                if "entry_id" not in e.details:
                    e.details["entry_id"] = entry.identifier
                self.logger.warning(
                    f"Skipping unclassifiable entry {entry.short_id}: {e.message}",
                    extra={"entry_id": entry.identifier}
                )
                outcome.skipped.append(SkippedItem.from_error(e))

        if newest is not None:
            entry, previous_tag = newest
            if previous_tag is not None:
                self.logger.info(
                    "No stored cursor, announcing only the newest release",
                    extra={"entry_id": entry.identifier, "previous_tag": previous_tag}
                )
            release = await self._release_change(target, entry, previous_tag)
            changes.append(release)
            reported_tag = release.tag

        return changes, last_entry, reported_tag

    async def _classify_release(
        self,
        target: RepositoryTarget,
        entry: HistoryEntry,
        last_release_tag: Optional[str],
    ) -> Optional[ReleaseChange]:
        if not self.classifier.is_new_release(entry.identifier, last_release_tag, target.platform):
            return None
        return await self._release_change(target, entry, last_release_tag)

    async def _release_change(
        self,
        target: RepositoryTarget,
        entry: HistoryEntry,
        last_release_tag: Optional[str],
    ) -> ReleaseChange:
        tag = entry.identifier
        commits: Tuple[ReleaseCommit, ...] = ()
        if last_release_tag:
            comparison = await self.fetcher.compare(target, last_release_tag, tag)
            commits = tuple(
                ReleaseCommit(sha=commit.sha, message=commit.commit.message)
                for commit in comparison.commits
            )

        return ReleaseChange(
            platform=target.platform,
            tag=tag,
            version=version_text(tag),
            previous_tag=last_release_tag,
            commits=commits,
            entry_id=entry.identifier,
            timestamp=entry.timestamp,
        )

    async def _classify_commit(
        self,
        target: RepositoryTarget,
        entry: HistoryEntry,
        outcome: RepositoryOutcome,
    ) -> List[ClassifiedChange]:
        tracked = [item for item in entry.files if target.platform.is_tracked_resource(item.filename)]
        if not tracked:
            return []

        snapshots = await self._snapshots(target, entry, tracked)

        locale_sets, errors = self.locale_engine.diff_commit(entry, target.platform, snapshots)
        outcome.skipped.extend(SkippedItem.from_error(error) for error in errors)

        changes: List[ClassifiedChange] = list(locale_sets)
        changes.extend(self.credit_diff.diff_commit(entry, target.platform, snapshots))
        return changes

    async def _snapshots(
        self,
        target: RepositoryTarget,
        entry: HistoryEntry,
        files: List[FileChange],
    ) -> dict[str, ResourceSnapshot]:
        """Fetch file contents before and after a commit for every tracked file."""

        async def before(item: FileChange) -> Optional[str]:
            if item.status == "added" or entry.parent is None:
                return None
            return await self.fetcher.file_content(target, item.previous_filename or item.filename, entry.parent)

        async def after(item: FileChange) -> Optional[str]:
            if item.status == "removed":
                return None
            return await self.fetcher.file_content(target, item.filename, entry.identifier)

        async def snapshot(item: FileChange) -> ResourceSnapshot:
            previous, current = await asyncio.gather(before(item), after(item))
            return ResourceSnapshot(path=item.filename, before=previous, after=current)

        results = await asyncio.gather(*[snapshot(item) for item in files])
        return {result.path: result for result in results}
