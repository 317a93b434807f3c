"""
Prometheus metrics for Updates Bot runs.

This module tracks:
- Classified changes emitted and duplicates suppressed per repository
- Repository pass failures by error kind
- Repository pass durations
- GitHub API request counts and latencies

Every collector instance owns its own ``CollectorRegistry`` so tests and
repeated runs in one process never collide on metric names.
"""

import threading
from typing import Optional

from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry, generate_latest, CONTENT_TYPE_LATEST

from ..domain.outcomes import RepositoryOutcome
from ..utils.logger import get_logger


class UpdatesMetrics:
    """
    Collector for run-level and per-repository metrics.

    Thread-safe: prometheus_client metrics are safe for concurrent use and
    the run counters are guarded by a lock.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """
        Initialize the collector.

        Args:
            registry: Registry to register metrics with; a fresh one by default
        """
        self.registry = registry or CollectorRegistry()
        self.logger = get_logger("metrics")
        self._lock = threading.RLock()
        self.runs_completed = 0
        self._setup_prometheus_metrics()

    def _setup_prometheus_metrics(self) -> None:
        """Setup Prometheus metrics."""
        self.changes_emitted = Counter(
            'updates_bot_changes_emitted_total',
            'Classified changes handed to the notifier',
            ['repository', 'change_type'],
            registry=self.registry
        )

        self.duplicates_suppressed = Counter(
            'updates_bot_duplicates_suppressed_total',
            'Classified changes dropped because their fingerprint was already seen',
            ['repository'],
            registry=self.registry
        )

        self.repository_failures = Counter(
            'updates_bot_repository_failures_total',
            'Repository passes that ended in failure',
            ['repository', 'error_kind'],
            registry=self.registry
        )

        self.entries_skipped = Counter(
            'updates_bot_entries_skipped_total',
            'History entries or resources skipped during classification',
            ['repository', 'error_code'],
            registry=self.registry
        )

        self.pass_duration = Histogram(
            'updates_bot_repository_pass_seconds',
            'Duration of one repository pass',
            ['repository', 'state'],
            buckets=[0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, float('inf')],
            registry=self.registry
        )

        self.api_requests = Counter(
            'updates_bot_github_requests_total',
            'GitHub API requests by status code',
            ['status_code'],
            registry=self.registry
        )

        self.api_response_time = Histogram(
            'updates_bot_github_response_seconds',
            'GitHub API response time',
            buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float('inf')],
            registry=self.registry
        )

        self.last_run_success = Gauge(
            'updates_bot_last_run_success',
            'Whether every repository of the last run succeeded (1) or not (0)',
            registry=self.registry
        )

    def record_outcome(self, outcome: RepositoryOutcome) -> None:
        """Record the result of one repository pass."""
        repository = outcome.target.key
        self.pass_duration.labels(repository=repository, state=outcome.state.value).observe(outcome.duration_seconds)

        for item in outcome.skipped:
            self.entries_skipped.labels(repository=repository, error_code=item.error_code).inc()

        if not outcome.succeeded:
            self.repository_failures.labels(repository=repository, error_kind=outcome.error_kind or "unknown").inc()
            return

        for change in outcome.changes:
            self.changes_emitted.labels(repository=repository, change_type=change.change_type).inc()
        if outcome.duplicates_suppressed:
            self.duplicates_suppressed.labels(repository=repository).inc(outcome.duplicates_suppressed)

    def record_run(self, succeeded: bool) -> None:
        with self._lock:
            self.runs_completed += 1
        self.last_run_success.set(1 if succeeded else 0)

    def record_api_request(self, status_code: int, response_time_ms: float) -> None:
        self.api_requests.labels(status_code=str(status_code)).inc()
        self.api_response_time.observe(response_time_ms / 1000)

    def render_latest(self) -> bytes:
        """Prometheus text exposition of every metric in the registry."""
        return generate_latest(self.registry)

    @property
    def content_type(self) -> str:
        return CONTENT_TYPE_LATEST
