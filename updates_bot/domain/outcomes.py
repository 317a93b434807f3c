"""
Per-repository and per-run results of the change pipeline.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .changes import ClassifiedChange
from .entities import RepositoryTarget


class PassState(Enum):
    """Stages of one repository pass."""
    IDLE = "idle"
    FETCHING = "fetching"
    CLASSIFYING = "classifying"
    FILTERING = "filtering"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class SkippedItem:
    """An entry or resource left out of a pass, with the reason."""
    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_error(cls, error) -> "SkippedItem":
        return cls(error_code=error.error_code, message=error.message, details=dict(error.details))

    def to_dict(self) -> dict[str, Any]:
        return {"error_code": self.error_code, "message": self.message, "details": self.details}


@dataclass
class RepositoryOutcome:
    """Result of processing one repository target."""
    target: RepositoryTarget
    state: PassState = PassState.IDLE
    changes: list[ClassifiedChange] = field(default_factory=list)
    summaries: list[str] = field(default_factory=list)
    skipped: list[SkippedItem] = field(default_factory=list)
    duplicates_suppressed: int = 0
    cursor_committed: bool = False
    error_kind: str | None = None
    error_context: dict[str, Any] = field(default_factory=dict)
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.state is PassState.DONE

    def fail(self, error: Exception) -> None:
        """Mark the pass failed, recording the error kind and context."""
        self.state = PassState.FAILED
        self.error_kind = type(error).__name__
        to_dict = getattr(error, "to_dict", None)
        if callable(to_dict):
            self.error_context = to_dict()
        else:
            self.error_context = {"message": str(error)}

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "repository": self.target.key,
            "state": self.state.value,
            "duration_seconds": round(self.duration_seconds, 3),
            "skipped": [item.to_dict() for item in self.skipped],
        }
        if self.succeeded:
            result["changes"] = [
                {
                    "type": change.change_type,
                    "entry_id": change.entry_id,
                }
                for change in self.changes
            ]
            result["duplicates_suppressed"] = self.duplicates_suppressed
            result["cursor_committed"] = self.cursor_committed
        else:
            result["error_kind"] = self.error_kind
            result["error_context"] = self.error_context
        return result


@dataclass
class RunSummary:
    """All repository outcomes of one run, in target order."""
    outcomes: list[RepositoryOutcome] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return all(outcome.succeeded for outcome in self.outcomes)

    @property
    def failed(self) -> list[RepositoryOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.succeeded]

    @property
    def total_changes(self) -> int:
        return sum(len(outcome.changes) for outcome in self.outcomes)

    def outcome_for(self, key: str) -> RepositoryOutcome | None:
        for outcome in self.outcomes:
            if outcome.target.key == key:
                return outcome
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "total_changes": self.total_changes,
            "failed_repositories": len(self.failed),
            "duration_seconds": round(self.duration_seconds, 3),
            "repositories": [outcome.to_dict() for outcome in self.outcomes],
        }
