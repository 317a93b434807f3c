"""Domain entities, classified changes and pass outcomes."""

from .entities import (
    HistoryKind,
    RepositoryTarget,
    FileChange,
    HistoryEntry,
    Cursor,
    default_targets,
)
from .changes import (
    LocaleChangeKind,
    LocaleChange,
    ReleaseCommit,
    ReleaseChange,
    LocaleChangeSet,
    CreditChange,
    ClassifiedChange,
)
from .outcomes import PassState, SkippedItem, RepositoryOutcome, RunSummary

__all__ = [
    "HistoryKind",
    "RepositoryTarget",
    "FileChange",
    "HistoryEntry",
    "Cursor",
    "default_targets",
    "LocaleChangeKind",
    "LocaleChange",
    "ReleaseCommit",
    "ReleaseChange",
    "LocaleChangeSet",
    "CreditChange",
    "ClassifiedChange",
    "PassState",
    "SkippedItem",
    "RepositoryOutcome",
    "RunSummary",
]
