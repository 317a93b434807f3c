"""
Classified changes produced from upstream history.

Each change carries the identifier and timestamp of the history entry it
came from. Those two fields locate the change in time but are not part of
its identity.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple, Union

from ..config.platforms import Platform


class LocaleChangeKind(Enum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass(frozen=True)
class LocaleChange:
    """One string key that differs between two snapshots of a locale."""
    locale_code: str
    locale_name: str
    key: str
    kind: LocaleChangeKind
    previous_value: Optional[str] = None
    new_value: Optional[str] = None


@dataclass(frozen=True)
class ReleaseCommit:
    """A commit listed in a release post."""
    sha: str
    message: str


@dataclass(frozen=True)
class ReleaseChange:
    """A release tag newer than the last reported one."""
    platform: Platform
    tag: str
    version: str
    previous_tag: Optional[str] = None
    commits: Tuple[ReleaseCommit, ...] = ()
    entry_id: str = ""
    timestamp: Optional[datetime] = field(default=None, compare=False)

    change_type = "release"


@dataclass(frozen=True)
class LocaleChangeSet:
    """Every string change of one locale resource within one commit."""
    platform: Platform
    locale_code: str
    locale_name: str
    resource_path: str
    changes: Tuple[LocaleChange, ...] = ()
    entry_id: str = ""
    timestamp: Optional[datetime] = field(default=None, compare=False)

    change_type = "locale"

    def count(self, kind: LocaleChangeKind) -> int:
        return sum(1 for change in self.changes if change.kind is kind)


@dataclass(frozen=True)
class CreditChange:
    """Translators newly listed in a credit resource."""
    platform: Platform
    resource_path: str
    added_names: Tuple[str, ...] = ()
    entry_id: str = ""
    timestamp: Optional[datetime] = field(default=None, compare=False)

    change_type = "credit"


ClassifiedChange = Union[ReleaseChange, LocaleChangeSet, CreditChange]
