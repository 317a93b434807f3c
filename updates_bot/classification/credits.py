"""
Translator credit tracking.

Credit resources are plain name lists, one translator per line, with
optional Markdown list bullets and headings.
"""

import re
from typing import List, Mapping

from ..config.platforms import Platform
from ..domain.changes import CreditChange
from ..domain.entities import HistoryEntry
from .locales import ResourceSnapshot

_BULLET = re.compile(r"^\s*(?:[-*+]|\d+\.)\s+")


def parse_credit_names(text: str) -> List[str]:
    """
    Extract translator names from a credit resource.

    Headings, comments and blank lines are ignored and each name is kept
    once, in order of first appearance.
    """
    names: List[str] = []
    seen = set()
    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line or line.startswith(("#", "<!--", "//")):
            continue
        name = " ".join(_BULLET.sub("", line).split())
        if name and name not in seen:
            seen.add(name)
            names.append(name)
    return names


class CreditDiff:
    """Detects translators newly added to a platform's credit resources."""

    def added_names(self, before: str, after: str) -> List[str]:
        previous = set(parse_credit_names(before))
        return [name for name in parse_credit_names(after) if name not in previous]

    def diff_commit(
        self,
        entry: HistoryEntry,
        platform: Platform,
        snapshots: Mapping[str, ResourceSnapshot],
    ) -> List[CreditChange]:
        changes = []
        for file_change in entry.files:
            if not platform.is_credit_resource(file_change.filename):
                continue
            snapshot = snapshots.get(file_change.filename)
            if snapshot is None or snapshot.after is None:
                continue

            added = self.added_names(snapshot.before or "", snapshot.after)
            if added:
                changes.append(CreditChange(
                    platform=platform,
                    resource_path=file_change.filename,
                    added_names=tuple(added),
                    entry_id=entry.identifier,
                    timestamp=entry.timestamp,
                ))
        return changes
