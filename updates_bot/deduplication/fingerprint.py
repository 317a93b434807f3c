"""
Content fingerprints for classified changes.

A fingerprint is the SHA-256 of a canonical JSON rendering of what a
change says, not where it was found: the originating commit and its
timestamp are left out, so the same release or the same string edit
reached through different history produces the same digest.
"""

import hashlib
import json
from typing import Any

from ..domain.changes import (
    ClassifiedChange,
    CreditChange,
    LocaleChangeSet,
    ReleaseChange,
)
from ..utils.exceptions import ClassificationError


def normalize_text(value: str | None) -> str | None:
    """Collapse runs of whitespace and trim, keeping None as None."""
    if value is None:
        return None
    return " ".join(value.split())


def _release_content(change: ReleaseChange) -> dict[str, Any]:
    return {
        "type": change.change_type,
        "platform": change.platform.value,
        "tag": normalize_text(change.tag),
    }


def _locale_content(change: LocaleChangeSet) -> dict[str, Any]:
    entries = sorted(
        (
            {
                "key": item.key,
                "kind": item.kind.value,
                "previous": normalize_text(item.previous_value),
                "new": normalize_text(item.new_value),
            }
            for item in change.changes
        ),
        key=lambda item: (item["key"], item["kind"]),
    )
    return {
        "type": change.change_type,
        "platform": change.platform.value,
        "locale": change.locale_code,
        "resource": change.resource_path,
        "changes": entries,
    }


def _credit_content(change: CreditChange) -> dict[str, Any]:
    return {
        "type": change.change_type,
        "platform": change.platform.value,
        "resource": change.resource_path,
        "names": sorted(normalize_text(name) for name in change.added_names),
    }


class ContentFingerprinter:
    """Produces stable deduplication keys from classified changes."""

    def canonical_bytes(self, change: ClassifiedChange) -> bytes:
        """
        Canonical representation of a change's semantic content.

        Raises:
            ClassificationError: If the object is not a classified change
        """
        if isinstance(change, ReleaseChange):
            content = _release_content(change)
        elif isinstance(change, LocaleChangeSet):
            content = _locale_content(change)
        elif isinstance(change, CreditChange):
            content = _credit_content(change)
        else:
            raise ClassificationError(
                f"Cannot fingerprint object of type {type(change).__name__}",
                entry_id=getattr(change, "entry_id", None),
            )

        return json.dumps(content, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

    def fingerprint(self, change: ClassifiedChange) -> str:
        """
        Compute the fingerprint of a change.

        Returns:
            64-character lowercase hexadecimal SHA-256 digest
        """
        return hashlib.sha256(self.canonical_bytes(change)).hexdigest()
