"""Classification of history entries into reportable changes."""

from .versions import (
    ParseOutcome,
    VersionInfo,
    ClassifiedVersion,
    VersionClassifier,
    compare_versions,
    version_text,
)
from .locales import LocaleDiffEngine, ResourceSnapshot, locale_name
from .credits import CreditDiff, parse_credit_names

__all__ = [
    "ParseOutcome",
    "VersionInfo",
    "ClassifiedVersion",
    "VersionClassifier",
    "compare_versions",
    "version_text",
    "LocaleDiffEngine",
    "ResourceSnapshot",
    "locale_name",
    "CreditDiff",
    "parse_credit_names",
]
