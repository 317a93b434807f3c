"""
Deduplication package for change fingerprints and resumable cursors.

This package provides functionality for:
- Fingerprinting classified changes by their semantic content
- Persisting per-repository cursors with atomic compare-and-set
"""

from .fingerprint import ContentFingerprinter, normalize_text
from .cursor_store import (
    CommitResult,
    CursorStore,
    KeyValueBackend,
    InMemoryBackend,
    SQLiteBackend,
    create_backend,
)

__all__ = [
    "ContentFingerprinter",
    "normalize_text",
    "CommitResult",
    "CursorStore",
    "KeyValueBackend",
    "InMemoryBackend",
    "SQLiteBackend",
    "create_backend",
]
