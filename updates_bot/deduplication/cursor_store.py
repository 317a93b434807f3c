"""
Resumable per-repository cursors.

Cursors live in a key-value backend that offers an atomic
compare-and-set. A cursor is only ever replaced when the stored bytes
still equal what the writer loaded, so two overlapping runs can never
silently overwrite each other's progress.
"""

import asyncio
import sqlite3
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol

from ..domain.entities import Cursor, RepositoryTarget
from ..utils.exceptions import StorageUnavailableError
from ..utils.logger import get_logger


class CommitResult(Enum):
    SUCCESS = "success"
    CONFLICT = "conflict"


class KeyValueBackend(Protocol):
    """Storage contract used by the cursor store."""

    async def get(self, key: str) -> Optional[bytes]:
        ...

    async def put(self, key: str, value: bytes) -> None:
        ...

    async def compare_and_set(self, key: str, expected: Optional[bytes], new: bytes) -> bool:
        """
        Replace the value only if the stored one equals ``expected``.

        ``expected=None`` means the key must not exist yet.
        """
        ...


class InMemoryBackend:
    """Process-local backend; an asyncio lock makes compare-and-set atomic."""

    def __init__(self):
        self._values: dict[str, bytes] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[bytes]:
        return self._values.get(key)

    async def put(self, key: str, value: bytes) -> None:
        async with self._lock:
            self._values[key] = value

    async def compare_and_set(self, key: str, expected: Optional[bytes], new: bytes) -> bool:
        async with self._lock:
            if self._values.get(key) != expected:
                return False
            self._values[key] = new
            return True


class SQLiteBackend:
    """
    SQLite-backed store for cursors shared between runs.

    Each operation opens its own connection in autocommit mode and runs
    in a worker thread so the event loop is never blocked on disk I/O.
    """

    def __init__(self, path: str):
        self.path = path
        self._initialized = False
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path, timeout=30.0, isolation_level=None)
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA busy_timeout = 30000")
        if not self._initialized:
            conn.execute(
                "CREATE TABLE IF NOT EXISTS cursors ("
                "key TEXT PRIMARY KEY, value BLOB NOT NULL, "
                "updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP)"
            )
            self._initialized = True
        return conn

    def _get(self, key: str) -> Optional[bytes]:
        conn = self._connect()
        try:
            row = conn.execute("SELECT value FROM cursors WHERE key = ?", (key,)).fetchone()
            return bytes(row[0]) if row else None
        finally:
            conn.close()

    def _put(self, key: str, value: bytes) -> None:
        conn = self._connect()
        try:
            conn.execute(
                "INSERT INTO cursors (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP",
                (key, value),
            )
        finally:
            conn.close()

    def _compare_and_set(self, key: str, expected: Optional[bytes], new: bytes) -> bool:
        conn = self._connect()
        try:
            if expected is None:
                cursor = conn.execute(
                    "INSERT OR IGNORE INTO cursors (key, value) VALUES (?, ?)", (key, new)
                )
            else:
                cursor = conn.execute(
                    "UPDATE cursors SET value = ?, updated_at = CURRENT_TIMESTAMP "
                    "WHERE key = ? AND value = ?",
                    (new, key, expected),
                )
            return cursor.rowcount == 1
        finally:
            conn.close()

    async def get(self, key: str) -> Optional[bytes]:
        return await asyncio.to_thread(self._get, key)

    async def put(self, key: str, value: bytes) -> None:
        await asyncio.to_thread(self._put, key, value)

    async def compare_and_set(self, key: str, expected: Optional[bytes], new: bytes) -> bool:
        return await asyncio.to_thread(self._compare_and_set, key, expected, new)


class CursorStore:
    """
    Loads and commits cursors for repository targets.

    Attributes:
        backend: Key-value backend holding serialized cursors
        seen_window_size: Maximum number of fingerprints kept per cursor
    """

    def __init__(self, backend: KeyValueBackend, seen_window_size: int = 500):
        self.backend = backend
        self.seen_window_size = seen_window_size
        self.logger = get_logger(__name__)

    async def load(self, target: RepositoryTarget) -> Cursor:
        """
        Load the cursor of a target.

        Returns:
            Stored cursor, or the initial cursor if none exists

        Raises:
            StorageUnavailableError: If the backend fails or the stored
                value cannot be decoded
        """
        try:
            data = await self.backend.get(target.key)
        except (OSError, sqlite3.Error) as e:
            raise StorageUnavailableError(
                f"Could not read cursor: {e}", key=target.key, operation="load"
            ) from e

        if data is None:
            self.logger.info("No stored cursor, starting from the beginning", extra={"cursor_key": target.key})
            return Cursor.initial()

        try:
            return Cursor.deserialize(data)
        except ValueError as e:
            raise StorageUnavailableError(
                f"Stored cursor is not decodable: {e}", key=target.key, operation="decode"
            ) from e

    async def commit(self, target: RepositoryTarget, new: Cursor, expected: Cursor) -> CommitResult:
        """
        Atomically replace the cursor of a target.

        ``expected`` is the cursor loaded at the start of the pass. The
        swap is made against the bytes currently stored, provided they
        decode to ``expected``; stored values need not be in canonical
        form. An initial expected cursor also matches a missing value.

        Returns:
            SUCCESS if the cursor was replaced, CONFLICT if the stored
            value changed in the meantime (nothing is written)

        Raises:
            StorageUnavailableError: If the backend fails
        """
        new_bytes = new.bounded(self.seen_window_size).serialize()

        try:
            stored = await self.backend.get(target.key)
            swapped = False
            if self._stored_matches(stored, expected):
                swapped = await self.backend.compare_and_set(target.key, stored, new_bytes)
        except (OSError, sqlite3.Error) as e:
            raise StorageUnavailableError(
                f"Could not write cursor: {e}", key=target.key, operation="commit"
            ) from e

        if not swapped:
            self.logger.warning(
                "Cursor changed since it was loaded, commit rejected",
                extra={"cursor_key": target.key},
            )
            return CommitResult.CONFLICT

        self.logger.debug(
            "Cursor committed",
            extra={
                "cursor_key": target.key,
                "last_identifier": new.last_identifier,
                "seen_count": len(new.seen),
            },
        )
        return CommitResult.SUCCESS

    @staticmethod
    def _stored_matches(stored: Optional[bytes], expected: Cursor) -> bool:
        if stored is None:
            return expected == Cursor.initial()
        try:
            return Cursor.deserialize(stored) == expected
        except ValueError:
            return False


def create_backend(db_path: Optional[str]) -> KeyValueBackend:
    """SQLite when a database path is configured, in-memory otherwise."""
    if db_path:
        return SQLiteBackend(db_path)
    return InMemoryBackend()
