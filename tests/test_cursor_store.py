"""
Tests for cursors and the compare-and-set cursor store.
"""

import asyncio
import sqlite3

import pytest

from updates_bot.deduplication.cursor_store import (
    CommitResult,
    CursorStore,
    InMemoryBackend,
    SQLiteBackend,
    create_backend,
)
from updates_bot.domain.entities import Cursor
from updates_bot.utils.exceptions import StorageUnavailableError

from fixtures import at, commit_entry


class TestCursor:
    """Value semantics of the cursor record."""

    def test_advance_keeps_original_untouched(self):
        cursor = Cursor.initial()
        advanced = cursor.advance(commit_entry("abc1234", 3), ["f1", "f2"], release_tag="v1.0.0")

        assert cursor.is_initial
        assert advanced.last_identifier == "abc1234"
        assert advanced.last_timestamp == at(3)
        assert advanced.last_release_tag == "v1.0.0"
        assert advanced.seen == ("f1", "f2")

    def test_advance_without_entries_keeps_position(self):
        cursor = Cursor(last_identifier="abc1234", last_timestamp=at(1), last_release_tag="v1.0.0")
        assert cursor.advance(None) == cursor

    def test_seen_window_evicts_oldest(self):
        cursor = Cursor(seen=("f1", "f2"))
        advanced = cursor.advance(None, ["f3", "f4"], window_size=3)

        assert advanced.seen == ("f2", "f3", "f4")

    def test_serialization_is_canonical(self):
        cursor = Cursor(last_identifier="abc1234", last_timestamp=at(1), seen=("f1",))

        assert Cursor.deserialize(cursor.serialize()) == cursor
        assert cursor.serialize() == Cursor.deserialize(cursor.serialize()).serialize()

    @pytest.mark.parametrize("data", [b"not json", b"[1, 2]", b'{"seen": [1]}', b'{"last_timestamp": "yesterday"}'])
    def test_deserialize_rejects_garbage(self, data):
        with pytest.raises(ValueError):
            Cursor.deserialize(data)


class TestCursorStore:
    """Loading and committing against the in-memory backend."""

    @pytest.mark.asyncio
    async def test_missing_cursor_loads_as_initial(self, store, android_commits):
        assert await store.load(android_commits) == Cursor.initial()

    @pytest.mark.asyncio
    async def test_commit_then_load(self, store, android_commits):
        new = Cursor(last_identifier="abc1234", last_timestamp=at(1), seen=("f1",))

        assert await store.commit(android_commits, new, expected=Cursor.initial()) is CommitResult.SUCCESS
        assert await store.load(android_commits) == new

    @pytest.mark.asyncio
    async def test_stale_expectation_conflicts_and_does_not_overwrite(self, store, android_commits):
        first = Cursor(last_identifier="first", seen=("f1",))
        second = Cursor(last_identifier="second", seen=("f2",))
        await store.commit(android_commits, first, expected=Cursor.initial())

        result = await store.commit(android_commits, second, expected=Cursor.initial())

        assert result is CommitResult.CONFLICT
        assert await store.load(android_commits) == first

    @pytest.mark.asyncio
    async def test_concurrent_commits_exactly_one_wins(self, store, android_commits):
        expected = await store.load(android_commits)
        candidates = [Cursor(last_identifier=f"run-{index}") for index in range(5)]

        results = await asyncio.gather(*[
            store.commit(android_commits, candidate, expected=expected) for candidate in candidates
        ])

        assert results.count(CommitResult.SUCCESS) == 1
        winner = candidates[results.index(CommitResult.SUCCESS)]
        assert await store.load(android_commits) == winner

    @pytest.mark.asyncio
    async def test_commit_bounds_seen_window(self, backend, android_commits):
        store = CursorStore(backend, seen_window_size=2)
        await store.commit(android_commits, Cursor(seen=("f1", "f2", "f3")), expected=Cursor.initial())

        assert (await store.load(android_commits)).seen == ("f2", "f3")

    @pytest.mark.asyncio
    async def test_non_canonical_stored_cursor_commits(self, backend, store, android_commits):
        await backend.put(android_commits.key, b'{"last_identifier": "abc", "seen": []}')

        loaded = await store.load(android_commits)
        results = []
        for identifier in ("def", "ghi", "jkl"):
            new = loaded.advance(commit_entry(identifier, 2))
            results.append(await store.commit(android_commits, new, expected=loaded))
            loaded = await store.load(android_commits)

        assert results == [CommitResult.SUCCESS] * 3
        assert loaded.last_identifier == "jkl"

    @pytest.mark.asyncio
    async def test_stored_cursor_that_differs_conflicts(self, backend, store, android_commits):
        await backend.put(android_commits.key, b'{"last_identifier": "other", "seen": null}')

        result = await store.commit(android_commits, Cursor(last_identifier="x"), expected=Cursor(last_identifier="abc"))

        assert result is CommitResult.CONFLICT
        assert (await store.load(android_commits)).last_identifier == "other"

    @pytest.mark.asyncio
    async def test_initial_expectation_matches_stored_empty_cursor(self, backend, store, android_commits):
        await backend.put(android_commits.key, Cursor.initial().serialize())

        result = await store.commit(android_commits, Cursor(last_identifier="x"), expected=Cursor.initial())

        assert result is CommitResult.SUCCESS

    @pytest.mark.asyncio
    async def test_undecodable_cursor_raises_storage_error(self, backend, store, android_commits):
        await backend.put(android_commits.key, b"\x00garbage")

        with pytest.raises(StorageUnavailableError) as exc_info:
            await store.load(android_commits)

        assert exc_info.value.details == {"key": android_commits.key, "operation": "decode"}

    @pytest.mark.asyncio
    async def test_backend_failure_raises_storage_error(self, android_commits):
        class BrokenBackend(InMemoryBackend):
            async def get(self, key):
                raise OSError("disk gone")

            async def compare_and_set(self, key, expected, new):
                raise sqlite3.OperationalError("database is locked")

        store = CursorStore(BrokenBackend())

        with pytest.raises(StorageUnavailableError):
            await store.load(android_commits)
        with pytest.raises(StorageUnavailableError) as exc_info:
            await store.commit(android_commits, Cursor(last_identifier="x"), expected=Cursor.initial())
        assert exc_info.value.details["operation"] == "commit"


class TestSQLiteBackend:
    """The same contract against a database file."""

    @pytest.mark.asyncio
    async def test_round_trip_and_conflict(self, tmp_path, android_commits):
        store = CursorStore(SQLiteBackend(str(tmp_path / "state" / "cursors.sqlite3")))
        first = Cursor(last_identifier="first", last_timestamp=at(1), seen=("f1",))

        assert await store.commit(android_commits, first, expected=Cursor.initial()) is CommitResult.SUCCESS
        assert await store.load(android_commits) == first

        second = Cursor(last_identifier="second")
        assert await store.commit(android_commits, second, expected=Cursor.initial()) is CommitResult.CONFLICT
        assert await store.commit(android_commits, second, expected=first) is CommitResult.SUCCESS
        assert await store.load(android_commits) == second

    @pytest.mark.asyncio
    async def test_seeded_cursor_commits(self, tmp_path, android_commits):
        backend = SQLiteBackend(str(tmp_path / "cursors.sqlite3"))
        await backend.put(android_commits.key, b'{ "seen": null, "last_identifier": "abc" }')
        store = CursorStore(backend)

        loaded = await store.load(android_commits)
        new = loaded.advance(commit_entry("def", 2))

        assert await store.commit(android_commits, new, expected=loaded) is CommitResult.SUCCESS
        assert await store.load(android_commits) == new

    def test_database_directory_created_on_construction(self, tmp_path):
        SQLiteBackend(str(tmp_path / "nested" / "state" / "cursors.sqlite3"))

        assert (tmp_path / "nested" / "state").is_dir()

    @pytest.mark.asyncio
    async def test_cursors_survive_new_backend_instances(self, tmp_path, android_commits, desktop_commits):
        path = str(tmp_path / "cursors.sqlite3")
        cursor = Cursor(last_identifier="abc1234")
        await CursorStore(SQLiteBackend(path)).commit(android_commits, cursor, expected=Cursor.initial())

        reopened = CursorStore(SQLiteBackend(path))
        assert await reopened.load(android_commits) == cursor
        assert await reopened.load(desktop_commits) == Cursor.initial()

    @pytest.mark.asyncio
    async def test_concurrent_commits_exactly_one_wins(self, tmp_path, android_commits):
        store = CursorStore(SQLiteBackend(str(tmp_path / "cursors.sqlite3")))
        candidates = [Cursor(last_identifier=f"run-{index}") for index in range(4)]

        results = await asyncio.gather(*[
            store.commit(android_commits, candidate, expected=Cursor.initial()) for candidate in candidates
        ])

        assert results.count(CommitResult.SUCCESS) == 1


def test_create_backend_selects_sqlite_for_a_path(tmp_path):
    assert isinstance(create_backend(str(tmp_path / "db.sqlite3")), SQLiteBackend)
    assert isinstance(create_backend(None), InMemoryBackend)
