"""
Tests for the GitHub client and the paginated history fetcher.

Requests are served by ``httpx.MockTransport`` from an in-memory fake of
the GitHub REST API that paginates with ``Link`` headers.
"""

import logging
from typing import Any, Dict, List, Tuple

import httpx
import pytest

from updates_bot.domain.entities import Cursor
from updates_bot.github.client import RAW_CONTENT_ACCEPT, AsyncGitHubClient
from updates_bot.github.fetcher import PaginatedFetcher
from updates_bot.monitoring.metrics import UpdatesMetrics
from updates_bot.utils.exceptions import TransientFetchError

from fixtures import at, commit_payload, release_payload

API = "https://api.github.test"
ANDROID = "/repos/signalapp/Signal-Android"
IOS = "/repos/signalapp/Signal-iOS"


def sha(number: int) -> str:
    return f"c{number}" + "0" * 9


class FakeGitHubAPI:
    """Serves paged listings, single objects and scripted failures."""

    def __init__(self):
        self.pages: Dict[Tuple[str, int], Any] = {}
        self.objects: Dict[str, httpx.Response] = {}
        self.failures: Dict[str, List[int]] = {}
        self.requests: List[httpx.Request] = []

    def add_listing(self, path: str, *pages: Any) -> None:
        for number, body in enumerate(pages, start=1):
            self.pages[(path, number)] = body

    def add_commit_details(self, numbers, files=None) -> None:
        for number in numbers:
            self.objects[f"{ANDROID}/commits/{sha(number)}"] = httpx.Response(
                200, json=commit_payload(sha(number), f"Commit {number}", number, files=files or [])
            )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        scripted = self.failures.get(path)
        if scripted:
            return httpx.Response(scripted.pop(0), json={"message": "Server Error"})

        if path in self.objects:
            return self.objects[path]

        page = int(request.url.params.get("page", "1"))
        if (path, page) in self.pages:
            headers = {}
            if (path, page + 1) in self.pages:
                headers["Link"] = f'<{API}{path}?page={page + 1}>; rel="next", <{API}{path}?page=1>; rel="first"'
            return httpx.Response(200, json=self.pages[(path, page)], headers=headers)

        return httpx.Response(404, json={"message": "Not Found"})

    def requested_pages(self, path: str) -> List[int]:
        return [
            int(request.url.params.get("page", "1"))
            for request in self.requests
            if request.url.path == path
        ]


def commit_listing(*numbers: int) -> List[dict]:
    return [commit_payload(sha(number), f"Commit {number}", number) for number in numbers]


@pytest.fixture
def api():
    return FakeGitHubAPI()


@pytest.fixture
def make_client(settings, api):
    def factory(**kwargs):
        return AsyncGitHubClient(settings, transport=httpx.MockTransport(api.handler), **kwargs)
    return factory


async def collect(fetcher, target, cursor=None, skipped=None):
    return [entry async for entry in fetcher.history_since(target, cursor or Cursor.initial(), skipped)]


class TestCommitHistory:
    """Walking commit listings."""

    @pytest.mark.asyncio
    async def test_walks_every_page_and_yields_oldest_first(self, api, make_client, android_commits):
        api.add_listing(f"{ANDROID}/commits", commit_listing(5, 4), commit_listing(3, 2), commit_listing(1))
        api.add_commit_details(range(1, 6), files=[
            {"filename": "app/src/main/res/values-de/strings.xml", "status": "modified"},
        ])

        async with make_client() as client:
            entries = await collect(PaginatedFetcher(client, per_page=2, max_pages=3), android_commits)

        assert [entry.identifier for entry in entries] == [sha(n) for n in (1, 2, 3, 4, 5)]
        assert entries[0].files[0].filename == "app/src/main/res/values-de/strings.xml"
        assert entries[0].parent == f"parent-{sha(1)}"

        first_listing = next(r for r in api.requests if r.url.path == f"{ANDROID}/commits")
        assert first_listing.url.params["sha"] == "main"
        assert first_listing.url.params["per_page"] == "2"

    @pytest.mark.asyncio
    async def test_commit_files_are_collected_across_pages(self, api, make_client, android_commits):
        detail = f"{ANDROID}/commits/{sha(1)}"
        api.add_listing(f"{ANDROID}/commits", commit_listing(1))
        api.add_listing(
            detail,
            commit_payload(sha(1), "Commit 1", 1, files=[
                {"filename": f"other/{index}.txt", "status": "modified"} for index in range(300)
            ]),
            commit_payload(sha(1), "Commit 1", 1, files=[
                {"filename": "app/src/main/res/values-de/strings.xml", "status": "modified"},
            ]),
        )

        async with make_client() as client:
            entries = await collect(PaginatedFetcher(client), android_commits)

        filenames = [change.filename for change in entries[0].files]
        assert len(filenames) == 301
        assert filenames[-1] == "app/src/main/res/values-de/strings.xml"
        assert api.requested_pages(detail) == [1, 2]

    @pytest.mark.asyncio
    async def test_stops_at_cursor_without_fetching_further_pages(self, api, make_client, android_commits):
        api.add_listing(f"{ANDROID}/commits", commit_listing(5, 4), commit_listing(3, 2), commit_listing(1))
        api.add_commit_details(range(1, 6))
        cursor = Cursor(last_identifier=sha(3), last_timestamp=at(3))

        async with make_client() as client:
            entries = await collect(PaginatedFetcher(client, per_page=2, max_pages=10), android_commits, cursor)

        assert [entry.identifier for entry in entries] == [sha(4), sha(5)]
        assert api.requested_pages(f"{ANDROID}/commits") == [1, 2]

    @pytest.mark.asyncio
    async def test_timestamp_bound_applies_when_identifier_vanished(self, api, make_client, android_commits):
        # the cursor commit was force-pushed away; older history is still bounded by time
        api.add_listing(f"{ANDROID}/commits", commit_listing(5, 4), commit_listing(2, 1))
        api.add_commit_details(range(1, 6))
        cursor = Cursor(last_identifier="rewritten", last_timestamp=at(3))

        async with make_client() as client:
            entries = await collect(PaginatedFetcher(client, per_page=2), android_commits, cursor)

        assert [entry.identifier for entry in entries] == [sha(4), sha(5)]

    @pytest.mark.asyncio
    async def test_page_bound_truncates_history(self, api, make_client, android_commits, caplog):
        api.add_listing(f"{ANDROID}/commits", commit_listing(5, 4), commit_listing(3, 2), commit_listing(1))
        api.add_commit_details(range(1, 6))

        with caplog.at_level(logging.WARNING, logger="updates_bot.github.fetcher"):
            async with make_client() as client:
                entries = await collect(PaginatedFetcher(client, per_page=2, max_pages=1), android_commits)

        assert [entry.identifier for entry in entries] == [sha(4), sha(5)]
        assert api.requested_pages(f"{ANDROID}/commits") == [1]
        assert "History truncated at page limit" in caplog.text

    @pytest.mark.asyncio
    async def test_entries_shifted_between_pages_are_yielded_once(self, api, make_client, android_commits):
        # a new commit landed after page 1 was read, pushing c4 onto page 2
        api.add_listing(f"{ANDROID}/commits", commit_listing(5, 4), commit_listing(4, 3))
        api.add_commit_details(range(3, 6))

        async with make_client() as client:
            entries = await collect(PaginatedFetcher(client, per_page=2), android_commits)

        assert [entry.identifier for entry in entries] == [sha(3), sha(4), sha(5)]

    @pytest.mark.asyncio
    async def test_malformed_entries_are_skipped_and_recorded(self, api, make_client, android_commits):
        broken = {"sha": sha(4), "parents": []}
        api.add_listing(f"{ANDROID}/commits", [commit_listing(5)[0], broken, commit_listing(3)[0]])
        api.add_commit_details([3, 5])
        skipped = []

        async with make_client() as client:
            entries = await collect(PaginatedFetcher(client), android_commits, skipped=skipped)

        assert [entry.identifier for entry in entries] == [sha(3), sha(5)]
        assert len(skipped) == 1
        assert skipped[0].details["entry_id"] == sha(4)
        assert "commit" in skipped[0].details["missing_fields"]


class TestReleaseHistory:
    """Walking release listings."""

    @pytest.mark.asyncio
    async def test_drafts_are_ignored(self, api, make_client, ios_releases):
        api.add_listing(f"{IOS}/releases", [
            release_payload("7.3.0", 30, draft=True),
            release_payload("7.2.0", 20, prerelease=True),
            release_payload(" 7.1.0 ", 10),
        ])

        async with make_client() as client:
            entries = await collect(PaginatedFetcher(client), ios_releases)

        assert [entry.identifier for entry in entries] == ["7.1.0", "7.2.0"]
        assert entries[1].prerelease
        listing = next(r for r in api.requests if r.url.path == f"{IOS}/releases")
        assert "sha" not in listing.url.params


class TestFailures:
    """Transient failures surface as TransientFetchError."""

    @pytest.mark.asyncio
    async def test_transient_statuses_are_retried(self, api, make_client, ios_releases):
        api.add_listing(f"{IOS}/releases", [release_payload("7.1.0", 10)])
        api.failures[f"{IOS}/releases"] = [502, 503]

        async with make_client() as client:
            entries = await collect(PaginatedFetcher(client), ios_releases)

        assert [entry.identifier for entry in entries] == ["7.1.0"]
        assert len(api.requests) == 3

    @pytest.mark.asyncio
    async def test_persistent_server_errors_raise_after_retries(self, api, make_client, ios_releases):
        api.failures[f"{IOS}/releases"] = [500, 500, 500, 500]

        async with make_client() as client:
            with pytest.raises(TransientFetchError) as exc_info:
                await collect(PaginatedFetcher(client), ios_releases)

        assert exc_info.value.details["status_code"] == 500
        assert len(api.requests) == 3

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self, api, make_client, ios_releases):
        async with make_client() as client:
            with pytest.raises(TransientFetchError) as exc_info:
                await collect(PaginatedFetcher(client), ios_releases)

        assert exc_info.value.details["status_code"] == 404
        assert len(api.requests) == 1

    @pytest.mark.asyncio
    async def test_network_errors_raise(self, settings, ios_releases):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with AsyncGitHubClient(settings, transport=httpx.MockTransport(refuse)) as client:
            with pytest.raises(TransientFetchError):
                await collect(PaginatedFetcher(client), ios_releases)


class TestCompare:
    """Paged comparisons between two tags."""

    @pytest.mark.asyncio
    async def test_collects_every_page(self, api, make_client, ios_releases):
        path = f"{IOS}/compare/7.0.0...7.1.0"
        api.add_listing(
            path,
            {"total_commits": 3, "commits": commit_listing(1, 2), "files": [{"filename": "a.swift"}]},
            {"total_commits": 3, "commits": commit_listing(3)},
        )

        async with make_client() as client:
            result = await PaginatedFetcher(client).compare(ios_releases, "7.0.0", "7.1.0")

        assert result.total_commits == 3
        assert [commit.sha for commit in result.commits] == [sha(1), sha(2), sha(3)]
        assert [item.filename for item in result.files] == ["a.swift"]

    @pytest.mark.asyncio
    async def test_incomplete_comparison_raises(self, api, make_client, ios_releases):
        api.add_listing(f"{IOS}/compare/7.0.0...7.1.0", {"total_commits": 5, "commits": commit_listing(1, 2)})

        async with make_client() as client:
            with pytest.raises(TransientFetchError) as exc_info:
                await PaginatedFetcher(client).compare(ios_releases, "7.0.0", "7.1.0")

        assert exc_info.value.details["repository"] == ios_releases.key

    @pytest.mark.asyncio
    async def test_malformed_comparison_raises(self, api, make_client, ios_releases):
        api.add_listing(f"{IOS}/compare/7.0.0...7.1.0", {"commits": []})

        async with make_client() as client:
            with pytest.raises(TransientFetchError):
                await PaginatedFetcher(client).compare(ios_releases, "7.0.0", "7.1.0")


class TestFileContent:
    """Raw file contents at a ref."""

    @pytest.mark.asyncio
    async def test_returns_text_and_asks_for_raw_media_type(self, api, make_client, android_commits):
        path = "app/src/main/res/values-de/strings.xml"
        api.objects[f"{ANDROID}/contents/{path}"] = httpx.Response(200, text="<resources/>")

        async with make_client() as client:
            text = await PaginatedFetcher(client).file_content(android_commits, path, sha(1))

        assert text == "<resources/>"
        request = api.requests[-1]
        assert request.headers["Accept"] == RAW_CONTENT_ACCEPT
        assert request.url.params["ref"] == sha(1)

    @pytest.mark.asyncio
    async def test_missing_file_is_none(self, make_client, android_commits):
        async with make_client() as client:
            assert await PaginatedFetcher(client).file_content(android_commits, "missing.xml", sha(1)) is None


class TestClient:
    """Headers, lifecycle and metrics."""

    @pytest.mark.asyncio
    async def test_token_is_sent_as_bearer(self, settings, api, ios_releases):
        settings.github_token = "ghp_" + "a" * 36
        api.add_listing(f"{IOS}/releases", [])

        async with AsyncGitHubClient(settings, transport=httpx.MockTransport(api.handler)) as client:
            await collect(PaginatedFetcher(client), ios_releases)

        assert api.requests[0].headers["Authorization"] == f"Bearer {settings.github_token}"
        assert api.requests[0].headers["X-GitHub-Api-Version"] == "2022-11-28"

    @pytest.mark.asyncio
    async def test_requests_are_counted(self, api, make_client, ios_releases):
        api.add_listing(f"{IOS}/releases", [])
        api.failures[f"{IOS}/releases"] = [503]
        metrics = UpdatesMetrics()

        async with make_client(metrics=metrics) as client:
            await collect(PaginatedFetcher(client), ios_releases)

        sample = metrics.registry.get_sample_value
        assert sample("updates_bot_github_requests_total", {"status_code": "200"}) == 1
        assert sample("updates_bot_github_requests_total", {"status_code": "503"}) == 1

    def test_client_requires_context_manager(self, settings):
        with pytest.raises(RuntimeError):
            AsyncGitHubClient(settings).client
