"""
Async GitHub API client for the Updates Bot.

This module provides a thin async client over the GitHub REST API:
paged listings that follow ``Link`` headers, single commits, paged
comparisons and raw file contents. Transient failures are retried with
exponential backoff; anything left over surfaces as
``TransientFetchError``.
"""

import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from ..config.settings import Settings
from ..monitoring.metrics import UpdatesMetrics
from ..utils.exceptions import TransientFetchError, RetryExhaustedError
from ..utils.logger import get_logger, api_logger
from ..utils.retry import RetryConfig, retry_with_backoff

RAW_CONTENT_ACCEPT = "application/vnd.github.raw"

# Statuses worth retrying within the same run
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


@dataclass
class GitHubPage:
    """One page of a paginated listing."""
    url: str
    items: List[Any]
    next_url: Optional[str] = None
    payload: Any = None


class AsyncGitHubClient:
    """
    Async client for interacting with the GitHub API.

    Use as an async context manager; the underlying ``httpx.AsyncClient``
    lives for the duration of the block.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        limits: Optional[httpx.Limits] = None,
        metrics: Optional[UpdatesMetrics] = None,
    ):
        """
        Initialize the async GitHub client.

        Args:
            settings: Application settings (API URL, token, timeouts, retries)
            transport: Optional transport override, used by tests
            limits: Connection limits for HTTP client
            metrics: Optional collector for request counts and latencies
        """
        self.logger = get_logger("async_github_client")
        self.settings = settings
        self.api_url = settings.github_api_url
        self.headers = settings.get_github_headers()
        self.transport = transport
        self.limits = limits or httpx.Limits(max_keepalive_connections=10, max_connections=20)
        self.metrics = metrics
        self._client: Optional[httpx.AsyncClient] = None

        retry_config = RetryConfig(
            max_retries=settings.max_retries,
            initial_delay=settings.retry_delay,
            backoff_factor=settings.retry_backoff_factor,
            max_delay=30.0,
        )
        self._send = retry_with_backoff(retry_config)(self._send_once)

        self.logger.info(
            "Async GitHub client initialized",
            extra={
                "api_url": self.api_url,
                "authenticated": bool(settings.github_token),
                "timeout": settings.http_timeout,
            }
        )

    async def __aenter__(self):
        """Async context manager entry."""
        self._client = httpx.AsyncClient(
            timeout=self.settings.http_timeout,
            limits=self.limits,
            headers=self.headers,
            transport=self.transport,
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("AsyncGitHubClient must be used as an async context manager")
        return self._client

    def repo_url(self, owner: str, name: str) -> str:
        return f"{self.api_url}/repos/{owner}/{name}"

    async def _send_once(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """Issue one GET; retryable statuses raise so the retry decorator sees them."""
        api_logger.log_request("github", "GET", url, {**self.headers, **(headers or {})})
        started = time.monotonic()
        try:
            response = await self.client.get(url, params=params, headers=headers)
        except httpx.TransportError as e:
            api_logger.log_error("github", "GET", url, e)
            raise

        elapsed_ms = (time.monotonic() - started) * 1000
        api_logger.log_response("github", "GET", str(response.url), response.status_code, response_time_ms=elapsed_ms)
        if self.metrics is not None:
            self.metrics.record_api_request(response.status_code, elapsed_ms)
        if response.status_code in RETRYABLE_STATUS_CODES:
            raise TransientFetchError(
                f"GitHub returned {response.status_code} for {url}",
                status_code=response.status_code,
                url=url,
            )
        return response

    async def _get(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        allow_not_found: bool = False,
    ) -> Optional[httpx.Response]:
        """
        GET with retries.

        Returns:
            The successful response, or None for a 404 when allowed

        Raises:
            TransientFetchError: On transport errors or non-success statuses
        """
        try:
            response = await self._send(url, params=params, headers=headers)
        except RetryExhaustedError as e:
            last_error = e.last_error
            status_code = getattr(last_error, "details", {}).get("status_code") if last_error else None
            raise TransientFetchError(
                f"GitHub request failed after retries: {last_error}",
                status_code=status_code,
                url=url,
            ) from e
        except httpx.TransportError as e:
            raise TransientFetchError(f"GitHub request failed: {e}", url=url) from e

        if response.status_code == 404 and allow_not_found:
            return None
        if not response.is_success:
            self.logger.error(
                f"GitHub API error: {response.status_code}",
                extra={"url": url, "status_code": response.status_code}
            )
            raise TransientFetchError(
                f"GitHub returned {response.status_code} for {url}",
                status_code=response.status_code,
                url=url,
            )
        return response

    @staticmethod
    def _decode_json(response: httpx.Response, url: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise TransientFetchError(f"GitHub returned invalid JSON: {e}", url=url) from e

    async def get_page(self, url: str, params: Optional[Dict[str, Any]] = None) -> GitHubPage:
        """
        Fetch one page of a list endpoint.

        Args:
            url: Page URL; a ``next`` link already carries its parameters
            params: Query parameters for the first page

        Returns:
            The page items and the ``rel="next"`` URL, if any

        Raises:
            TransientFetchError: If the page cannot be fetched or is not a list
        """
        response = await self._get(url, params=params)
        payload = self._decode_json(response, url)
        if not isinstance(payload, list):
            raise TransientFetchError("Expected a JSON list from a paginated endpoint", url=url)
        return GitHubPage(url=url, items=payload, next_url=response.links.get("next", {}).get("url"))

    async def get_commit(self, owner: str, name: str, sha: str) -> Dict[str, Any]:
        """
        Fetch a single commit including its changed files.

        GitHub pages the file list of large commits; every page is
        followed and the files are concatenated onto the first payload.

        Raises:
            TransientFetchError: If a page cannot be fetched or is not an object
        """
        url = f"{self.repo_url(owner, name)}/commits/{sha}"
        commit: Optional[Dict[str, Any]] = None
        files: List[Any] = []

        while url:
            response = await self._get(url)
            payload = self._decode_json(response, url)
            if not isinstance(payload, dict):
                raise TransientFetchError("Expected a JSON object from the commit endpoint", url=url)
            if commit is None:
                commit = payload
            files.extend(payload.get("files") or [])
            url = response.links.get("next", {}).get("url")

        commit["files"] = files
        return commit

    async def get_comparison_page(self, url: str, params: Optional[Dict[str, Any]] = None) -> GitHubPage:
        """Fetch one page of a comparison; items are the page's commits."""
        response = await self._get(url, params=params)
        payload = self._decode_json(response, url)
        if not isinstance(payload, dict):
            raise TransientFetchError("Expected a JSON object from the compare endpoint", url=url)
        return GitHubPage(
            url=url,
            items=payload.get("commits") or [],
            next_url=response.links.get("next", {}).get("url"),
            payload=payload,
        )

    async def get_file_content(self, owner: str, name: str, path: str, ref: str) -> Optional[str]:
        """
        Fetch raw file contents at a ref.

        Returns:
            The decoded file text, or None if the file does not exist at that ref
        """
        url = f"{self.repo_url(owner, name)}/contents/{quote(path)}"
        response = await self._get(
            url,
            params={"ref": ref},
            headers={"Accept": RAW_CONTENT_ACCEPT},
            allow_not_found=True,
        )
        if response is None:
            return None
        return response.text
