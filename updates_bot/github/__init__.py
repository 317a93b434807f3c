"""GitHub REST API access: client, payload models and the paginated fetcher."""

from .client import AsyncGitHubClient, GitHubPage
from .fetcher import PaginatedFetcher
from .models import Comparison, CommitPayload, ReleasePayload

__all__ = [
    "AsyncGitHubClient",
    "GitHubPage",
    "PaginatedFetcher",
    "Comparison",
    "CommitPayload",
    "ReleasePayload",
]
