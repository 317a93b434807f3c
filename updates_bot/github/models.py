"""
Pydantic models for GitHub REST API payloads.

Only the fields the bot reads are declared; everything else in the
payloads is ignored. Conversion helpers turn validated payloads into
domain history entries.

GitHub REST API documentation:
https://docs.github.com/en/rest/commits/commits
https://docs.github.com/en/rest/releases/releases
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..domain.entities import FileChange, HistoryEntry
from ..utils.exceptions import MalformedEntryError


class GitHubModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class GitActor(GitHubModel):
    """Author or committer block of a git commit."""

    name: str = Field("", description="Actor display name")
    email: str | None = Field(None, description="Actor email address")
    date: datetime = Field(..., description="Authoring or commit time")


class GitCommit(GitHubModel):
    message: str = Field("", description="Full commit message")
    author: GitActor | None = Field(None, description="Commit author")
    committer: GitActor = Field(..., description="Commit committer")


class ParentRef(GitHubModel):
    sha: str = Field(..., description="Parent commit SHA")


class CommitFile(GitHubModel):
    """A file touched by a commit or a comparison."""

    filename: str = Field(..., description="Path of the file")
    status: str = Field("modified", description="added, removed, modified, renamed, ...")
    previous_filename: str | None = Field(None, description="Previous path for renames")

    def to_file_change(self) -> FileChange:
        return FileChange(
            filename=self.filename,
            status=self.status,
            previous_filename=self.previous_filename,
        )


class CommitPayload(GitHubModel):
    """
    Item of ``GET /repos/{owner}/{repo}/commits`` or the single-commit
    response (which additionally lists files).
    """

    sha: str = Field(..., min_length=7, description="Commit SHA")
    commit: GitCommit = Field(..., description="Git commit data")
    parents: list[ParentRef] = Field(default_factory=list, description="Parent commits")
    files: list[CommitFile] | None = Field(None, description="Changed files (single-commit response only)")

    @property
    def timestamp(self) -> datetime:
        return self.commit.committer.date

    def to_history_entry(self) -> HistoryEntry:
        author = self.commit.author.name if self.commit.author else self.commit.committer.name
        return HistoryEntry(
            identifier=self.sha,
            timestamp=self.timestamp,
            author=author,
            message=self.commit.message,
            parent=self.parents[0].sha if self.parents else None,
            files=tuple(item.to_file_change() for item in self.files or ()),
        )


class ReleaseAuthor(GitHubModel):
    login: str = Field("", description="Account login")


class ReleasePayload(GitHubModel):
    """Item of ``GET /repos/{owner}/{repo}/releases``."""

    tag_name: str = Field(..., min_length=1, description="Release tag")
    name: str | None = Field(None, description="Release title")
    body: str | None = Field(None, description="Release notes")
    draft: bool = Field(False, description="Whether the release is a draft")
    prerelease: bool = Field(False, description="Whether the release is marked pre-release")
    created_at: datetime = Field(..., description="Creation time")
    published_at: datetime | None = Field(None, description="Publication time")
    author: ReleaseAuthor | None = Field(None, description="Release author")

    @field_validator("tag_name")
    @classmethod
    def strip_tag(cls, value: str) -> str:
        return value.strip()

    @property
    def timestamp(self) -> datetime:
        return self.published_at or self.created_at

    def to_history_entry(self) -> HistoryEntry:
        return HistoryEntry(
            identifier=self.tag_name,
            timestamp=self.timestamp,
            author=self.author.login if self.author else "",
            message=self.body or "",
            prerelease=self.prerelease,
        )


class ComparisonPayload(GitHubModel):
    """One page of ``GET /repos/{owner}/{repo}/compare/{base}...{head}``."""

    total_commits: int = Field(..., ge=0, description="Total commits in the whole comparison")
    commits: list[CommitPayload] = Field(default_factory=list, description="Commits on this page")
    files: list[CommitFile] | None = Field(None, description="Changed files (first page only)")


class Comparison(GitHubModel):
    """A complete comparison assembled from every page."""

    total_commits: int
    commits: list[CommitPayload] = Field(default_factory=list)
    files: list[CommitFile] = Field(default_factory=list)


def _missing_fields(error: ValidationError) -> list[str]:
    return [".".join(str(part) for part in item["loc"]) for item in error.errors()]


def parse_commit(item: Any) -> CommitPayload:
    """
    Validate a raw commit payload.

    Raises:
        MalformedEntryError: If required fields are missing or invalid
    """
    try:
        return CommitPayload.model_validate(item)
    except ValidationError as e:
        entry_id = item.get("sha") if isinstance(item, dict) else None
        raise MalformedEntryError(
            f"Malformed commit payload: {e.error_count()} invalid field(s)",
            entry_id=entry_id,
            missing_fields=_missing_fields(e),
        )


def parse_release(item: Any) -> ReleasePayload:
    """
    Validate a raw release payload.

    Raises:
        MalformedEntryError: If required fields are missing or invalid
    """
    try:
        return ReleasePayload.model_validate(item)
    except ValidationError as e:
        entry_id = item.get("tag_name") if isinstance(item, dict) else None
        raise MalformedEntryError(
            f"Malformed release payload: {e.error_count()} invalid field(s)",
            entry_id=entry_id,
            missing_fields=_missing_fields(e),
        )
