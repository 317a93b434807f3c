"""
Core entities shared by the fetcher, the classifiers and the cursor store.
"""

import json
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple, Iterable, List

from ..config.platforms import Platform

DEFAULT_HOST = "github.com"


class HistoryKind(Enum):
    """Which history of a repository is walked."""
    COMMITS = "commits"
    RELEASES = "releases"


@dataclass(frozen=True)
class RepositoryTarget:
    """
    One tracked history of one upstream repository.

    The key identifies the cursor, so two targets with the same key are
    the same target.
    """
    owner: str
    name: str
    branch: str
    platform: Platform
    kind: HistoryKind = HistoryKind.COMMITS
    host: str = DEFAULT_HOST

    @property
    def key(self) -> str:
        return f"{self.host}/{self.owner}/{self.name}@{self.branch}:{self.kind.value}"

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @classmethod
    def parse(cls, definition: str) -> "RepositoryTarget":
        """
        Parse a target definition of the form ``owner/name@branch:platform:kind``.

        The ``:kind`` part is optional and defaults to commits.

        Raises:
            ValueError: If the definition is malformed
        """
        text = definition.strip()
        try:
            repository, rest = text.split("@", 1)
            owner, name = repository.split("/", 1)
            parts = rest.split(":")
            branch, platform_name = parts[0], parts[1]
            kind_name = parts[2] if len(parts) > 2 else HistoryKind.COMMITS.value
            if len(parts) > 3:
                raise ValueError("too many ':' separated parts")
        except (ValueError, IndexError):
            raise ValueError(
                f"Invalid target definition: {definition!r} "
                "(expected owner/name@branch:platform[:kind])"
            )

        if not owner or not name or not branch:
            raise ValueError(f"Invalid target definition: {definition!r} (empty component)")

        try:
            kind = HistoryKind(kind_name.strip().lower())
        except ValueError:
            raise ValueError(f"Invalid history kind in target {definition!r}: {kind_name}")

        return cls(
            owner=owner.strip(),
            name=name.strip(),
            branch=branch.strip(),
            platform=Platform.from_name(platform_name),
            kind=kind,
        )

    def __str__(self) -> str:
        return self.key


def default_targets() -> List[RepositoryTarget]:
    """Commit and release histories of the Signal Android, Desktop and iOS clients."""
    targets = []
    for platform in Platform:
        for kind in HistoryKind:
            targets.append(RepositoryTarget(
                owner="signalapp",
                name=platform.repository_name,
                branch=platform.default_branch,
                platform=platform,
                kind=kind,
            ))
    return targets


@dataclass(frozen=True)
class FileChange:
    """A file touched by a commit."""
    filename: str
    status: str
    previous_filename: Optional[str] = None


@dataclass(frozen=True)
class HistoryEntry:
    """
    One commit or release read from the remote history.

    For releases the identifier is the tag name and the message holds the
    release notes.
    """
    identifier: str
    timestamp: datetime
    author: str = ""
    message: str = ""
    parent: Optional[str] = None
    files: Tuple[FileChange, ...] = ()
    prerelease: bool = False

    @property
    def short_id(self) -> str:
        return self.identifier[:10]


@dataclass(frozen=True)
class Cursor:
    """
    Resume point of one repository target.

    ``seen`` holds the fingerprints already reported, oldest first.
    ``last_release_tag`` is the last release that was actually reported,
    which anchors version precedence and commit comparisons.
    """
    last_identifier: Optional[str] = None
    last_timestamp: Optional[datetime] = None
    last_release_tag: Optional[str] = None
    seen: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def initial(cls) -> "Cursor":
        return cls()

    @property
    def is_initial(self) -> bool:
        return self.last_identifier is None and self.last_timestamp is None

    def has_seen(self, fingerprint: str) -> bool:
        return fingerprint in self.seen

    def advance(
        self,
        last_entry: Optional[HistoryEntry],
        fingerprints: Iterable[str] = (),
        release_tag: Optional[str] = None,
        window_size: Optional[int] = None,
    ) -> "Cursor":
        """
        Build the cursor that follows this one after a pass.

        Args:
            last_entry: Newest entry processed, or None if nothing was fetched
            fingerprints: Fingerprints emitted during the pass, in order
            release_tag: Newly reported release tag, if any
            window_size: Maximum number of fingerprints kept

        Returns:
            New cursor; this one is left unchanged
        """
        seen = list(self.seen)
        for fingerprint in fingerprints:
            if fingerprint not in seen:
                seen.append(fingerprint)

        advanced = replace(
            self,
            seen=tuple(seen),
            last_release_tag=release_tag or self.last_release_tag,
        )
        if last_entry is not None:
            advanced = replace(
                advanced,
                last_identifier=last_entry.identifier,
                last_timestamp=last_entry.timestamp,
            )
        if window_size is not None:
            advanced = advanced.bounded(window_size)
        return advanced

    def bounded(self, window_size: int) -> "Cursor":
        """Evict the oldest fingerprints beyond the window size."""
        if window_size <= 0:
            return replace(self, seen=())
        if len(self.seen) <= window_size:
            return self
        return replace(self, seen=self.seen[-window_size:])

    def to_dict(self) -> dict:
        return {
            "last_identifier": self.last_identifier,
            "last_timestamp": self.last_timestamp.isoformat() if self.last_timestamp else None,
            "last_release_tag": self.last_release_tag,
            "seen": list(self.seen),
        }

    def serialize(self) -> bytes:
        """Canonical serialization: equal cursors produce equal bytes."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":")).encode("utf-8")

    @classmethod
    def deserialize(cls, data: bytes) -> "Cursor":
        """
        Rebuild a cursor from its serialized form.

        Raises:
            ValueError: If the data is not a valid serialized cursor
        """
        payload = json.loads(data.decode("utf-8"))
        if not isinstance(payload, dict):
            raise ValueError("cursor payload is not an object")

        seen = payload.get("seen") or []
        if not isinstance(seen, list) or not all(isinstance(item, str) for item in seen):
            raise ValueError("cursor 'seen' must be a list of strings")

        timestamp = payload.get("last_timestamp")
        return cls(
            last_identifier=payload.get("last_identifier"),
            last_timestamp=datetime.fromisoformat(timestamp) if timestamp else None,
            last_release_tag=payload.get("last_release_tag"),
            seen=tuple(seen),
        )
