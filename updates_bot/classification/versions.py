"""
Version tag classification.

Release tags across the tracked repositories follow slightly different
conventions: Desktop uses ``v7.30.0-beta.1``, Android tags internal builds
as ``v7.30.0.4`` and older tags may omit the patch component. Tags are
parsed strictly as Semantic Versioning 2.0 first and leniently second.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from packaging.version import Version, InvalidVersion

from ..config.platforms import Platform
from ..utils.exceptions import ClassificationError
from ..utils.logger import get_logger

logger = get_logger(__name__)

_IDENTIFIER = r"(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
SEMVER_PATTERN = re.compile(
    r"^(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    rf"(?:-(?P<prerelease>{_IDENTIFIER}(?:\.{_IDENTIFIER})*))?"
    r"(?:\+(?P<build>[0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)
_RAW_PRERELEASE = re.compile(r"^[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*$")

# packaging's normalized pre-release labels
_PRE_LABELS = {"a": "alpha", "b": "beta", "rc": "rc"}


class ParseOutcome(Enum):
    STRICT = "strict"
    LENIENT = "lenient"
    UNPARSED = "unparsed"


@dataclass(frozen=True)
class VersionInfo:
    """A parsed version. Build metadata never affects precedence."""
    major: int
    minor: int
    patch: int
    prerelease: str = ""
    build: str = ""
    tag: str = ""

    @property
    def core(self) -> Tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    @property
    def prerelease_identifiers(self) -> Tuple[str, ...]:
        return tuple(self.prerelease.split(".")) if self.prerelease else ()

    def is_newer_than(self, other: "VersionInfo", release_outranks_prerelease: bool = True) -> bool:
        return compare_versions(self, other, release_outranks_prerelease) > 0

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += f"-{self.prerelease}"
        if self.build:
            text += f"+{self.build}"
        return text


@dataclass(frozen=True)
class ClassifiedVersion:
    """Tagged result of version classification."""
    outcome: ParseOutcome
    version: Optional[VersionInfo] = None

    @property
    def parsed(self) -> bool:
        return self.outcome is not ParseOutcome.UNPARSED


def _compare_identifiers(left: str, right: str) -> int:
    left_numeric, right_numeric = left.isdigit(), right.isdigit()
    if left_numeric and right_numeric:
        return (int(left) > int(right)) - (int(left) < int(right))
    if left_numeric:
        return -1
    if right_numeric:
        return 1
    return (left > right) - (left < right)


def compare_versions(left: VersionInfo, right: VersionInfo, release_outranks_prerelease: bool = True) -> int:
    """
    Compare two versions by Semantic Versioning precedence.

    Args:
        left: First version
        right: Second version
        release_outranks_prerelease: Whether ``1.0.0`` is newer than
            ``1.0.0-beta.1`` (Semantic Versioning) or older

    Returns:
        Negative if left is older, zero if equal precedence, positive if newer
    """
    if left.core != right.core:
        return 1 if left.core > right.core else -1

    left_pre, right_pre = left.prerelease_identifiers, right.prerelease_identifiers
    if not left_pre or not right_pre:
        result = (not left_pre) - (not right_pre)
        return result if release_outranks_prerelease else -result

    for left_id, right_id in zip(left_pre, right_pre):
        result = _compare_identifiers(left_id, right_id)
        if result:
            return result
    return (len(left_pre) > len(right_pre)) - (len(left_pre) < len(right_pre))


def _parse_strict(text: str) -> Optional[VersionInfo]:
    match = SEMVER_PATTERN.match(text)
    if not match:
        return None
    return VersionInfo(
        major=int(match.group("major")),
        minor=int(match.group("minor")),
        patch=int(match.group("patch")),
        prerelease=match.group("prerelease") or "",
        build=match.group("build") or "",
        tag=text,
    )


def _parse_lenient(text: str) -> Optional[VersionInfo]:
    try:
        parsed = Version(text)
    except InvalidVersion:
        return None

    release = parsed.release + (0, 0)
    build_parts = [str(part) for part in parsed.release[3:]]
    if parsed.post is not None:
        build_parts.append(f"post.{parsed.post}")
    if parsed.local:
        build_parts.append(parsed.local)

    prerelease = ""
    if parsed.pre is not None or parsed.dev is not None:
        prerelease = _raw_prerelease(text) or _mapped_prerelease(parsed)

    return VersionInfo(
        major=release[0],
        minor=release[1],
        patch=release[2],
        prerelease=prerelease,
        build=".".join(build_parts),
        tag=text,
    )


def _raw_prerelease(text: str) -> str:
    """Keep the tag's own spelling of a hyphenated pre-release (``beta.1``, not ``b1``)."""
    body = text.split("+", 1)[0]
    if "-" not in body:
        return ""
    suffix = body.split("-", 1)[1]
    return suffix if _RAW_PRERELEASE.match(suffix) else ""


def _mapped_prerelease(parsed: Version) -> str:
    parts = []
    if parsed.pre is not None:
        label, number = parsed.pre
        parts.append(f"{_PRE_LABELS.get(label, label)}.{number}")
    if parsed.dev is not None:
        parts.append(f"dev.{parsed.dev}")
    return ".".join(parts)


class VersionClassifier:
    """Parses and orders release tags, applying per-platform report policies."""

    def __init__(self, release_outranks_prerelease: bool = True):
        self.release_outranks_prerelease = release_outranks_prerelease

    def classify(self, text: str, platform: Optional[Platform] = None) -> ClassifiedVersion:
        """
        Classify a version identifier.

        Strict Semantic Versioning is tried first. The lenient fallback
        accepts a leading ``v``, missing minor/patch components and a
        fourth build-number component, which is kept as build metadata.

        Args:
            text: Tag or version string
            platform: Platform the tag belongs to, for log context

        Returns:
            Tagged parse result; never raises for bad input
        """
        candidate = (text or "").strip()
        if not candidate:
            return ClassifiedVersion(ParseOutcome.UNPARSED)

        version = _parse_strict(candidate)
        if version is not None:
            return ClassifiedVersion(ParseOutcome.STRICT, version)

        version = _parse_lenient(candidate)
        if version is not None:
            return ClassifiedVersion(ParseOutcome.LENIENT, version)

        logger.debug(
            f"Unparseable version tag: {candidate}",
            extra={"tag": candidate, "platform": platform.value if platform else None}
        )
        return ClassifiedVersion(ParseOutcome.UNPARSED)

    def is_new_release(self, candidate: str, last_reported_tag: Optional[str], platform: Platform) -> bool:
        """
        Decide whether a tag is a release worth reporting.

        Args:
            candidate: Tag of the release being considered
            last_reported_tag: Tag of the last reported release, if any
            platform: Platform whose report policy applies

        Returns:
            True if the candidate passes the platform policy and is newer
            than the last reported release

        Raises:
            ClassificationError: If the last reported tag cannot be parsed
        """
        classified = self.classify(candidate, platform)
        if not classified.parsed:
            return False
        if not platform.should_report_version(classified.version):
            logger.debug(
                f"Release {candidate} excluded by {platform} report policy",
                extra={"tag": candidate, "platform": platform.value}
            )
            return False

        if not last_reported_tag:
            return True

        previous = self.classify(last_reported_tag, platform)
        if not previous.parsed:
            raise ClassificationError(
                f"Last reported release tag is not a version: {last_reported_tag}",
                entry_id=last_reported_tag,
            )
        return classified.version.is_newer_than(previous.version, self.release_outranks_prerelease)


def version_text(tag: str) -> str:
    """Display form of a tag: ``v1.2.3`` becomes ``1.2.3``."""
    if tag[:1] in ("v", "V"):
        return tag[1:]
    return tag


__all__ = [
    "ParseOutcome",
    "VersionInfo",
    "ClassifiedVersion",
    "VersionClassifier",
    "compare_versions",
    "version_text",
]
