"""
Markdown summaries of classified changes.

Release posts follow the community forum format: a headline with the new
version, the platform's availability notice and a quoted list of every
commit since the previous reported release. Long commit lists are folded
into a ``[details]`` block.
"""

from typing import List, Optional, Sequence

from .classification.versions import version_text
from .domain.changes import (
    ClassifiedChange,
    CreditChange,
    LocaleChangeKind,
    LocaleChangeSet,
    ReleaseChange,
    ReleaseCommit,
)
from .domain.entities import RepositoryTarget
from .utils.exceptions import ClassificationError

# Commit lists longer than this are folded
MAX_UNFOLDED_COMMITS = 20

# Message lines that add noise to release posts
FILTERED_LINE_MARKERS = ("Co-Authored-By", "This reverts commit")

EMPTY_COMMIT_MESSAGE = "*Empty commit message*"

# Values longer than this are shortened in locale summaries
MAX_VALUE_LENGTH = 120


def commit_message_lines(message: str) -> List[str]:
    """Split a commit message into lines, dropping co-author and revert trailers."""
    return [
        line for line in message.split("\n")
        if not any(marker in line for marker in FILTERED_LINE_MARKERS)
    ]


def render_commit(commit: ReleaseCommit, index: int, target: RepositoryTarget) -> str:
    """
    Render one commit of a release post.

    Args:
        commit: Commit to render
        index: Zero-based position in the list
        target: Repository the commit belongs to

    Returns:
        A list item linking the commit, followed by indented detail lines
    """
    lines = commit_message_lines(commit.message)
    headline = lines[0] if lines and lines[0].strip() else EMPTY_COMMIT_MESSAGE
    commit_url = target.platform.github_commit_url(commit.sha, target.owner, target.name)

    text = f"- {headline} [[{index + 1}]]({commit_url})\n"
    if len(lines) >= 2:
        text += "\n    " + "\n    ".join(lines[1:])
    return text


def render_release(change: ReleaseChange, target: RepositoryTarget) -> str:
    """Render the forum post announcing a release."""
    platform = change.platform
    new_version = version_text(change.tag)
    headline = f"## :tada: - New Version: {new_version}{platform.availability_notice}"
    source = f"{target.owner}/{target.name}"

    if change.previous_tag is None:
        release_url = platform.github_release_url(change.tag, target.owner, target.name)
        return (
            f"{headline}\n\n"
            f"[quote]\n"
            f"First tracked release.\n\n"
            f"---\n"
            f"Gathered from [{source}]({release_url})\n"
            f"[/quote]"
        )

    commits = "\n".join(
        render_commit(commit, index, target) for index, commit in enumerate(change.commits)
    )
    count = len(change.commits)
    if count > MAX_UNFOLDED_COMMITS:
        prefix, postfix = '[details="Show commits"]\n\n', "\n\n[/details]"
    else:
        prefix, postfix = "", ""
    plural = "" if count == 1 else "s"
    comparison_url = platform.github_comparison_url(change.previous_tag, change.tag, target.owner, target.name)

    return (
        f"{headline}\n\n"
        f"[quote]\n"
        f"{count} new commit{plural} since {version_text(change.previous_tag)}:\n\n"
        f"{prefix}{commits}{postfix}\n\n"
        f"---\n"
        f"Gathered from [{source}]({comparison_url})\n"
        f"[/quote]"
    )


def _shorten(value: Optional[str]) -> str:
    text = " ".join((value or "").split())
    if len(text) > MAX_VALUE_LENGTH:
        text = text[:MAX_VALUE_LENGTH - 1] + "…"
    return text.replace("`", "'")


def render_locale_change_set(change: LocaleChangeSet, target: RepositoryTarget) -> str:
    """Render the string changes of one locale resource."""
    commit_url = target.platform.github_commit_url(change.entry_id, target.owner, target.name)
    counts = ", ".join(
        f"{change.count(kind)} {kind.value}" for kind in LocaleChangeKind
    )
    lines = [
        f"### :globe_with_meridians: {change.locale_name} ({change.locale_code})",
        f"`{change.resource_path}`: {counts} ([{change.entry_id[:10]}]({commit_url}))",
        "",
    ]
    for item in change.changes:
        if item.kind is LocaleChangeKind.ADDED:
            lines.append(f"- **added** `{item.key}`: `{_shorten(item.new_value)}`")
        elif item.kind is LocaleChangeKind.MODIFIED:
            lines.append(
                f"- **modified** `{item.key}`: `{_shorten(item.previous_value)}` → `{_shorten(item.new_value)}`"
            )
        else:
            lines.append(f"- **removed** `{item.key}`")
    return "\n".join(lines)


def render_credit_change(change: CreditChange, target: RepositoryTarget) -> str:
    """Render newly credited translators."""
    commit_url = target.platform.github_commit_url(change.entry_id, target.owner, target.name)
    plural = "" if len(change.added_names) == 1 else "s"
    lines = [
        f"### :busts_in_silhouette: New translator{plural} for {target.name}",
        f"`{change.resource_path}` ([{change.entry_id[:10]}]({commit_url}))",
        "",
    ]
    lines.extend(f"- {name}" for name in change.added_names)
    return "\n".join(lines)


def render_change(change: ClassifiedChange, target: RepositoryTarget) -> str:
    """
    Render any classified change.

    Raises:
        ClassificationError: If the object is not a classified change
    """
    if isinstance(change, ReleaseChange):
        return render_release(change, target)
    if isinstance(change, LocaleChangeSet):
        return render_locale_change_set(change, target)
    if isinstance(change, CreditChange):
        return render_credit_change(change, target)
    raise ClassificationError(f"Cannot render object of type {type(change).__name__}")


def render_changes(changes: Sequence[ClassifiedChange], target: RepositoryTarget) -> List[str]:
    return [render_change(change, target) for change in changes]
