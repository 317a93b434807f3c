"""
Per-platform conventions of the tracked Signal client repositories.

Each platform knows where its repository lives, how release posts link
back to it, which version tags are worth reporting, and where its
localized string resources and translator credits are kept.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


GITHUB_WEB_URL = "https://github.com"
GITHUB_OWNER = "signalapp"

ANDROID_AVAILABILITY_NOTICE = (
    "\n(Not Yet) Available via "
    "[Firebase App Distribution](https://community.signalusers.org/t/17538)"
)


class ResourceFormat(Enum):
    """On-disk format of a localized string resource."""
    ANDROID_XML = "android_xml"
    CHROME_JSON = "chrome_json"
    APPLE_STRINGS = "apple_strings"


@dataclass(frozen=True)
class LocaleResource:
    """A localized resource file recognized from a repository path."""
    path: str
    locale_code: str
    format: ResourceFormat


# values, values-de, values-pt-rBR
_ANDROID_STRINGS = re.compile(
    r"(?:^|/)res/values(?:-(?P<language>[a-z]{2,3})(?:-r(?P<region>[A-Z]{2}))?)?/strings\.xml$"
)
# _locales/en/messages.json, _locales/pt_BR/messages.json
_DESKTOP_MESSAGES = re.compile(
    r"(?:^|/)_locales/(?P<code>[A-Za-z]{2,3}(?:[_-][A-Za-z0-9]{2,4})*)/messages\.json$"
)
# translations/de.lproj/Localizable.strings, Base.lproj/Localizable.strings
_IOS_STRINGS = re.compile(
    r"(?:^|/)(?P<code>[A-Za-z]{2,3}(?:[_-][A-Za-z0-9]{2,4})*|Base)\.lproj/Localizable\.strings$"
)


def normalize_locale_code(code: str) -> str:
    """
    Normalize a locale code to the ``language-REGION`` form.

    ``pt_BR``, ``pt-rBR`` and ``pt-br`` all become ``pt-BR``; script
    subtags such as ``Hans`` keep their title case.
    """
    parts = [part for part in re.split(r"[_-]", code.strip()) if part]
    if not parts:
        return code
    normalized = [parts[0].lower()]
    for part in parts[1:]:
        if len(part) == 3 and part[0] == "r" and part[1:].isupper():
            part = part[1:]
        if len(part) == 4 and part.isalpha():
            normalized.append(part.title())
        else:
            normalized.append(part.upper())
    return "-".join(normalized)


class Platform(Enum):
    """Client platforms whose repositories are tracked."""
    ANDROID = "android"
    DESKTOP = "desktop"
    IOS = "ios"

    @classmethod
    def from_name(cls, name: str) -> "Platform":
        """Look up a platform by case-insensitive name."""
        try:
            return cls(name.strip().lower())
        except ValueError:
            valid = ", ".join(platform.value for platform in cls)
            raise ValueError(f"Unknown platform: {name}. Valid platforms: {valid}")

    @property
    def display_name(self) -> str:
        return {"android": "Android", "desktop": "Desktop", "ios": "iOS"}[self.value]

    @property
    def repository_name(self) -> str:
        return f"Signal-{self.display_name}"

    @property
    def default_branch(self) -> str:
        return "main"

    @property
    def availability_notice(self) -> str:
        """Text appended to the headline of a release post."""
        if self is Platform.ANDROID:
            return ANDROID_AVAILABILITY_NOTICE
        return ""

    @property
    def credit_paths(self) -> Tuple[str, ...]:
        """Repository paths of the translator credit lists."""
        return {
            Platform.ANDROID: ("app/src/main/res/raw/translators.txt",),
            Platform.DESKTOP: ("TRANSLATORS.md",),
            Platform.IOS: ("Signal/translations/TRANSLATORS.md",),
        }[self]

    def github_repository_url(self, owner: str = GITHUB_OWNER, name: Optional[str] = None) -> str:
        return f"{GITHUB_WEB_URL}/{owner}/{name or self.repository_name}"

    def github_commit_url(self, sha: str, owner: str = GITHUB_OWNER, name: Optional[str] = None) -> str:
        return f"{self.github_repository_url(owner, name)}/commit/{sha}"

    def github_comparison_url(self, old: str, new: str, owner: str = GITHUB_OWNER, name: Optional[str] = None) -> str:
        return f"{self.github_repository_url(owner, name)}/compare/{old}...{new}"

    def github_release_url(self, tag: str, owner: str = GITHUB_OWNER, name: Optional[str] = None) -> str:
        return f"{self.github_repository_url(owner, name)}/releases/tag/{tag}"

    def should_report_version(self, version) -> bool:
        """
        Apply the platform's release-report policy to a parsed version.

        Android publishes internal builds as four-component tags (the
        fourth component lands in build metadata) which are never
        reported. Desktop announces only its beta pre-releases. iOS
        reports anything without build metadata.

        Args:
            version: Parsed version exposing ``prerelease`` and ``build``

        Returns:
            True if a release with this version should be reported
        """
        if self is Platform.DESKTOP:
            return "beta" in version.prerelease
        return not version.build

    def locale_resource(self, path: str) -> Optional[LocaleResource]:
        """
        Recognize a localized string resource from a repository path.

        Args:
            path: File path relative to the repository root

        Returns:
            The resource description, or None if the path is not a
            localized resource of this platform
        """
        if self is Platform.ANDROID:
            match = _ANDROID_STRINGS.search(path)
            if not match:
                return None
            language = match.group("language") or "en"
            region = match.group("region")
            code = f"{language}-{region}" if region else language
            return LocaleResource(path, normalize_locale_code(code), ResourceFormat.ANDROID_XML)

        if self is Platform.DESKTOP:
            match = _DESKTOP_MESSAGES.search(path)
            if not match:
                return None
            return LocaleResource(path, normalize_locale_code(match.group("code")), ResourceFormat.CHROME_JSON)

        match = _IOS_STRINGS.search(path)
        if not match:
            return None
        code = match.group("code")
        code = "en" if code == "Base" else normalize_locale_code(code)
        return LocaleResource(path, code, ResourceFormat.APPLE_STRINGS)

    def is_credit_resource(self, path: str) -> bool:
        return path in self.credit_paths

    def is_tracked_resource(self, path: str) -> bool:
        """Check whether a changed file needs its contents classified."""
        return self.is_credit_resource(path) or self.locale_resource(path) is not None

    def __str__(self) -> str:
        return self.display_name


__all__ = [
    "Platform",
    "ResourceFormat",
    "LocaleResource",
    "normalize_locale_code",
]
