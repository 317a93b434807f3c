"""
Localized string diffing.

Resources are parsed into flat ``key -> value`` mappings and two
snapshots of the same locale are compared key by key. Every tracked
platform stores its strings in a different format:

- Android: ``res/values-<qualifier>/strings.xml``
- Desktop: ``_locales/<code>/messages.json``
- iOS: ``<code>.lproj/Localizable.strings``
"""

import json
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

from ..config.platforms import Platform, ResourceFormat
from ..domain.changes import LocaleChange, LocaleChangeKind, LocaleChangeSet
from ..domain.entities import HistoryEntry
from ..utils.exceptions import ClassificationError
from ..utils.logger import get_logger

logger = get_logger(__name__)


LOCALE_NAMES: Mapping[str, str] = {
    "af": "Afrikaans",
    "ar": "Arabic",
    "az": "Azerbaijani",
    "be": "Belarusian",
    "bg": "Bulgarian",
    "bn": "Bengali",
    "bs": "Bosnian",
    "ca": "Catalan",
    "cs": "Czech",
    "cy": "Welsh",
    "da": "Danish",
    "de": "German",
    "el": "Greek",
    "en": "English",
    "en-GB": "English (United Kingdom)",
    "eo": "Esperanto",
    "es": "Spanish",
    "es-419": "Spanish (Latin America)",
    "et": "Estonian",
    "eu": "Basque",
    "fa": "Persian",
    "fi": "Finnish",
    "fil": "Filipino",
    "fr": "French",
    "ga": "Irish",
    "gl": "Galician",
    "gu": "Gujarati",
    "he": "Hebrew",
    "hi": "Hindi",
    "hr": "Croatian",
    "hu": "Hungarian",
    "hy": "Armenian",
    "id": "Indonesian",
    "in": "Indonesian",
    "is": "Icelandic",
    "it": "Italian",
    "iw": "Hebrew",
    "ja": "Japanese",
    "ka": "Georgian",
    "kk": "Kazakh",
    "km": "Khmer",
    "kn": "Kannada",
    "ko": "Korean",
    "ky": "Kyrgyz",
    "lt": "Lithuanian",
    "lv": "Latvian",
    "mk": "Macedonian",
    "ml": "Malayalam",
    "mr": "Marathi",
    "ms": "Malay",
    "my": "Burmese",
    "nb": "Norwegian Bokmål",
    "nl": "Dutch",
    "pa": "Punjabi",
    "pl": "Polish",
    "pt": "Portuguese",
    "pt-BR": "Portuguese (Brazil)",
    "pt-PT": "Portuguese (Portugal)",
    "ro": "Romanian",
    "ru": "Russian",
    "sk": "Slovak",
    "sl": "Slovenian",
    "sq": "Albanian",
    "sr": "Serbian",
    "sv": "Swedish",
    "sw": "Swahili",
    "ta": "Tamil",
    "te": "Telugu",
    "th": "Thai",
    "tl": "Tagalog",
    "tr": "Turkish",
    "ug": "Uyghur",
    "uk": "Ukrainian",
    "ur": "Urdu",
    "vi": "Vietnamese",
    "yue": "Cantonese",
    "zh-CN": "Chinese (Simplified)",
    "zh-HK": "Chinese (Hong Kong)",
    "zh-Hans": "Chinese (Simplified)",
    "zh-Hant": "Chinese (Traditional)",
    "zh-TW": "Chinese (Traditional)",
}


def locale_name(code: str) -> str:
    """Display name of a locale code; unknown codes are returned unchanged."""
    return LOCALE_NAMES.get(code, code)


# ============================================================================
# Resource parsers
# ============================================================================

_APPLE_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_APPLE_LINE_COMMENT = re.compile(r"^\s*//.*$", re.MULTILINE)
_APPLE_ENTRY = re.compile(r'"((?:[^"\\]|\\.)*)"\s*=\s*"((?:[^"\\]|\\.)*)"\s*;')
_APPLE_ESCAPES = {'\\"': '"', "\\\\": "\\", "\\n": "\n", "\\t": "\t"}


def parse_android_strings(text: str) -> Dict[str, str]:
    """
    Parse an Android ``strings.xml`` resource.

    Only ``<string name="...">`` elements are read; strings marked
    ``translatable="false"`` are skipped. Inline markup such as
    ``<xliff:g>`` contributes its text.

    Raises:
        ClassificationError: If the document is not well-formed
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        raise ClassificationError(f"Invalid strings.xml: {e}")

    strings: Dict[str, str] = {}
    for element in root.iter("string"):
        name = element.get("name")
        if not name or element.get("translatable") == "false":
            continue
        strings[name] = "".join(element.itertext()).strip()
    return strings


def parse_chrome_messages(text: str) -> Dict[str, str]:
    """
    Parse a Desktop ``messages.json`` resource of the form
    ``{"key": {"message": "...", "description": "..."}}``.

    Raises:
        ClassificationError: If the document is not a valid message catalog
    """
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise ClassificationError(f"Invalid messages.json: {e}")

    if not isinstance(payload, dict):
        raise ClassificationError("Invalid messages.json: top level is not an object")

    strings: Dict[str, str] = {}
    for key, entry in payload.items():
        if key == "smartling":
            # translation tooling metadata, not a message
            continue
        if not isinstance(entry, dict) or not isinstance(entry.get("message"), str):
            raise ClassificationError(f"Invalid messages.json: entry {key!r} has no message")
        strings[key] = entry["message"]
    return strings


def _unescape_apple(value: str) -> str:
    return re.sub(r'\\["\\nt]', lambda match: _APPLE_ESCAPES[match.group(0)], value)


def parse_apple_strings(text: str) -> Dict[str, str]:
    """
    Parse an iOS ``Localizable.strings`` resource (``"key" = "value";``).

    Raises:
        ClassificationError: If anything other than entries and comments
            is found
    """
    body = _APPLE_LINE_COMMENT.sub("", _APPLE_BLOCK_COMMENT.sub("", text.lstrip("\ufeff")))

    strings: Dict[str, str] = {}
    for match in _APPLE_ENTRY.finditer(body):
        strings[_unescape_apple(match.group(1))] = _unescape_apple(match.group(2))

    residue = _APPLE_ENTRY.sub("", body).strip()
    if residue:
        raise ClassificationError(f"Invalid Localizable.strings near: {residue[:40]!r}")
    return strings


_PARSERS = {
    ResourceFormat.ANDROID_XML: parse_android_strings,
    ResourceFormat.CHROME_JSON: parse_chrome_messages,
    ResourceFormat.APPLE_STRINGS: parse_apple_strings,
}


def parse_resource(resource_format: ResourceFormat, text: Optional[str]) -> Dict[str, str]:
    """Parse a resource; a missing resource is an empty mapping."""
    if text is None:
        return {}
    return _PARSERS[resource_format](text)


# ============================================================================
# Diffing
# ============================================================================

@dataclass(frozen=True)
class ResourceSnapshot:
    """
    Contents of one file before and after a commit.

    ``before`` is None for an added file and ``after`` is None for a
    removed one.
    """
    path: str
    before: Optional[str] = None
    after: Optional[str] = None


def diff(locale_code: str, before: Mapping[str, str], after: Mapping[str, str]) -> List[LocaleChange]:
    """
    Compare two snapshots of a locale.

    Args:
        locale_code: Normalized locale code
        before: Strings before the change
        after: Strings after the change

    Returns:
        Changes sorted by string key
    """
    name = locale_name(locale_code)
    changes = []
    for key in sorted(set(before) | set(after)):
        if key not in before:
            changes.append(LocaleChange(locale_code, name, key, LocaleChangeKind.ADDED, None, after[key]))
        elif key not in after:
            changes.append(LocaleChange(locale_code, name, key, LocaleChangeKind.REMOVED, before[key], None))
        elif before[key] != after[key]:
            changes.append(LocaleChange(locale_code, name, key, LocaleChangeKind.MODIFIED, before[key], after[key]))
    return changes


class LocaleDiffEngine:
    """Turns commits touching localized resources into per-locale change sets."""

    def diff(self, locale_code: str, before: Mapping[str, str], after: Mapping[str, str]) -> List[LocaleChange]:
        return diff(locale_code, before, after)

    def diff_commit(
        self,
        entry: HistoryEntry,
        platform: Platform,
        snapshots: Mapping[str, ResourceSnapshot],
    ) -> Tuple[List[LocaleChangeSet], List[ClassificationError]]:
        """
        Diff every localized resource touched by a commit.

        A resource that fails to parse is skipped with a recorded error;
        the commit's other locales are still diffed.

        Args:
            entry: Commit whose file list selects the resources
            platform: Platform whose resource conventions apply
            snapshots: File contents around the commit, keyed by path

        Returns:
            Tuple of (change sets in file order, errors for skipped resources)
        """
        change_sets: List[LocaleChangeSet] = []
        errors: List[ClassificationError] = []

        for file_change in entry.files:
            resource = platform.locale_resource(file_change.filename)
            if resource is None:
                continue
            snapshot = snapshots.get(resource.path)
            if snapshot is None:
                continue

            try:
                before = parse_resource(resource.format, snapshot.before)
                after = parse_resource(resource.format, snapshot.after)
            except ClassificationError as e:
                error = ClassificationError(
                    e.message,
                    entry_id=entry.identifier,
                    resource_path=resource.path,
                    locale=resource.locale_code,
                )
                logger.warning(
                    f"Skipping unparseable locale resource {resource.path}",
                    extra={"entry_id": entry.identifier, "locale": resource.locale_code, "reason": e.message}
                )
                errors.append(error)
                continue

            changes = diff(resource.locale_code, before, after)
            if not changes:
                continue

            change_sets.append(LocaleChangeSet(
                platform=platform,
                locale_code=resource.locale_code,
                locale_name=locale_name(resource.locale_code),
                resource_path=resource.path,
                changes=tuple(changes),
                entry_id=entry.identifier,
                timestamp=entry.timestamp,
            ))

        return change_sets, errors


__all__ = [
    "LOCALE_NAMES",
    "locale_name",
    "parse_android_strings",
    "parse_chrome_messages",
    "parse_apple_strings",
    "parse_resource",
    "ResourceSnapshot",
    "diff",
    "LocaleDiffEngine",
]
