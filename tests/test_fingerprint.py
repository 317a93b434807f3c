"""
Tests for content fingerprints.
"""

from dataclasses import replace

import pytest

from updates_bot.config.platforms import Platform
from updates_bot.deduplication.fingerprint import ContentFingerprinter
from updates_bot.domain.changes import (
    CreditChange,
    LocaleChange,
    LocaleChangeKind,
    LocaleChangeSet,
    ReleaseChange,
    ReleaseCommit,
)
from updates_bot.utils.exceptions import ClassificationError

from fixtures import at


def locale_change_set(changes, entry_id="aaa111", minutes=0):
    return LocaleChangeSet(
        platform=Platform.ANDROID,
        locale_code="de",
        locale_name="German",
        resource_path="app/src/main/res/values-de/strings.xml",
        changes=tuple(changes),
        entry_id=entry_id,
        timestamp=at(minutes),
    )


MODIFIED = LocaleChange("de", "German", "ok", LocaleChangeKind.MODIFIED, "OK", "Okay")
ADDED = LocaleChange("de", "German", "cancel", LocaleChangeKind.ADDED, None, "Abbrechen")


class TestContentFingerprinter:

    def setup_method(self):
        self.fingerprinter = ContentFingerprinter()

    def test_digest_format(self):
        digest = self.fingerprinter.fingerprint(locale_change_set([MODIFIED]))

        assert len(digest) == 64
        assert digest == digest.lower()
        int(digest, 16)

    def test_same_change_twice_gives_same_digest(self):
        change = locale_change_set([MODIFIED, ADDED])
        assert self.fingerprinter.fingerprint(change) == self.fingerprinter.fingerprint(change)

    def test_entry_order_does_not_matter(self):
        first = locale_change_set([MODIFIED, ADDED])
        second = locale_change_set([ADDED, MODIFIED])

        assert self.fingerprinter.fingerprint(first) == self.fingerprinter.fingerprint(second)

    def test_origin_does_not_matter(self):
        first = locale_change_set([MODIFIED], entry_id="aaa111", minutes=0)
        second = locale_change_set([MODIFIED], entry_id="bbb222", minutes=30)

        assert self.fingerprinter.fingerprint(first) == self.fingerprinter.fingerprint(second)

    def test_whitespace_is_normalized(self):
        spaced = replace(MODIFIED, new_value="  Okay \n")
        assert (
            self.fingerprinter.fingerprint(locale_change_set([MODIFIED]))
            == self.fingerprinter.fingerprint(locale_change_set([spaced]))
        )

    @pytest.mark.parametrize("altered", [
        replace(MODIFIED, new_value="Gut"),
        replace(MODIFIED, previous_value="Ok"),
        replace(MODIFIED, key="okay"),
        replace(MODIFIED, kind=LocaleChangeKind.ADDED),
    ])
    def test_semantic_fields_change_the_digest(self, altered):
        assert (
            self.fingerprinter.fingerprint(locale_change_set([MODIFIED]))
            != self.fingerprinter.fingerprint(locale_change_set([altered]))
        )

    def test_locale_and_platform_change_the_digest(self):
        base = locale_change_set([MODIFIED])
        digest = self.fingerprinter.fingerprint(base)

        assert digest != self.fingerprinter.fingerprint(replace(base, locale_code="fr"))
        assert digest != self.fingerprinter.fingerprint(replace(base, platform=Platform.IOS))

    def test_release_identity_is_platform_and_tag(self):
        release = ReleaseChange(Platform.IOS, "7.1.0", "7.1.0", previous_tag="7.0.0", entry_id="7.1.0")
        with_commits = replace(release, commits=(ReleaseCommit("abc", "Fix"),))

        assert self.fingerprinter.fingerprint(release) == self.fingerprinter.fingerprint(with_commits)
        assert self.fingerprinter.fingerprint(release) != self.fingerprinter.fingerprint(replace(release, tag="7.1.1"))
        assert (
            self.fingerprinter.fingerprint(release)
            != self.fingerprinter.fingerprint(replace(release, platform=Platform.ANDROID))
        )

    def test_credit_name_order_does_not_matter(self):
        first = CreditChange(Platform.DESKTOP, "TRANSLATORS.md", ("Anna", "Bernd"), entry_id="a")
        second = CreditChange(Platform.DESKTOP, "TRANSLATORS.md", ("Bernd", "Anna"), entry_id="b")

        assert self.fingerprinter.fingerprint(first) == self.fingerprinter.fingerprint(second)

    def test_kinds_never_collide(self):
        release = ReleaseChange(Platform.DESKTOP, "TRANSLATORS.md", "TRANSLATORS.md")
        credit = CreditChange(Platform.DESKTOP, "TRANSLATORS.md", ())

        assert self.fingerprinter.fingerprint(release) != self.fingerprinter.fingerprint(credit)

    def test_unknown_objects_are_rejected(self):
        with pytest.raises(ClassificationError):
            self.fingerprinter.fingerprint({"type": "release"})
