"""
Tests for release tag classification and ordering.
"""

import pytest

from updates_bot.classification.versions import (
    ParseOutcome,
    VersionClassifier,
    VersionInfo,
    compare_versions,
    version_text,
)
from updates_bot.config.platforms import Platform
from updates_bot.utils.exceptions import ClassificationError


class TestClassify:
    """Strict parsing first, lenient fallback second."""

    def setup_method(self):
        self.classifier = VersionClassifier()

    def test_strict_semver(self):
        result = self.classifier.classify("1.2.3-beta.1+build.5")

        assert result.outcome is ParseOutcome.STRICT
        assert result.version.core == (1, 2, 3)
        assert result.version.prerelease == "beta.1"
        assert result.version.build == "build.5"

    @pytest.mark.parametrize("tag,expected", [
        ("v1.2.3", (1, 2, 3, "", "")),
        ("1.2", (1, 2, 0, "", "")),
        ("v7", (7, 0, 0, "", "")),
        ("v1.2.3.4", (1, 2, 3, "", "4")),
        ("1.2.3.4-beta", (1, 2, 3, "beta", "4")),
        ("v7.30.0-beta.1", (7, 30, 0, "beta.1", "")),
    ])
    def test_lenient_forms(self, tag, expected):
        result = self.classifier.classify(tag)

        assert result.outcome is ParseOutcome.LENIENT
        version = result.version
        assert (version.major, version.minor, version.patch, version.prerelease, version.build) == expected
        assert version.tag == tag

    @pytest.mark.parametrize("tag", ["", "   ", "latest", "release-candidate", "1.x.3"])
    def test_unparseable_input_is_tagged_not_raised(self, tag):
        result = self.classifier.classify(tag)

        assert result.outcome is ParseOutcome.UNPARSED
        assert result.version is None
        assert not result.parsed

    def test_str_round_trips_components(self):
        version = self.classifier.classify("v1.2.3.4-beta").version
        assert str(version) == "1.2.3-beta+4"


class TestCompareVersions:
    """Semantic Versioning precedence."""

    @pytest.mark.parametrize("older,newer", [
        ("1.0.0", "2.0.0"),
        ("2.0.0", "2.1.0"),
        ("2.1.0", "2.1.1"),
        ("1.0.0-alpha", "1.0.0-alpha.1"),
        ("1.0.0-alpha.1", "1.0.0-alpha.beta"),
        ("1.0.0-alpha.beta", "1.0.0-beta"),
        ("1.0.0-beta.2", "1.0.0-beta.11"),
        ("1.0.0-rc.1", "1.0.0"),
    ])
    def test_precedence_chain(self, older, newer):
        classifier = VersionClassifier()
        left = classifier.classify(older).version
        right = classifier.classify(newer).version

        assert compare_versions(left, right) < 0
        assert compare_versions(right, left) > 0
        assert right.is_newer_than(left)

    def test_build_metadata_does_not_affect_precedence(self):
        left = VersionInfo(1, 2, 3, build="4")
        right = VersionInfo(1, 2, 3, build="9")

        assert compare_versions(left, right) == 0
        assert not right.is_newer_than(left)

    def test_release_can_be_ranked_below_prerelease(self):
        release = VersionInfo(1, 0, 0)
        beta = VersionInfo(1, 0, 0, prerelease="beta.1")

        assert compare_versions(release, beta) > 0
        assert compare_versions(release, beta, release_outranks_prerelease=False) < 0
        # differing cores are unaffected by the policy
        assert compare_versions(VersionInfo(1, 0, 1), beta, release_outranks_prerelease=False) > 0


class TestIsNewRelease:
    """Per-platform report policies combined with ordering."""

    def setup_method(self):
        self.classifier = VersionClassifier()

    def test_first_release_is_new(self):
        assert self.classifier.is_new_release("v7.1.0", None, Platform.IOS)

    def test_newer_and_older_tags(self):
        assert self.classifier.is_new_release("v7.2.0", "v7.1.0", Platform.IOS)
        assert not self.classifier.is_new_release("v7.0.0", "v7.1.0", Platform.IOS)
        assert not self.classifier.is_new_release("v7.1.0", "v7.1.0", Platform.IOS)

    def test_android_internal_builds_are_not_reported(self):
        assert not self.classifier.is_new_release("v7.2.0.1", "v7.1.0", Platform.ANDROID)
        assert self.classifier.is_new_release("v7.2.0", "v7.1.0", Platform.ANDROID)

    def test_desktop_reports_only_betas(self):
        assert self.classifier.is_new_release("v7.2.0-beta.1", "v7.1.0-beta.3", Platform.DESKTOP)
        assert not self.classifier.is_new_release("v7.2.0", "v7.1.0-beta.3", Platform.DESKTOP)

    def test_unparseable_candidate_is_not_new(self):
        assert not self.classifier.is_new_release("nightly", "v7.1.0", Platform.IOS)

    def test_unparseable_previous_tag_raises(self):
        with pytest.raises(ClassificationError) as exc_info:
            self.classifier.is_new_release("v7.2.0", "nightly", Platform.IOS)

        assert exc_info.value.details["entry_id"] == "nightly"

    def test_prerelease_policy_is_configurable(self):
        default = VersionClassifier()
        inverted = VersionClassifier(release_outranks_prerelease=False)

        assert default.is_new_release("7.1.0", "7.1.0-rc.1", Platform.IOS)
        assert not inverted.is_new_release("7.1.0", "7.1.0-rc.1", Platform.IOS)


@pytest.mark.parametrize("tag,expected", [("v1.2.3", "1.2.3"), ("V2.0", "2.0"), ("1.0.0", "1.0.0")])
def test_version_text_strips_leading_v(tag, expected):
    assert version_text(tag) == expected
