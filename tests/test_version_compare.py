"""Tests for the dotted-numeric comparator and version normalization."""

from functools import cmp_to_key

import pytest

from versioning.compare import compare_versions, normalize_version, strip_prerelease


class TestNormalizeVersion:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("1.2.3", "1.2.3"),
            ("^1.2.3", "1.2.3"),
            ("~1.2.3", "1.2.3"),
            (">=1.2.3", "1.2.3"),
            ("v18.17.0", "18.17.0"),
            ("  v20.0.0\n", "20.0.0"),
            ("^v1.0.0", "1.0.0"),
        ],
    )
    def test_strips_operators_and_leading_v(self, raw, expected):
        assert normalize_version(raw) == expected

    def test_empty_and_none_are_absent(self):
        assert normalize_version(None) is None
        assert normalize_version("") is None
        assert normalize_version("  ^ ") is None


class TestCompareVersions:
    def test_numeric_not_lexicographic(self):
        assert compare_versions("1.10.0", "1.9.0") == 1
        assert compare_versions("1.9.0", "1.10.0") == -1

    def test_zero_padding(self):
        assert compare_versions("1.2", "1.2.0") == 0
        assert compare_versions("1", "1.0.1") == -1

    def test_build_metadata_ignored(self):
        assert compare_versions("1.2.3+build.5", "1.2.3") == 0

    def test_non_numeric_component_counts_as_leading_digits(self):
        assert compare_versions("1.2.3rc1", "1.2.3") == 0
        assert compare_versions("1.x", "1.0") == 0

    def test_usable_as_sort_key(self):
        versions = ["1.10.0", "1.2.0", "1.9.9", "0.1.0"]
        assert sorted(versions, key=cmp_to_key(compare_versions)) == [
            "0.1.0", "1.2.0", "1.9.9", "1.10.0"
        ]


def test_strip_prerelease():
    assert strip_prerelease("14.3.0-canary.77") == "14.3.0"
    assert strip_prerelease("1.0.0") == "1.0.0"
