"""
Tests for porter.core.versioning
==================================
"""

import pytest

from porter.core.versioning import compare_versions, parse_version, satisfies


class TestParseVersion:
    def test_parses_prerelease(self) -> None:
        parsed = parse_version("1.2.3-beta.1")
        assert parsed is not None
        assert (parsed.major, parsed.minor, parsed.patch) == (1, 2, 3)
        assert parsed.prerelease == "beta.1"

    def test_invalid(self) -> None:
        assert parse_version("one.two") is None


class TestCompareVersions:
    def test_ordering(self) -> None:
        assert compare_versions("1.2.3", "1.10.0") == -1
        assert compare_versions("2.0.0", "2.0.0") == 0
        assert compare_versions("2.0.1", "2.0.0") == 1

    def test_prerelease_sorts_below_release(self) -> None:
        assert compare_versions("1.0.0-rc.1", "1.0.0") == -1

    def test_invalid_raises(self) -> None:
        with pytest.raises(ValueError):
            compare_versions("latest", "1.0.0")


class TestSatisfies:
    @pytest.mark.parametrize(
        "version, constraint, expected",
        [
            ("9.9.9", "*", True),
            ("1.2.0", "1.2.0", True),
            ("1.2.1", "1.2.0", False),
            ("1.4.0", "^1.2.0", True),
            ("2.0.0", "^1.2.0", False),
            ("0.3.5", "^0.3.0", True),
            ("0.4.0", "^0.3.0", False),
            ("1.2.9", "~1.2.0", True),
            ("1.3.0", "~1.2.0", False),
            ("1.2.0", ">=1.2.0", True),
            ("1.1.9", ">1.2.0", False),
            ("1.1.9", "<1.2.0", True),
            ("1.2.0", "<=1.2.0", True),
        ],
    )
    def test_constraints(self, version: str, constraint: str, expected: bool) -> None:
        assert satisfies(version, constraint) is expected
