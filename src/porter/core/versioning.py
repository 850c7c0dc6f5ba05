"""
porter.core.versioning - Semantic Version Ranges
==================================================

Checks a warehouse's published version against the range a host accepts.

Supported constraints:
    "*"         any version
    "1.2.3"     exact match
    "^1.2.3"    same major (same minor when major is 0)
    "~1.2.3"    same major and minor
    ">=1.2.3", "<=1.2.3", ">1.2.3", "<1.2.3"
"""

from __future__ import annotations

import re
from typing import NamedTuple, Optional


_SEMVER = re.compile(
    r"^(\d+)\.(\d+)\.(\d+)"
    r"(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)


class SemVer(NamedTuple):
    major: int
    minor: int
    patch: int
    prerelease: Optional[str] = None


def parse_version(version: str) -> Optional[SemVer]:
    """Parse ``version`` or return None when it is not valid semver."""
    match = _SEMVER.match(version.strip())
    if match is None:
        return None
    return SemVer(
        int(match.group(1)),
        int(match.group(2)),
        int(match.group(3)),
        match.group(4),
    )


def compare_versions(left: str, right: str) -> int:
    """Return -1, 0 or 1 as ``left`` is lower, equal or higher than ``right``.

    Raises:
        ValueError: If either side is not a valid semantic version.
    """
    a, b = parse_version(left), parse_version(right)
    if a is None or b is None:
        raise ValueError(f"Invalid version format: {left!r} / {right!r}")

    core_a, core_b = a[:3], b[:3]
    if core_a != core_b:
        return -1 if core_a < core_b else 1

    # A prerelease sorts below its release.
    if a.prerelease == b.prerelease:
        return 0
    if a.prerelease is None:
        return 1
    if b.prerelease is None:
        return -1
    return -1 if a.prerelease < b.prerelease else 1


def satisfies(version: str, constraint: str) -> bool:
    """Check whether ``version`` falls inside ``constraint``.

    Example:
        >>> satisfies("1.4.0", "^1.2.0")
        True
        >>> satisfies("2.0.0", "~1.2.0")
        False
    """
    constraint = constraint.strip()
    if constraint in ("", "*"):
        return True

    if constraint.startswith("^"):
        return _satisfies_caret(version, constraint[1:].strip())
    if constraint.startswith("~"):
        return _satisfies_tilde(version, constraint[1:].strip())

    for operator, test in (
        (">=", lambda c: c >= 0),
        ("<=", lambda c: c <= 0),
        (">", lambda c: c > 0),
        ("<", lambda c: c < 0),
    ):
        if constraint.startswith(operator):
            target = constraint[len(operator):].strip()
            return test(compare_versions(version, target))

    return version.strip() == constraint


def _satisfies_caret(version: str, base: str) -> bool:
    parsed, floor = parse_version(version), parse_version(base)
    if parsed is None or floor is None:
        return False
    if compare_versions(version, base) < 0:
        return False
    if floor.major > 0:
        return parsed.major == floor.major
    return parsed.major == 0 and parsed.minor == floor.minor


def _satisfies_tilde(version: str, base: str) -> bool:
    parsed, floor = parse_version(version), parse_version(base)
    if parsed is None or floor is None:
        return False
    if compare_versions(version, base) < 0:
        return False
    return parsed.major == floor.major and parsed.minor == floor.minor
