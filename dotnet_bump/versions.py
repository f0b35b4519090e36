"""Version parsing and comparison utilities.

Handles conversion between .NET/NuGet version strings and semver objects,
with special handling for incomplete version strings (e.g., "8.0" → "8.0.0").
"""

from __future__ import annotations

import re

import semver

_VERSION_RE = re.compile(r"^(?P<core>\d+(?:\.\d+)*)(?P<suffix>[-+].*)?$")


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Handles incomplete versions by padding with zeros:
    - "8" → "8.0.0"
    - "8.0" → "8.0.0"
    - "8.0.100-preview.7" → "8.0.100-preview.7"

    Only the first 3 core components are used (major.minor.patch), so a
    four-part NuGet version like "4.3.0.1" compares as "4.3.0".
    Prerelease and build metadata are kept.

    Raises:
        ValueError: If the string is not a version.
    """
    match = _VERSION_RE.match(version_str.strip())
    if not match:
        raise ValueError(f"{version_str!r} is not a valid version string")

    parts = match.group("core").split(".")
    # Pad with zeros to ensure we have at least 3 parts
    while len(parts) < 3:
        parts.append("0")
    suffix = match.group("suffix") or ""
    return semver.Version.parse(".".join(parts[:3]) + suffix)


def is_newer(candidate: str, current: str) -> bool:
    """Return True if candidate is a strictly greater version than current."""
    return parse_version(candidate) > parse_version(current)


def matches_pattern(version_str: str, pattern: str, *, strict: bool = False) -> bool:
    """Check whether a version belongs to the release train named by pattern.

    Examples:
        matches_pattern("6.0.1-preview1", "6.0.1") → True
        matches_pattern("6.0.1-preview1", "6.0.1", strict=True) → False
        matches_pattern("6.0.1", "6.0.1", strict=True) → True
    """
    if strict:
        return version_str == pattern
    return version_str.startswith(pattern)
