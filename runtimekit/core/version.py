"""
Exact version validation.

Only fully pinned semantic versions are accepted (``3.1.404``,
``5.0.100-preview.1.20155.7``). Ranges, wildcards, partial versions and
floating markers such as ``latest`` are rejected before any I/O happens.
"""

import re

from runtimekit.core.exceptions import InvalidVersionError

# semver.org 2.0.0 grammar
_SEMVER_PATTERN = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)

_FLOATING_MARKERS = {"latest", "lts", "current", "stable", "preview"}
_RANGE_CHARACTERS = set("^~<>=|*") | {" "}


def validate_exact_version(version: str) -> str:
    """
    Validate that a version string is exact and return its normalized form.

    A leading ``v`` is stripped (``v3.1.404`` -> ``3.1.404``).

    Args:
        version: Raw version string

    Returns:
        Normalized exact version

    Raises:
        InvalidVersionError: If the version is empty, floating, a range,
            contains a wildcard, or is not a complete semantic version

    Example:
        >>> validate_exact_version("3.1.404")
        '3.1.404'
        >>> validate_exact_version("3.1.x")
        Traceback (most recent call last):
        ...
        runtimekit.core.exceptions.InvalidVersionError: ...
    """
    if version is None or not version.strip():
        raise InvalidVersionError(version or "", "version is empty")

    candidate = version.strip()

    if candidate.lower() in _FLOATING_MARKERS:
        raise InvalidVersionError(version, "floating versions are not supported")

    if any(ch in _RANGE_CHARACTERS for ch in candidate):
        raise InvalidVersionError(version, "version ranges are not supported")

    if candidate[:1] in ("v", "V"):
        candidate = candidate[1:]

    core = re.split(r"[-+]", candidate, maxsplit=1)[0]
    if any(part.lower() == "x" for part in core.split(".")):
        raise InvalidVersionError(version, "wildcards are not supported")

    if not _SEMVER_PATTERN.match(candidate):
        raise InvalidVersionError(
            version, "expected MAJOR.MINOR.PATCH[-prerelease][+build]"
        )

    return candidate


def is_exact_version(version: str) -> bool:
    """Return True if ``version`` passes validate_exact_version()."""
    try:
        validate_exact_version(version)
    except InvalidVersionError:
        return False
    return True


def channel_of(version: str) -> str:
    """
    Get the release channel (``MAJOR.MINOR``) of an exact version.

    Example:
        >>> channel_of("3.1.404")
        '3.1'
    """
    major, minor = validate_exact_version(version).split(".")[:2]
    return f"{major}.{minor}"


__all__ = ["validate_exact_version", "is_exact_version", "channel_of"]
