"""Semantic version strings used to stamp schemas and preferences."""

from __future__ import annotations

import re

from .errors import VersionError

# SemVer 2.0.0 with the leading "v" used in canonical form.
_SEMVER = re.compile(
    r"^v(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)


def parse_version(version: str) -> str:
    """Return the canonical ``vMAJOR.MINOR.PATCH[-pre][+build]`` form.

    A missing ``v`` prefix is added.  Schema and preference versions are
    compared for exact equality on this canonical string.

    Raises:
        VersionError: If *version* is not a semantic version.
    """
    if not isinstance(version, str):
        raise VersionError(f"version must be a string, got {type(version).__name__}")
    candidate = version.strip()
    if not candidate.startswith("v"):
        candidate = "v" + candidate
    if not _SEMVER.match(candidate):
        raise VersionError(f"invalid version: {version!r}")
    return candidate


def is_valid_version(version: str) -> bool:
    try:
        parse_version(version)
    except VersionError:
        return False
    return True
