"""MAJOR.MINOR.PATCH version strings."""

import re
from typing import Iterable, Optional

from ..exceptions import ValidationError

SEMVER_PATTERN = re.compile(r"^v?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)$")


def parse_version(version: str) -> tuple[int, int, int]:
    """Parse "1.2.3" (or "v1.2.3") into a comparable tuple."""
    match = SEMVER_PATTERN.match(version.strip()) if version else None
    if not match:
        raise ValidationError(
            f"Invalid version '{version}'. Expected MAJOR.MINOR.PATCH (e.g., 1.0.0)",
            field="version",
        )
    major, minor, patch = (int(part) for part in match.groups())
    return major, minor, patch


def max_version(versions: Iterable[str]) -> Optional[str]:
    """Highest version string in *versions*, or None if empty."""
    return max(versions, key=parse_version, default=None)


def ensure_newer(candidate: str, existing: Iterable[str]) -> None:
    """Raise ValidationError unless *candidate* is above every existing version."""
    parsed = parse_version(candidate)
    current = max_version(existing)
    if current is not None and parsed <= parse_version(current):
        raise ValidationError(
            f"Version {candidate} must be greater than the current version {current}",
            field="version",
        )
