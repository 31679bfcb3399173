"""Input validation utilities.

Provides validation for:
- Tool versions embedded in desired-state files
- Reconciliation markers (ignore tag, wildcard, default marker)

All validators return the validated value or raise ValidationError.
"""

import re

from fwsync.core.exceptions import ValidationError


# Semantic version pattern (major.minor.patch)
VERSION_PATTERN = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")


def parse_version(value: str) -> tuple[int, int, int]:
    """Parse a major.minor.patch version string.

    Args:
        value: Version string such as "1.2.0"

    Returns:
        Tuple of (major, minor, patch)

    Raises:
        ValidationError: If the string is not a valid version
    """
    match = VERSION_PATTERN.match(value.strip()) if value else None
    if not match:
        raise ValidationError(
            f"Invalid version: {value!r}",
            hint="Use the format MAJOR.MINOR.PATCH, e.g. '1.2.0'",
        )
    major, minor, patch = (int(part) for part in match.groups())
    return major, minor, patch


def validate_version(value: str) -> str:
    """Validate a version string and return it normalized."""
    major, minor, patch = parse_version(value)
    return f"{major}.{minor}.{patch}"


def validate_wildcard(value: str) -> str:
    """Validate the wildcard marker.

    The marker must be a single, non-alphanumeric character.
    """
    if len(value) != 1:
        raise ValidationError(
            f"Wildcard marker must be a single character, got {value!r}",
        )
    if value.isalnum() or value.isspace() or value == ",":
        raise ValidationError(
            f"Wildcard marker cannot be a letter, digit, space or comma: {value!r}",
        )
    return value


def validate_tag(value: str, tag_type: str = "tag") -> str:
    """Validate a reserved marker string (ignore tag, default marker).

    Rules:
    - Cannot be empty or whitespace
    - Cannot contain commas (they collide with list separators)
    """
    if not value or not value.strip():
        raise ValidationError(f"The {tag_type} cannot be empty")
    if "," in value:
        raise ValidationError(
            f"The {tag_type} cannot contain commas: {value!r}",
            hint="Commas separate multi-valued rule attributes",
        )
    return value
