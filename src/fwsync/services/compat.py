"""Desired-state compatibility gate.

The first record of every desired-state collection is a synthetic
Default Record. Its ID is "<marker>_v<major>.<minor>.<patch>" and its
DisplayName, Group, Enabled, Profile, Direction and Action columns hold
the filter that was active when the collection was captured.

Attribute semantics (ignore tag, wildcard policy) changed between tool
versions, so collections older than the configured minimum are refused
before the store is touched.
"""

from dataclasses import dataclass
from typing import Sequence

from fwsync.core.config import ReconcileConfig
from fwsync.core.exceptions import CompatibilityError, DesiredStateError, ValidationError
from fwsync.core.validation import parse_version
from fwsync.services.rules import RULE_FIELDS, DesiredRule
from fwsync.services.store import RuleFilter


@dataclass(frozen=True)
class DefaultRecord:
    """Parsed Default Record: embedded version and capture scope."""
    version: tuple[int, int, int]
    rule_filter: RuleFilter

    @property
    def version_string(self) -> str:
        return ".".join(str(part) for part in self.version)


def default_record_id(marker: str, version: str) -> str:
    """ID of the Default Record written by a given tool version."""
    return f"{marker}_v{version}"


def default_record_row(marker: str, version: str, rule_filter: RuleFilter) -> dict[str, str]:
    """CSV row for a Default Record carrying ``rule_filter``."""
    row = {name: "" for name in RULE_FIELDS}
    row["ID"] = default_record_id(marker, version)
    row["DisplayName"] = rule_filter.display_name or ""
    row["Group"] = rule_filter.group or ""
    row["Enabled"] = rule_filter.enabled or ""
    row["Profile"] = rule_filter.profile or ""
    row["Direction"] = rule_filter.direction or ""
    row["Action"] = rule_filter.action or ""
    return row


def check_compatibility(
    records: Sequence[DesiredRule],
    config: ReconcileConfig,
) -> DefaultRecord:
    """Validate the Default Record of a desired-state collection.

    Args:
        records: Parsed desired-state collection, Default Record first
        config: Reconciliation settings (marker, minimum version)

    Returns:
        The parsed Default Record

    Raises:
        DesiredStateError: Collection empty or first record not a Default Record
        CompatibilityError: Version unparsable or below the minimum
    """
    if not records:
        raise DesiredStateError(
            "Desired state is empty",
            hint="Capture a desired state with: fwsync export <file>",
        )

    first = records[0]
    prefix = f"{config.default_marker}_v"
    raw_id = first.rule_id
    if not raw_id.startswith(prefix):
        raise DesiredStateError(
            "Desired state does not start with a Default Record",
            details=[f"Expected an ID starting with {prefix!r}, got {raw_id!r}"],
            hint="The first row must be the Default Record written by fwsync export",
        )

    found = raw_id[len(prefix):]
    try:
        version = parse_version(found)
    except ValidationError as e:
        raise CompatibilityError(
            f"Cannot parse desired-state version: {found!r}",
            found=found,
            minimum=config.minimum_version,
            details=[e.message],
        ) from e

    minimum = parse_version(config.minimum_version)
    if version < minimum:
        raise CompatibilityError(
            f"Desired state version {found} is older than the minimum "
            f"supported version {config.minimum_version}",
            found=found,
            minimum=config.minimum_version,
            hint="Re-capture the desired state with the current fwsync export",
        )

    rule_filter = RuleFilter.from_values(
        display_name=first.get("DisplayName"),
        group=first.get("Group"),
        enabled=first.get("Enabled"),
        profile=first.get("Profile"),
        direction=first.get("Direction"),
        action=first.get("Action"),
    )
    return DefaultRecord(version=version, rule_filter=rule_filter)
