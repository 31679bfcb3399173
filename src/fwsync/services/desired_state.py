"""Desired-state file reading and writing.

The desired state is a CSV file with one row per rule record and a
header made of the rule field names. Row 0 is the Default Record.
"""

import csv
from pathlib import Path
from typing import Iterable, Mapping

from fwsync.core.config import ReconcileConfig
from fwsync.core.exceptions import DesiredStateError
from fwsync.services.rules import RULE_FIELDS, DesiredRule


def read_desired_state(path: Path, config: ReconcileConfig) -> list[DesiredRule]:
    """Read a desired-state CSV file.

    Missing columns are read as empty values; unknown columns are ignored.
    Files written with a UTF-8 BOM are accepted.

    Args:
        path: Desired-state file
        config: Reconciliation settings (ignore tag, wildcard)

    Returns:
        Ordered list of desired rules, Default Record first

    Raises:
        DesiredStateError: If the file is missing, unreadable or has no ID column
    """
    if not path.exists():
        raise DesiredStateError(
            f"Desired-state file not found: {path}",
            hint="Capture one with: fwsync export <file>",
        )

    try:
        with open(path, newline="", encoding="utf-8-sig") as f:
            reader = csv.DictReader(f)
            header = reader.fieldnames or []
            if "ID" not in header:
                raise DesiredStateError(
                    f"Desired-state file has no ID column: {path}",
                    details=[f"Header: {', '.join(header) or '<empty>'}"],
                )
            return [
                DesiredRule.from_row(
                    row,
                    ignore_tag=config.ignore_tag,
                    wildcard=config.wildcard,
                    line=reader.line_num,
                )
                for row in reader
            ]
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise DesiredStateError(
            f"Cannot read desired-state file: {path}",
            details=[str(e)],
        ) from e


def write_desired_state(
    path: Path,
    default_row: Mapping[str, str],
    rows: Iterable[Mapping[str, str]],
) -> int:
    """Write a desired-state CSV file.

    Args:
        path: Destination file
        default_row: Default Record row (written first)
        rows: Rule rows in capture order

    Returns:
        Number of rule rows written (Default Record excluded)
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=list(RULE_FIELDS), extrasaction="ignore")
        writer.writeheader()
        writer.writerow(dict(default_row))
        for row in rows:
            writer.writerow(dict(row))
            count += 1
    return count
