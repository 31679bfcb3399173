"""Rule records and identity matching.

Desired rules come from a captured desired-state file; every field is
parsed once into a tagged FieldValue so that the ignore tag and the
wildcard marker never need to be re-detected during comparison.

Live rules come from the firewall store in two variants:
- FullLiveRule: every attribute populated (full enumeration, get by ID)
- PartialLiveRule: identity and state only (cheap enumeration, fast mode)
"""

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, ClassVar, Iterable, Mapping, Optional, Protocol, TypeVar, Union


# Canonical field order of a rule record (also the CSV header)
RULE_FIELDS: tuple[str, ...] = (
    "ID",
    "DisplayName",
    "Group",
    "Program",
    "Enabled",
    "Profile",
    "Direction",
    "Action",
    "Protocol",
    "LocalAddress",
    "LocalPort",
    "RemoteAddress",
    "RemotePort",
    "Description",
)

# Fields returned by the cheap enumeration
PARTIAL_FIELDS: tuple[str, ...] = (
    "ID",
    "DisplayName",
    "Group",
    "Enabled",
    "Direction",
    "Action",
)

# Joins the elements of multi-valued network attributes
LIST_SEPARATOR = ", "

DEFAULT_IGNORE_TAG = "_ignore"
DEFAULT_WILDCARD = "*"


def join_values(value: Any) -> str:
    """Normalize a store value to its string form.

    Lists are joined with ", ", booleans become "True"/"False",
    None becomes the empty string.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, (list, tuple)):
        return LIST_SEPARATOR.join(join_values(v) for v in value)
    return str(value)


def split_values(value: str) -> Union[str, list[str]]:
    """Split a multi-valued attribute into an ordered list.

    A value without a comma is returned unchanged.
    """
    if "," not in value:
        return value
    return [part.strip() for part in value.split(",") if part.strip()]


class ValueKind(str, Enum):
    """How a desired field value is evaluated."""
    UNSET = "unset"        # empty: leave the live value alone
    IGNORE = "ignore"      # ignore tag: never evaluate or touch
    LITERAL = "literal"    # concrete value: overwrite on mismatch
    PATTERN = "pattern"    # contains the wildcard: verify only


@dataclass(frozen=True)
class FieldValue:
    """A desired field value with its match mode resolved."""
    kind: ValueKind
    raw: str = ""
    pattern: Optional[re.Pattern] = field(default=None, compare=False, repr=False)

    @classmethod
    def parse(
        cls,
        raw: Optional[str],
        *,
        ignore_tag: str = DEFAULT_IGNORE_TAG,
        wildcard: str = DEFAULT_WILDCARD,
    ) -> "FieldValue":
        """Classify a raw string from the desired-state file."""
        text = "" if raw is None else str(raw)
        if text == "":
            return cls(ValueKind.UNSET)
        if text == ignore_tag:
            return cls(ValueKind.IGNORE, text)
        if wildcard in text:
            regex = ".*".join(re.escape(part) for part in text.split(wildcard))
            return cls(ValueKind.PATTERN, text, re.compile(regex, re.DOTALL))
        return cls(ValueKind.LITERAL, text)

    def matches(self, live_value: str) -> bool:
        """Check a live value against this value (pattern or literal)."""
        if self.kind is ValueKind.PATTERN:
            return self.pattern.fullmatch(live_value) is not None
        return self.raw == live_value


UNSET = FieldValue(ValueKind.UNSET)


class Record(Protocol):
    """Anything the identity matcher can compare."""

    def get(self, name: str) -> str:
        ...


@dataclass(frozen=True)
class DesiredRule:
    """A rule from the desired-state collection."""
    values: Mapping[str, FieldValue]
    line: Optional[int] = None  # row number in the source file

    @classmethod
    def from_row(
        cls,
        row: Mapping[str, Optional[str]],
        *,
        ignore_tag: str = DEFAULT_IGNORE_TAG,
        wildcard: str = DEFAULT_WILDCARD,
        line: Optional[int] = None,
    ) -> "DesiredRule":
        """Build a desired rule from a CSV row (missing columns are unset)."""
        values = {
            name: FieldValue.parse(row.get(name), ignore_tag=ignore_tag, wildcard=wildcard)
            for name in RULE_FIELDS
        }
        return cls(values=values, line=line)

    def value(self, name: str) -> FieldValue:
        return self.values.get(name, UNSET)

    def get(self, name: str) -> str:
        """Raw string of a field, as written in the desired state."""
        return self.value(name).raw

    @property
    def rule_id(self) -> str:
        return self.get("ID")

    @property
    def is_ignored(self) -> bool:
        """Whole record carries the ignore tag as its ID."""
        return self.value("ID").kind is ValueKind.IGNORE

    @property
    def label(self) -> str:
        """Short human-readable identification for messages."""
        name = self.get("DisplayName")
        ident = self.rule_id or "<new>"
        return f"{ident} ({name})" if name else ident

    def pattern_fields(self) -> list[str]:
        """Names of fields that hold a wildcard pattern."""
        return [
            name for name in RULE_FIELDS
            if self.value(name).kind is ValueKind.PATTERN
        ]

    def concrete_values(self) -> dict[str, str]:
        """Literal field values, suitable as a creation template."""
        return {
            name: self.value(name).raw
            for name in RULE_FIELDS
            if self.value(name).kind is ValueKind.LITERAL
        }

    def with_id(self, rule_id: str) -> "DesiredRule":
        """Copy of this record bound to an existing live rule ID."""
        values = dict(self.values)
        values["ID"] = FieldValue(ValueKind.LITERAL, rule_id)
        return replace(self, values=values)


@dataclass(frozen=True)
class LiveRule:
    """A rule as observed in the live firewall store."""
    FIELDS: ClassVar[tuple[str, ...]] = RULE_FIELDS

    attributes: Mapping[str, str]

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LiveRule":
        """Build from store output, normalizing every value to a string."""
        return cls(attributes={name: join_values(data.get(name)) for name in cls.FIELDS})

    def get(self, name: str) -> str:
        if name not in self.FIELDS:
            raise KeyError(f"{name} is not available on {type(self).__name__}")
        return self.attributes.get(name, "")

    @property
    def rule_id(self) -> str:
        return self.get("ID")

    @property
    def display_name(self) -> str:
        return self.get("DisplayName")

    @property
    def enabled(self) -> bool:
        return self.get("Enabled").lower() == "true"

    @property
    def label(self) -> str:
        name = self.display_name
        return f"{self.rule_id} ({name})" if name else self.rule_id

    def to_row(self) -> dict[str, str]:
        """Desired-state row; fields this variant does not carry are blank."""
        return {name: self.attributes.get(name, "") for name in RULE_FIELDS}


@dataclass(frozen=True)
class FullLiveRule(LiveRule):
    """Live rule with every attribute populated."""
    FIELDS: ClassVar[tuple[str, ...]] = RULE_FIELDS


@dataclass(frozen=True)
class PartialLiveRule(LiveRule):
    """Live rule from the cheap enumeration (no address/port/program data)."""
    FIELDS: ClassVar[tuple[str, ...]] = PARTIAL_FIELDS


R = TypeVar("R", bound=Record)


def find_rule(records: Iterable[R], **constraints: Optional[str]) -> Optional[R]:
    """Return the first record whose attributes equal every constraint.

    Constraints set to None are wildcards. Comparison is exact and
    case-sensitive; ties are broken by the order of ``records``.

    Example:
        find_rule(desired, ID="{1234}")
        find_rule(desired, ID="_ignore", DisplayName="Core Networking")
    """
    active = {name: value for name, value in constraints.items() if value is not None}
    for record in records:
        if all(record.get(name) == value for name, value in active.items()):
            return record
    return None
