"""Firewall rule store contract.

The synchronizer only talks to the live firewall through RuleStore.
NetSecurityStore (services/netsecurity.py) implements it on top of the
Windows NetSecurity PowerShell module.
"""

from dataclasses import dataclass, fields
from typing import Mapping, Optional, Protocol, Union

from fwsync.services.rules import FullLiveRule, LiveRule


# Value handed to the store: a string, or an ordered list for multi-valued attributes
StoreValue = Union[str, list[str]]


@dataclass(frozen=True)
class RuleFilter:
    """Scope of an enumeration.

    Name-like fields (display_name, group, display_group) use
    substring/pattern semantics: a value without "*" matches anywhere
    in the attribute. Enum-like fields match exactly.
    """
    display_name: Optional[str] = None
    group: Optional[str] = None
    display_group: Optional[str] = None
    enabled: Optional[str] = None
    profile: Optional[str] = None
    direction: Optional[str] = None
    action: Optional[str] = None

    NAME_FIELDS = ("display_name", "group", "display_group")

    # Parameters Get-NetFirewallRule binds together in one query; the
    # rest (DisplayName, Profile) are filtered on the returned rules
    QUERY_PARAMETERS = ("Group", "DisplayGroup", "Enabled", "Direction", "Action")

    @classmethod
    def from_values(cls, **values: Optional[str]) -> "RuleFilter":
        """Build a filter, treating empty strings as unset."""
        return cls(**{key: value for key, value in values.items() if value})

    def parameters(self) -> dict[str, str]:
        """Set filter values keyed by store parameter name.

        Name-like values without a wildcard are wrapped for substring matching.
        """
        params: dict[str, str] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if not value:
                continue
            if f.name in self.NAME_FIELDS and "*" not in value:
                value = f"*{value}*"
            params[_PARAMETER_NAMES[f.name]] = value
        return params

    def query_parameters(self) -> dict[str, str]:
        """Filter values the store can pass straight to its rule query."""
        return {
            key: value for key, value in self.parameters().items()
            if key in self.QUERY_PARAMETERS
        }

    def post_filters(self) -> dict[str, str]:
        """Filter values applied to the rules the query returned."""
        return {
            key: value for key, value in self.parameters().items()
            if key not in self.QUERY_PARAMETERS
        }

    def describe(self) -> str:
        params = self.parameters()
        if not params:
            return "all rules"
        return ", ".join(f"{key}={value}" for key, value in params.items())


_PARAMETER_NAMES = {
    "display_name": "DisplayName",
    "group": "Group",
    "display_group": "DisplayGroup",
    "enabled": "Enabled",
    "profile": "Profile",
    "direction": "Direction",
    "action": "Action",
}


class RuleStore(Protocol):
    """Operations the synchronizer needs from the live firewall."""

    def enumerate(self, rule_filter: RuleFilter, *, full: bool = True) -> list[LiveRule]:
        """List rules in scope.

        full=True returns FullLiveRule objects; full=False returns the
        cheaper PartialLiveRule objects.
        """
        ...

    def get(self, rule_id: str) -> Optional[FullLiveRule]:
        """Fetch one rule with every attribute, or None if absent."""
        ...

    def create(self, values: Mapping[str, StoreValue]) -> FullLiveRule:
        """Create a rule; an absent ID lets the store assign one."""
        ...

    def set_attribute(
        self,
        rule_id: str,
        attribute: str,
        value: StoreValue,
        *,
        current: Optional[FullLiveRule] = None,
    ) -> None:
        """Set one attribute. Group updates pass the full current rule."""
        ...

    def rename(self, rule_id: str, display_name: str) -> None:
        """Change a rule's display name."""
        ...
