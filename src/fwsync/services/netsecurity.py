"""Windows Firewall rule store.

Implements RuleStore on top of the NetSecurity PowerShell module
(Get-NetFirewallRule, New-NetFirewallRule, Set-NetFirewallRule).
Scripts are rendered from Jinja2 templates and return rules as JSON.
"""

import json
from typing import Any, Mapping, Optional, Union

from jinja2 import Environment, PackageLoader, select_autoescape

from fwsync.core.config import StoreConfig
from fwsync.core.context import ExecutionContext
from fwsync.core.exceptions import ExecutionError, StoreError
from fwsync.core.executor import CommandExecutor
from fwsync.services.rules import (
    RULE_FIELDS,
    FullLiveRule,
    LiveRule,
    PartialLiveRule,
    join_values,
)
from fwsync.services.store import RuleFilter, StoreValue


# Attributes accepted by Set-NetFirewallRule (DisplayName goes through rename)
SETTABLE_ATTRIBUTES = frozenset({
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
})

# New-NetFirewallRule parameter for each rule field
CREATE_PARAMETERS = {name: name for name in RULE_FIELDS}
CREATE_PARAMETERS["ID"] = "Name"


def ps_quote(value: Union[str, list[str], tuple[str, ...]]) -> str:
    """Quote a value as a PowerShell literal.

    Strings become single-quoted literals; lists become @('a', 'b').
    """
    if isinstance(value, (list, tuple)):
        return "@(" + ", ".join(ps_quote(item) for item in value) + ")"
    text = str(value)
    # Single-quoted strings only treat quotes specially; smart quotes count too
    for quote in ("'", "‘", "’", "‚", "‛"):
        text = text.replace(quote, quote * 2)
    return f"'{text}'"


class NetSecurityStore:
    """RuleStore backed by PowerShell NetSecurity cmdlets."""

    def __init__(
        self,
        ctx: ExecutionContext,
        executor: CommandExecutor,
        config: Optional[StoreConfig] = None,
    ) -> None:
        """Initialize store.

        Args:
            ctx: Execution context
            executor: Command executor
            config: Store settings (defaults to the context's configuration)
        """
        self.ctx = ctx
        self.executor = executor
        self.config = config or ctx.config.store

        self._jinja_env = Environment(
            loader=PackageLoader("fwsync", "templates"),
            autoescape=select_autoescape(),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._jinja_env.filters["ps"] = ps_quote

    # =========================================================================
    # Reads
    # =========================================================================

    def enumerate(self, rule_filter: RuleFilter, *, full: bool = True) -> list[LiveRule]:
        """List rules matching ``rule_filter``."""
        output = self._run(
            "enumerate.ps1.j2",
            mutating=False,
            query=rule_filter.query_parameters(),
            where=rule_filter.post_filters(),
            full=full,
        )
        rule_class = FullLiveRule if full else PartialLiveRule
        return [rule_class.from_mapping(item) for item in self._parse(output)]

    def get(self, rule_id: str) -> Optional[FullLiveRule]:
        """Fetch one rule by ID (NetFirewallRule Name)."""
        output = self._run("get.ps1.j2", mutating=False, rule_id=rule_id)
        items = [
            item for item in self._parse(output, rule_id=rule_id)
            if item.get("ID") == rule_id
        ]
        if not items:
            return None
        return FullLiveRule.from_mapping(items[0])

    # =========================================================================
    # Mutations
    # =========================================================================

    def create(self, values: Mapping[str, StoreValue]) -> FullLiveRule:
        """Create a rule. Without an ID, Windows assigns a GUID name."""
        unknown = set(values) - set(CREATE_PARAMETERS)
        if unknown:
            raise StoreError(f"Unknown rule attributes: {', '.join(sorted(unknown))}")
        if not values.get("DisplayName"):
            raise StoreError(
                "Cannot create a rule without a DisplayName",
                rule_id=str(values.get("ID") or "") or None,
            )

        output = self._run(
            "create.ps1.j2",
            mutating=True,
            rule_id=values.get("ID") or None,
            values={name: value for name, value in values.items() if value != ""},
            parameters=CREATE_PARAMETERS,
        )
        items = self._parse(output)
        if not items:
            raise StoreError(
                f"New-NetFirewallRule returned no rule for {values.get('DisplayName')}",
            )
        return FullLiveRule.from_mapping(items[0])

    def set_attribute(
        self,
        rule_id: str,
        attribute: str,
        value: StoreValue,
        *,
        current: Optional[FullLiveRule] = None,
    ) -> None:
        """Set one attribute of a rule."""
        if attribute not in SETTABLE_ATTRIBUTES:
            raise StoreError(
                f"Attribute cannot be set on the store: {attribute}",
                rule_id=rule_id,
                attribute=attribute,
            )
        if attribute == "Group":
            if current is None:
                raise StoreError(
                    "Group updates need the complete current rule",
                    rule_id=rule_id,
                    attribute=attribute,
                )
            if current.get("Group") == join_values(value):
                self.ctx.console.debug(f"{current.label} is already in group {value!r}")
                return

        self._run(
            "set.ps1.j2",
            mutating=True,
            rule_id=rule_id,
            attribute=attribute,
            value=value,
        )

    def rename(self, rule_id: str, display_name: str) -> None:
        """Change a rule's DisplayName."""
        self._run(
            "rename.ps1.j2",
            mutating=True,
            rule_id=rule_id,
            display_name=display_name,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def render(self, template_name: str, **variables: Any) -> str:
        """Render a NetSecurity script template."""
        template = self._jinja_env.get_template(f"netsecurity/{template_name}")
        return template.render(**variables)

    def _run(self, template_name: str, *, mutating: bool, **variables: Any) -> str:
        script = self.render(template_name, **variables)
        rule_id = variables.get("rule_id")
        try:
            return self.executor.run_powershell(
                script,
                executable=self.config.powershell,
                mutating=mutating,
                timeout=self.config.timeout,
            )
        except ExecutionError as e:
            raise StoreError(
                f"Firewall store call failed ({template_name.split('.')[0]}"
                f"{' ' + rule_id if rule_id else ''})",
                rule_id=rule_id,
                attribute=variables.get("attribute"),
                details=e.details,
            ) from e

    def _parse(self, output: str, *, rule_id: Optional[str] = None) -> list[dict[str, Any]]:
        """Parse ConvertTo-Json output into a list of rule mappings."""
        if not output:
            return []
        try:
            data = json.loads(output)
        except json.JSONDecodeError as e:
            raise StoreError(
                "Cannot parse firewall store output",
                rule_id=rule_id,
                details=[str(e), output[:200]],
            ) from e
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            raise StoreError(
                f"Unexpected firewall store output: {type(data).__name__}",
                rule_id=rule_id,
            )
        return [item for item in data if isinstance(item, dict)]
