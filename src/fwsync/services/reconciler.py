"""Attribute reconciliation.

Decides, per attribute, whether a live rule's value is left alone,
ignored, verified against a pattern (disabling the rule on mismatch)
or overwritten, and issues the matching store mutation.

Attributes are processed from the static ATTRIBUTES table in a fixed
order: DisplayName before Group, Protocol before the ports (ports are
only valid for TCP/UDP), Enabled last.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from fwsync.core.audit import AuditEventType, AuditLogger, get_audit_logger
from fwsync.core.context import ExecutionContext
from fwsync.core.exceptions import ContractError, StoreError
from fwsync.services.rules import (
    LIST_SEPARATOR,
    DesiredRule,
    FieldValue,
    LiveRule,
    ValueKind,
    split_values,
)
from fwsync.services.store import RuleStore, StoreValue


class Mutator(str, Enum):
    """Store operation used to change an attribute."""
    SET = "set"          # set_attribute(rule_id, name, value)
    RENAME = "rename"    # rename(rule_id, display_name)
    GROUP = "group"      # get full rule, then set_attribute(..., current=rule)


@dataclass(frozen=True)
class AttributeSpec:
    """How one attribute is compared and written."""
    name: str
    mutator: Mutator = Mutator.SET
    is_list: bool = False
    is_bool: bool = False

    def normalize(self, text: str) -> str:
        """Canonical form used for comparison ("80,443" == "80, 443", "true" == "True")."""
        if self.is_bool and text.lower() in ("true", "false"):
            return text.capitalize()
        if not self.is_list:
            return text
        value = split_values(text)
        return LIST_SEPARATOR.join(value) if isinstance(value, list) else value.strip()

    def store_value(self, text: str) -> StoreValue:
        """Value handed to the store; lists are split on ","."""
        if self.is_list:
            return split_values(text)
        return self.normalize(text)


ATTRIBUTES: tuple[AttributeSpec, ...] = (
    AttributeSpec("DisplayName", Mutator.RENAME),
    AttributeSpec("Group", Mutator.GROUP),
    AttributeSpec("Description"),
    AttributeSpec("Program"),
    AttributeSpec("Profile"),
    AttributeSpec("Direction"),
    AttributeSpec("Action"),
    AttributeSpec("Protocol"),
    AttributeSpec("LocalAddress", is_list=True),
    AttributeSpec("LocalPort", is_list=True),
    AttributeSpec("RemoteAddress", is_list=True),
    AttributeSpec("RemotePort", is_list=True),
    AttributeSpec("Enabled", is_bool=True),
)

ATTRIBUTE_INDEX: dict[str, AttributeSpec] = {spec.name: spec for spec in ATTRIBUTES}
ENABLED = ATTRIBUTE_INDEX["Enabled"]


class Decision(str, Enum):
    """Outcome of reconciling one attribute."""
    NOOP = "noop"            # unset, or already equal
    IGNORED = "ignored"      # ignore tag
    VERIFIED = "verified"    # pattern matched the live value
    UPDATED = "updated"      # live value overwritten
    CONTAINED = "contained"  # pattern mismatch, rule forced to Enabled=False
    DISABLED = "disabled"    # orphan rule disabled
    HELD = "held"            # re-enable skipped, rule was contained this run


@dataclass(frozen=True)
class AttributeOutcome:
    """Result of reconciling one attribute of one rule."""
    rule_id: str
    attribute: str
    decision: Decision
    before: str = ""
    after: Optional[StoreValue] = None
    dry_run: bool = False

    @property
    def changed(self) -> bool:
        """A store mutation was issued (or would be, in dry-run)."""
        return self.decision in (Decision.UPDATED, Decision.DISABLED) or (
            self.decision is Decision.CONTAINED and self.after is not None
        )


class AttributeReconciler:
    """Compares desired and live attribute values and applies changes.

    Store failures are not retried and propagate to the caller.
    """

    def __init__(
        self,
        ctx: ExecutionContext,
        store: RuleStore,
        audit: Optional[AuditLogger] = None,
    ) -> None:
        self.ctx = ctx
        self.store = store
        self.audit = audit or get_audit_logger()
        # Rules forced to Enabled=False during this run
        self._contained: set[str] = set()

    def reconcile(
        self,
        live: LiveRule,
        spec: AttributeSpec,
        desired: FieldValue,
    ) -> AttributeOutcome:
        """Reconcile one attribute of a live rule.

        Args:
            live: Current live rule
            spec: Attribute to reconcile
            desired: Desired value for the attribute

        Returns:
            AttributeOutcome describing what was (or would be) done
        """
        rule_id = live.rule_id
        live_value = live.get(spec.name)

        if desired.kind is ValueKind.UNSET:
            return AttributeOutcome(rule_id, spec.name, Decision.NOOP, live_value)

        if desired.kind is ValueKind.IGNORE:
            self.ctx.console.info(f"Ignoring {live.label}.{spec.name} (ignore tag)")
            return AttributeOutcome(rule_id, spec.name, Decision.IGNORED, live_value)

        if desired.kind is ValueKind.PATTERN:
            if desired.matches(live_value):
                self.ctx.console.debug(
                    f"{live.label}.{spec.name} {live_value!r} matches {desired.raw!r}"
                )
                return AttributeOutcome(rule_id, spec.name, Decision.VERIFIED, live_value)
            self.ctx.console.warn(
                f"{live.label}.{spec.name} {live_value!r} does not match "
                f"{desired.raw!r}; disabling the rule"
            )
            return self._contain(live, spec.name)

        # live may predate a containment issued earlier in this pass
        held = spec is ENABLED and spec.normalize(desired.raw) == "True"
        if held and rule_id in self._contained:
            self.ctx.console.warn(
                f"Keeping {live.label} disabled: an attribute failed pattern verification"
            )
            return AttributeOutcome(rule_id, spec.name, Decision.HELD, live_value)

        if spec.normalize(desired.raw) == spec.normalize(live_value):
            return AttributeOutcome(rule_id, spec.name, Decision.NOOP, live_value)

        value = spec.store_value(desired.raw)
        self._apply(live, spec, value, live_value, AuditEventType.RULE_UPDATE)
        return AttributeOutcome(
            rule_id, spec.name, Decision.UPDATED, live_value, value, self.ctx.dry_run
        )

    def reconcile_rule(
        self,
        desired: DesiredRule,
        live: LiveRule,
        *,
        attributes: Iterable[AttributeSpec] = ATTRIBUTES,
    ) -> list[AttributeOutcome]:
        """Reconcile every attribute of a live rule against its desired record.

        Raises:
            ContractError: If the desired and live IDs differ
        """
        if desired.rule_id != live.rule_id:
            raise ContractError(
                f"Refusing to reconcile desired rule {desired.rule_id!r} "
                f"against live rule {live.rule_id!r}",
                details=[f"Desired record line: {desired.line}"],
            )

        return [
            self.reconcile(live, spec, desired.value(spec.name))
            for spec in attributes
        ]

    def disable(self, live: LiveRule) -> AttributeOutcome:
        """Disable a rule (orphan path). Never deletes."""
        if not live.enabled:
            return AttributeOutcome(live.rule_id, ENABLED.name, Decision.NOOP, live.get("Enabled"))
        before = live.get("Enabled")
        self._apply(live, ENABLED, "False", before, AuditEventType.RULE_DISABLE)
        return AttributeOutcome(
            live.rule_id, ENABLED.name, Decision.DISABLED, before, "False", self.ctx.dry_run
        )

    def _contain(self, live: LiveRule, attribute: str) -> AttributeOutcome:
        """Force Enabled=False after a failed pattern verification."""
        rule_id = live.rule_id
        before = live.get("Enabled")
        if rule_id in self._contained or not live.enabled:
            self._contained.add(rule_id)
            return AttributeOutcome(rule_id, attribute, Decision.CONTAINED, before)

        self._contained.add(rule_id)
        self._apply(live, ENABLED, "False", before, AuditEventType.RULE_CONTAIN)
        return AttributeOutcome(
            rule_id, attribute, Decision.CONTAINED, before, "False", self.ctx.dry_run
        )

    def _apply(
        self,
        live: LiveRule,
        spec: AttributeSpec,
        value: StoreValue,
        before: str,
        event_type: AuditEventType,
    ) -> None:
        """Issue the store mutation for one attribute (skipped in dry-run)."""
        rule_id = live.rule_id
        self.ctx.console.change(rule_id, spec.name, before, value)

        if self.ctx.dry_run:
            self.ctx.console.dry_run_msg(f"set {rule_id}.{spec.name} = {value!r}")
        elif spec.mutator is Mutator.RENAME:
            self.store.rename(rule_id, value)
        elif spec.mutator is Mutator.GROUP:
            # The store can only change Group through the complete rule
            current = self.store.get(rule_id)
            if current is None:
                raise StoreError(
                    f"Rule {rule_id} disappeared before its group could be set",
                    rule_id=rule_id,
                    attribute=spec.name,
                )
            self.store.set_attribute(rule_id, spec.name, value, current=current)
        else:
            self.store.set_attribute(rule_id, spec.name, value)

        self.audit.log_change(
            event_type,
            rule_id,
            attribute=spec.name,
            before=before,
            after=value,
            dry_run=self.ctx.dry_run,
        )
