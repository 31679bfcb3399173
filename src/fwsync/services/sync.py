"""Two-phase rule synchronization.

Phase 1 disables live rules in scope that have no desired record
(orphans). Phase 2 creates or updates every desired record. Rules
are never deleted.

Usage:
    synchronizer = RuleSynchronizer(ctx, store)
    report = synchronizer.run(records)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Sequence

from fwsync import __version__
from fwsync.core.audit import AuditEventType, AuditLogger, AuditResult, get_audit_logger
from fwsync.core.context import ExecutionContext
from fwsync.core.exceptions import ExecutionError, StoreError
from fwsync.core.validation import parse_version
from fwsync.services.compat import DefaultRecord, check_compatibility
from fwsync.services.reconciler import (
    ATTRIBUTE_INDEX,
    ATTRIBUTES,
    ENABLED,
    AttributeOutcome,
    AttributeReconciler,
    Decision,
)
from fwsync.services.rules import RULE_FIELDS, DesiredRule, LiveRule, ValueKind, find_rule
from fwsync.services.store import RuleStore, StoreValue


# Per-rule store failures; anything else aborts the run
RECOVERABLE_ERRORS = (StoreError, ExecutionError)


class RuleState(str, Enum):
    """Terminal state of a desired record after Phase 2."""
    PENDING = "pending"
    IGNORED = "ignored"
    UPDATED = "updated"
    CREATED = "created"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass
class RuleResult:
    """What happened to one desired record."""
    label: str
    state: RuleState = RuleState.PENDING
    rule_id: str = ""
    outcomes: list[AttributeOutcome] = field(default_factory=list)
    message: Optional[str] = None

    @property
    def changed(self) -> bool:
        """Rule was created or had at least one attribute changed."""
        if self.state is RuleState.CREATED:
            return True
        return any(outcome.changed for outcome in self.outcomes)


@dataclass
class RuleFailure:
    """A store failure recorded against one rule."""
    rule_id: str
    phase: str
    error: str


@dataclass
class SyncReport:
    """Summary of a synchronization run."""
    dry_run: bool = False
    fast: bool = False
    version: str = ""
    scope: str = ""
    disabled: list[str] = field(default_factory=list)
    acknowledged: list[str] = field(default_factory=list)
    results: list[RuleResult] = field(default_factory=list)
    failures: list[RuleFailure] = field(default_factory=list)

    def with_state(self, state: RuleState) -> list[RuleResult]:
        return [result for result in self.results if result.state is state]

    @property
    def created(self) -> list[RuleResult]:
        return self.with_state(RuleState.CREATED)

    @property
    def updated(self) -> list[RuleResult]:
        """Existing rules that had at least one attribute changed."""
        return [r for r in self.with_state(RuleState.UPDATED) if r.changed]

    @property
    def rejected(self) -> list[RuleResult]:
        return self.with_state(RuleState.REJECTED)

    @property
    def mutation_count(self) -> int:
        """Store mutations issued (or that would be issued in dry-run)."""
        count = len(self.disabled) + len(self.created)
        for result in self.with_state(RuleState.UPDATED):
            count += sum(1 for outcome in result.outcomes if outcome.changed)
        return count

    @property
    def success(self) -> bool:
        return not self.failures

    def summary(self) -> dict[str, Any]:
        return {
            "Desired state version": self.version,
            "Scope": self.scope,
            "Mode": ("fast" if self.fast else "full") + (" (dry-run)" if self.dry_run else ""),
            "Created": len(self.created),
            "Updated": len(self.updated),
            "Disabled": len(self.disabled),
            "Ignored": len(self.with_state(RuleState.IGNORED)) + len(self.acknowledged),
            "Rejected": len(self.rejected),
            "Failed": len(self.failures),
        }


class RuleSynchronizer:
    """Reconciles the live rule store with a desired-state collection."""

    def __init__(
        self,
        ctx: ExecutionContext,
        store: RuleStore,
        audit: Optional[AuditLogger] = None,
    ) -> None:
        self.ctx = ctx
        self.store = store
        self.audit = audit or get_audit_logger()
        self.settings = ctx.config.reconcile

    def run(self, records: Sequence[DesiredRule]) -> SyncReport:
        """Run both phases against ``records`` (Default Record first).

        Raises:
            DesiredStateError: Input missing a Default Record
            CompatibilityError: Input version unsupported
            ContractError: Internal ID mismatch
        """
        default = check_compatibility(records, self.settings)
        self._warn_if_newer(default)

        desired = list(records[1:])
        reconciler = AttributeReconciler(self.ctx, self.store, self.audit)
        report = SyncReport(
            dry_run=self.ctx.dry_run,
            fast=self.ctx.fast,
            version=default.version_string,
            scope=default.rule_filter.describe(),
        )

        self.audit.log_summary(
            AuditEventType.SYNC_START,
            AuditResult.DRY_RUN if self.ctx.dry_run else AuditResult.SUCCESS,
            {"version": report.version, "scope": report.scope, "fast": self.ctx.fast},
        )

        self.ctx.console.step(f"Reading live rules ({report.scope})")
        live_rules = self.store.enumerate(default.rule_filter, full=True)
        self.ctx.console.verbose(f"{len(live_rules)} live rule(s) in scope")
        desired = self._bind_unnamed(live_rules, desired)

        self.ctx.console.step("Disabling rules missing from the desired state")
        self._disable_orphans(live_rules, desired, reconciler, report)

        if self.ctx.fast:
            self.ctx.console.step("Reconciling Enabled state (fast mode)")
            live_rules = self.store.enumerate(default.rule_filter, full=False)
        else:
            self.ctx.console.step("Creating and updating desired rules")
        self._apply_desired(live_rules, desired, reconciler, report)

        self.audit.log_summary(
            AuditEventType.SYNC_COMPLETE,
            AuditResult.SUCCESS if report.success else AuditResult.PARTIAL,
            {key.lower(): value for key, value in report.summary().items()},
        )
        return report

    def _bind_unnamed(
        self,
        live_rules: Sequence[LiveRule],
        desired: Sequence[DesiredRule],
    ) -> list[DesiredRule]:
        """Bind desired records without an ID to the live rule they describe.

        Such a record is matched on its literal values, so the rule it
        created on an earlier run is reconciled again instead of being
        disabled as an orphan and created a second time. Records with a
        wildcard or without a DisplayName are left unbound.
        """
        claimed = {record.rule_id for record in desired if record.rule_id}
        bound: list[DesiredRule] = []
        for record in desired:
            if record.rule_id or record.pattern_fields():
                bound.append(record)
                continue
            # ID is empty, so every literal value is a reconciled attribute
            constraints = {
                name: ATTRIBUTE_INDEX[name].normalize(text)
                for name, text in record.concrete_values().items()
            }
            if "DisplayName" not in constraints:
                bound.append(record)
                continue

            candidates = [live for live in live_rules if live.rule_id not in claimed]
            live = find_rule(candidates, **constraints)
            if live is None:
                bound.append(record)
                continue

            self.ctx.console.verbose(f"Desired record on line {record.line} is {live.label}")
            claimed.add(live.rule_id)
            bound.append(record.with_id(live.rule_id))
        return bound

    # -------------------------------------------------------------------------
    # Phase 1
    # -------------------------------------------------------------------------

    def _disable_orphans(
        self,
        live_rules: Sequence[LiveRule],
        desired: Sequence[DesiredRule],
        reconciler: AttributeReconciler,
        report: SyncReport,
    ) -> None:
        for live in live_rules:
            if find_rule(desired, ID=live.rule_id) is not None:
                continue

            attributes = {name: live.get(name) for name in RULE_FIELDS if name != "ID"}
            if find_rule(desired, ID=self.settings.ignore_tag, **attributes) is not None:
                self.ctx.console.info(f"Ignoring {live.label} (excluded from desired state)")
                report.acknowledged.append(live.rule_id)
                continue

            if not live.enabled:
                continue

            self.ctx.console.step(f"Disabling {live.label}: not in desired state")
            try:
                outcome = reconciler.disable(live)
            except RECOVERABLE_ERRORS as e:
                self._record_failure(report, live.rule_id, "disable", e)
                continue
            if outcome.decision is Decision.DISABLED:
                report.disabled.append(live.rule_id)

    # -------------------------------------------------------------------------
    # Phase 2
    # -------------------------------------------------------------------------

    def _apply_desired(
        self,
        live_rules: Sequence[LiveRule],
        desired: Sequence[DesiredRule],
        reconciler: AttributeReconciler,
        report: SyncReport,
    ) -> None:
        attributes = (ENABLED,) if self.ctx.fast else ATTRIBUTES

        for record in desired:
            result = RuleResult(label=record.label, rule_id=record.rule_id)
            report.results.append(result)

            if record.is_ignored:
                self.ctx.console.verbose(f"Ignoring desired record on line {record.line}")
                result.state = RuleState.IGNORED
                continue

            try:
                live = self._lookup(live_rules, record)
                if live is not None:
                    self.ctx.console.verbose(f"Checking {live.label}")
                    result.outcomes = reconciler.reconcile_rule(
                        record, live, attributes=attributes
                    )
                    result.state = RuleState.UPDATED
                else:
                    self._create(record, result)
            except RECOVERABLE_ERRORS as e:
                result.state = RuleState.FAILED
                result.message = str(e)
                self._record_failure(report, record.rule_id or record.label, "update", e)

    def _lookup(self, live_rules: Sequence[LiveRule], record: DesiredRule) -> Optional[LiveRule]:
        """Resolve the live rule of a desired record by ID.

        Rules outside the enumerated scope (e.g. currently disabled when
        the scope is Enabled=True) are fetched directly.
        """
        if not record.rule_id or record.value("ID").kind is ValueKind.PATTERN:
            return None
        live = find_rule(live_rules, ID=record.rule_id)
        if live is None:
            live = self.store.get(record.rule_id)
        return live

    def _create(self, record: DesiredRule, result: RuleResult) -> None:
        patterns = record.pattern_fields()
        if patterns:
            message = (
                f"Cannot create {record.label}: wildcard in {', '.join(patterns)} "
                "(creation needs concrete values)"
            )
            self.ctx.console.error(message)
            result.state = RuleState.REJECTED
            result.message = message
            self.audit.log_failure(AuditEventType.RULE_REJECT, record.rule_id or None, message)
            return

        values: dict[str, StoreValue] = {}
        for name, text in record.concrete_values().items():
            spec = ATTRIBUTE_INDEX.get(name)
            values[name] = spec.store_value(text) if spec else text

        self.ctx.console.step(f"Creating {record.label}")
        for name, value in values.items():
            self.ctx.console.change(record.rule_id or "<new>", name, None, value)

        if self.ctx.dry_run:
            self.ctx.console.dry_run_msg(f"create rule {record.label}")
        else:
            created = self.store.create(values)
            result.rule_id = created.rule_id
            self.ctx.console.success(f"Created {created.label}")

        result.state = RuleState.CREATED
        self.audit.log_change(
            AuditEventType.RULE_CREATE,
            result.rule_id,
            after=values,
            dry_run=self.ctx.dry_run,
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _record_failure(
        self,
        report: SyncReport,
        rule_id: str,
        phase: str,
        error: Exception,
    ) -> None:
        self.ctx.console.error(f"Failed to {phase} {rule_id}: {error}")
        report.failures.append(RuleFailure(rule_id=rule_id, phase=phase, error=str(error)))
        self.audit.log_failure(AuditEventType.RULE_FAILURE, rule_id, str(error))

    def _warn_if_newer(self, default: DefaultRecord) -> None:
        if default.version > parse_version(__version__):
            self.ctx.console.warn(
                f"Desired state was captured by fwsync {default.version_string}, "
                f"newer than this version ({__version__})"
            )
