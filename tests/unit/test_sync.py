"""Unit tests for the two-phase rule synchronizer."""

import json
from unittest.mock import Mock

import pytest

from fwsync.core.audit import AuditLogger
from fwsync.core.exceptions import CompatibilityError, ContractError, DesiredStateError
from fwsync.services.rules import FullLiveRule
from fwsync.services.sync import RuleState, RuleSynchronizer


RDP = {
    "ID": "{rdp}",
    "DisplayName": "Remote Desktop",
    "Group": "Remote Desktop",
    "Program": "System",
    "Enabled": "True",
    "Profile": "Domain",
    "Direction": "Inbound",
    "Action": "Allow",
    "Protocol": "TCP",
    "LocalPort": "3389",
}

WEB = {
    "ID": "{web}",
    "DisplayName": "Web",
    "Group": "Servers",
    "Program": "C:\\Apps\\web.exe",
    "Enabled": "True",
    "Profile": "Any",
    "Direction": "Inbound",
    "Action": "Allow",
    "Protocol": "TCP",
    "LocalPort": "80",
}


def run(ctx, store, records, audit=None):
    return RuleSynchronizer(ctx, store, audit).run(records)


class TestScenarios:
    """End-to-end behavior against the in-memory store."""

    def test_missing_rule_is_created(self, ctx, store, records):
        report = run(ctx, store, records({"ID": "R1", "DisplayName": "One", "Enabled": "True"}))

        assert store.rules["R1"]["Enabled"] == "True"
        assert [r.rule_id for r in report.created] == ["R1"]
        assert store.mutations[0][0] == "create"

    def test_ignored_attribute_is_untouched(self, ctx, store, records):
        store.add(ID="R2", DisplayName="Foo", Enabled="True")
        run(ctx, store, records({"ID": "R2", "DisplayName": "_ignore", "Enabled": "True"}))

        assert store.rules["R2"]["DisplayName"] == "Foo"
        assert store.mutations == []

    def test_orphan_is_disabled(self, ctx, store, records):
        store.add(ID="R3", DisplayName="Stray", Enabled="True")
        report = run(ctx, store, records())

        assert store.rules["R3"]["Enabled"] == "False"
        assert report.disabled == ["R3"]

    def test_port_list_is_written(self, ctx, store, records):
        store.add(ID="R4", DisplayName="Four", Enabled="True", LocalPort="80")
        run(ctx, store, records({"ID": "R4", "LocalPort": "80,443"}))

        assert set(store.rules["R4"]["LocalPort"].split(", ")) == {"80", "443"}
        assert store.mutations == [("set", "R4", "LocalPort", ["80", "443"])]

    def test_dry_run_reports_would_be_create(self, dry_ctx, store, records):
        report = run(dry_ctx, store, records({"ID": "R1", "DisplayName": "One", "Enabled": "True"}))

        assert "R1" not in store.rules
        assert store.mutations == []
        assert [r.rule_id for r in report.created] == ["R1"]
        assert report.dry_run


class TestSafetyProperties:
    """Invariants that hold for every run."""

    def test_second_run_is_a_noop(self, ctx, store, records):
        store.add(**RDP)
        store.add(**{**WEB, "Action": "Block"})
        store.add(ID="{stray}", DisplayName="Stray", Enabled="True")
        desired = records(
            RDP,
            WEB,
            {"ID": "{new}", "DisplayName": "New", "Enabled": "True", "LocalPort": "80,443"},
        )

        first = run(ctx, store, desired)
        assert first.mutation_count > 0

        mutations = len(store.mutations)
        second = run(ctx, store, desired)
        assert len(store.mutations) == mutations
        assert second.mutation_count == 0

    def test_second_run_with_unnamed_record_is_a_noop(self, ctx, store, records):
        desired = records(
            {"DisplayName": "Generated", "Enabled": "True", "LocalPort": "80,443"},
        )

        first = run(ctx, store, desired)
        assert len(first.created) == 1

        mutations = len(store.mutations)
        second = run(ctx, store, desired)
        assert len(store.mutations) == mutations
        assert second.mutation_count == 0
        assert second.disabled == []
        assert list(store.rules) == ["{generated-1}"]
        assert store.rules["{generated-1}"]["Enabled"] == "True"

    def test_rules_are_never_deleted(self, ctx, store, records):
        store.add(**RDP)
        store.add(**WEB)
        store.add(ID="{stray}", DisplayName="Stray", Enabled="True")
        before = set(store.rules)

        run(ctx, store, records(RDP))

        assert before <= set(store.rules)

    def test_wildcard_mismatch_disables_only(self, ctx, store, records):
        store.add(**WEB)
        report = run(ctx, store, records({"ID": "{web}", "Program": "C:\\Trusted\\*"}))

        assert store.rules["{web}"]["Enabled"] == "False"
        assert store.rules["{web}"]["Program"] == "C:\\Apps\\web.exe"
        assert store.mutations == [("set", "{web}", "Enabled", "False")]
        assert len(report.updated) == 1

    def test_wildcard_match_changes_nothing(self, ctx, store, records):
        store.add(**WEB)
        run(ctx, store, records({"ID": "{web}", "Program": "C:\\Apps\\*", "Enabled": "True"}))

        assert store.mutations == []

    def test_acknowledged_exclusion_is_left_alone(self, ctx, store, records):
        store.add(**RDP)
        exclusion = {**RDP, "ID": "_ignore"}
        report = run(ctx, store, records(exclusion))

        assert store.rules["{rdp}"]["Enabled"] == "True"
        assert store.mutations == []
        assert report.acknowledged == ["{rdp}"]

    def test_partial_exclusion_does_not_protect(self, ctx, store, records):
        """Every attribute must match the ignore record."""
        store.add(**RDP)
        exclusion = {**RDP, "ID": "_ignore", "LocalPort": "3390"}
        run(ctx, store, records(exclusion))

        assert store.rules["{rdp}"]["Enabled"] == "False"


class TestPhaseOne:
    """Tests for orphan handling."""

    def test_scope_limits_orphans(self, ctx, store, records):
        store.add(**RDP)
        store.add(ID="{out}", DisplayName="Outbound", Enabled="True", Direction="Outbound")
        run(ctx, store, records(RDP, direction="Inbound"))

        assert store.rules["{out}"]["Enabled"] == "True"

    def test_disabled_orphan_is_skipped(self, ctx, store, records):
        store.add(ID="R3", DisplayName="Stray", Enabled="False")
        report = run(ctx, store, records())

        assert store.mutations == []
        assert report.disabled == []

    def test_dry_run_reports_disable(self, dry_ctx, store, records):
        store.add(ID="R3", DisplayName="Stray", Enabled="True")
        report = run(dry_ctx, store, records())

        assert store.rules["R3"]["Enabled"] == "True"
        assert report.disabled == ["R3"]


class TestPhaseTwo:
    """Tests for creating and updating desired records."""

    def test_rule_outside_scope_is_fetched(self, ctx, store, records):
        """A disabled rule is not enumerated with Enabled=True but still updated."""
        store.add(**{**RDP, "Enabled": "False"})
        report = run(ctx, store, records({**RDP, "Enabled": "True"}, enabled="True"))

        assert store.rules["{rdp}"]["Enabled"] == "True"
        assert report.created == []
        assert store.mutations == [("set", "{rdp}", "Enabled", "True")]

    def test_ignored_record_is_skipped(self, ctx, store, records):
        report = run(ctx, store, records({"ID": "_ignore", "DisplayName": "Nothing"}))

        assert store.mutations == []
        assert report.with_state(RuleState.IGNORED)

    def test_new_rule_without_id(self, ctx, store, records):
        report = run(ctx, store, records({"DisplayName": "Generated", "Enabled": "True"}))

        assert len(report.created) == 1
        assert report.created[0].rule_id.startswith("{generated-")

    def test_unnamed_records_bind_one_rule_each(self, ctx, store, records):
        row = {"DisplayName": "Generated", "Action": "Allow"}
        desired = records(row, row)
        run(ctx, store, desired)
        assert len(store.rules) == 2

        report = run(ctx, store, desired)
        assert report.created == []
        assert sorted(r.rule_id for r in report.results) == ["{generated-1}", "{generated-2}"]

    def test_unnamed_record_skips_listed_rules(self, ctx, store, records):
        store.add(**RDP)
        unnamed = {key: value for key, value in RDP.items() if key != "ID"}
        report = run(ctx, store, records(RDP, unnamed))

        assert len(report.created) == 1
        assert report.created[0].rule_id == "{generated-1}"

    def test_unnamed_record_with_changed_values_is_created(self, ctx, store, records):
        row = {"DisplayName": "Generated", "Enabled": "True", "Action": "Allow"}
        run(ctx, store, records(row))
        report = run(ctx, store, records({**row, "Action": "Block"}))

        assert report.disabled == ["{generated-1}"]
        assert [r.rule_id for r in report.created] == ["{generated-2}"]

    def test_creation_omits_ignored_values(self, ctx, store, records):
        run(ctx, store, records({
            "ID": "R1",
            "DisplayName": "One",
            "Description": "_ignore",
            "LocalPort": "80,443",
        }))

        _, _, values = store.mutations[0]
        assert values == {"ID": "R1", "DisplayName": "One", "LocalPort": ["80", "443"]}

    def test_wildcard_in_creation_template_is_rejected(self, ctx, store, records):
        report = run(ctx, store, records(
            {"ID": "R1", "DisplayName": "One", "Program": "C:\\*"},
            {"ID": "R2", "DisplayName": "Two"},
        ))

        assert "R1" not in store.rules
        assert "R2" in store.rules
        assert [r.rule_id for r in report.rejected] == ["R1"]
        assert report.success

    def test_wildcard_id_is_rejected_without_lookup(self, ctx, store, records):
        store.get = Mock(return_value=None)
        report = run(ctx, store, records(
            {"ID": "{abc*}", "DisplayName": "One"},
            {"ID": "R2", "DisplayName": "Two"},
        ))

        assert [r.rule_id for r in report.rejected] == ["{abc*}"]
        assert store.get.call_args_list[0].args == ("R2",)
        assert len(store.get.call_args_list) == 1
        assert report.success

    def test_store_failure_continues(self, ctx, store, records):
        store.add(**RDP)
        store.add(**WEB)
        store.fail_on.add("{rdp}")
        report = run(ctx, store, records(
            {**RDP, "Action": "Block"},
            {**WEB, "Action": "Block"},
        ))

        assert store.rules["{web}"]["Action"] == "Block"
        assert [f.rule_id for f in report.failures] == ["{rdp}"]
        assert report.with_state(RuleState.FAILED)[0].rule_id == "{rdp}"
        assert not report.success

    def test_orphan_failure_continues(self, ctx, store, records):
        store.add(ID="R3", DisplayName="Stray", Enabled="True")
        store.fail_on.add("R3")
        report = run(ctx, store, records({"ID": "R1", "DisplayName": "One"}))

        assert report.failures[0].phase == "disable"
        assert "R1" in store.rules

    def test_id_mismatch_aborts(self, ctx, store, records):
        store.get = lambda rule_id: FullLiveRule.from_mapping({"ID": "{someone-else}"})
        with pytest.raises(ContractError):
            run(ctx, store, records({"ID": "R1", "DisplayName": "One"}))


class TestFastMode:
    """Tests for Enabled-only reconciliation."""

    def test_only_enabled_is_reconciled(self, fast_ctx, store, records):
        store.add(**WEB)
        report = run(fast_ctx, store, records({**WEB, "Enabled": "False", "Action": "Block"}))

        assert store.mutations == [("set", "{web}", "Enabled", "False")]
        assert store.rules["{web}"]["Action"] == "Allow"
        assert report.fast

    def test_patterns_are_not_verified(self, fast_ctx, store, records):
        store.add(**WEB)
        run(fast_ctx, store, records({"ID": "{web}", "Program": "C:\\Trusted\\*", "Enabled": "True"}))

        assert store.mutations == []

    def test_orphans_still_disabled(self, fast_ctx, store, records):
        store.add(ID="R3", DisplayName="Stray", Enabled="True")
        run(fast_ctx, store, records())

        assert store.rules["R3"]["Enabled"] == "False"

    def test_missing_rule_is_created(self, fast_ctx, store, records):
        report = run(fast_ctx, store, records({"ID": "R1", "DisplayName": "One", "Enabled": "True"}))

        assert "R1" in store.rules
        assert len(report.created) == 1


class TestCompatibilityGate:
    """The gate runs before the store is touched."""

    def test_empty_input(self, ctx, store):
        with pytest.raises(DesiredStateError):
            run(ctx, store, [])

    def test_old_version_refused(self, ctx, store, records):
        store.add(ID="R3", DisplayName="Stray", Enabled="True")
        with pytest.raises(CompatibilityError):
            run(ctx, store, records(version="0.9.0"))

        assert store.rules["R3"]["Enabled"] == "True"

    def test_missing_default_record(self, ctx, store, records):
        desired = records({"ID": "R1"})[1:]
        with pytest.raises(DesiredStateError):
            run(ctx, store, desired)

    def test_newer_version_accepted(self, ctx, store, records):
        report = run(ctx, store, records(version="9.0.0"))
        assert report.version == "9.0.0"


class TestReport:
    """Tests for the run summary."""

    def test_summary_counts(self, ctx, store, records):
        store.add(**WEB)
        store.add(ID="R3", DisplayName="Stray", Enabled="True")
        report = run(ctx, store, records(
            {**WEB, "Action": "Block"},
            {"ID": "R1", "DisplayName": "One"},
            {"ID": "R9", "Program": "*"},
            {"ID": "_ignore", "DisplayName": "Skip"},
        ))

        summary = report.summary()
        assert summary["Created"] == 1
        assert summary["Updated"] == 1
        assert summary["Disabled"] == 1
        assert summary["Rejected"] == 1
        assert summary["Ignored"] == 1
        assert summary["Failed"] == 0
        assert summary["Mode"] == "full"
        assert summary["Scope"] == "all rules"

    def test_unchanged_rule_not_counted(self, ctx, store, records):
        store.add(**WEB)
        report = run(ctx, store, records(WEB))
        assert report.updated == []

    def test_audit_brackets_run(self, ctx, store, records, tmp_path):
        log_path = tmp_path / "audit.log"
        store.add(ID="R3", DisplayName="Stray", Enabled="True")
        run(ctx, store, records(), audit=AuditLogger(log_path))

        events = [json.loads(line) for line in log_path.read_text().splitlines()]
        assert [e["event_type"] for e in events] == [
            "sync.start",
            "rule.disable",
            "sync.complete",
        ]
        assert events[-1]["parameters"]["disabled"] == 1
