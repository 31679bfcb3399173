"""Unit tests for the NetSecurity PowerShell store."""

import json
from unittest.mock import Mock

import pytest

from fwsync.core.config import StoreConfig
from fwsync.core.exceptions import ExecutionError, StoreError
from fwsync.services.netsecurity import NetSecurityStore, ps_quote
from fwsync.services.rules import FullLiveRule, PartialLiveRule
from fwsync.services.store import RuleFilter


WEB_JSON = {
    "ID": "{web}",
    "DisplayName": "Web",
    "Group": "Servers",
    "Program": "C:\\Apps\\web.exe",
    "Enabled": "True",
    "Profile": "Any",
    "Direction": "Inbound",
    "Action": "Allow",
    "Protocol": "TCP",
    "LocalAddress": "Any",
    "LocalPort": "80, 443",
    "RemoteAddress": "Any",
    "RemotePort": "Any",
    "Description": None,
}


@pytest.fixture
def executor():
    mock = Mock()
    mock.run_powershell.return_value = ""
    return mock


@pytest.fixture
def netsecurity(ctx, executor):
    return NetSecurityStore(ctx, executor, StoreConfig(powershell="pwsh", timeout=30))


def script_of(executor) -> str:
    return executor.run_powershell.call_args.args[0]


class TestPsQuote:
    """Tests for PowerShell literal quoting."""

    def test_plain_string(self):
        assert ps_quote("Web") == "'Web'"

    def test_single_quote_doubled(self):
        assert ps_quote("it's") == "'it''s'"

    def test_variables_not_expanded(self):
        assert ps_quote("$env:PATH") == "'$env:PATH'"

    def test_list(self):
        assert ps_quote(["80", "443"]) == "@('80', '443')"


class TestReads:
    """Tests for enumerate and get."""

    def test_enumerate_full(self, netsecurity, executor):
        executor.run_powershell.return_value = json.dumps([WEB_JSON])
        rules = netsecurity.enumerate(RuleFilter(group="Serv", enabled="True"))

        assert len(rules) == 1
        assert isinstance(rules[0], FullLiveRule)
        assert rules[0].get("LocalPort") == "80, 443"
        assert rules[0].get("Description") == ""

        script = script_of(executor)
        assert "$params['Group'] = '*Serv*'" in script
        assert "$params['Enabled'] = 'True'" in script
        assert "Get-NetFirewallPortFilter" in script
        assert "ConvertTo-Json" in script

    def test_enumerate_post_filters(self, netsecurity, executor):
        netsecurity.enumerate(
            RuleFilter(display_name="Web", direction="Inbound", profile="Domain")
        )
        script = script_of(executor)
        query, _, post = script.partition("Get-NetFirewallRule @params")

        assert "$params['Direction'] = 'Inbound'" in query
        assert "'DisplayName'" not in query
        assert "'Profile'" not in query
        assert "$_.DisplayName -like '*Web*'" in post
        assert "$_.Profile.ToString() -eq 'Domain'" in post

    def test_enumerate_without_post_filters(self, netsecurity, executor):
        netsecurity.enumerate(RuleFilter(group="Core"))
        assert "Where-Object" not in script_of(executor)

    def test_enumerate_is_not_mutating(self, netsecurity, executor):
        netsecurity.enumerate(RuleFilter())
        kwargs = executor.run_powershell.call_args.kwargs
        assert kwargs["mutating"] is False
        assert kwargs["executable"] == "pwsh"
        assert kwargs["timeout"] == 30

    def test_enumerate_partial(self, netsecurity, executor):
        executor.run_powershell.return_value = json.dumps([WEB_JSON])
        rules = netsecurity.enumerate(RuleFilter(), full=False)

        assert isinstance(rules[0], PartialLiveRule)
        assert "Get-NetFirewallPortFilter" not in script_of(executor)

    def test_single_object_output(self, netsecurity, executor):
        executor.run_powershell.return_value = json.dumps(WEB_JSON)
        assert len(netsecurity.enumerate(RuleFilter())) == 1

    def test_empty_output(self, netsecurity, executor):
        assert netsecurity.enumerate(RuleFilter()) == []

    def test_get(self, netsecurity, executor):
        executor.run_powershell.return_value = json.dumps([WEB_JSON])
        rule = netsecurity.get("{web}")

        assert rule.rule_id == "{web}"
        assert "$name = '{web}'" in script_of(executor)

    def test_get_matches_name_exactly(self, netsecurity, executor):
        netsecurity.get("{abc*}")
        script = script_of(executor)

        assert "-Name ([WildcardPattern]::Escape($name))" in script
        assert "Where-Object { $_.Name -eq $name }" in script

    def test_get_drops_other_rules(self, netsecurity, executor):
        executor.run_powershell.return_value = json.dumps([WEB_JSON])
        assert netsecurity.get("{we*}") is None

    def test_get_missing(self, netsecurity, executor):
        executor.run_powershell.return_value = "[]"
        assert netsecurity.get("{none}") is None

    def test_invalid_json(self, netsecurity, executor):
        executor.run_powershell.return_value = "WARNING: not json"
        with pytest.raises(StoreError) as exc:
            netsecurity.get("{web}")
        assert exc.value.rule_id == "{web}"

    def test_execution_error_becomes_store_error(self, netsecurity, executor):
        executor.run_powershell.side_effect = ExecutionError("boom", return_code=1)
        with pytest.raises(StoreError) as exc:
            netsecurity.get("{web}")
        assert exc.value.rule_id == "{web}"
        assert "Exit code: 1" in exc.value.details


class TestMutations:
    """Tests for create, set_attribute and rename."""

    def test_create(self, netsecurity, executor):
        executor.run_powershell.return_value = json.dumps(WEB_JSON)
        rule = netsecurity.create({
            "ID": "{web}",
            "DisplayName": "Web",
            "LocalPort": ["80", "443"],
        })

        assert rule.rule_id == "{web}"
        script = script_of(executor)
        assert "$params['Name'] = '{web}'" in script
        assert "$params['LocalPort'] = @('80', '443')" in script
        assert "New-NetFirewallRule @params" in script
        assert executor.run_powershell.call_args.kwargs["mutating"] is True

    def test_create_without_id(self, netsecurity, executor):
        executor.run_powershell.return_value = json.dumps(WEB_JSON)
        netsecurity.create({"DisplayName": "Web"})
        assert "'Name'" not in script_of(executor)

    def test_create_requires_display_name(self, netsecurity, executor):
        with pytest.raises(StoreError):
            netsecurity.create({"ID": "{web}"})
        executor.run_powershell.assert_not_called()

    def test_create_without_output(self, netsecurity, executor):
        with pytest.raises(StoreError):
            netsecurity.create({"DisplayName": "Web"})

    def test_set_attribute(self, netsecurity, executor):
        netsecurity.set_attribute("{web}", "Enabled", "False")
        assert "Set-NetFirewallRule -Name '{web}' -Enabled 'False'" in script_of(executor)

    def test_set_list_attribute(self, netsecurity, executor):
        netsecurity.set_attribute("{web}", "RemoteAddress", ["10.0.0.1", "10.0.0.2"])
        assert "-RemoteAddress @('10.0.0.1', '10.0.0.2')" in script_of(executor)

    def test_set_group_needs_current(self, netsecurity, executor):
        with pytest.raises(StoreError):
            netsecurity.set_attribute("{web}", "Group", "Edge")
        executor.run_powershell.assert_not_called()

    def test_set_group(self, netsecurity, executor):
        current = FullLiveRule.from_mapping(WEB_JSON)
        netsecurity.set_attribute("{web}", "Group", "Edge", current=current)
        script = script_of(executor)
        assert "$rule.Group = 'Edge'" in script
        assert "$rule | Set-NetFirewallRule" in script

    def test_set_group_already_current(self, netsecurity, executor):
        current = FullLiveRule.from_mapping(WEB_JSON)
        netsecurity.set_attribute("{web}", "Group", "Servers", current=current)
        executor.run_powershell.assert_not_called()

    def test_unsupported_attribute(self, netsecurity, executor):
        with pytest.raises(StoreError):
            netsecurity.set_attribute("{web}", "DisplayName", "Other")

    def test_rename(self, netsecurity, executor):
        netsecurity.rename("{web}", "Web (public)")
        assert "-NewDisplayName 'Web (public)'" in script_of(executor)
