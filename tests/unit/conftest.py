"""Shared fixtures: an in-memory rule store and execution contexts."""

import fnmatch
from typing import Mapping, Optional

import pytest

from fwsync.core import audit
from fwsync.core.config import AppConfig, ToolConfig
from fwsync.core.context import create_context
from fwsync.core.exceptions import StoreError
from fwsync.services.compat import default_record_row
from fwsync.services.rules import (
    RULE_FIELDS,
    DesiredRule,
    FullLiveRule,
    PartialLiveRule,
    join_values,
)
from fwsync.services.store import RuleFilter


def in_scope(rule_filter: RuleFilter, data: Mapping[str, str]) -> bool:
    """Evaluate a filter the way Get-NetFirewallRule does.

    DisplayGroup is compared against Group, which is what the store
    resolves it to for rules without a localized group name.
    """
    for parameter, value in rule_filter.parameters().items():
        attribute = "Group" if parameter == "DisplayGroup" else parameter
        actual = data.get(attribute, "")
        if parameter in ("DisplayName", "Group", "DisplayGroup"):
            if not fnmatch.fnmatch(actual.lower(), value.lower()):
                return False
        elif actual != value:
            return False
    return True


class MemoryRuleStore:
    """RuleStore fake keeping rules in dicts and recording every mutation."""

    def __init__(self, *rules: Mapping[str, str]) -> None:
        self.rules: dict[str, dict[str, str]] = {}
        self.mutations: list[tuple] = []
        self.fail_on: set[str] = set()
        self._generated = 0
        for rule in rules:
            self.add(**rule)

    def add(self, **attributes: str) -> FullLiveRule:
        data = {name: "" for name in RULE_FIELDS}
        data.update(attributes)
        self.rules[data["ID"]] = data
        return FullLiveRule.from_mapping(data)

    def enumerate(self, rule_filter: RuleFilter, *, full: bool = True):
        rule_class = FullLiveRule if full else PartialLiveRule
        result = []
        for data in self.rules.values():
            if in_scope(rule_filter, data):
                result.append(rule_class.from_mapping(data))
        return result

    def get(self, rule_id: str) -> Optional[FullLiveRule]:
        data = self.rules.get(rule_id)
        return FullLiveRule.from_mapping(data) if data is not None else None

    def create(self, values):
        rule_id = values.get("ID")
        if not rule_id:
            self._generated += 1
            rule_id = f"{{generated-{self._generated}}}"
        self._check(rule_id)
        self.mutations.append(("create", rule_id, dict(values)))
        attributes = {name: join_values(value) for name, value in values.items()}
        attributes["ID"] = rule_id
        return self.add(**attributes)

    def set_attribute(self, rule_id, attribute, value, *, current=None):
        if attribute == "Group" and current is None:
            raise StoreError("Group updates need the current rule", rule_id=rule_id)
        self._check(rule_id)
        self.mutations.append(("set", rule_id, attribute, value))
        self.rules[rule_id][attribute] = join_values(value)

    def rename(self, rule_id, display_name):
        self._check(rule_id)
        self.mutations.append(("rename", rule_id, display_name))
        self.rules[rule_id]["DisplayName"] = display_name

    def _check(self, rule_id: str) -> None:
        if rule_id in self.fail_on:
            raise StoreError(f"Access denied for {rule_id}", rule_id=rule_id)


def make_records(*rows: Mapping[str, str], version: str = "1.2.0", **scope: str) -> list[DesiredRule]:
    """Desired-state collection: Default Record for ``scope`` followed by ``rows``."""
    default = default_record_row("_default", version, RuleFilter.from_values(**scope))
    return [
        DesiredRule.from_row(row, line=index + 2)
        for index, row in enumerate([default, *rows])
    ]


@pytest.fixture(autouse=True)
def reset_audit_logger():
    """Each test starts with the disabled global audit logger."""
    audit._audit_logger = None
    yield
    audit._audit_logger = None


@pytest.fixture
def app_config():
    return AppConfig(config=ToolConfig())


@pytest.fixture
def ctx(app_config):
    return create_context(app_config=app_config)


@pytest.fixture
def dry_ctx(app_config):
    return create_context(dry_run=True, app_config=app_config)


@pytest.fixture
def fast_ctx(app_config):
    return create_context(fast=True, app_config=app_config)


@pytest.fixture
def records():
    """Factory building a desired-state collection."""
    return make_records


@pytest.fixture
def store():
    return MemoryRuleStore()
