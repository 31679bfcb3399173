"""Unit tests for the desired-state compatibility gate."""

import pytest

from fwsync.core.config import ReconcileConfig
from fwsync.core.exceptions import CompatibilityError, DesiredStateError
from fwsync.services.compat import (
    check_compatibility,
    default_record_id,
    default_record_row,
)
from fwsync.services.rules import RULE_FIELDS, DesiredRule
from fwsync.services.store import RuleFilter


def default(rule_id: str, **values: str) -> DesiredRule:
    return DesiredRule.from_row({"ID": rule_id, **values})


class TestDefaultRecord:
    """Tests for building Default Records."""

    def test_id_format(self):
        assert default_record_id("_default", "1.2.0") == "_default_v1.2.0"

    def test_row_carries_filter(self):
        row = default_record_row(
            "_default",
            "1.2.0",
            RuleFilter(group="Remote Desktop", direction="Inbound"),
        )
        assert row["ID"] == "_default_v1.2.0"
        assert row["Group"] == "Remote Desktop"
        assert row["Direction"] == "Inbound"
        assert row["DisplayName"] == ""
        assert list(row) == list(RULE_FIELDS)


class TestCheckCompatibility:
    """Tests for check_compatibility."""

    def test_accepts_current_version(self):
        record = check_compatibility([default("_default_v1.2.0")], ReconcileConfig())
        assert record.version == (1, 2, 0)
        assert record.version_string == "1.2.0"

    def test_accepts_minimum_version(self):
        record = check_compatibility([default("_default_v1.0.0")], ReconcileConfig())
        assert record.version == (1, 0, 0)

    def test_extracts_filter(self):
        record = check_compatibility(
            [default("_default_v1.2.0", Group="Core*", Enabled="True", Action="Allow")],
            ReconcileConfig(),
        )
        assert record.rule_filter == RuleFilter(group="Core*", enabled="True", action="Allow")

    def test_empty_filter(self):
        record = check_compatibility([default("_default_v1.2.0")], ReconcileConfig())
        assert record.rule_filter == RuleFilter()

    def test_empty_collection(self):
        with pytest.raises(DesiredStateError):
            check_compatibility([], ReconcileConfig())

    def test_wrong_prefix(self):
        with pytest.raises(DesiredStateError) as exc:
            check_compatibility([default("{1234}")], ReconcileConfig())
        assert "Default Record" in str(exc.value)

    def test_unparsable_version(self):
        with pytest.raises(CompatibilityError) as exc:
            check_compatibility([default("_default_vnext")], ReconcileConfig())
        assert exc.value.found == "next"

    def test_older_than_minimum(self):
        with pytest.raises(CompatibilityError) as exc:
            check_compatibility([default("_default_v0.9.9")], ReconcileConfig())
        assert exc.value.minimum == "1.0.0"
        assert exc.value.exit_code == 21

    def test_configured_minimum(self):
        config = ReconcileConfig(minimum_version="1.2.0")
        with pytest.raises(CompatibilityError):
            check_compatibility([default("_default_v1.1.9")], config)

    def test_configured_marker(self):
        config = ReconcileConfig(default_marker="_scope")
        record = check_compatibility([default("_scope_v1.2.0")], config)
        assert record.version == (1, 2, 0)
