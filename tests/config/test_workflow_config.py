"""
Tests for the YAML workflow policy pipeline (``claims_config``).

load -> validate -> compile -> WorkflowPolicy, plus the trace log entry.
"""

from datetime import timedelta
from pathlib import Path

import pytest
import yaml

from claims_config import get_active_policy
from claims_config.loader import (
    compute_checksum,
    load_configuration_set,
    parse_configuration_set,
    parse_duration,
)
from claims_config.validator import validate_configuration
from claims_kernel.domain.policy import DEFAULT_POLICY
from claims_kernel.domain.time_policy import AuthorityLevel
from claims_kernel.exceptions import ConfigurationError

DEFAULT_SET = Path(__file__).resolve().parents[2] / "claims_config" / "sets" / "default.yaml"


def _minimal(**sections) -> dict:
    data = {"config_id": "test", "version": 1, "name": "test"}
    data.update(sections)
    return data


def _write(tmp_path: Path, name: str, data: dict) -> Path:
    path = tmp_path / f"{name}.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestDefaultPolicy:

    def test_matches_builtin_tables(self):
        policy = get_active_policy()

        assert dict(policy.urgency_durations) == dict(DEFAULT_POLICY.urgency_durations)
        assert policy.default_urgency_duration == DEFAULT_POLICY.default_urgency_duration
        assert dict(policy.document_authority_levels) == dict(
            DEFAULT_POLICY.document_authority_levels
        )
        assert policy.default_authority_level == AuthorityLevel.STANDARD
        assert policy.compliance_warning_window == timedelta(days=30)
        assert policy.max_conflict_retries == 3
        assert policy.allow_escalation_after_resolution is True

    def test_role_grants(self):
        policy = get_active_policy()
        assert policy.role_authorities["finance_controller"] == frozenset({
            AuthorityLevel.STANDARD, AuthorityLevel.FINANCE,
        })
        assert policy.role_authorities["claims_handler"] == frozenset({AuthorityLevel.STANDARD})

    def test_checksum_is_deterministic(self):
        first = load_configuration_set(DEFAULT_SET)
        second = load_configuration_set(DEFAULT_SET)
        assert first.checksum == second.checksum
        assert get_active_policy().checksum == first.checksum

    def test_trace_logged(self, captured_logs):
        policy = get_active_policy()
        [trace] = [r for r in captured_logs() if r["message"] == "WORKFLOW_CONFIG_TRACE"]
        assert trace["config_set_id"] == "default"
        assert trace["checksum"] == policy.checksum
        assert trace["document_type_count"] == 7

    def test_missing_set(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_policy("nope", config_dir=tmp_path)


class TestCustomSets:

    def test_overrides_compiled(self, tmp_path):
        _write(tmp_path, "fast", _minimal(
            approvals={
                "urgency_durations": {"urgent": {"hours": 4}, "high": {"hours": 12}, "normal": {"days": 2}},
                "default_duration": {"weeks": 1},
                "max_conflict_retries": 5,
                "allow_escalation_after_resolution": False,
            },
            documents={"default_authority_level": "manager"},
            compliance={"warning_window": {"days": 14}},
        ))

        policy = get_active_policy("fast", config_dir=tmp_path)

        assert policy.duration_for("urgent") == timedelta(hours=4)
        assert policy.duration_for("low") == timedelta(weeks=1)
        assert policy.max_conflict_retries == 5
        assert policy.allow_escalation_after_resolution is False
        assert policy.level_for("Anything") == AuthorityLevel.MANAGER
        assert policy.compliance_warning_window == timedelta(days=14)

    def test_invalid_set_lists_every_error(self, tmp_path):
        _write(tmp_path, "broken", _minimal(
            approvals={
                "urgency_durations": {"soon": {"hours": 1}, "urgent": {"hours": 0}},
                "max_conflict_retries": 0,
            },
            documents={"authority_levels": {"Invoice": "treasurer"}},
        ))

        with pytest.raises(ConfigurationError) as exc_info:
            get_active_policy("broken", config_dir=tmp_path)

        errors = exc_info.value.errors
        assert len(errors) == 4
        assert any("soon" in e for e in errors)
        assert any("treasurer" in e for e in errors)

    def test_warnings_do_not_block(self, tmp_path, captured_logs):
        _write(tmp_path, "sparse", _minimal(
            documents={"role_authorities": {"viewer": []}},
        ))

        policy = get_active_policy("sparse", config_dir=tmp_path)

        assert policy.duration_for("urgent") == timedelta(days=14)
        warnings = [r for r in captured_logs() if r["message"] == "workflow_config_warning"]
        assert len(warnings) == 4


class TestLoaderHelpers:

    @pytest.mark.parametrize("value", [{}, "3 days", {"fortnights": 1}, {"days": "three"}, {"days": True}])
    def test_bad_durations(self, value):
        with pytest.raises(ValueError):
            parse_duration(value, "somewhere")

    def test_mixed_units(self):
        assert parse_duration({"days": 1, "hours": 6}, "x") == timedelta(hours=30)

    def test_checksum_ignores_key_order(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})
        assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})

    def test_missing_config_id(self):
        with pytest.raises(KeyError):
            parse_configuration_set({"version": 1})

    def test_version_must_be_positive(self):
        result = validate_configuration(parse_configuration_set({"config_id": "x", "version": 0}))
        assert not result.is_valid
