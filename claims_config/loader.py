"""
Configuration Loader (``claims_config.loader``).

Responsibility
--------------
Loads a workflow policy YAML file and parses it into the typed
``claims_config.schema`` dataclasses.  This is build/test tooling; the
runtime entry point is ``claims_config.get_active_policy()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Malformed durations  -> ``ValueError`` with the offending key.
"""

from __future__ import annotations

import hashlib
import json
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml

from claims_config.schema import (
    DocumentAuthorityDef,
    RoleAuthorityDef,
    UrgencyTierDef,
    WorkflowConfigurationSet,
)

_DURATION_UNITS = ("weeks", "days", "hours", "minutes")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_duration(value: Any, where: str) -> timedelta:
    """
    Parse a duration written as a mapping of units, e.g. ``{days: 3}``.

    Raises:
        ValueError: not a mapping, unknown unit, or a non-numeric amount.
    """
    if not isinstance(value, dict) or not value:
        raise ValueError(f"{where}: duration must be a mapping like {{days: 3}}")
    unknown = set(value) - set(_DURATION_UNITS)
    if unknown:
        raise ValueError(f"{where}: unknown duration unit(s) {sorted(unknown)}")
    for unit, amount in value.items():
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            raise ValueError(f"{where}: {unit} must be a number, got {amount!r}")
    return timedelta(**value)


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_configuration_set(data: dict[str, Any]) -> WorkflowConfigurationSet:
    """Build a ``WorkflowConfigurationSet`` from a parsed YAML document."""
    approvals = data.get("approvals") or {}
    documents = data.get("documents") or {}
    compliance = data.get("compliance") or {}

    tiers = tuple(
        UrgencyTierDef(
            urgency=str(name),
            duration=parse_duration(spec, f"approvals.urgency_durations.{name}"),
        )
        for name, spec in (approvals.get("urgency_durations") or {}).items()
    )

    authorities = tuple(
        DocumentAuthorityDef(document_type=str(doc_type), level=str(level))
        for doc_type, level in (documents.get("authority_levels") or {}).items()
    )

    roles = tuple(
        RoleAuthorityDef(role=str(role), levels=tuple(str(l) for l in (levels or ())))
        for role, levels in (documents.get("role_authorities") or {}).items()
    )

    kwargs: dict[str, Any] = {}
    if "default_duration" in approvals:
        kwargs["default_duration"] = parse_duration(
            approvals["default_duration"], "approvals.default_duration"
        )
    if "max_conflict_retries" in approvals:
        kwargs["max_conflict_retries"] = approvals["max_conflict_retries"]
    if "allow_escalation_after_resolution" in approvals:
        kwargs["allow_escalation_after_resolution"] = approvals[
            "allow_escalation_after_resolution"
        ]
    if "default_authority_level" in documents:
        kwargs["default_authority_level"] = str(documents["default_authority_level"])
    if "warning_window" in compliance:
        kwargs["compliance_warning_window"] = parse_duration(
            compliance["warning_window"], "compliance.warning_window"
        )

    return WorkflowConfigurationSet(
        config_id=str(data["config_id"]),
        version=data["version"],
        name=str(data.get("name", "")),
        urgency_tiers=tiers,
        document_authorities=authorities,
        role_authorities=roles,
        checksum=compute_checksum(data),
        **kwargs,
    )


def load_configuration_set(path: Path) -> WorkflowConfigurationSet:
    return parse_configuration_set(load_yaml_file(path))
