"""
Configuration Validator (``claims_config.validator``).

Responsibility
--------------
Checks a ``WorkflowConfigurationSet`` for structural integrity before it is
compiled into a kernel ``WorkflowPolicy``.

Invariants enforced
-------------------
* Urgency tiers and authority levels come from the kernel vocabularies.
* Every duration is positive; the warning window is not negative.
* ``max_conflict_retries`` is an integer of at least 1.
* No document type or role is declared twice.

Failure modes
-------------
* Errors block compilation.
* Warnings (e.g. an urgency tier left on the default duration) are
  reported but do not block.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta

from claims_config.schema import WorkflowConfigurationSet
from claims_kernel.domain.time_policy import AuthorityLevel, Urgency

_URGENCIES = {u.value for u in Urgency}
_LEVELS = {level.value for level in AuthorityLevel}


@dataclass
class ConfigValidationResult:
    """``is_valid`` is True only when ``errors`` is empty."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_configuration(config: WorkflowConfigurationSet) -> ConfigValidationResult:
    result = ConfigValidationResult()

    if not isinstance(config.version, int) or isinstance(config.version, bool) or config.version < 1:
        result.errors.append(f"version must be a positive integer, got {config.version!r}")

    _validate_approvals(config, result)
    _validate_documents(config, result)

    if config.compliance_warning_window < timedelta(0):
        result.errors.append("compliance.warning_window must not be negative")

    return result


def _validate_approvals(config: WorkflowConfigurationSet, result: ConfigValidationResult) -> None:
    seen: set[str] = set()
    for tier in config.urgency_tiers:
        if tier.urgency not in _URGENCIES:
            result.errors.append(
                f"approvals.urgency_durations: unknown urgency {tier.urgency!r}"
            )
        if tier.urgency in seen:
            result.errors.append(
                f"approvals.urgency_durations: {tier.urgency!r} declared twice"
            )
        seen.add(tier.urgency)
        if tier.duration <= timedelta(0):
            result.errors.append(
                f"approvals.urgency_durations.{tier.urgency}: duration must be positive"
            )

    for urgency in sorted(_URGENCIES - seen - {Urgency.LOW.value}):
        result.warnings.append(
            f"approvals.urgency_durations: {urgency!r} uses the default duration"
        )

    if config.default_duration <= timedelta(0):
        result.errors.append("approvals.default_duration must be positive")

    retries = config.max_conflict_retries
    if not isinstance(retries, int) or isinstance(retries, bool) or retries < 1:
        result.errors.append(
            f"approvals.max_conflict_retries must be an integer >= 1, got {retries!r}"
        )

    if not isinstance(config.allow_escalation_after_resolution, bool):
        result.errors.append("approvals.allow_escalation_after_resolution must be a boolean")


def _validate_documents(config: WorkflowConfigurationSet, result: ConfigValidationResult) -> None:
    if config.default_authority_level not in _LEVELS:
        result.errors.append(
            f"documents.default_authority_level: unknown level "
            f"{config.default_authority_level!r}"
        )

    seen_types: set[str] = set()
    for entry in config.document_authorities:
        if entry.document_type in seen_types:
            result.errors.append(
                f"documents.authority_levels: {entry.document_type!r} declared twice"
            )
        seen_types.add(entry.document_type)
        if entry.level not in _LEVELS:
            result.errors.append(
                f"documents.authority_levels.{entry.document_type}: "
                f"unknown level {entry.level!r}"
            )

    seen_roles: set[str] = set()
    for role in config.role_authorities:
        if role.role in seen_roles:
            result.errors.append(f"documents.role_authorities: {role.role!r} declared twice")
        seen_roles.add(role.role)
        for level in role.levels:
            if level not in _LEVELS:
                result.errors.append(
                    f"documents.role_authorities.{role.role}: unknown level {level!r}"
                )
        if not role.levels:
            result.warnings.append(
                f"documents.role_authorities.{role.role}: grants no authority"
            )
