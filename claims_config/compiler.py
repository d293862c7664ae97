"""
Policy compiler (``claims_config.compiler``).

Turns a validated ``WorkflowConfigurationSet`` into the frozen kernel
``WorkflowPolicy`` that services accept.  Compilation is deterministic and
carries the source checksum through unchanged.
"""

from __future__ import annotations

from claims_config.schema import WorkflowConfigurationSet
from claims_kernel.domain.policy import WorkflowPolicy
from claims_kernel.domain.time_policy import AuthorityLevel


def compile_workflow_policy(config: WorkflowConfigurationSet) -> WorkflowPolicy:
    """Compile a validated configuration set.

    Precondition: ``validate_configuration(config).is_valid``.
    """
    return WorkflowPolicy(
        urgency_durations={t.urgency: t.duration for t in config.urgency_tiers},
        default_urgency_duration=config.default_duration,
        document_authority_levels={
            d.document_type: AuthorityLevel(d.level) for d in config.document_authorities
        },
        default_authority_level=AuthorityLevel(config.default_authority_level),
        compliance_warning_window=config.compliance_warning_window,
        max_conflict_retries=config.max_conflict_retries,
        allow_escalation_after_resolution=config.allow_escalation_after_resolution,
        role_authorities={
            r.role: frozenset(AuthorityLevel(level) for level in r.levels)
            for r in config.role_authorities
        },
        version=config.version,
        checksum=config.checksum,
    )
