"""
WorkflowConfigurationSet schema.

Defines the human-authored, reviewable source artifact for the approval &
compliance workflow.  YAML is parsed into these types by the loader,
checked by the validator, and compiled into a kernel ``WorkflowPolicy`` by
the compiler.

Key distinction:
  WorkflowConfigurationSet = source artifact (human-authored, versioned)
  WorkflowPolicy           = runtime artifact (validated, frozen, kernel-side)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta


@dataclass(frozen=True)
class UrgencyTierDef:
    """Deadline duration for one urgency tier."""

    urgency: str
    duration: timedelta


@dataclass(frozen=True)
class DocumentAuthorityDef:
    """Authority level required to approve one document type."""

    document_type: str
    level: str


@dataclass(frozen=True)
class RoleAuthorityDef:
    """Authority levels a role may approve."""

    role: str
    levels: tuple[str, ...]


@dataclass(frozen=True)
class WorkflowConfigurationSet:
    """Complete workflow configuration as authored in YAML."""

    config_id: str
    version: int
    name: str = ""
    urgency_tiers: tuple[UrgencyTierDef, ...] = field(default_factory=tuple)
    default_duration: timedelta = timedelta(days=14)
    max_conflict_retries: int = 3
    allow_escalation_after_resolution: bool = True
    document_authorities: tuple[DocumentAuthorityDef, ...] = field(default_factory=tuple)
    default_authority_level: str = "standard"
    role_authorities: tuple[RoleAuthorityDef, ...] = field(default_factory=tuple)
    compliance_warning_window: timedelta = timedelta(days=30)
    checksum: str = ""
