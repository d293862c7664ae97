"""
Workflow policy value object (``claims_kernel.domain.policy``).

The kernel-side shape of the YAML workflow configuration.  Services accept
a ``WorkflowPolicy`` through their constructor; ``claims_config`` compiles
YAML into one.  ``WorkflowPolicy()`` with no arguments reproduces the
built-in tables in ``time_policy``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from types import MappingProxyType

from claims_kernel.domain.time_policy import (
    DEFAULT_AUTHORITY_LEVEL,
    DEFAULT_URGENCY_DURATION,
    DEFAULT_WARNING_WINDOW,
    DOCUMENT_AUTHORITY_LEVELS,
    URGENCY_DURATIONS,
    AuthorityLevel,
    Urgency,
    duration_for_urgency,
    required_approval_level,
)


def _frozen(mapping: Mapping) -> Mapping:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class WorkflowPolicy:
    """Tunable knobs for the approval engine and compliance monitor.

    Guarantees:
        - ``max_conflict_retries >= 1``.
        - ``role_authorities`` maps a role name to the authority levels it
          may approve; an empty mapping means nobody holds document
          authority until configured.
    """

    urgency_durations: Mapping[str, timedelta] = field(
        default_factory=lambda: _frozen(URGENCY_DURATIONS)
    )
    default_urgency_duration: timedelta = DEFAULT_URGENCY_DURATION
    document_authority_levels: Mapping[str, AuthorityLevel] = field(
        default_factory=lambda: _frozen(DOCUMENT_AUTHORITY_LEVELS)
    )
    default_authority_level: AuthorityLevel = DEFAULT_AUTHORITY_LEVEL
    compliance_warning_window: timedelta = DEFAULT_WARNING_WINDOW
    max_conflict_retries: int = 3
    allow_escalation_after_resolution: bool = True
    role_authorities: Mapping[str, frozenset[AuthorityLevel]] = field(
        default_factory=lambda: _frozen({})
    )
    version: int = 1
    checksum: str | None = None

    def __post_init__(self) -> None:
        if self.max_conflict_retries < 1:
            raise ValueError("max_conflict_retries must be at least 1")
        object.__setattr__(self, "urgency_durations", _frozen(self.urgency_durations))
        object.__setattr__(
            self, "document_authority_levels", _frozen(self.document_authority_levels)
        )
        object.__setattr__(
            self,
            "role_authorities",
            _frozen({
                role: frozenset(AuthorityLevel(level) for level in levels)
                for role, levels in self.role_authorities.items()
            }),
        )

    def duration_for(self, urgency: Urgency | str | None) -> timedelta:
        return duration_for_urgency(
            urgency, self.urgency_durations, self.default_urgency_duration
        )

    def level_for(self, document_type: str | None) -> AuthorityLevel:
        if document_type is None:
            return self.default_authority_level
        if document_type in self.document_authority_levels:
            return required_approval_level(
                document_type, self.document_authority_levels
            )
        return self.default_authority_level


DEFAULT_POLICY = WorkflowPolicy()
