"""
Document approval domain types (``claims_kernel.domain.document``).

Responsibility
--------------
Value objects for the per-document approval gate and the authority
resolution seam (``AuthorityProvider``) the gate consults.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Only ``pending`` documents accept a gate decision.
* ``approval_level_required`` on a stored record is a cache;
  ``with_required_level`` rebuilds it from the document type.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Protocol, runtime_checkable

from claims_kernel.domain.time_policy import AuthorityLevel


class DocumentApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    AUTO_APPROVED = "auto_approved"


class VisibilityLevel(str, Enum):
    INTERNAL = "internal"
    CONTRACTORS = "contractors"
    CUSTOMERS = "customers"
    PUBLIC = "public"


class WorkflowStage(str, Enum):
    UPLOADED = "uploaded"
    APPROVED = "approved"
    REJECTED = "rejected"
    AUTO_APPROVED = "auto_approved"


@dataclass(frozen=True)
class DocumentApproval:
    """Approval-gate state for one document."""

    document_id: str
    document_name: str
    document_type: str
    approval_level_required: AuthorityLevel
    created_at: datetime
    project_id: str | None = None
    uploaded_by: str | None = None
    workflow_stage: WorkflowStage = WorkflowStage.UPLOADED
    approval_status: DocumentApprovalStatus = DocumentApprovalStatus.PENDING
    approved_by: str | None = None
    approved_at: datetime | None = None
    rejection_reason: str | None = None
    visibility_level: VisibilityLevel = VisibilityLevel.INTERNAL
    version: int = 1

    @property
    def is_pending(self) -> bool:
        return self.approval_status == DocumentApprovalStatus.PENDING

    def with_required_level(self, level: AuthorityLevel) -> DocumentApproval:
        if level == self.approval_level_required:
            return self
        return replace(self, approval_level_required=level)


@dataclass(frozen=True)
class NewDocument:
    """Caller input for ``DocumentApprovalService.register_document``."""

    document_id: str
    document_name: str
    document_type: str
    project_id: str | None = None
    uploaded_by: str | None = None
    requires_approval: bool = True


# =========================================================================
# Authority resolution
# =========================================================================


@runtime_checkable
class AuthorityProvider(Protocol):
    """Answers whether an actor may approve at a given authority level."""

    def has_authority(self, actor_id: str, level: AuthorityLevel) -> bool: ...


class RoleAuthorityProvider:
    """Actor -> roles -> granted authority levels.

    Args:
        actor_roles: Role names held by each actor id.
        role_authorities: Authority levels each role may approve.
    """

    def __init__(
        self,
        actor_roles: Mapping[str, Iterable[str]],
        role_authorities: Mapping[str, Iterable[AuthorityLevel | str]],
    ) -> None:
        self._actor_roles = {
            actor: frozenset(roles) for actor, roles in actor_roles.items()
        }
        self._role_authorities = {
            role: frozenset(AuthorityLevel(level) for level in levels)
            for role, levels in role_authorities.items()
        }

    def roles_for(self, actor_id: str) -> frozenset[str]:
        return self._actor_roles.get(actor_id, frozenset())

    def levels_for(self, actor_id: str) -> frozenset[AuthorityLevel]:
        granted: set[AuthorityLevel] = set()
        for role in self.roles_for(actor_id):
            granted |= self._role_authorities.get(role, frozenset())
        return frozenset(granted)

    def has_authority(self, actor_id: str, level: AuthorityLevel) -> bool:
        return AuthorityLevel(level) in self.levels_for(actor_id)
