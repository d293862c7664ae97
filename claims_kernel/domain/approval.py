"""
Approval domain types (``claims_kernel.domain.approval``).

Responsibility
--------------
Pure value objects for the approval workflow engine: the request
lifecycle state machine, the request record, caller input, list filters
and read projections.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  May import only
from ``domain/`` siblings and ``exceptions``.

Invariants enforced
-------------------
* ``APPROVAL_TRANSITIONS`` is the only source of legal status changes,
  keyed by (current status, action).  Terminal statuses have no entries,
  so nothing ever returns to ``pending``.
* Escalating a resolved request only refreshes the escalation flag; the
  status is left untouched (``FLAG_ONLY_ACTIONS``).
* Expiry is lazy: ``effective_status`` reports ``expired`` for an open
  request whose deadline has passed, without touching the stored record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from claims_kernel.domain.time_policy import AuthorityLevel, Urgency
from claims_kernel.exceptions import InvalidStateError


# =========================================================================
# Status lifecycle
# =========================================================================


class ApprovalStatus(str, Enum):
    """Approval request lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ESCALATED = "escalated"
    EXPIRED = "expired"


class ApprovalAction(str, Enum):
    """Commands that move a request through its lifecycle."""

    APPROVE = "approve"
    REJECT = "reject"
    ESCALATE = "escalate"
    EXPIRE = "expire"


OPEN_APPROVAL_STATUSES: frozenset[ApprovalStatus] = frozenset({
    ApprovalStatus.PENDING,
    ApprovalStatus.ESCALATED,
})

TERMINAL_APPROVAL_STATUSES: frozenset[ApprovalStatus] = frozenset({
    ApprovalStatus.APPROVED,
    ApprovalStatus.REJECTED,
    ApprovalStatus.EXPIRED,
})

APPROVAL_TRANSITIONS: dict[tuple[ApprovalStatus, ApprovalAction], ApprovalStatus] = {
    (ApprovalStatus.PENDING, ApprovalAction.APPROVE): ApprovalStatus.APPROVED,
    (ApprovalStatus.PENDING, ApprovalAction.REJECT): ApprovalStatus.REJECTED,
    (ApprovalStatus.PENDING, ApprovalAction.ESCALATE): ApprovalStatus.ESCALATED,
    (ApprovalStatus.PENDING, ApprovalAction.EXPIRE): ApprovalStatus.EXPIRED,
    (ApprovalStatus.ESCALATED, ApprovalAction.APPROVE): ApprovalStatus.APPROVED,
    (ApprovalStatus.ESCALATED, ApprovalAction.REJECT): ApprovalStatus.REJECTED,
    (ApprovalStatus.ESCALATED, ApprovalAction.ESCALATE): ApprovalStatus.ESCALATED,
    (ApprovalStatus.ESCALATED, ApprovalAction.EXPIRE): ApprovalStatus.EXPIRED,
}

# Actions that may land on a terminal request without changing its status.
FLAG_ONLY_ACTIONS: frozenset[ApprovalAction] = frozenset({ApprovalAction.ESCALATE})


# =========================================================================
# Records
# =========================================================================


@dataclass(frozen=True)
class ApprovalRequest:
    """Immutable snapshot of a stored approval request.

    ``expires_at`` is fixed at creation.  ``approved_by``/``approved_at``
    are populated only for approved or rejected requests, and
    ``rejection_reason`` only for rejected ones.
    """

    request_id: str
    request_type: str
    description: str
    requested_by: str
    approvers: tuple[str, ...]
    urgency: Urgency
    required_authority_level: str
    created_at: datetime
    expires_at: datetime
    status: ApprovalStatus = ApprovalStatus.PENDING
    justification: str | None = None
    amount: Decimal | None = None
    project_id: str | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    rejection_reason: str | None = None
    escalated: bool = False
    escalated_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    version: int = 1

    def is_open(self) -> bool:
        return self.status in OPEN_APPROVAL_STATUSES

    def deadline_passed(self, as_of: datetime) -> bool:
        return as_of > self.expires_at


@dataclass(frozen=True)
class NewApprovalRequest:
    """Caller input for ``ApprovalService.create_request``."""

    request_type: str
    description: str
    approvers: tuple[str, ...] | list[str]
    urgency: Urgency | str | None = Urgency.NORMAL
    required_authority_level: AuthorityLevel | str = AuthorityLevel.STANDARD
    justification: str | None = None
    amount: Decimal | None = None
    project_id: str | None = None
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True)
class ApprovalFilters:
    """Filters for ``ApprovalService.list_requests``.

    ``statuses`` is matched against the effective (lazily expired) status.
    """

    statuses: frozenset[ApprovalStatus] | None = None
    request_type: str | None = None
    urgencies: frozenset[Urgency] | None = None
    project_id: str | None = None
    search: str | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    ascending: bool = False


@dataclass(frozen=True)
class ApprovalRequestView:
    """Read-only projection: stored record plus derived expiry state."""

    request: ApprovalRequest
    effective_status: ApprovalStatus
    is_expired: bool

    @property
    def request_id(self) -> str:
        return self.request.request_id


@dataclass(frozen=True)
class ApprovalSummary:
    """Dashboard counts over a set of requests (effective statuses)."""

    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    escalated: int = 0
    expired: int = 0
    urgent: int = 0


# =========================================================================
# Pure lifecycle functions
# =========================================================================


def effective_status(request: ApprovalRequest, as_of: datetime) -> ApprovalStatus:
    """Stored status, or ``expired`` when an open request is past its deadline."""
    if request.is_open() and request.deadline_passed(as_of):
        return ApprovalStatus.EXPIRED
    return request.status


def project(request: ApprovalRequest, as_of: datetime) -> ApprovalRequestView:
    status = effective_status(request, as_of)
    return ApprovalRequestView(
        request=request,
        effective_status=status,
        is_expired=status == ApprovalStatus.EXPIRED,
    )


def resolve_transition(
    request: ApprovalRequest,
    action: ApprovalAction,
    *,
    allow_flag_only: bool = True,
) -> ApprovalStatus:
    """Target status for ``action`` on ``request``.

    Raises:
        InvalidStateError: the (status, action) pair is not in the table
            and is not a permitted flag-only action.
    """
    target = APPROVAL_TRANSITIONS.get((request.status, action))
    if target is not None:
        return target
    if allow_flag_only and action in FLAG_ONLY_ACTIONS:
        return request.status
    raise InvalidStateError(
        request.request_id,
        request.status.value,
        action.value,
        _describe_resolution(request),
    )


def _describe_resolution(request: ApprovalRequest) -> str:
    if request.status == ApprovalStatus.APPROVED:
        return f"already approved by {request.approved_by}"
    if request.status == ApprovalStatus.REJECTED:
        return (
            f"already rejected by {request.approved_by}: "
            f"{request.rejection_reason}"
        )
    if request.status == ApprovalStatus.EXPIRED:
        return f"expired at {request.expires_at.isoformat()}"
    return f"status is {request.status.value}"
