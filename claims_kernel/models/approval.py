"""
Module: claims_kernel.models.approval
Responsibility: ORM persistence for approval requests.

Architecture position: Kernel > Models.  May import from db/base.py only
    (domain DTOs are imported lazily inside the conversion methods).

Invariants enforced:
    - Status values limited by a check constraint; the engine's transition
      table decides which changes are legal.
    - expires_at is written once at creation; the engine never recomputes it.
    - version is bumped only by the record store's compare-and-set UPDATE.

Failure modes:
    - IntegrityError on an out-of-vocabulary status or urgency.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, Boolean, CheckConstraint, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from claims_kernel.db.base import UTCDateTime, VersionedBase

if TYPE_CHECKING:
    from claims_kernel.domain.approval import ApprovalRequest


class ApprovalRequestModel(VersionedBase):
    """Persistent approval request.

    Contract:
        ``id`` holds the opaque request id.  ``approvers`` and ``metadata``
        are JSON columns; approver membership is evaluated in Python so the
        query stays portable across backends.
    """

    __tablename__ = "approval_requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'escalated', 'expired')",
            name="ck_approval_requests_valid_status",
        ),
        CheckConstraint(
            "urgency IN ('low', 'normal', 'high', 'urgent')",
            name="ck_approval_requests_valid_urgency",
        ),
        Index("ix_approval_requests_status_created", "status", "created_at"),
        Index("ix_approval_requests_project", "project_id"),
        Index("ix_approval_requests_expiry", "status", "expires_at"),
    )

    request_type: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    justification: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    urgency: Mapped[str] = mapped_column(String(20), nullable=False, default="normal")
    required_authority_level: Mapped[str] = mapped_column(
        String(50), nullable=False, default="standard",
    )
    approvers: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    requested_by: Mapped[str] = mapped_column(String(64), nullable=False)
    approved_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    escalated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    escalated_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    project_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    # "metadata" is reserved on declarative classes
    request_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict,
    )

    def __repr__(self) -> str:
        return (
            f"<ApprovalRequest {self.id} {self.request_type} "
            f"status={self.status} v{self.version}>"
        )

    def to_dto(self) -> ApprovalRequest:
        """Convert ORM model to frozen domain DTO."""
        from claims_kernel.domain.approval import (
            ApprovalRequest as ApprovalRequestDTO,
            ApprovalStatus,
        )
        from claims_kernel.domain.time_policy import Urgency

        return ApprovalRequestDTO(
            request_id=self.id,
            request_type=self.request_type,
            description=self.description,
            requested_by=self.requested_by,
            approvers=tuple(self.approvers),
            urgency=Urgency(self.urgency),
            required_authority_level=self.required_authority_level,
            created_at=self.created_at,
            expires_at=self.expires_at,
            status=ApprovalStatus(self.status),
            justification=self.justification,
            amount=self.amount,
            project_id=self.project_id,
            approved_by=self.approved_by,
            approved_at=self.approved_at,
            rejection_reason=self.rejection_reason,
            escalated=self.escalated,
            escalated_at=self.escalated_at,
            metadata=dict(self.request_metadata or {}),
            version=self.version,
        )

    @classmethod
    def values_from_dto(cls, dto: ApprovalRequest) -> dict[str, Any]:
        """Mutable column values, keyed by attribute name."""
        return {
            "request_type": dto.request_type,
            "description": dto.description,
            "justification": dto.justification,
            "amount": dto.amount,
            "urgency": dto.urgency.value,
            "required_authority_level": dto.required_authority_level,
            "approvers": list(dto.approvers),
            "status": dto.status.value,
            "requested_by": dto.requested_by,
            "approved_by": dto.approved_by,
            "approved_at": dto.approved_at,
            "rejection_reason": dto.rejection_reason,
            "escalated": dto.escalated,
            "escalated_at": dto.escalated_at,
            "expires_at": dto.expires_at,
            "project_id": dto.project_id,
            "request_metadata": dict(dto.metadata),
        }

    @classmethod
    def from_dto(cls, dto: ApprovalRequest) -> ApprovalRequestModel:
        """Create ORM model from domain DTO."""
        return cls(
            id=dto.request_id,
            created_at=dto.created_at,
            version=dto.version,
            **cls.values_from_dto(dto),
        )
