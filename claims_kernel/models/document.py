"""
Module: claims_kernel.models.document
Responsibility: ORM persistence for document approval-gate state.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per document (``id`` is the document id).
    - approval_level_required is a cache; the gate recomputes it on read.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import CheckConstraint, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from claims_kernel.db.base import UTCDateTime, VersionedBase

if TYPE_CHECKING:
    from claims_kernel.domain.document import DocumentApproval


class DocumentApprovalModel(VersionedBase):
    """Persistent approval-gate state for one document."""

    __tablename__ = "document_approvals"

    __table_args__ = (
        CheckConstraint(
            "approval_status IN ('pending', 'approved', 'rejected', 'auto_approved')",
            name="ck_document_approvals_valid_status",
        ),
        CheckConstraint(
            "visibility_level IN ('internal', 'contractors', 'customers', 'public')",
            name="ck_document_approvals_valid_visibility",
        ),
        Index("ix_document_approvals_project_status", "project_id", "approval_status"),
    )

    document_name: Mapped[str] = mapped_column(String(500), nullable=False)
    document_type: Mapped[str] = mapped_column(String(100), nullable=False)
    project_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    uploaded_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    workflow_stage: Mapped[str] = mapped_column(
        String(50), nullable=False, default="uploaded",
    )
    approval_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending",
    )
    approved_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    visibility_level: Mapped[str] = mapped_column(
        String(20), nullable=False, default="internal",
    )
    approval_level_required: Mapped[str] = mapped_column(
        String(20), nullable=False, default="standard",
    )

    def __repr__(self) -> str:
        return f"<DocumentApproval {self.id} {self.approval_status}>"

    def to_dto(self) -> DocumentApproval:
        from claims_kernel.domain.document import (
            DocumentApproval as DocumentApprovalDTO,
            DocumentApprovalStatus,
            VisibilityLevel,
            WorkflowStage,
        )
        from claims_kernel.domain.time_policy import AuthorityLevel

        return DocumentApprovalDTO(
            document_id=self.id,
            document_name=self.document_name,
            document_type=self.document_type,
            approval_level_required=AuthorityLevel(self.approval_level_required),
            created_at=self.created_at,
            project_id=self.project_id,
            uploaded_by=self.uploaded_by,
            workflow_stage=WorkflowStage(self.workflow_stage),
            approval_status=DocumentApprovalStatus(self.approval_status),
            approved_by=self.approved_by,
            approved_at=self.approved_at,
            rejection_reason=self.rejection_reason,
            visibility_level=VisibilityLevel(self.visibility_level),
            version=self.version,
        )

    @classmethod
    def values_from_dto(cls, dto: DocumentApproval) -> dict[str, Any]:
        return {
            "document_name": dto.document_name,
            "document_type": dto.document_type,
            "project_id": dto.project_id,
            "uploaded_by": dto.uploaded_by,
            "workflow_stage": dto.workflow_stage.value,
            "approval_status": dto.approval_status.value,
            "approved_by": dto.approved_by,
            "approved_at": dto.approved_at,
            "rejection_reason": dto.rejection_reason,
            "visibility_level": dto.visibility_level.value,
            "approval_level_required": dto.approval_level_required.value,
        }

    @classmethod
    def from_dto(cls, dto: DocumentApproval) -> DocumentApprovalModel:
        return cls(
            id=dto.document_id,
            created_at=dto.created_at,
            version=dto.version,
            **cls.values_from_dto(dto),
        )
