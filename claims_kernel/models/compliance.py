"""
Module: claims_kernel.models.compliance
Responsibility: ORM persistence for compliance checks, FCA regulatory
    events and risk register entries.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Derived flags (is_expiring, is_overdue, days_until_due) are never
      stored; selectors compute them at read time.
    - check_id / event_id / assessment_id and created_at are immutable after insert.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, Boolean, CheckConstraint, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from claims_kernel.db.base import UTCDateTime, VersionedBase

if TYPE_CHECKING:
    from claims_kernel.domain.compliance import ComplianceCheck, FCAEvent, RiskAssessment


class ComplianceCheckModel(VersionedBase):
    """Persistent regulatory compliance assessment."""

    __tablename__ = "compliance_checks"

    __table_args__ = (
        CheckConstraint(
            "compliance_status IN ('compliant', 'non_compliant', "
            "'pending_review', 'expired', 'under_review')",
            name="ck_compliance_checks_valid_status",
        ),
        CheckConstraint(
            "risk_rating IN ('very_low', 'low', 'medium', 'high', 'critical')",
            name="ck_compliance_checks_valid_risk",
        ),
        Index("ix_compliance_checks_assessment", "assessment_date"),
        Index("ix_compliance_checks_project", "project_id"),
    )

    check_type: Mapped[str] = mapped_column(String(50), nullable=False)
    regulation_type: Mapped[str] = mapped_column(String(200), nullable=False)
    compliance_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending_review",
    )
    risk_rating: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    assessment_date: Mapped[date] = mapped_column(nullable=False)
    expiry_date: Mapped[date | None] = mapped_column(nullable=True)
    next_review_date: Mapped[date | None] = mapped_column(nullable=True)
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    findings: Mapped[str] = mapped_column(Text, nullable=False)
    recommendations: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    action_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    remedial_actions: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    project_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    assessed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    def __repr__(self) -> str:
        return f"<ComplianceCheck {self.id} {self.check_type} {self.compliance_status}>"

    def to_dto(self) -> ComplianceCheck:
        from claims_kernel.domain.compliance import (
            CheckType,
            ComplianceCheck as ComplianceCheckDTO,
            ComplianceStatus,
            RiskLevel,
        )

        return ComplianceCheckDTO(
            check_id=self.id,
            check_type=CheckType(self.check_type),
            regulation_type=self.regulation_type,
            compliance_status=ComplianceStatus(self.compliance_status),
            risk_rating=RiskLevel(self.risk_rating),
            assessment_date=self.assessment_date,
            findings=self.findings,
            created_at=self.created_at,
            updated_at=self.updated_at,
            expiry_date=self.expiry_date,
            next_review_date=self.next_review_date,
            reference_number=self.reference_number,
            recommendations=self.recommendations,
            notes=self.notes,
            action_required=self.action_required,
            remedial_actions=tuple(self.remedial_actions or ()),
            project_id=self.project_id,
            assessed_by=self.assessed_by,
            version=self.version,
        )

    @classmethod
    def values_from_dto(cls, dto: ComplianceCheck) -> dict[str, Any]:
        return {
            "check_type": dto.check_type.value,
            "regulation_type": dto.regulation_type,
            "compliance_status": dto.compliance_status.value,
            "risk_rating": dto.risk_rating.value,
            "assessment_date": dto.assessment_date,
            "expiry_date": dto.expiry_date,
            "next_review_date": dto.next_review_date,
            "reference_number": dto.reference_number,
            "findings": dto.findings,
            "recommendations": dto.recommendations,
            "notes": dto.notes,
            "action_required": dto.action_required,
            "remedial_actions": list(dto.remedial_actions),
            "project_id": dto.project_id,
            "assessed_by": dto.assessed_by,
            "updated_at": dto.updated_at,
        }

    @classmethod
    def from_dto(cls, dto: ComplianceCheck) -> ComplianceCheckModel:
        return cls(
            id=dto.check_id,
            created_at=dto.created_at,
            version=dto.version,
            **cls.values_from_dto(dto),
        )


class FCAEventModel(VersionedBase):
    """Persistent FCA regulatory event."""

    __tablename__ = "fca_events"

    __table_args__ = (
        CheckConstraint(
            "status IN ('open', 'in_progress', 'resolved', 'closed')",
            name="ck_fca_events_valid_status",
        ),
        CheckConstraint(
            "severity IN ('low', 'medium', 'high', 'critical')",
            name="ck_fca_events_valid_severity",
        ),
        Index("ix_fca_events_status_due", "status", "due_date"),
    )

    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    event_category: Mapped[str] = mapped_column(String(50), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="open")
    occurred_date: Mapped[date] = mapped_column(nullable=False)
    due_date: Mapped[date] = mapped_column(nullable=False)
    reported_date: Mapped[date | None] = mapped_column(nullable=True)
    root_cause: Mapped[str | None] = mapped_column(Text, nullable=True)
    remedial_action: Mapped[str | None] = mapped_column(Text, nullable=True)
    reported_to_fca: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    fca_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    project_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    assigned_to: Mapped[str | None] = mapped_column(String(64), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    def __repr__(self) -> str:
        return f"<FCAEvent {self.id} {self.event_type} {self.status}>"

    def to_dto(self) -> FCAEvent:
        from claims_kernel.domain.compliance import (
            FCAEvent as FCAEventDTO,
            FCAEventCategory,
            FCAEventStatus,
            Severity,
        )

        return FCAEventDTO(
            event_id=self.id,
            event_type=self.event_type,
            event_category=FCAEventCategory(self.event_category),
            severity=Severity(self.severity),
            description=self.description,
            status=FCAEventStatus(self.status),
            occurred_date=self.occurred_date,
            due_date=self.due_date,
            created_at=self.created_at,
            updated_at=self.updated_at,
            reported_date=self.reported_date,
            root_cause=self.root_cause,
            remedial_action=self.remedial_action,
            reported_to_fca=self.reported_to_fca,
            fca_reference=self.fca_reference,
            project_id=self.project_id,
            user_id=self.user_id,
            assigned_to=self.assigned_to,
            version=self.version,
        )

    @classmethod
    def values_from_dto(cls, dto: FCAEvent) -> dict[str, Any]:
        return {
            "event_type": dto.event_type,
            "event_category": dto.event_category.value,
            "severity": dto.severity.value,
            "description": dto.description,
            "status": dto.status.value,
            "occurred_date": dto.occurred_date,
            "due_date": dto.due_date,
            "reported_date": dto.reported_date,
            "root_cause": dto.root_cause,
            "remedial_action": dto.remedial_action,
            "reported_to_fca": dto.reported_to_fca,
            "fca_reference": dto.fca_reference,
            "project_id": dto.project_id,
            "user_id": dto.user_id,
            "assigned_to": dto.assigned_to,
            "updated_at": dto.updated_at,
        }

    @classmethod
    def from_dto(cls, dto: FCAEvent) -> FCAEventModel:
        return cls(
            id=dto.event_id,
            created_at=dto.created_at,
            version=dto.version,
            **cls.values_from_dto(dto),
        )


class RiskAssessmentModel(VersionedBase):
    """Persistent risk register entry."""

    __tablename__ = "risk_assessments"

    __table_args__ = (
        CheckConstraint(
            "risk_category IN ('operational', 'conduct', 'financial', "
            "'regulatory', 'reputational', 'strategic')",
            name="ck_risk_assessments_valid_category",
        ),
        CheckConstraint(
            "inherent_risk IN ('very_low', 'low', 'medium', 'high', 'critical') "
            "AND residual_risk IN ('very_low', 'low', 'medium', 'high', 'critical') "
            "AND risk_appetite IN ('very_low', 'low', 'medium', 'high', 'critical')",
            name="ck_risk_assessments_valid_levels",
        ),
        CheckConstraint(
            "control_effectiveness IN ('effective', 'partially_effective', "
            "'ineffective', 'not_assessed')",
            name="ck_risk_assessments_valid_effectiveness",
        ),
        CheckConstraint(
            "review_frequency IN ('monthly', 'quarterly', 'semi_annually', 'annually')",
            name="ck_risk_assessments_valid_frequency",
        ),
        Index("ix_risk_assessments_next_review", "next_review_date"),
        Index("ix_risk_assessments_project", "project_id"),
    )

    risk_category: Mapped[str] = mapped_column(String(20), nullable=False)
    risk_description: Mapped[str] = mapped_column(Text, nullable=False)
    inherent_risk: Mapped[str] = mapped_column(String(20), nullable=False)
    residual_risk: Mapped[str] = mapped_column(String(20), nullable=False)
    risk_appetite: Mapped[str] = mapped_column(String(20), nullable=False)
    control_effectiveness: Mapped[str] = mapped_column(
        String(30), nullable=False, default="not_assessed",
    )
    current_controls: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    mitigation_actions: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    action_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    review_frequency: Mapped[str] = mapped_column(String(20), nullable=False)
    next_review_date: Mapped[date] = mapped_column(nullable=False)
    last_review_date: Mapped[date | None] = mapped_column(nullable=True)
    risk_owner: Mapped[str | None] = mapped_column(String(64), nullable=True)
    assessor_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    project_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    def __repr__(self) -> str:
        return f"<RiskAssessment {self.id} {self.risk_category} {self.residual_risk}>"

    def to_dto(self) -> RiskAssessment:
        from claims_kernel.domain.compliance import (
            ControlEffectiveness,
            ReviewFrequency,
            RiskAssessment as RiskAssessmentDTO,
            RiskCategory,
            RiskLevel,
        )

        return RiskAssessmentDTO(
            assessment_id=self.id,
            risk_category=RiskCategory(self.risk_category),
            risk_description=self.risk_description,
            inherent_risk=RiskLevel(self.inherent_risk),
            residual_risk=RiskLevel(self.residual_risk),
            risk_appetite=RiskLevel(self.risk_appetite),
            review_frequency=ReviewFrequency(self.review_frequency),
            next_review_date=self.next_review_date,
            created_at=self.created_at,
            updated_at=self.updated_at,
            control_effectiveness=ControlEffectiveness(self.control_effectiveness),
            current_controls=tuple(self.current_controls or ()),
            mitigation_actions=tuple(self.mitigation_actions or ()),
            action_required=self.action_required,
            last_review_date=self.last_review_date,
            risk_owner=self.risk_owner,
            assessor_id=self.assessor_id,
            project_id=self.project_id,
            version=self.version,
        )

    @classmethod
    def values_from_dto(cls, dto: RiskAssessment) -> dict[str, Any]:
        return {
            "risk_category": dto.risk_category.value,
            "risk_description": dto.risk_description,
            "inherent_risk": dto.inherent_risk.value,
            "residual_risk": dto.residual_risk.value,
            "risk_appetite": dto.risk_appetite.value,
            "control_effectiveness": dto.control_effectiveness.value,
            "current_controls": list(dto.current_controls),
            "mitigation_actions": list(dto.mitigation_actions),
            "action_required": dto.action_required,
            "review_frequency": dto.review_frequency.value,
            "next_review_date": dto.next_review_date,
            "last_review_date": dto.last_review_date,
            "risk_owner": dto.risk_owner,
            "assessor_id": dto.assessor_id,
            "project_id": dto.project_id,
            "updated_at": dto.updated_at,
        }

    @classmethod
    def from_dto(cls, dto: RiskAssessment) -> RiskAssessmentModel:
        return cls(
            id=dto.assessment_id,
            created_at=dto.created_at,
            version=dto.version,
            **cls.values_from_dto(dto),
        )
