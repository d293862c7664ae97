"""
Compliance query selector.

Read side of the compliance monitor: compliance checks with
``is_expiring`` / ``is_overdue``, FCA events with ``days_until_due`` /
``is_overdue`` and risk assessments with ``is_overdue``, all derived at the
reference instant and never stored.

Key design decisions:
- The warning window comes from the workflow policy (30 days by default);
  ``warning_days`` overrides it per call.
- Search is a case-insensitive substring match over regulation type, notes,
  reference number and findings.
- Enum filters accept members or their string values; anything else is a
  ValidationError rather than a silently empty result.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from claims_kernel.domain.clock import Clock
from claims_kernel.domain.compliance import (
    CheckType,
    ComplianceAlerts,
    ComplianceCheckView,
    ComplianceFilters,
    ComplianceStatus,
    FCAEventFilters,
    FCAEventStatus,
    FCAEventView,
    RiskAssessmentView,
    RiskCategory,
    RiskFilters,
    RiskLevel,
    Severity,
    coerce_members,
    project_check,
    project_event,
    project_risk,
)
from claims_kernel.domain.policy import DEFAULT_POLICY, WorkflowPolicy
from claims_kernel.logging_config import get_logger
from claims_kernel.models.compliance import (
    ComplianceCheckModel,
    FCAEventModel,
    RiskAssessmentModel,
)
from claims_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.compliance")


class ComplianceSelector(BaseSelector[ComplianceCheckModel]):
    """Derived-flag listings for compliance checks, FCA events and risks."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: WorkflowPolicy | None = None,
    ):
        super().__init__(session, clock)
        self._policy = policy or DEFAULT_POLICY

    def _window(self, warning_days: int | None) -> timedelta:
        if warning_days is None:
            return self._policy.compliance_warning_window
        return timedelta(days=warning_days)

    # -- compliance checks ---------------------------------------------------

    def get_check(
        self, check_id: str, as_of: datetime | None = None,
    ) -> ComplianceCheckView | None:
        row = self.session.get(ComplianceCheckModel, check_id, populate_existing=True)
        if row is None:
            return None
        return project_check(
            row.to_dto(), self._as_of(as_of), self._policy.compliance_warning_window,
        )

    def list_checks(
        self,
        filters: ComplianceFilters | None = None,
        as_of: datetime | None = None,
        warning_days: int | None = None,
    ) -> list[ComplianceCheckView]:
        filters = filters or ComplianceFilters()
        model = ComplianceCheckModel
        stmt = select(model)

        if filters.statuses:
            stmt = stmt.where(
                model.compliance_status.in_(
                    coerce_members(ComplianceStatus, filters.statuses, "statuses")
                )
            )
        if filters.check_types:
            stmt = stmt.where(model.check_type.in_(
                coerce_members(CheckType, filters.check_types, "check_types")
            ))
        if filters.risk_ratings:
            stmt = stmt.where(model.risk_rating.in_(
                coerce_members(RiskLevel, filters.risk_ratings, "risk_ratings")
            ))
        if filters.project_ids:
            stmt = stmt.where(model.project_id.in_(sorted(filters.project_ids)))
        if filters.assessed_from is not None:
            stmt = stmt.where(model.assessment_date >= filters.assessed_from)
        if filters.assessed_to is not None:
            stmt = stmt.where(model.assessment_date <= filters.assessed_to)
        if filters.search and filters.search.strip():
            needle = filters.search.strip().lower()
            stmt = stmt.where(
                or_(*(
                    func.lower(func.coalesce(column, "")).contains(needle, autoescape=True)
                    for column in (
                        model.regulation_type,
                        model.notes,
                        model.reference_number,
                        model.findings,
                    )
                ))
            )

        stmt = stmt.order_by(model.assessment_date.desc(), model.created_at.desc())

        reference = self._as_of(as_of)
        window = self._window(warning_days)
        return [
            project_check(row.to_dto(), reference, window)
            for row in self._scalars(stmt)
        ]

    # -- FCA events ----------------------------------------------------------

    def get_fca_event(
        self, event_id: str, as_of: datetime | None = None,
    ) -> FCAEventView | None:
        row = self.session.get(FCAEventModel, event_id, populate_existing=True)
        if row is None:
            return None
        return project_event(row.to_dto(), self._as_of(as_of))

    def list_fca_events(
        self,
        filters: FCAEventFilters | None = None,
        as_of: datetime | None = None,
    ) -> list[FCAEventView]:
        filters = filters or FCAEventFilters()
        model = FCAEventModel
        stmt = select(model)
        if filters.statuses:
            stmt = stmt.where(model.status.in_(
                coerce_members(FCAEventStatus, filters.statuses, "statuses")
            ))
        if filters.severities:
            stmt = stmt.where(model.severity.in_(
                coerce_members(Severity, filters.severities, "severities")
            ))
        if filters.project_id:
            stmt = stmt.where(model.project_id == filters.project_id)
        stmt = stmt.order_by(model.created_at.desc(), model.id.desc())

        reference = self._as_of(as_of)
        return [
            project_event(row.to_dto(), reference)
            for row in self._scalars(stmt)
        ]

    # -- risk register -------------------------------------------------------

    def get_risk_assessment(
        self, assessment_id: str, as_of: datetime | None = None,
    ) -> RiskAssessmentView | None:
        row = self.session.get(RiskAssessmentModel, assessment_id, populate_existing=True)
        if row is None:
            return None
        return project_risk(row.to_dto(), self._as_of(as_of))

    def list_risk_assessments(
        self,
        filters: RiskFilters | None = None,
        as_of: datetime | None = None,
    ) -> list[RiskAssessmentView]:
        """Risk register entries, newest first, with ``is_overdue`` derived."""
        filters = filters or RiskFilters()
        model = RiskAssessmentModel
        stmt = select(model)
        if filters.categories:
            stmt = stmt.where(model.risk_category.in_(
                coerce_members(RiskCategory, filters.categories, "categories")
            ))
        if filters.inherent_risks:
            stmt = stmt.where(model.inherent_risk.in_(
                coerce_members(RiskLevel, filters.inherent_risks, "inherent_risks")
            ))
        if filters.residual_risks:
            stmt = stmt.where(model.residual_risk.in_(
                coerce_members(RiskLevel, filters.residual_risks, "residual_risks")
            ))
        if filters.project_ids:
            stmt = stmt.where(model.project_id.in_(sorted(filters.project_ids)))
        if filters.risk_owners:
            stmt = stmt.where(model.risk_owner.in_(sorted(filters.risk_owners)))
        if filters.search and filters.search.strip():
            needle = filters.search.strip().lower()
            stmt = stmt.where(
                func.lower(model.risk_description).contains(needle, autoescape=True)
            )
        stmt = stmt.order_by(model.created_at.desc(), model.id.desc())

        reference = self._as_of(as_of)
        return [
            project_risk(row.to_dto(), reference)
            for row in self._scalars(stmt)
        ]

    # -- dashboard -----------------------------------------------------------

    def compliance_alerts(
        self,
        as_of: datetime | None = None,
        warning_days: int | None = None,
    ) -> ComplianceAlerts:
        """Expiring and overdue checks, overdue FCA events and overdue risk
        reviews, all at one instant."""
        reference = self._as_of(as_of)
        checks = self.list_checks(as_of=reference, warning_days=warning_days)
        events = self.list_fca_events(as_of=reference)
        risks = self.list_risk_assessments(as_of=reference)
        alerts = ComplianceAlerts(
            as_of=reference,
            expiring_checks=tuple(c for c in checks if c.is_expiring),
            overdue_checks=tuple(c for c in checks if c.is_overdue),
            overdue_events=tuple(e for e in events if e.is_overdue),
            overdue_risk_reviews=tuple(r for r in risks if r.is_overdue),
        )
        logger.info(
            "compliance_alerts_computed",
            extra={
                "as_of": reference,
                "expiring_checks": len(alerts.expiring_checks),
                "overdue_checks": len(alerts.overdue_checks),
                "overdue_events": len(alerts.overdue_events),
                "overdue_risk_reviews": len(alerts.overdue_risk_reviews),
            },
        )
        return alerts
