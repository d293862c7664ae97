"""
claims_kernel.services.compliance_service -- Compliance monitor (write side).

Responsibility:
    Records and updates regulatory compliance checks, FCA regulatory
    events and risk register entries.  Listing with derived temporal flags
    is delegated to ``ComplianceSelector``; this service exposes those
    reads too so callers have one entry point.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/, selectors/.

Invariants enforced:
    - The monitor never changes ``compliance_status`` by itself; temporal
      risk is reported through derived flags only.
    - ``check_id`` / ``event_id`` / ``assessment_id`` and ``created_at``
      cannot be patched.
    - FCA event status changes are free-form: any vocabulary value may
      follow any other.
    - New records and patches go through the same typed coercion, so a
      value of the wrong type never reaches the store.

Failure modes:
    - ValidationError on blank findings / description, missing assessment,
      due or review date, unknown patch field, a value of the wrong type,
      or an out-of-vocabulary enum value.
    - NotFoundError on an unknown check, event or assessment id.
    - ConflictError when the retry budget is exhausted.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import fields, replace
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from claims_kernel.domain.clock import Clock, SystemClock
from claims_kernel.domain.compliance import (
    COMPLIANCE_CHECK_PATCHABLE_FIELDS,
    FCA_EVENT_PATCHABLE_FIELDS,
    RISK_ASSESSMENT_PATCHABLE_FIELDS,
    ComplianceAlerts,
    ComplianceCheck,
    ComplianceCheckView,
    ComplianceFilters,
    FCAEvent,
    FCAEventFilters,
    FCAEventStatus,
    FCAEventView,
    NewComplianceCheck,
    NewFCAEvent,
    NewRiskAssessment,
    RiskAssessment,
    RiskAssessmentView,
    RiskFilters,
    coerce_patch,
)
from claims_kernel.domain.policy import DEFAULT_POLICY, WorkflowPolicy
from claims_kernel.db.base import new_id
from claims_kernel.exceptions import NotFoundError, ValidationError
from claims_kernel.logging_config import LogContext, get_logger
from claims_kernel.selectors.compliance_selector import ComplianceSelector
from claims_kernel.services.event_sink import EventSink, LoggingEventSink, publish_safely
from claims_kernel.services.record_store import (
    ComplianceCheckStore,
    FCAEventStore,
    RiskAssessmentStore,
)
from claims_kernel.services.retry import run_with_conflict_retry

logger = get_logger("services.compliance")

CHECK_TEXT_FIELDS = ("findings", "regulation_type")
CHECK_REQUIRED_FIELDS = (
    "assessment_date", "check_type", "compliance_status", "risk_rating", "action_required",
)
EVENT_TEXT_FIELDS = ("description", "event_type")
EVENT_REQUIRED_FIELDS = (
    "due_date", "occurred_date", "status", "severity", "event_category", "reported_to_fca",
)
RISK_TEXT_FIELDS = ("risk_description",)
RISK_REQUIRED_FIELDS = (
    "next_review_date",
    "risk_category",
    "inherent_risk",
    "residual_risk",
    "risk_appetite",
    "review_frequency",
    "control_effectiveness",
    "action_required",
)


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def _input_values(data: Any, allowed: Mapping[str, type]) -> dict[str, Any]:
    """Typed values of a ``New*`` input dataclass."""
    return coerce_patch({f.name: getattr(data, f.name) for f in fields(data)}, allowed)


def _require(
    values: Mapping[str, Any],
    text_fields: tuple[str, ...],
    required_fields: tuple[str, ...],
) -> None:
    """Reject blank text and missing required values among ``values``."""
    for name in text_fields:
        if name in values and _blank(values[name]):
            raise ValidationError(name, "must not be blank")
    for name in required_fields:
        if name in values and values[name] is None:
            raise ValidationError(name, "is required")


class ComplianceService:
    """Compliance check, FCA event and risk register."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: WorkflowPolicy | None = None,
        event_sink: EventSink | None = None,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self._policy = policy or DEFAULT_POLICY
        self._events = event_sink or LoggingEventSink()
        self._checks = ComplianceCheckStore(session)
        self._fca_events = FCAEventStore(session)
        self._risks = RiskAssessmentStore(session)
        self._selector = ComplianceSelector(session, self._clock, self._policy)

    # ------------------------------------------------------------------
    # Compliance checks
    # ------------------------------------------------------------------

    def record_check(self, data: NewComplianceCheck, assessed_by: str) -> ComplianceCheck:
        values = _input_values(data, COMPLIANCE_CHECK_PATCHABLE_FIELDS)
        _require(values, CHECK_TEXT_FIELDS, CHECK_REQUIRED_FIELDS)

        now = self._clock.now()
        values["regulation_type"] = values["regulation_type"].strip()
        values["findings"] = values["findings"].strip()
        check = ComplianceCheck(
            check_id=new_id(),
            created_at=now,
            updated_at=now,
            assessed_by=assessed_by,
            **values,
        )

        with LogContext.bind(actor_id=assessed_by):
            stored = self._checks.put(check)
            logger.info(
                "compliance_check_recorded",
                extra={
                    "check_id": stored.check_id,
                    "check_type": stored.check_type.value,
                    "compliance_status": stored.compliance_status.value,
                    "risk_rating": stored.risk_rating.value,
                },
            )
        publish_safely(
            self._events, "compliance.check_recorded", self._check_payload(stored),
        )
        return stored

    def update_check(self, check_id: str, patch: Mapping[str, Any]) -> ComplianceCheck:
        """Apply a partial update; ``updated_at`` is set from the clock."""
        changes = coerce_patch(patch, COMPLIANCE_CHECK_PATCHABLE_FIELDS)
        _require(changes, CHECK_TEXT_FIELDS, CHECK_REQUIRED_FIELDS)

        def attempt() -> ComplianceCheck:
            current = self._checks.get(check_id)
            if current is None:
                raise NotFoundError("ComplianceCheck", check_id)
            updated = replace(current, updated_at=self._clock.now(), **changes)
            return self._checks.put(updated, expected_version=current.version)

        stored = self._with_retry(attempt, "update_check")
        logger.info(
            "compliance_check_updated",
            extra={"check_id": check_id, "fields": sorted(changes)},
        )
        publish_safely(
            self._events,
            "compliance.check_updated",
            self._check_payload(stored, fields=sorted(changes)),
        )
        return stored

    def get_check(self, check_id: str, as_of: datetime | None = None) -> ComplianceCheckView:
        view = self._selector.get_check(check_id, as_of)
        if view is None:
            raise NotFoundError("ComplianceCheck", check_id)
        return view

    def list_checks(
        self,
        filters: ComplianceFilters | None = None,
        as_of: datetime | None = None,
        warning_days: int | None = None,
    ) -> list[ComplianceCheckView]:
        return self._selector.list_checks(filters, as_of, warning_days)

    # ------------------------------------------------------------------
    # FCA events
    # ------------------------------------------------------------------

    def record_fca_event(self, data: NewFCAEvent, reported_by: str) -> FCAEvent:
        now = self._clock.now()
        values = _input_values(data, FCA_EVENT_PATCHABLE_FIELDS)
        if values["occurred_date"] is None:
            values["occurred_date"] = now.date()
        _require(values, EVENT_TEXT_FIELDS, EVENT_REQUIRED_FIELDS)

        values["event_type"] = values["event_type"].strip()
        values["description"] = values["description"].strip()
        event = FCAEvent(
            event_id=new_id(),
            status=FCAEventStatus.OPEN,
            created_at=now,
            updated_at=now,
            user_id=reported_by,
            **values,
        )

        with LogContext.bind(actor_id=reported_by):
            stored = self._fca_events.put(event)
            logger.info(
                "fca_event_recorded",
                extra={
                    "event_id": stored.event_id,
                    "event_category": stored.event_category.value,
                    "severity": stored.severity.value,
                    "due_date": stored.due_date,
                },
            )
        publish_safely(
            self._events, "compliance.fca_event_recorded", self._event_payload(stored),
        )
        return stored

    def update_fca_event(self, event_id: str, patch: Mapping[str, Any]) -> FCAEvent:
        """Apply a partial update.  Any status may follow any other."""
        changes = coerce_patch(patch, FCA_EVENT_PATCHABLE_FIELDS)
        _require(changes, EVENT_TEXT_FIELDS, EVENT_REQUIRED_FIELDS)

        def attempt() -> FCAEvent:
            current = self._fca_events.get(event_id)
            if current is None:
                raise NotFoundError("FCAEvent", event_id)
            updated = replace(current, updated_at=self._clock.now(), **changes)
            return self._fca_events.put(updated, expected_version=current.version)

        stored = self._with_retry(attempt, "update_fca_event")
        logger.info(
            "fca_event_updated",
            extra={
                "event_id": event_id,
                "fields": sorted(changes),
                "status": stored.status.value,
            },
        )
        publish_safely(
            self._events,
            "compliance.fca_event_updated",
            self._event_payload(stored, fields=sorted(changes)),
        )
        return stored

    def get_fca_event(self, event_id: str, as_of: datetime | None = None) -> FCAEventView:
        view = self._selector.get_fca_event(event_id, as_of)
        if view is None:
            raise NotFoundError("FCAEvent", event_id)
        return view

    def list_fca_events(
        self,
        filters: FCAEventFilters | None = None,
        as_of: datetime | None = None,
    ) -> list[FCAEventView]:
        return self._selector.list_fca_events(filters, as_of)

    # ------------------------------------------------------------------
    # Risk register
    # ------------------------------------------------------------------

    def record_risk_assessment(
        self, data: NewRiskAssessment, assessed_by: str,
    ) -> RiskAssessment:
        """Add a risk register entry; ``assessed_by`` becomes the assessor."""
        values = _input_values(data, RISK_ASSESSMENT_PATCHABLE_FIELDS)
        _require(values, RISK_TEXT_FIELDS, RISK_REQUIRED_FIELDS)

        now = self._clock.now()
        values["risk_description"] = values["risk_description"].strip()
        assessment = RiskAssessment(
            assessment_id=new_id(),
            created_at=now,
            updated_at=now,
            assessor_id=assessed_by,
            **values,
        )

        with LogContext.bind(actor_id=assessed_by):
            stored = self._risks.put(assessment)
            logger.info(
                "risk_assessment_recorded",
                extra={
                    "assessment_id": stored.assessment_id,
                    "risk_category": stored.risk_category.value,
                    "residual_risk": stored.residual_risk.value,
                    "next_review_date": stored.next_review_date,
                },
            )
        publish_safely(
            self._events,
            "compliance.risk_assessment_recorded",
            self._risk_payload(stored),
        )
        return stored

    def update_risk_assessment(
        self, assessment_id: str, patch: Mapping[str, Any],
    ) -> RiskAssessment:
        changes = coerce_patch(patch, RISK_ASSESSMENT_PATCHABLE_FIELDS)
        _require(changes, RISK_TEXT_FIELDS, RISK_REQUIRED_FIELDS)

        def attempt() -> RiskAssessment:
            current = self._risks.get(assessment_id)
            if current is None:
                raise NotFoundError("RiskAssessment", assessment_id)
            updated = replace(current, updated_at=self._clock.now(), **changes)
            return self._risks.put(updated, expected_version=current.version)

        stored = self._with_retry(attempt, "update_risk_assessment")
        logger.info(
            "risk_assessment_updated",
            extra={"assessment_id": assessment_id, "fields": sorted(changes)},
        )
        publish_safely(
            self._events,
            "compliance.risk_assessment_updated",
            self._risk_payload(stored, fields=sorted(changes)),
        )
        return stored

    def get_risk_assessment(
        self, assessment_id: str, as_of: datetime | None = None,
    ) -> RiskAssessmentView:
        view = self._selector.get_risk_assessment(assessment_id, as_of)
        if view is None:
            raise NotFoundError("RiskAssessment", assessment_id)
        return view

    def list_risk_assessments(
        self,
        filters: RiskFilters | None = None,
        as_of: datetime | None = None,
    ) -> list[RiskAssessmentView]:
        return self._selector.list_risk_assessments(filters, as_of)

    # ------------------------------------------------------------------

    def compliance_alerts(
        self,
        as_of: datetime | None = None,
        warning_days: int | None = None,
    ) -> ComplianceAlerts:
        return self._selector.compliance_alerts(as_of, warning_days)

    def _with_retry(self, attempt, operation: str):
        return run_with_conflict_retry(
            attempt,
            max_attempts=self._policy.max_conflict_retries,
            operation=f"compliance.{operation}",
        )

    @staticmethod
    def _check_payload(check: ComplianceCheck, **extra: Any) -> dict[str, Any]:
        payload = {
            "check_id": check.check_id,
            "check_type": check.check_type.value,
            "compliance_status": check.compliance_status.value,
            "risk_rating": check.risk_rating.value,
            "project_id": check.project_id,
        }
        payload.update(extra)
        return payload

    @staticmethod
    def _event_payload(event: FCAEvent, **extra: Any) -> dict[str, Any]:
        payload = {
            "event_id": event.event_id,
            "event_category": event.event_category.value,
            "severity": event.severity.value,
            "status": event.status.value,
            "due_date": event.due_date.isoformat(),
        }
        payload.update(extra)
        return payload

    @staticmethod
    def _risk_payload(assessment: RiskAssessment, **extra: Any) -> dict[str, Any]:
        payload = {
            "assessment_id": assessment.assessment_id,
            "risk_category": assessment.risk_category.value,
            "inherent_risk": assessment.inherent_risk.value,
            "residual_risk": assessment.residual_risk.value,
            "next_review_date": assessment.next_review_date.isoformat(),
            "project_id": assessment.project_id,
        }
        payload.update(extra)
        return payload
