"""
Compliance domain types (``claims_kernel.domain.compliance``).

Responsibility
--------------
Value objects for regulatory compliance checks, FCA regulatory events and
risk register entries, their list filters, and the pure functions that
derive the temporal risk flags (``is_expiring``, ``is_overdue``,
``days_until_due``).

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  The reference
instant is always passed in by the caller.

Invariants enforced
-------------------
* Derived flags are computed at read time and never persisted.
* The monitor never changes ``compliance_status`` on its own; flags are
  advisory.
* Patches may only touch the fields listed in the ``*_PATCHABLE_FIELDS``
  tables; identity and creation timestamps are immutable.

Failure modes
-------------
* ``coerce_patch`` raises ``ValidationError`` for an unknown field, a value
  of the wrong type, or an enum value outside its vocabulary.
* ``coerce_members`` raises ``ValidationError`` for a filter member outside
  its vocabulary.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, TypeVar

from claims_kernel.domain.time_policy import DEFAULT_WARNING_WINDOW, is_within_window
from claims_kernel.exceptions import ValidationError

E = TypeVar("E", bound=Enum)


# =========================================================================
# Vocabularies
# =========================================================================


class CheckType(str, Enum):
    DATA_PROTECTION = "data_protection"
    CONDUCT_OF_BUSINESS = "conduct_of_business"
    TREATING_CUSTOMERS_FAIRLY = "treating_customers_fairly"
    COMPLAINTS_HANDLING = "complaints_handling"
    FINANCIAL_CRIME = "financial_crime"
    MARKET_CONDUCT = "market_conduct"
    PRUDENTIAL = "prudential"
    CLIENT_ASSETS = "client_assets"
    SYSTEMS_AND_CONTROLS = "systems_and_controls"
    SKILLED_PERSONS_REPORT = "skilled_persons_report"


class ComplianceStatus(str, Enum):
    COMPLIANT = "compliant"
    NON_COMPLIANT = "non_compliant"
    PENDING_REVIEW = "pending_review"
    EXPIRED = "expired"
    UNDER_REVIEW = "under_review"


class RiskLevel(str, Enum):
    VERY_LOW = "very_low"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FCAEventCategory(str, Enum):
    COMPLAINTS = "complaints"
    DATA_BREACH = "data_breach"
    CONDUCT_RISK = "conduct_risk"
    OPERATIONAL_RISK = "operational_risk"
    FINANCIAL_CRIME = "financial_crime"
    OTHER = "other"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FCAEventStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


CLOSED_FCA_STATUSES: frozenset[FCAEventStatus] = frozenset({
    FCAEventStatus.RESOLVED,
    FCAEventStatus.CLOSED,
})


# =========================================================================
# Compliance checks
# =========================================================================


@dataclass(frozen=True)
class ComplianceCheck:
    """Stored record of one regulatory compliance assessment."""

    check_id: str
    check_type: CheckType
    regulation_type: str
    compliance_status: ComplianceStatus
    risk_rating: RiskLevel
    assessment_date: date
    findings: str
    created_at: datetime
    updated_at: datetime
    expiry_date: date | None = None
    next_review_date: date | None = None
    reference_number: str | None = None
    recommendations: str | None = None
    notes: str | None = None
    action_required: bool = False
    remedial_actions: tuple[str, ...] = ()
    project_id: str | None = None
    assessed_by: str | None = None
    version: int = 1


@dataclass(frozen=True)
class NewComplianceCheck:
    """Caller input for ``ComplianceService.record_check``."""

    check_type: CheckType | str
    regulation_type: str
    findings: str
    assessment_date: date | None
    compliance_status: ComplianceStatus | str = ComplianceStatus.PENDING_REVIEW
    risk_rating: RiskLevel | str = RiskLevel.MEDIUM
    expiry_date: date | None = None
    next_review_date: date | None = None
    reference_number: str | None = None
    recommendations: str | None = None
    notes: str | None = None
    action_required: bool = False
    remedial_actions: tuple[str, ...] | list[str] = ()
    project_id: str | None = None


@dataclass(frozen=True)
class ComplianceCheckView:
    check: ComplianceCheck
    is_expiring: bool
    is_overdue: bool

    @property
    def check_id(self) -> str:
        return self.check.check_id


@dataclass(frozen=True)
class ComplianceFilters:
    """Filters for ``ComplianceSelector.list_checks``.

    ``search`` is a case-insensitive substring match over regulation type,
    notes, reference number and findings.
    """

    statuses: frozenset[ComplianceStatus | str] | None = None
    check_types: frozenset[CheckType | str] | None = None
    risk_ratings: frozenset[RiskLevel | str] | None = None
    project_ids: frozenset[str] | None = None
    assessed_from: date | None = None
    assessed_to: date | None = None
    search: str | None = None


def check_is_expiring(
    check: ComplianceCheck,
    as_of: datetime,
    window: timedelta = DEFAULT_WARNING_WINDOW,
) -> bool:
    """Expiry date falls on or before ``as_of + window`` (past dates included)."""
    return is_within_window(check.expiry_date, as_of, window)


def check_is_overdue(check: ComplianceCheck, as_of: datetime) -> bool:
    """Next review date is strictly before the reference date."""
    if check.next_review_date is None:
        return False
    return check.next_review_date < as_of.date()


def project_check(
    check: ComplianceCheck,
    as_of: datetime,
    window: timedelta = DEFAULT_WARNING_WINDOW,
) -> ComplianceCheckView:
    return ComplianceCheckView(
        check=check,
        is_expiring=check_is_expiring(check, as_of, window),
        is_overdue=check_is_overdue(check, as_of),
    )


# =========================================================================
# FCA events
# =========================================================================


@dataclass(frozen=True)
class FCAEvent:
    """Stored regulatory event (complaint, breach, conduct incident...)."""

    event_id: str
    event_type: str
    event_category: FCAEventCategory
    severity: Severity
    description: str
    status: FCAEventStatus
    occurred_date: date
    due_date: date
    created_at: datetime
    updated_at: datetime
    reported_date: date | None = None
    root_cause: str | None = None
    remedial_action: str | None = None
    reported_to_fca: bool = False
    fca_reference: str | None = None
    project_id: str | None = None
    user_id: str | None = None
    assigned_to: str | None = None
    version: int = 1


@dataclass(frozen=True)
class NewFCAEvent:
    """Caller input for ``ComplianceService.record_fca_event``."""

    event_type: str
    description: str
    due_date: date | None
    occurred_date: date | None = None
    event_category: FCAEventCategory | str = FCAEventCategory.OTHER
    severity: Severity | str = Severity.MEDIUM
    reported_date: date | None = None
    root_cause: str | None = None
    remedial_action: str | None = None
    reported_to_fca: bool = False
    fca_reference: str | None = None
    project_id: str | None = None
    assigned_to: str | None = None


@dataclass(frozen=True)
class FCAEventView:
    event: FCAEvent
    days_until_due: int
    is_overdue: bool

    @property
    def event_id(self) -> str:
        return self.event.event_id


@dataclass(frozen=True)
class FCAEventFilters:
    statuses: frozenset[FCAEventStatus | str] | None = None
    severities: frozenset[Severity | str] | None = None
    project_id: str | None = None


def days_until_due(event: FCAEvent, as_of: datetime) -> int:
    return (event.due_date - as_of.date()).days


def project_event(event: FCAEvent, as_of: datetime) -> FCAEventView:
    remaining = days_until_due(event, as_of)
    return FCAEventView(
        event=event,
        days_until_due=remaining,
        is_overdue=remaining < 0 and event.status not in CLOSED_FCA_STATUSES,
    )


# =========================================================================
# Risk assessments
# =========================================================================


class RiskCategory(str, Enum):
    OPERATIONAL = "operational"
    CONDUCT = "conduct"
    FINANCIAL = "financial"
    REGULATORY = "regulatory"
    REPUTATIONAL = "reputational"
    STRATEGIC = "strategic"


class ControlEffectiveness(str, Enum):
    EFFECTIVE = "effective"
    PARTIALLY_EFFECTIVE = "partially_effective"
    INEFFECTIVE = "ineffective"
    NOT_ASSESSED = "not_assessed"


class ReviewFrequency(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMI_ANNUALLY = "semi_annually"
    ANNUALLY = "annually"


@dataclass(frozen=True)
class RiskAssessment:
    """Stored risk register entry.

    ``inherent_risk`` is the exposure before controls, ``residual_risk``
    after them, and ``risk_appetite`` the level the business accepts.
    """

    assessment_id: str
    risk_category: RiskCategory
    risk_description: str
    inherent_risk: RiskLevel
    residual_risk: RiskLevel
    risk_appetite: RiskLevel
    review_frequency: ReviewFrequency
    next_review_date: date
    created_at: datetime
    updated_at: datetime
    control_effectiveness: ControlEffectiveness = ControlEffectiveness.NOT_ASSESSED
    current_controls: tuple[str, ...] = ()
    mitigation_actions: tuple[str, ...] = ()
    action_required: bool = False
    last_review_date: date | None = None
    risk_owner: str | None = None
    assessor_id: str | None = None
    project_id: str | None = None
    version: int = 1


@dataclass(frozen=True)
class NewRiskAssessment:
    """Caller input for ``ComplianceService.record_risk_assessment``."""

    risk_category: RiskCategory | str
    risk_description: str
    inherent_risk: RiskLevel | str
    residual_risk: RiskLevel | str
    risk_appetite: RiskLevel | str
    review_frequency: ReviewFrequency | str
    next_review_date: date | None
    control_effectiveness: ControlEffectiveness | str = ControlEffectiveness.NOT_ASSESSED
    current_controls: tuple[str, ...] | list[str] = ()
    mitigation_actions: tuple[str, ...] | list[str] = ()
    action_required: bool = False
    last_review_date: date | None = None
    risk_owner: str | None = None
    project_id: str | None = None


@dataclass(frozen=True)
class RiskAssessmentView:
    assessment: RiskAssessment
    is_overdue: bool

    @property
    def assessment_id(self) -> str:
        return self.assessment.assessment_id


@dataclass(frozen=True)
class RiskFilters:
    """Filters for ``ComplianceSelector.list_risk_assessments``.

    ``search`` matches the risk description, case-insensitively.
    """

    categories: frozenset[RiskCategory | str] | None = None
    inherent_risks: frozenset[RiskLevel | str] | None = None
    residual_risks: frozenset[RiskLevel | str] | None = None
    project_ids: frozenset[str] | None = None
    risk_owners: frozenset[str] | None = None
    search: str | None = None


def risk_review_is_overdue(assessment: RiskAssessment, as_of: datetime) -> bool:
    return assessment.next_review_date < as_of.date()


def project_risk(assessment: RiskAssessment, as_of: datetime) -> RiskAssessmentView:
    return RiskAssessmentView(
        assessment=assessment,
        is_overdue=risk_review_is_overdue(assessment, as_of),
    )


@dataclass(frozen=True)
class ComplianceAlerts:
    """Dashboard alert bundle computed at one reference instant."""

    as_of: datetime
    expiring_checks: tuple[ComplianceCheckView, ...] = ()
    overdue_checks: tuple[ComplianceCheckView, ...] = ()
    overdue_events: tuple[FCAEventView, ...] = ()
    overdue_risk_reviews: tuple[RiskAssessmentView, ...] = ()

    @property
    def total(self) -> int:
        return (
            len(self.expiring_checks)
            + len(self.overdue_checks)
            + len(self.overdue_events)
            + len(self.overdue_risk_reviews)
        )


# =========================================================================
# Patch coercion
# =========================================================================

# Field kinds: an Enum class (vocabulary), ``date``, ``bool``, ``str``, or
# ``tuple`` for a list of strings.

COMPLIANCE_CHECK_PATCHABLE_FIELDS: Mapping[str, type] = {
    "check_type": CheckType,
    "regulation_type": str,
    "compliance_status": ComplianceStatus,
    "risk_rating": RiskLevel,
    "assessment_date": date,
    "expiry_date": date,
    "next_review_date": date,
    "reference_number": str,
    "findings": str,
    "recommendations": str,
    "notes": str,
    "action_required": bool,
    "remedial_actions": tuple,
    "project_id": str,
}

FCA_EVENT_PATCHABLE_FIELDS: Mapping[str, type] = {
    "event_type": str,
    "event_category": FCAEventCategory,
    "severity": Severity,
    "description": str,
    "status": FCAEventStatus,
    "occurred_date": date,
    "due_date": date,
    "reported_date": date,
    "root_cause": str,
    "remedial_action": str,
    "reported_to_fca": bool,
    "fca_reference": str,
    "project_id": str,
    "assigned_to": str,
}

RISK_ASSESSMENT_PATCHABLE_FIELDS: Mapping[str, type] = {
    "risk_category": RiskCategory,
    "risk_description": str,
    "inherent_risk": RiskLevel,
    "residual_risk": RiskLevel,
    "risk_appetite": RiskLevel,
    "review_frequency": ReviewFrequency,
    "next_review_date": date,
    "last_review_date": date,
    "control_effectiveness": ControlEffectiveness,
    "current_controls": tuple,
    "mitigation_actions": tuple,
    "action_required": bool,
    "risk_owner": str,
    "project_id": str,
}


def _coerce_value(name: str, value: Any, kind: type) -> Any:
    if kind is date:
        # datetime is a date subclass but would not round-trip a Date column
        if not isinstance(value, date) or isinstance(value, datetime):
            raise ValidationError(name, f"must be a date, got {value!r}")
        return value
    if kind is tuple:
        if not isinstance(value, (list, tuple)) or not all(
            isinstance(item, str) for item in value
        ):
            raise ValidationError(name, f"must be a list of strings, got {value!r}")
        return tuple(value)
    if kind is bool or kind is str:
        if not isinstance(value, kind):
            raise ValidationError(name, f"must be a {kind.__name__}, got {value!r}")
        return value
    try:
        return kind(value)
    except ValueError:
        raise ValidationError(name, f"unknown value {value!r}") from None


def coerce_patch(
    patch: Mapping[str, Any],
    allowed: Mapping[str, type],
) -> dict[str, Any]:
    """Validate a partial update and convert enum strings to members.

    ``None`` passes through; the caller decides which fields are required.

    Raises:
        ValidationError: unknown or immutable field, a value of the wrong
            type, or a value outside the field's enum vocabulary.
    """
    coerced: dict[str, Any] = {}
    for name, value in patch.items():
        if name not in allowed:
            raise ValidationError(name, "field cannot be updated")
        coerced[name] = None if value is None else _coerce_value(name, value, allowed[name])
    return coerced


def coerce_members(kind: type[E], members: Iterable[E | str], field: str) -> list[str]:
    """Stored values for a set of filter members given as enums or strings.

    Raises:
        ValidationError: a member outside the ``kind`` vocabulary.
    """
    values = []
    for member in members:
        try:
            values.append(kind(member).value)
        except ValueError:
            raise ValidationError(field, f"unknown value {member!r}") from None
    return sorted(values)
