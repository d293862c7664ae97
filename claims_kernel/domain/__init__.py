"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Wall-clock time
- I/O

All domain objects are immutable and deterministic.
"""

from claims_kernel.domain.approval import (
    APPROVAL_TRANSITIONS,
    OPEN_APPROVAL_STATUSES,
    TERMINAL_APPROVAL_STATUSES,
    ApprovalAction,
    ApprovalFilters,
    ApprovalRequest,
    ApprovalRequestView,
    ApprovalStatus,
    ApprovalSummary,
    NewApprovalRequest,
    effective_status,
    resolve_transition,
)
from claims_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from claims_kernel.domain.compliance import (
    CheckType,
    ComplianceAlerts,
    ComplianceCheck,
    ComplianceCheckView,
    ComplianceFilters,
    ComplianceStatus,
    ControlEffectiveness,
    FCAEvent,
    FCAEventCategory,
    FCAEventFilters,
    FCAEventStatus,
    FCAEventView,
    NewComplianceCheck,
    NewFCAEvent,
    NewRiskAssessment,
    ReviewFrequency,
    RiskAssessment,
    RiskAssessmentView,
    RiskCategory,
    RiskFilters,
    RiskLevel,
    Severity,
)
from claims_kernel.domain.document import (
    AuthorityProvider,
    DocumentApproval,
    DocumentApprovalStatus,
    NewDocument,
    RoleAuthorityProvider,
    VisibilityLevel,
    WorkflowStage,
)
from claims_kernel.domain.policy import DEFAULT_POLICY, WorkflowPolicy
from claims_kernel.domain.time_policy import (
    AuthorityLevel,
    Urgency,
    duration_for_urgency,
    is_within_window,
    required_approval_level,
)

__all__ = [
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Time policy
    "AuthorityLevel",
    "Urgency",
    "duration_for_urgency",
    "is_within_window",
    "required_approval_level",
    "WorkflowPolicy",
    "DEFAULT_POLICY",
    # Approval requests
    "APPROVAL_TRANSITIONS",
    "OPEN_APPROVAL_STATUSES",
    "TERMINAL_APPROVAL_STATUSES",
    "ApprovalAction",
    "ApprovalFilters",
    "ApprovalRequest",
    "ApprovalRequestView",
    "ApprovalStatus",
    "ApprovalSummary",
    "NewApprovalRequest",
    "effective_status",
    "resolve_transition",
    # Documents
    "AuthorityProvider",
    "DocumentApproval",
    "DocumentApprovalStatus",
    "NewDocument",
    "RoleAuthorityProvider",
    "VisibilityLevel",
    "WorkflowStage",
    # Compliance
    "CheckType",
    "ComplianceAlerts",
    "ComplianceCheck",
    "ComplianceCheckView",
    "ComplianceFilters",
    "ComplianceStatus",
    "FCAEvent",
    "FCAEventCategory",
    "FCAEventFilters",
    "FCAEventStatus",
    "FCAEventView",
    "NewComplianceCheck",
    "NewFCAEvent",
    "RiskLevel",
    "Severity",
    # Risk register
    "ControlEffectiveness",
    "NewRiskAssessment",
    "ReviewFrequency",
    "RiskAssessment",
    "RiskAssessmentView",
    "RiskCategory",
    "RiskFilters",
]
