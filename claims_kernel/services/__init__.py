"""Kernel services -- the imperative shell around the pure domain layer."""

from claims_kernel.services.approval_service import ApprovalService
from claims_kernel.services.compliance_service import ComplianceService
from claims_kernel.services.document_approval_service import DocumentApprovalService
from claims_kernel.services.event_sink import (
    EventSink,
    InMemoryEventSink,
    LoggingEventSink,
)
from claims_kernel.services.record_store import (
    ApprovalRequestStore,
    ComplianceCheckStore,
    DocumentApprovalStore,
    FCAEventStore,
    RecordStore,
    RiskAssessmentStore,
)

__all__ = [
    "ApprovalService",
    "DocumentApprovalService",
    "ComplianceService",
    "EventSink",
    "LoggingEventSink",
    "InMemoryEventSink",
    "RecordStore",
    "ApprovalRequestStore",
    "DocumentApprovalStore",
    "ComplianceCheckStore",
    "FCAEventStore",
    "RiskAssessmentStore",
]
