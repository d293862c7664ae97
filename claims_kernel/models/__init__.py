"""SQLAlchemy ORM models for the approval & compliance kernel."""

from claims_kernel.models.approval import ApprovalRequestModel
from claims_kernel.models.compliance import (
    ComplianceCheckModel,
    FCAEventModel,
    RiskAssessmentModel,
)
from claims_kernel.models.document import DocumentApprovalModel

__all__ = [
    "ApprovalRequestModel",
    "DocumentApprovalModel",
    "ComplianceCheckModel",
    "FCAEventModel",
    "RiskAssessmentModel",
]
