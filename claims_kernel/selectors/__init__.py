"""Read-only query selectors."""

from claims_kernel.selectors.approval_selector import ApprovalSelector
from claims_kernel.selectors.base import BaseSelector
from claims_kernel.selectors.compliance_selector import ComplianceSelector

__all__ = ["BaseSelector", "ApprovalSelector", "ComplianceSelector"]
