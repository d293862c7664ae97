"""
Claims Kernel - approval & compliance workflow core

The workflow kernel behind the claims/project dashboard:
- Approval request lifecycle with urgency-derived deadlines
- Lazy expiry and escalation
- Per-document approval gate keyed on authority level
- Compliance check and FCA event monitoring with temporal risk flags
"""

__version__ = "0.1.0"
