"""
Typed exception hierarchy for the approval & compliance kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (HTTP handlers, CLI tools, UI adapters) must show the specific
reason a command failed ("already approved by u1", "deadline passed at
2024-01-02T00:00:00+00:00") and must decide whether to retry.  Parsing
message strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE class attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        engine.approve(request_id, actor_id)
    except ExpiredError as e:
        return {"error": e.code, "expires_at": e.expires_at.isoformat()}
    except InvalidStateError as e:
        return {"error": e.code, "status": e.current_status}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ClaimsKernelError (base)
    |
    +-- ValidationError          caller supplied malformed / missing input
    +-- NotFoundError            referenced id absent from the store
    +-- UnauthorizedError        actor not permitted for this transition
    +-- InvalidStateError        transition forbidden from current state
    +-- ExpiredError             request passed its deadline
    +-- ConcurrencyError
    |   +-- ConflictError        optimistic version mismatch (retryable)
    +-- ConfigurationError       workflow policy failed validation

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                      | When Raised
--------------------------|----------------------------------------------
VALIDATION_FAILED         | Blank description/reason, empty approvers,
                          | missing findings or assessment date
NOT_FOUND                 | Request, document, check or event id unknown
UNAUTHORIZED              | Actor not in approvers / lacks authority level
INVALID_STATE             | approve/reject on a resolved record
DEADLINE_PASSED           | approve/reject after expires_at
OPTIMISTIC_LOCK_CONFLICT  | Concurrent write bumped the record version
INVALID_CONFIGURATION     | Workflow policy YAML is structurally invalid

===============================================================================
PROPAGATION
===============================================================================

None of these are swallowed inside the kernel.  ConflictError is the only
one retried automatically (bounded, see ``services.retry``); it reaches
the caller once the retry budget is spent.
"""

from datetime import datetime


class ClaimsKernelError(Exception):
    """
    Base exception for all kernel errors.

    All subclasses define a ``code`` class attribute.
    """

    code: str = "CLAIMS_KERNEL_ERROR"


class ValidationError(ClaimsKernelError):
    """Input is malformed or a required field is missing."""

    code: str = "VALIDATION_FAILED"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class NotFoundError(ClaimsKernelError):
    """Referenced record does not exist."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class UnauthorizedError(ClaimsKernelError):
    """Actor is not permitted to perform this transition."""

    code: str = "UNAUTHORIZED"

    def __init__(self, actor_id: str, action: str, entity_id: str, reason: str):
        self.actor_id = actor_id
        self.action = action
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Actor {actor_id} may not {action} {entity_id}: {reason}"
        )


class InvalidStateError(ClaimsKernelError):
    """Transition attempted from a state that forbids it."""

    code: str = "INVALID_STATE"

    def __init__(
        self,
        entity_id: str,
        current_status: str,
        action: str,
        reason: str | None = None,
    ):
        self.entity_id = entity_id
        self.current_status = current_status
        self.action = action
        self.reason = reason or f"cannot {action} when status is {current_status}"
        super().__init__(f"{entity_id}: {self.reason}")


class ExpiredError(ClaimsKernelError):
    """Request deadline passed before the mutating call landed."""

    code: str = "DEADLINE_PASSED"

    def __init__(self, request_id: str, expires_at: datetime):
        self.request_id = request_id
        self.expires_at = expires_at
        super().__init__(
            f"Approval request {request_id} expired: deadline passed at "
            f"{expires_at.isoformat()}"
        )


class ConcurrencyError(ClaimsKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConflictError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, expected_version: int | None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id} "
            f"(expected version {expected_version}): "
            "record was modified by another transaction"
        )


class ConfigurationError(ClaimsKernelError):
    """Workflow policy configuration is invalid."""

    code: str = "INVALID_CONFIGURATION"

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(
            "Workflow configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in self.errors)
        )
