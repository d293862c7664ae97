"""
claims_kernel.services.approval_service -- Approval workflow engine.

Responsibility:
    Owns the approval request lifecycle: creation with an urgency-derived
    deadline, approve / reject / escalate commands, the on-demand expiry
    sweep, and the listing operations callers use to build work queues.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/, selectors/.

Invariants enforced:
    - Every status change goes through ``resolve_transition`` and the
      central transition table.
    - ``expires_at`` is computed once at creation and never recomputed.
    - Expiry is lazy: each command compares the clock against
      ``expires_at`` before doing anything else to the record.
    - Writes are compare-and-set on ``version``; a lost race re-runs the
      whole read-validate-write, up to ``policy.max_conflict_retries``.
    - Lifecycle events are published after the write; a failing sink
      never undoes it.

Failure modes (approve / reject, in precedence order):
    - ValidationError   blank rejection reason (reject only).
    - NotFoundError     unknown request id.
    - UnauthorizedError actor is not one of the request's approvers.
    - ExpiredError      open request past its deadline.
    - InvalidStateError request already approved, rejected or expired.
    - ConflictError     retry budget exhausted.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from claims_kernel.domain.approval import (
    ApprovalAction,
    ApprovalFilters,
    ApprovalRequest,
    ApprovalRequestView,
    ApprovalStatus,
    ApprovalSummary,
    NewApprovalRequest,
    resolve_transition,
)
from claims_kernel.domain.clock import Clock, SystemClock
from claims_kernel.domain.policy import DEFAULT_POLICY, WorkflowPolicy
from claims_kernel.domain.time_policy import AuthorityLevel, coerce_urgency
from claims_kernel.db.base import new_id
from claims_kernel.exceptions import (
    ExpiredError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from claims_kernel.logging_config import LogContext, get_logger
from claims_kernel.selectors.approval_selector import ApprovalSelector
from claims_kernel.services.event_sink import EventSink, LoggingEventSink, publish_safely
from claims_kernel.services.record_store import ApprovalRequestStore
from claims_kernel.services.retry import run_with_conflict_retry

logger = get_logger("services.approval")


def _require_text(field: str, value: str | None) -> str:
    if value is None or not value.strip():
        raise ValidationError(field, "must not be blank")
    return value.strip()


def _event_payload(request: ApprovalRequest, **extra: Any) -> dict[str, Any]:
    payload = {
        "request_id": request.request_id,
        "request_type": request.request_type,
        "status": request.status.value,
        "urgency": request.urgency.value,
        "project_id": request.project_id,
    }
    payload.update(extra)
    return payload


class ApprovalService:
    """Approval workflow engine.

    Usage:
        with session_scope() as session:
            engine = ApprovalService(session, clock=SystemClock())
            request = engine.create_request(
                NewApprovalRequest(
                    request_type="expense",
                    description="Loss adjuster fee",
                    approvers=["u1", "u2"],
                    urgency=Urgency.URGENT,
                ),
                requested_by="u9",
            )
            engine.approve(request.request_id, "u1")
    """

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
        self._store = ApprovalRequestStore(session)
        self._selector = ApprovalSelector(session, self._clock)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_request(
        self, data: NewApprovalRequest, requested_by: str,
    ) -> ApprovalRequest:
        """Persist a new pending request with its deadline fixed now."""
        request_type = _require_text("request_type", data.request_type)
        description = _require_text("description", data.description)
        if isinstance(data.approvers, str):
            raise ValidationError("approvers", "must be a list of user ids")
        approvers = tuple(a.strip() for a in data.approvers or () if a and a.strip())
        if not approvers:
            raise ValidationError("approvers", "at least one approver is required")

        urgency = coerce_urgency(data.urgency)
        level = data.required_authority_level
        if isinstance(level, AuthorityLevel):
            level = level.value

        now = self._clock.now()
        request = ApprovalRequest(
            request_id=new_id(),
            request_type=request_type,
            description=description,
            requested_by=requested_by,
            approvers=approvers,
            urgency=urgency,
            required_authority_level=level or AuthorityLevel.STANDARD.value,
            created_at=now,
            expires_at=now + self._policy.duration_for(urgency),
            justification=data.justification,
            amount=data.amount,
            project_id=data.project_id,
            metadata=dict(data.metadata or {}),
        )

        with LogContext.bind(actor_id=requested_by, request_id=request.request_id):
            stored = self._store.put(request)
            logger.info(
                "approval_request_created",
                extra={
                    "request_type": request_type,
                    "urgency": urgency.value,
                    "approver_count": len(approvers),
                    "expires_at": stored.expires_at,
                },
            )
        publish_safely(
            self._events,
            "request.created",
            _event_payload(stored, requested_by=requested_by, approvers=list(approvers)),
        )
        return stored

    def approve(
        self,
        request_id: str,
        actor_id: str,
        comments: str | None = None,
    ) -> ApprovalRequest:
        """Approve an open request on behalf of one of its approvers."""

        def attempt() -> ApprovalRequest:
            request = self._load(request_id)
            now = self._clock.now()
            target = self._check_decision(request, actor_id, ApprovalAction.APPROVE, now)
            metadata = dict(request.metadata)
            if comments:
                metadata["approval_comments"] = comments
            updated = replace(
                request,
                status=target,
                approved_by=actor_id,
                approved_at=now,
                metadata=metadata,
            )
            return self._store.put(updated, expected_version=request.version)

        with LogContext.bind(actor_id=actor_id, request_id=request_id):
            stored = self._with_retry(attempt, "approve")
            logger.info("approval_request_approved", extra={"approved_by": actor_id})
        publish_safely(
            self._events,
            "request.approved",
            _event_payload(stored, actor_id=actor_id, comments=comments),
        )
        return stored

    def reject(self, request_id: str, actor_id: str, reason: str) -> ApprovalRequest:
        """Reject an open request; the reason is mandatory."""
        reason = _require_text("reason", reason)

        def attempt() -> ApprovalRequest:
            request = self._load(request_id)
            now = self._clock.now()
            target = self._check_decision(request, actor_id, ApprovalAction.REJECT, now)
            updated = replace(
                request,
                status=target,
                approved_by=actor_id,
                approved_at=now,
                rejection_reason=reason,
            )
            return self._store.put(updated, expected_version=request.version)

        with LogContext.bind(actor_id=actor_id, request_id=request_id):
            stored = self._with_retry(attempt, "reject")
            logger.info("approval_request_rejected", extra={"rejected_by": actor_id})
        publish_safely(
            self._events,
            "request.rejected",
            _event_payload(stored, actor_id=actor_id, reason=reason),
        )
        return stored

    def escalate(self, request_id: str, actor_id: str, reason: str) -> ApprovalRequest:
        """Flag a request for senior attention.

        Open requests move to ``escalated``.  A request that lapsed is
        recorded as ``expired`` first.  Resolved requests keep their status
        and only get the flag, unless the policy forbids escalating them.
        The actor need not be an approver.
        """
        reason = _require_text("reason", reason)
        lapsed = False

        def attempt() -> ApprovalRequest:
            nonlocal lapsed
            request = self._load(request_id)
            now = self._clock.now()
            lapsed = request.is_open() and request.deadline_passed(now)
            if lapsed:
                request = replace(
                    request,
                    status=resolve_transition(request, ApprovalAction.EXPIRE),
                )
            target = resolve_transition(
                request,
                ApprovalAction.ESCALATE,
                allow_flag_only=self._policy.allow_escalation_after_resolution,
            )
            metadata = dict(request.metadata)
            metadata["escalation_reason"] = reason
            updated = replace(
                request,
                status=target,
                escalated=True,
                escalated_at=now,
                metadata=metadata,
            )
            return self._store.put(updated, expected_version=request.version)

        with LogContext.bind(actor_id=actor_id, request_id=request_id):
            stored = self._with_retry(attempt, "escalate")
            logger.info(
                "approval_request_escalated",
                extra={"status": stored.status.value, "escalated_by": actor_id},
            )
        if lapsed:
            publish_safely(
                self._events,
                "request.expired",
                _event_payload(stored, expires_at=stored.expires_at),
            )
        publish_safely(
            self._events,
            "request.escalated",
            _event_payload(stored, actor_id=actor_id, reason=reason),
        )
        return stored

    def expire_overdue_requests(self, as_of: datetime | None = None) -> list[ApprovalRequest]:
        """Persist ``expired`` on every open request whose deadline has passed.

        Reads already report lapsed requests as expired; this sweep makes
        the stored status agree so SQL-side reports see it too.
        """
        reference = self._clock.now() if as_of is None else as_of
        expired: list[ApprovalRequest] = []
        for candidate in self._selector.lapsed_open_requests(reference):

            def attempt(request_id: str = candidate.request_id) -> ApprovalRequest | None:
                request = self._load(request_id)
                if not (request.is_open() and request.deadline_passed(reference)):
                    return None
                updated = replace(
                    request,
                    status=resolve_transition(request, ApprovalAction.EXPIRE),
                )
                return self._store.put(updated, expected_version=request.version)

            stored = self._with_retry(attempt, "expire")
            if stored is None:
                continue
            expired.append(stored)
            publish_safely(
                self._events,
                "request.expired",
                _event_payload(stored, expires_at=stored.expires_at),
            )

        logger.info(
            "approval_expiry_sweep_completed",
            extra={"as_of": reference, "expired_count": len(expired)},
        )
        return expired

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_request(
        self, request_id: str, as_of: datetime | None = None,
    ) -> ApprovalRequestView:
        view = self._selector.get_request(request_id, as_of)
        if view is None:
            raise NotFoundError("ApprovalRequest", request_id)
        return view

    def list_requests(
        self,
        filters: ApprovalFilters | None = None,
        as_of: datetime | None = None,
    ) -> list[ApprovalRequestView]:
        return self._selector.list_requests(filters, as_of)

    def list_pending_for(
        self, user_id: str, as_of: datetime | None = None,
    ) -> list[ApprovalRequestView]:
        return self._selector.list_pending_for(user_id, as_of)

    def summarize(
        self,
        filters: ApprovalFilters | None = None,
        as_of: datetime | None = None,
    ) -> ApprovalSummary:
        return self._selector.summarize(filters, as_of)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load(self, request_id: str) -> ApprovalRequest:
        request = self._store.get(request_id)
        if request is None:
            raise NotFoundError("ApprovalRequest", request_id)
        return request

    def _check_decision(
        self,
        request: ApprovalRequest,
        actor_id: str,
        action: ApprovalAction,
        now: datetime,
    ) -> ApprovalStatus:
        if actor_id not in request.approvers:
            logger.warning(
                "approval_actor_not_authorized",
                extra={"action": action.value, "status": request.status.value},
            )
            raise UnauthorizedError(
                actor_id, action.value, request.request_id,
                "actor is not an approver for this request",
            )
        if request.is_open() and request.deadline_passed(now):
            logger.warning(
                "approval_deadline_passed",
                extra={"action": action.value, "expires_at": request.expires_at},
            )
            raise ExpiredError(request.request_id, request.expires_at)
        return resolve_transition(request, action)

    def _with_retry(self, attempt, operation: str):
        return run_with_conflict_retry(
            attempt,
            max_attempts=self._policy.max_conflict_retries,
            operation=f"approval.{operation}",
        )
