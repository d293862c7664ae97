"""
Tests for the approval workflow engine (``ApprovalService``).

Covers deadline assignment, approve / reject / escalate, error precedence,
lazy expiry, the expiry sweep, listing and summary counts, and lifecycle
events.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from claims_kernel.domain.approval import (
    ApprovalFilters,
    ApprovalStatus,
    NewApprovalRequest,
)
from claims_kernel.domain.policy import WorkflowPolicy
from claims_kernel.domain.time_policy import Urgency
from claims_kernel.exceptions import (
    ExpiredError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from claims_kernel.services.approval_service import ApprovalService
from tests.conftest import T0


def new_request(**overrides) -> NewApprovalRequest:
    fields = dict(
        request_type="expense",
        description="Loss adjuster fee for claim 4411",
        approvers=["u1", "u2"],
        urgency=Urgency.URGENT,
    )
    fields.update(overrides)
    return NewApprovalRequest(**fields)


class TestCreateRequest:

    def test_urgent_request_expires_after_24_hours(self, approval_service):
        request = approval_service.create_request(new_request(), requested_by="u9")

        assert request.status == ApprovalStatus.PENDING
        assert request.created_at == T0
        assert request.expires_at == T0 + timedelta(hours=24)
        assert request.approvers == ("u1", "u2")
        assert request.version == 1

    @pytest.mark.parametrize("urgency,duration", [
        (Urgency.HIGH, timedelta(days=3)),
        (Urgency.NORMAL, timedelta(days=7)),
        (Urgency.LOW, timedelta(days=14)),
        ("unheard-of", timedelta(days=14)),
        (None, timedelta(days=7)),
    ])
    def test_deadline_per_urgency(self, approval_service, urgency, duration):
        request = approval_service.create_request(
            new_request(urgency=urgency), requested_by="u9",
        )
        assert request.expires_at - request.created_at == duration

    def test_unknown_urgency_stored_as_low(self, approval_service):
        request = approval_service.create_request(
            new_request(urgency="whenever"), requested_by="u9",
        )
        assert request.urgency == Urgency.LOW

    def test_optional_fields_round_trip(self, approval_service):
        created = approval_service.create_request(
            new_request(
                amount=Decimal("1250.50"),
                project_id="proj-7",
                justification="Independent assessment required",
                metadata={"claim_ref": "CLM-4411"},
            ),
            requested_by="u9",
        )
        view = approval_service.get_request(created.request_id)
        assert view.request.amount == Decimal("1250.50")
        assert view.request.project_id == "proj-7"
        assert view.request.metadata == {"claim_ref": "CLM-4411"}
        assert view.request.created_at.tzinfo is not None

    @pytest.mark.parametrize("field,value", [
        ("request_type", "  "),
        ("description", ""),
        ("approvers", []),
        ("approvers", ["", "   "]),
        ("approvers", "u1"),
    ])
    def test_validation(self, approval_service, field, value):
        with pytest.raises(ValidationError) as exc_info:
            approval_service.create_request(new_request(**{field: value}), requested_by="u9")
        assert exc_info.value.field == field

    def test_publishes_created_event(self, approval_service, event_sink):
        request = approval_service.create_request(new_request(), requested_by="u9")
        [payload] = event_sink.of("request.created")
        assert payload["request_id"] == request.request_id
        assert payload["requested_by"] == "u9"
        assert payload["approvers"] == ["u1", "u2"]

    def test_logs_creation_with_context(self, approval_service, captured_logs):
        request = approval_service.create_request(new_request(), requested_by="u9")
        records = [r for r in captured_logs() if r["message"] == "approval_request_created"]
        assert len(records) == 1
        assert records[0]["request_id"] == request.request_id
        assert records[0]["actor_id"] == "u9"
        assert records[0]["urgency"] == "urgent"


class TestApprove:

    def test_first_approval_wins(self, approval_service, deterministic_clock):
        request = approval_service.create_request(new_request(), requested_by="u9")
        deterministic_clock.advance(hours=12)

        approved = approval_service.approve(request.request_id, "u1")

        assert approved.status == ApprovalStatus.APPROVED
        assert approved.approved_by == "u1"
        assert approved.approved_at == T0 + timedelta(hours=12)
        assert approved.version == 2

        with pytest.raises(InvalidStateError, match="already approved by u1"):
            approval_service.approve(request.request_id, "u2")

    def test_comments_recorded_in_metadata(self, approval_service):
        request = approval_service.create_request(new_request(), requested_by="u9")
        approved = approval_service.approve(request.request_id, "u2", comments="Within limits")
        assert approved.metadata["approval_comments"] == "Within limits"

    def test_approve_after_deadline_raises_expired(self, approval_service, deterministic_clock):
        request = approval_service.create_request(new_request(), requested_by="u9")
        deterministic_clock.advance(hours=25)

        with pytest.raises(ExpiredError) as exc_info:
            approval_service.approve(request.request_id, "u1")

        assert exc_info.value.expires_at == T0 + timedelta(hours=24)
        assert approval_service.get_request(request.request_id).request.status == ApprovalStatus.PENDING

    def test_exactly_at_deadline_still_open(self, approval_service, deterministic_clock):
        request = approval_service.create_request(new_request(), requested_by="u9")
        deterministic_clock.advance(hours=24)
        assert approval_service.approve(request.request_id, "u1").status == ApprovalStatus.APPROVED

    def test_non_approver_unauthorized(self, approval_service):
        request = approval_service.create_request(new_request(), requested_by="u9")
        with pytest.raises(UnauthorizedError) as exc_info:
            approval_service.approve(request.request_id, "u3")
        assert exc_info.value.actor_id == "u3"

    def test_unauthorized_checked_before_expiry(self, approval_service, deterministic_clock):
        request = approval_service.create_request(new_request(), requested_by="u9")
        deterministic_clock.advance(days=2)
        with pytest.raises(UnauthorizedError):
            approval_service.approve(request.request_id, "u3")

    def test_unknown_request(self, approval_service):
        with pytest.raises(NotFoundError):
            approval_service.approve("missing", "u1")

    def test_escalated_request_can_be_approved(self, approval_service):
        request = approval_service.create_request(new_request(), requested_by="u9")
        approval_service.escalate(request.request_id, "u5", "Needs director sign-off")
        approved = approval_service.approve(request.request_id, "u2")
        assert approved.status == ApprovalStatus.APPROVED
        assert approved.escalated is True

    def test_publishes_approved_event(self, approval_service, event_sink):
        request = approval_service.create_request(new_request(), requested_by="u9")
        approval_service.approve(request.request_id, "u1")
        assert event_sink.names() == ["request.created", "request.approved"]
        assert event_sink.of("request.approved")[0]["actor_id"] == "u1"


class TestReject:

    def test_blank_reason_checked_first(self, approval_service):
        with pytest.raises(ValidationError) as exc_info:
            approval_service.reject("missing", "u3", "   ")
        assert exc_info.value.field == "reason"

    def test_reject_then_escalate(self, approval_service, deterministic_clock):
        request = approval_service.create_request(new_request(), requested_by="u9")
        deterministic_clock.advance(hours=1)

        rejected = approval_service.reject(request.request_id, "u2", "Budget exceeded")
        assert rejected.status == ApprovalStatus.REJECTED
        assert rejected.rejection_reason == "Budget exceeded"
        assert rejected.approved_by == "u2"
        assert rejected.approved_at == T0 + timedelta(hours=1)

        escalated = approval_service.escalate(request.request_id, "u7", "Customer complaint")
        assert escalated.status == ApprovalStatus.REJECTED
        assert escalated.escalated is True
        assert escalated.metadata["escalation_reason"] == "Customer complaint"

    def test_second_decision_reports_prior_rejection(self, approval_service):
        request = approval_service.create_request(new_request(), requested_by="u9")
        approval_service.reject(request.request_id, "u2", "Budget exceeded")
        with pytest.raises(InvalidStateError, match="already rejected by u2: Budget exceeded"):
            approval_service.approve(request.request_id, "u1")

    def test_reject_after_deadline(self, approval_service, deterministic_clock):
        request = approval_service.create_request(new_request(), requested_by="u9")
        deterministic_clock.advance(days=1, seconds=1)
        with pytest.raises(ExpiredError):
            approval_service.reject(request.request_id, "u1", "Too late anyway")


class TestEscalate:

    def test_pending_moves_to_escalated(self, approval_service, deterministic_clock):
        request = approval_service.create_request(new_request(), requested_by="u9")
        deterministic_clock.advance(hours=2)

        escalated = approval_service.escalate(request.request_id, "u5", "Stuck")

        assert escalated.status == ApprovalStatus.ESCALATED
        assert escalated.escalated_at == T0 + timedelta(hours=2)
        assert escalated.expires_at == request.expires_at

    def test_escalate_twice_is_allowed(self, approval_service):
        request = approval_service.create_request(new_request(), requested_by="u9")
        approval_service.escalate(request.request_id, "u5", "Stuck")
        again = approval_service.escalate(request.request_id, "u6", "Still stuck")
        assert again.status == ApprovalStatus.ESCALATED
        assert again.metadata["escalation_reason"] == "Still stuck"

    def test_lapsed_request_recorded_as_expired(
        self, approval_service, deterministic_clock, event_sink,
    ):
        request = approval_service.create_request(new_request(), requested_by="u9")
        deterministic_clock.advance(days=2)

        escalated = approval_service.escalate(request.request_id, "u5", "Nobody answered")

        assert escalated.status == ApprovalStatus.EXPIRED
        assert escalated.escalated is True
        assert event_sink.names()[-2:] == ["request.expired", "request.escalated"]
        [expired] = event_sink.of("request.expired")
        assert expired["request_id"] == request.request_id

    def test_open_request_escalation_publishes_no_expiry(self, approval_service, event_sink):
        request = approval_service.create_request(new_request(), requested_by="u9")
        approval_service.escalate(request.request_id, "u5", "Stuck")
        assert event_sink.of("request.expired") == []

    def test_blank_reason_rejected(self, approval_service):
        request = approval_service.create_request(new_request(), requested_by="u9")
        with pytest.raises(ValidationError):
            approval_service.escalate(request.request_id, "u5", "")

    def test_policy_can_forbid_escalating_resolved(
        self, session, deterministic_clock, event_sink,
    ):
        service = ApprovalService(
            session,
            deterministic_clock,
            policy=WorkflowPolicy(allow_escalation_after_resolution=False),
            event_sink=event_sink,
        )
        request = service.create_request(new_request(), requested_by="u9")
        service.approve(request.request_id, "u1")

        with pytest.raises(InvalidStateError):
            service.escalate(request.request_id, "u5", "Second opinion")


class TestLazyExpiry:

    def test_reads_report_expired_without_writing(self, approval_service, deterministic_clock):
        request = approval_service.create_request(new_request(), requested_by="u9")
        deterministic_clock.advance(hours=30)

        view = approval_service.get_request(request.request_id)

        assert view.effective_status == ApprovalStatus.EXPIRED
        assert view.is_expired
        assert view.request.status == ApprovalStatus.PENDING
        assert view.request.version == 1

    def test_as_of_overrides_clock(self, approval_service):
        request = approval_service.create_request(new_request(), requested_by="u9")
        view = approval_service.get_request(request.request_id, as_of=T0 + timedelta(days=5))
        assert view.is_expired

    def test_sweep_persists_expiry(self, approval_service, deterministic_clock, event_sink):
        urgent = approval_service.create_request(new_request(), requested_by="u9")
        normal = approval_service.create_request(
            new_request(urgency=Urgency.NORMAL), requested_by="u9",
        )
        decided = approval_service.create_request(new_request(), requested_by="u9")
        approval_service.approve(decided.request_id, "u1")
        deterministic_clock.advance(days=2)

        expired = approval_service.expire_overdue_requests()

        assert [r.request_id for r in expired] == [urgent.request_id]
        assert expired[0].status == ApprovalStatus.EXPIRED
        assert approval_service.get_request(normal.request_id).request.status == ApprovalStatus.PENDING
        assert [p["request_id"] for p in event_sink.of("request.expired")] == [urgent.request_id]

    def test_sweep_is_idempotent(self, approval_service, deterministic_clock):
        approval_service.create_request(new_request(), requested_by="u9")
        deterministic_clock.advance(days=2)
        assert len(approval_service.expire_overdue_requests()) == 1
        assert approval_service.expire_overdue_requests() == []

    def test_approve_after_sweep_reports_invalid_state(self, approval_service, deterministic_clock):
        request = approval_service.create_request(new_request(), requested_by="u9")
        deterministic_clock.advance(days=2)
        approval_service.expire_overdue_requests()
        with pytest.raises(InvalidStateError, match="expired at"):
            approval_service.approve(request.request_id, "u1")


class TestListing:

    def test_pending_filter_matches_fresh_request(self, approval_service):
        approval_service.create_request(new_request(), requested_by="u9")

        views = approval_service.list_requests(
            ApprovalFilters(statuses=frozenset({ApprovalStatus.PENDING}))
        )

        assert len(views) == 1
        assert views[0].is_expired is False

    def test_status_filter_uses_effective_status(self, approval_service, deterministic_clock):
        approval_service.create_request(new_request(), requested_by="u9")
        approval_service.create_request(new_request(urgency=Urgency.LOW), requested_by="u9")
        deterministic_clock.advance(days=2)

        pending = approval_service.list_requests(
            ApprovalFilters(statuses=frozenset({ApprovalStatus.PENDING}))
        )
        expired = approval_service.list_requests(
            ApprovalFilters(statuses=frozenset({ApprovalStatus.EXPIRED}))
        )

        assert [v.request.urgency for v in pending] == [Urgency.LOW]
        assert [v.request.urgency for v in expired] == [Urgency.URGENT]

    def test_newest_first_by_default(self, approval_service, deterministic_clock):
        first = approval_service.create_request(new_request(), requested_by="u9")
        deterministic_clock.advance(minutes=5)
        second = approval_service.create_request(new_request(), requested_by="u9")

        ids = [v.request_id for v in approval_service.list_requests()]
        assert ids == [second.request_id, first.request_id]

        ascending = approval_service.list_requests(ApprovalFilters(ascending=True))
        assert [v.request_id for v in ascending] == [first.request_id, second.request_id]

    def test_search_is_case_insensitive(self, approval_service):
        approval_service.create_request(
            new_request(description="Replace damaged ROOF tiles"), requested_by="u9",
        )
        approval_service.create_request(
            new_request(description="Hotel accommodation"), requested_by="u9",
        )
        views = approval_service.list_requests(ApprovalFilters(search="roof"))
        assert [v.request.description for v in views] == ["Replace damaged ROOF tiles"]

    def test_search_treats_wildcards_literally(self, approval_service):
        approval_service.create_request(new_request(description="100% refund"), requested_by="u9")
        approval_service.create_request(new_request(description="1000 refund"), requested_by="u9")
        views = approval_service.list_requests(ApprovalFilters(search="0%"))
        assert len(views) == 1

    def test_structural_filters(self, approval_service):
        approval_service.create_request(
            new_request(request_type="expense", project_id="p1"), requested_by="u9",
        )
        approval_service.create_request(
            new_request(request_type="payment", project_id="p1", urgency=Urgency.HIGH),
            requested_by="u9",
        )
        approval_service.create_request(
            new_request(request_type="payment", project_id="p2"), requested_by="u9",
        )

        by_type = approval_service.list_requests(ApprovalFilters(request_type="payment"))
        by_project = approval_service.list_requests(ApprovalFilters(project_id="p1"))
        by_urgency = approval_service.list_requests(
            ApprovalFilters(urgencies=frozenset({Urgency.HIGH}))
        )

        assert len(by_type) == 2
        assert len(by_project) == 2
        assert [v.request.request_type for v in by_urgency] == ["payment"]

    def test_created_range(self, approval_service, deterministic_clock):
        approval_service.create_request(new_request(), requested_by="u9")
        deterministic_clock.advance(days=3)
        later = approval_service.create_request(new_request(), requested_by="u9")

        views = approval_service.list_requests(
            ApprovalFilters(created_from=T0 + timedelta(days=1))
        )
        assert [v.request_id for v in views] == [later.request_id]

    def test_pending_for_user(self, approval_service, deterministic_clock):
        mine = approval_service.create_request(new_request(approvers=["u1"]), requested_by="u9")
        escalated = approval_service.create_request(
            new_request(approvers=["u1", "u4"], urgency=Urgency.LOW), requested_by="u9",
        )
        approval_service.escalate(escalated.request_id, "u9", "Chasing")
        approval_service.create_request(new_request(approvers=["u4"]), requested_by="u9")
        done = approval_service.create_request(new_request(approvers=["u1"]), requested_by="u9")
        approval_service.approve(done.request_id, "u1")

        ids = {v.request_id for v in approval_service.list_pending_for("u1")}
        assert ids == {mine.request_id, escalated.request_id}

        deterministic_clock.advance(days=2)
        ids = {v.request_id for v in approval_service.list_pending_for("u1")}
        assert ids == {escalated.request_id}


class TestSummary:

    def test_counts_by_effective_status(self, approval_service, deterministic_clock):
        approval_service.create_request(new_request(), requested_by="u9")
        approval_service.create_request(new_request(urgency=Urgency.LOW), requested_by="u9")
        approved = approval_service.create_request(new_request(), requested_by="u9")
        approval_service.approve(approved.request_id, "u1")
        rejected = approval_service.create_request(new_request(), requested_by="u9")
        approval_service.reject(rejected.request_id, "u1", "Duplicate")
        escalated = approval_service.create_request(
            new_request(urgency=Urgency.NORMAL), requested_by="u9",
        )
        approval_service.escalate(escalated.request_id, "u1", "Chasing")

        summary = approval_service.summarize()
        assert summary.total == 5
        assert summary.pending == 2
        assert summary.urgent == 1
        assert summary.approved == 1
        assert summary.rejected == 1
        assert summary.escalated == 1
        assert summary.expired == 0

        deterministic_clock.advance(days=2)
        later = approval_service.summarize()
        assert later.pending == 1
        assert later.expired == 1
        assert later.urgent == 0
