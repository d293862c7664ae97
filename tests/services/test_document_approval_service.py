"""
Tests for the document approval gate (``DocumentApprovalService``).
"""

from datetime import timedelta

import pytest

from claims_kernel.domain.document import (
    DocumentApprovalStatus,
    NewDocument,
    RoleAuthorityProvider,
    VisibilityLevel,
    WorkflowStage,
)
from claims_kernel.domain.policy import WorkflowPolicy
from claims_kernel.domain.time_policy import AuthorityLevel
from claims_kernel.exceptions import (
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from claims_kernel.services.document_approval_service import DocumentApprovalService
from tests.conftest import T0


def register(service, document_type="Invoice", document_id="doc-1", **overrides):
    return service.register_document(
        NewDocument(
            document_id=document_id,
            document_name=f"{document_type} scan.pdf",
            document_type=document_type,
            project_id=overrides.pop("project_id", "proj-1"),
            uploaded_by="handler",
            **overrides,
        )
    )


class TestRegister:

    def test_pending_with_required_level(self, document_service):
        document = register(document_service, "Invoice")
        assert document.approval_status == DocumentApprovalStatus.PENDING
        assert document.workflow_stage == WorkflowStage.UPLOADED
        assert document.approval_level_required == AuthorityLevel.FINANCE
        assert document.visibility_level == VisibilityLevel.INTERNAL

    def test_unknown_type_needs_standard(self, document_service):
        document = register(document_service, "Photograph")
        assert document.approval_level_required == AuthorityLevel.STANDARD

    def test_auto_approved_skips_gate(self, document_service):
        document = register(document_service, "Photograph", requires_approval=False)
        assert document.approval_status == DocumentApprovalStatus.AUTO_APPROVED
        assert document.approved_at == T0

        with pytest.raises(InvalidStateError):
            document_service.approve_document("doc-1", "admin")

    def test_blank_name_rejected(self, document_service):
        with pytest.raises(ValidationError):
            document_service.register_document(
                NewDocument(document_id="d", document_name=" ", document_type="Quote")
            )

    def test_publishes_registered_event(self, document_service, event_sink):
        register(document_service)
        [payload] = event_sink.of("document.registered")
        assert payload["document_id"] == "doc-1"
        assert payload["approval_status"] == "pending"


class TestDecisions:

    def test_finance_controller_approves_invoice(self, document_service, deterministic_clock):
        register(document_service, "Invoice")
        deterministic_clock.advance(hours=3)

        approved = document_service.approve_document(
            "doc-1", "controller", visibility=VisibilityLevel.CUSTOMERS,
        )

        assert approved.approval_status == DocumentApprovalStatus.APPROVED
        assert approved.workflow_stage == WorkflowStage.APPROVED
        assert approved.approved_by == "controller"
        assert approved.approved_at == T0 + timedelta(hours=3)
        assert approved.visibility_level == VisibilityLevel.CUSTOMERS

    def test_visibility_kept_when_not_given(self, document_service):
        register(document_service, "Quote")
        approved = document_service.approve_document("doc-1", "manager")
        assert approved.visibility_level == VisibilityLevel.INTERNAL

    @pytest.mark.parametrize("actor", ["handler", "manager", "senior", "nobody"])
    def test_insufficient_authority(self, document_service, actor):
        register(document_service, "Invoice")
        with pytest.raises(UnauthorizedError) as exc_info:
            document_service.approve_document("doc-1", actor)
        assert "finance" in exc_info.value.reason

    def test_authority_checked_before_state(self, document_service):
        register(document_service, "Invoice")
        document_service.approve_document("doc-1", "controller")
        with pytest.raises(UnauthorizedError):
            document_service.reject_document("doc-1", "handler", "Wrong file")

    def test_decided_document_is_closed(self, document_service):
        register(document_service, "Invoice")
        document_service.reject_document("doc-1", "admin", "Illegible scan")
        with pytest.raises(InvalidStateError, match="already rejected"):
            document_service.approve_document("doc-1", "admin")

    def test_reject_records_reason(self, document_service, event_sink):
        register(document_service, "Certificate")
        rejected = document_service.reject_document("doc-1", "senior", "Expired certificate")
        assert rejected.approval_status == DocumentApprovalStatus.REJECTED
        assert rejected.workflow_stage == WorkflowStage.REJECTED
        assert rejected.rejection_reason == "Expired certificate"
        assert event_sink.of("document.rejected")[0]["reason"] == "Expired certificate"

    def test_blank_reason(self, document_service):
        register(document_service)
        with pytest.raises(ValidationError):
            document_service.reject_document("doc-1", "admin", "")

    def test_unknown_visibility(self, document_service):
        register(document_service)
        with pytest.raises(ValidationError):
            document_service.approve_document("doc-1", "admin", visibility="everyone")

    def test_unknown_document(self, document_service):
        with pytest.raises(NotFoundError):
            document_service.approve_document("missing", "admin")


class TestRequiredLevelRecomputed:

    def test_policy_change_applies_to_existing_documents(
        self, session, authority_provider, deterministic_clock, document_service,
    ):
        register(document_service, "Invoice")

        stricter = DocumentApprovalService(
            session,
            authority=authority_provider,
            clock=deterministic_clock,
            policy=WorkflowPolicy(
                document_authority_levels={"Invoice": AuthorityLevel.DIRECTOR},
            ),
        )

        assert stricter.get_document("doc-1").approval_level_required == AuthorityLevel.DIRECTOR
        with pytest.raises(UnauthorizedError):
            stricter.approve_document("doc-1", "controller")
        assert stricter.approve_document("doc-1", "director").approval_status == (
            DocumentApprovalStatus.APPROVED
        )

    def test_default_provider_uses_policy_roles(self, session, deterministic_clock):
        service = DocumentApprovalService(session, clock=deterministic_clock)
        register(service, "Quote")
        with pytest.raises(UnauthorizedError):
            service.approve_document("doc-1", "manager")

    def test_custom_provider(self, session, deterministic_clock):
        provider = RoleAuthorityProvider({"eve": ["approver"]}, {"approver": ["manager"]})
        service = DocumentApprovalService(session, authority=provider, clock=deterministic_clock)
        register(service, "Quote")
        assert service.approve_document("doc-1", "eve").approved_by == "eve"


class TestListing:

    def test_filters_and_order(self, document_service, deterministic_clock):
        register(document_service, "Invoice", document_id="a", project_id="p1")
        deterministic_clock.advance(minutes=1)
        register(document_service, "Quote", document_id="b", project_id="p1")
        deterministic_clock.advance(minutes=1)
        register(document_service, "Quote", document_id="c", project_id="p2")
        document_service.approve_document("b", "manager")

        assert [d.document_id for d in document_service.list_documents()] == ["c", "b", "a"]
        assert [d.document_id for d in document_service.list_documents(project_id="p1")] == ["b", "a"]
        pending = document_service.list_documents(
            statuses=frozenset({DocumentApprovalStatus.PENDING})
        )
        assert [d.document_id for d in pending] == ["c", "a"]
