"""
claims_kernel.services.document_approval_service -- Document approval gate.

Responsibility:
    Registers uploaded documents with the gate and records approve / reject
    decisions, checking that the actor holds the authority level the
    document type demands.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - The required authority level is recomputed from the document type on
      every read and every decision; the stored value is a cache.
    - Only ``pending`` documents accept a decision.  ``auto_approved``
      documents never enter the gate.
    - Visibility changes only on approval.

Failure modes:
    - ValidationError   blank reason, unknown visibility, blank name/type.
    - NotFoundError     unknown document id.
    - UnauthorizedError actor lacks the required authority level.
    - InvalidStateError document already decided.
    - ConflictError     retry budget exhausted.
"""

from __future__ import annotations

from dataclasses import replace

from sqlalchemy.orm import Session

from claims_kernel.domain.clock import Clock, SystemClock
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
from claims_kernel.exceptions import (
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from claims_kernel.logging_config import LogContext, get_logger
from claims_kernel.models.document import DocumentApprovalModel
from claims_kernel.services.event_sink import EventSink, LoggingEventSink, publish_safely
from claims_kernel.services.record_store import DocumentApprovalStore
from claims_kernel.services.retry import run_with_conflict_retry

logger = get_logger("services.document_approval")


def _parse_visibility(value: VisibilityLevel | str | None) -> VisibilityLevel | None:
    if value is None:
        return None
    try:
        return VisibilityLevel(value)
    except ValueError:
        raise ValidationError("visibility", f"unknown visibility level {value!r}") from None


class DocumentApprovalService:
    """Per-document approval gate."""

    def __init__(
        self,
        session: Session,
        authority: AuthorityProvider | None = None,
        clock: Clock | None = None,
        policy: WorkflowPolicy | None = None,
        event_sink: EventSink | None = None,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self._policy = policy or DEFAULT_POLICY
        self._authority = authority or RoleAuthorityProvider({}, self._policy.role_authorities)
        self._events = event_sink or LoggingEventSink()
        self._store = DocumentApprovalStore(session)

    def register_document(self, data: NewDocument) -> DocumentApproval:
        """Enter a freshly uploaded document into the gate."""
        if not data.document_id or not data.document_id.strip():
            raise ValidationError("document_id", "must not be blank")
        if not data.document_name or not data.document_name.strip():
            raise ValidationError("document_name", "must not be blank")
        if not data.document_type or not data.document_type.strip():
            raise ValidationError("document_type", "must not be blank")

        now = self._clock.now()
        if data.requires_approval:
            status, stage = DocumentApprovalStatus.PENDING, WorkflowStage.UPLOADED
        else:
            status, stage = DocumentApprovalStatus.AUTO_APPROVED, WorkflowStage.AUTO_APPROVED

        document = DocumentApproval(
            document_id=data.document_id,
            document_name=data.document_name.strip(),
            document_type=data.document_type.strip(),
            approval_level_required=self._policy.level_for(data.document_type.strip()),
            created_at=now,
            project_id=data.project_id,
            uploaded_by=data.uploaded_by,
            workflow_stage=stage,
            approval_status=status,
            approved_at=None if data.requires_approval else now,
        )

        with LogContext.bind(document_id=document.document_id, actor_id=data.uploaded_by):
            stored = self._store.put(document)
            logger.info(
                "document_registered",
                extra={
                    "document_type": stored.document_type,
                    "approval_status": stored.approval_status.value,
                    "approval_level_required": stored.approval_level_required.value,
                },
            )
        publish_safely(self._events, "document.registered", self._payload(stored))
        return stored

    def get_document(self, document_id: str) -> DocumentApproval:
        return self._load(document_id)

    def approve_document(
        self,
        document_id: str,
        actor_id: str,
        visibility: VisibilityLevel | str | None = None,
    ) -> DocumentApproval:
        """Approve a pending document, optionally widening its visibility."""
        new_visibility = _parse_visibility(visibility)

        def attempt() -> DocumentApproval:
            document = self._load(document_id)
            self._check_decision(document, actor_id, "approve")
            updated = replace(
                document,
                approval_status=DocumentApprovalStatus.APPROVED,
                workflow_stage=WorkflowStage.APPROVED,
                approved_by=actor_id,
                approved_at=self._clock.now(),
                visibility_level=new_visibility or document.visibility_level,
            )
            return self._store.put(updated, expected_version=document.version)

        with LogContext.bind(document_id=document_id, actor_id=actor_id):
            stored = self._with_retry(attempt, "approve")
            logger.info(
                "document_approved",
                extra={"visibility_level": stored.visibility_level.value},
            )
        publish_safely(
            self._events, "document.approved", self._payload(stored, actor_id=actor_id),
        )
        return stored

    def reject_document(self, document_id: str, actor_id: str, reason: str) -> DocumentApproval:
        if reason is None or not reason.strip():
            raise ValidationError("reason", "must not be blank")
        reason = reason.strip()

        def attempt() -> DocumentApproval:
            document = self._load(document_id)
            self._check_decision(document, actor_id, "reject")
            updated = replace(
                document,
                approval_status=DocumentApprovalStatus.REJECTED,
                workflow_stage=WorkflowStage.REJECTED,
                approved_by=actor_id,
                approved_at=self._clock.now(),
                rejection_reason=reason,
            )
            return self._store.put(updated, expected_version=document.version)

        with LogContext.bind(document_id=document_id, actor_id=actor_id):
            stored = self._with_retry(attempt, "reject")
            logger.info("document_rejected", extra={"reason": reason})
        publish_safely(
            self._events,
            "document.rejected",
            self._payload(stored, actor_id=actor_id, reason=reason),
        )
        return stored

    def list_documents(
        self,
        project_id: str | None = None,
        statuses: frozenset[DocumentApprovalStatus] | None = None,
    ) -> list[DocumentApproval]:
        """Documents newest first, with the required level recomputed."""
        model = DocumentApprovalModel
        criteria = []
        if project_id is not None:
            criteria.append(model.project_id == project_id)
        if statuses:
            criteria.append(
                model.approval_status.in_([DocumentApprovalStatus(s).value for s in statuses])
            )
        documents = self._store.query(
            *criteria, order_by=(model.created_at.desc(), model.id.desc()),
        )
        return [self._refresh_level(d) for d in documents]

    # ------------------------------------------------------------------

    def _load(self, document_id: str) -> DocumentApproval:
        document = self._store.get(document_id)
        if document is None:
            raise NotFoundError("DocumentApproval", document_id)
        return self._refresh_level(document)

    def _refresh_level(self, document: DocumentApproval) -> DocumentApproval:
        return document.with_required_level(self._policy.level_for(document.document_type))

    def _check_decision(self, document: DocumentApproval, actor_id: str, action: str) -> None:
        level = document.approval_level_required
        if not self._authority.has_authority(actor_id, level):
            logger.warning(
                "document_actor_lacks_authority",
                extra={"action": action, "required_level": level.value},
            )
            raise UnauthorizedError(
                actor_id, action, document.document_id,
                f"requires {level.value} authority",
            )
        if not document.is_pending:
            raise InvalidStateError(
                document.document_id,
                document.approval_status.value,
                action,
                f"document already {document.approval_status.value}",
            )

    def _with_retry(self, attempt, operation: str):
        return run_with_conflict_retry(
            attempt,
            max_attempts=self._policy.max_conflict_retries,
            operation=f"document.{operation}",
        )

    @staticmethod
    def _payload(document: DocumentApproval, **extra) -> dict:
        payload = {
            "document_id": document.document_id,
            "document_type": document.document_type,
            "approval_status": document.approval_status.value,
            "visibility_level": document.visibility_level.value,
            "project_id": document.project_id,
        }
        payload.update(extra)
        return payload
