"""
RecordStore -- versioned get / put / query over one ORM model.

Responsibility:
    The persistence seam every workflow service writes through.  Converts
    between ORM rows and frozen domain DTOs and enforces optimistic
    concurrency on every update.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Concrete stores
    bind a model class; services hold one store per record kind.

Invariants enforced:
    - ``put(record, expected_version=None)`` inserts a new row at version 1.
    - ``put(record, expected_version=n)`` issues
      ``UPDATE ... SET version = n + 1 WHERE id = :id AND version = n``.
      Zero matched rows means a concurrent writer won and raises
      ``ConflictError``; nothing is written.
    - ``get`` always reloads from the database (``populate_existing``) so a
      retry after a conflict sees the winner's state.

Failure modes:
    - ConflictError on a stale ``expected_version``.
    - Store/database errors propagate unchanged.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from claims_kernel.db.base import VersionedBase
from claims_kernel.exceptions import ConflictError
from claims_kernel.logging_config import get_logger
from claims_kernel.models.approval import ApprovalRequestModel
from claims_kernel.models.compliance import (
    ComplianceCheckModel,
    FCAEventModel,
    RiskAssessmentModel,
)
from claims_kernel.models.document import DocumentApprovalModel
from claims_kernel.services.base import BaseService

logger = get_logger("services.record_store")

ModelT = TypeVar("ModelT", bound=VersionedBase)


class RecordStore(BaseService[ModelT], Generic[ModelT]):
    """Generic versioned store.

    Subclasses set ``model`` and ``entity_type`` and name the DTO attribute
    holding the record id (``id_attr``).
    """

    model: type[ModelT]
    entity_type: str = "Record"
    id_attr: str = "id"

    def __init__(self, session: Session):
        super().__init__(session)

    def _record_id(self, record: Any) -> str:
        return getattr(record, self.id_attr)

    def get(self, record_id: str) -> Any | None:
        """Current DTO for ``record_id``, or None."""
        stmt = (
            select(self.model)
            .where(self.model.id == record_id)
            .execution_options(populate_existing=True)
        )
        row = self.session.execute(stmt).scalar_one_or_none()
        return None if row is None else row.to_dto()

    def put(self, record: Any, expected_version: int | None = None) -> Any:
        """Insert or compare-and-set update; returns the stored DTO."""
        record_id = self._record_id(record)

        if expected_version is None:
            row = self.model.from_dto(record)
            row.version = 1
            self.session.add(row)
            self.session.flush()
            logger.debug(
                "record_inserted",
                extra={"entity_type": self.entity_type, "entity_id": record_id},
            )
            return row.to_dto()

        values = {
            getattr(self.model, name): value
            for name, value in self.model.values_from_dto(record).items()
        }
        values[self.model.version] = expected_version + 1
        stmt = (
            update(self.model)
            .where(self.model.id == record_id)
            .where(self.model.version == expected_version)
            .values(values)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        if result.rowcount == 0:
            logger.warning(
                "record_version_conflict",
                extra={
                    "entity_type": self.entity_type,
                    "entity_id": record_id,
                    "expected_version": expected_version,
                },
            )
            raise ConflictError(self.entity_type, record_id, expected_version)

        stored = self.get(record_id)
        logger.debug(
            "record_updated",
            extra={
                "entity_type": self.entity_type,
                "entity_id": record_id,
                "version": stored.version,
            },
        )
        return stored

    def query(self, *criteria: Any, order_by: Any = None) -> list[Any]:
        """DTOs matching all SQL ``criteria``, in ``order_by`` order."""
        stmt = select(self.model).where(*criteria)
        if order_by is not None:
            if isinstance(order_by, (list, tuple)):
                stmt = stmt.order_by(*order_by)
            else:
                stmt = stmt.order_by(order_by)
        rows = self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalars()
        return [row.to_dto() for row in rows]


class ApprovalRequestStore(RecordStore[ApprovalRequestModel]):
    model = ApprovalRequestModel
    entity_type = "ApprovalRequest"
    id_attr = "request_id"


class DocumentApprovalStore(RecordStore[DocumentApprovalModel]):
    model = DocumentApprovalModel
    entity_type = "DocumentApproval"
    id_attr = "document_id"


class ComplianceCheckStore(RecordStore[ComplianceCheckModel]):
    model = ComplianceCheckModel
    entity_type = "ComplianceCheck"
    id_attr = "check_id"


class FCAEventStore(RecordStore[FCAEventModel]):
    model = FCAEventModel
    entity_type = "FCAEvent"
    id_attr = "event_id"


class RiskAssessmentStore(RecordStore[RiskAssessmentModel]):
    model = RiskAssessmentModel
    entity_type = "RiskAssessment"
    id_attr = "assessment_id"
