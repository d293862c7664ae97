"""
Approval request query selector.

Read-only listing of approval requests with lazy expiry applied.

Key design decisions:
- Structural filters (type, urgency, project, search, created range) run in
  SQL; status filters and approver membership run in Python because they
  depend on the reference instant and on a JSON column respectively.
- Every returned record is an ``ApprovalRequestView`` carrying
  ``effective_status`` / ``is_expired`` as of the reference instant.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import func, or_, select

from claims_kernel.domain.approval import (
    OPEN_APPROVAL_STATUSES,
    ApprovalFilters,
    ApprovalRequest,
    ApprovalRequestView,
    ApprovalStatus,
    ApprovalSummary,
    project,
)
from claims_kernel.domain.time_policy import Urgency
from claims_kernel.models.approval import ApprovalRequestModel
from claims_kernel.selectors.base import BaseSelector


class ApprovalSelector(BaseSelector[ApprovalRequestModel]):
    """Read side of the approval workflow engine."""

    def get_request(
        self, request_id: str, as_of: datetime | None = None,
    ) -> ApprovalRequestView | None:
        row = self.session.get(ApprovalRequestModel, request_id, populate_existing=True)
        if row is None:
            return None
        return project(row.to_dto(), self._as_of(as_of))

    def list_requests(
        self,
        filters: ApprovalFilters | None = None,
        as_of: datetime | None = None,
    ) -> list[ApprovalRequestView]:
        filters = filters or ApprovalFilters()
        reference = self._as_of(as_of)
        views = [project(r, reference) for r in self._fetch(filters)]
        if filters.statuses:
            wanted = {ApprovalStatus(s) for s in filters.statuses}
            views = [v for v in views if v.effective_status in wanted]
        return views

    def list_pending_for(
        self, user_id: str, as_of: datetime | None = None,
    ) -> list[ApprovalRequestView]:
        """Open requests (pending or escalated, not lapsed) naming ``user_id``."""
        filters = ApprovalFilters(statuses=OPEN_APPROVAL_STATUSES)
        return [
            view for view in self.list_requests(filters, as_of)
            if user_id in view.request.approvers
        ]

    def summarize(
        self,
        filters: ApprovalFilters | None = None,
        as_of: datetime | None = None,
    ) -> ApprovalSummary:
        views = self.list_requests(filters, as_of)
        counts = {status: 0 for status in ApprovalStatus}
        urgent = 0
        for view in views:
            counts[view.effective_status] += 1
            if (
                view.effective_status == ApprovalStatus.PENDING
                and view.request.urgency == Urgency.URGENT
            ):
                urgent += 1
        return ApprovalSummary(
            total=len(views),
            pending=counts[ApprovalStatus.PENDING],
            approved=counts[ApprovalStatus.APPROVED],
            rejected=counts[ApprovalStatus.REJECTED],
            escalated=counts[ApprovalStatus.ESCALATED],
            expired=counts[ApprovalStatus.EXPIRED],
            urgent=urgent,
        )

    def lapsed_open_requests(self, as_of: datetime | None = None) -> list[ApprovalRequest]:
        """Stored-open requests whose deadline is before the reference instant."""
        reference = self._as_of(as_of)
        stmt = (
            select(ApprovalRequestModel)
            .where(
                ApprovalRequestModel.status.in_(
                    [s.value for s in OPEN_APPROVAL_STATUSES]
                ),
                ApprovalRequestModel.expires_at < reference,
            )
            .order_by(ApprovalRequestModel.expires_at)
        )
        return [row.to_dto() for row in self._scalars(stmt)]

    def _fetch(self, filters: ApprovalFilters) -> Iterable[ApprovalRequest]:
        model = ApprovalRequestModel
        stmt = select(model)
        if filters.request_type:
            stmt = stmt.where(model.request_type == filters.request_type)
        if filters.urgencies:
            stmt = stmt.where(
                model.urgency.in_([Urgency(u).value for u in filters.urgencies])
            )
        if filters.project_id:
            stmt = stmt.where(model.project_id == filters.project_id)
        if filters.search and filters.search.strip():
            needle = filters.search.strip().lower()
            stmt = stmt.where(
                or_(
                    func.lower(model.description).contains(needle, autoescape=True),
                    func.lower(model.request_type).contains(needle, autoescape=True),
                )
            )
        if filters.created_from is not None:
            stmt = stmt.where(model.created_at >= filters.created_from)
        if filters.created_to is not None:
            stmt = stmt.where(model.created_at <= filters.created_to)

        if filters.ascending:
            stmt = stmt.order_by(model.created_at.asc(), model.id.asc())
        else:
            stmt = stmt.order_by(model.created_at.desc(), model.id.desc())

        return [row.to_dto() for row in self._scalars(stmt)]
