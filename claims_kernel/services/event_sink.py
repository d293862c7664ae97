"""
Lifecycle event publication (``claims_kernel.services.event_sink``).

Responsibility:
    The notification/reporting seam.  Services announce lifecycle changes
    (``request.created``, ``request.approved``, ``document.rejected`` ...)
    through an ``EventSink``; what happens next (notifications, activity
    feeds, CSV export jobs) lives outside the kernel.

Invariants enforced:
    - Publication is best effort.  ``publish_safely`` logs a sink failure
      with its traceback and returns; a mutation that already persisted is
      never rolled back because a listener broke.

Event names:
    request.created, request.approved, request.rejected, request.escalated,
    request.expired, document.registered, document.approved,
    document.rejected, compliance.check_recorded, compliance.check_updated,
    compliance.fca_event_recorded, compliance.fca_event_updated,
    compliance.risk_assessment_recorded, compliance.risk_assessment_updated
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from claims_kernel.logging_config import get_logger

logger = get_logger("services.event_sink")


@runtime_checkable
class EventSink(Protocol):
    """Receives lifecycle events from the kernel services."""

    def publish(self, event_name: str, payload: dict[str, Any]) -> None: ...


class LoggingEventSink:
    """Default sink: one structured ``lifecycle_event`` log line per event."""

    def publish(self, event_name: str, payload: dict[str, Any]) -> None:
        logger.info(
            "lifecycle_event",
            extra={"event_name": event_name, "payload": payload},
        )


class InMemoryEventSink:
    """Collects published events; used by tests and local tooling."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def publish(self, event_name: str, payload: dict[str, Any]) -> None:
        self.events.append((event_name, dict(payload)))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def of(self, event_name: str) -> list[dict[str, Any]]:
        return [payload for name, payload in self.events if name == event_name]

    def clear(self) -> None:
        self.events.clear()


def publish_safely(sink: EventSink, event_name: str, payload: dict[str, Any]) -> None:
    """Publish ``event_name``; a failing sink is logged, never raised."""
    try:
        sink.publish(event_name, payload)
    except Exception:
        logger.exception(
            "event_publish_failed",
            extra={"event_name": event_name},
        )
