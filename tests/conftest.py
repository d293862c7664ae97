"""
Pytest fixtures for the claims kernel test suite.

Provides:
- A fresh in-memory SQLite database per test (all kernel tables created)
- DeterministicClock pinned to 2024-01-01T00:00:00Z
- In-memory event sink and structured log capture
- Service and selector fixtures wired to the shared session and clock

Environment Variables:
- DATABASE_URL: optional SQLAlchemy URL.  Defaults to ``sqlite://``.
  A file or server database is dropped and recreated around each test.
"""

import json
import logging
import os
from datetime import datetime, timezone
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from claims_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from claims_kernel.domain.clock import DeterministicClock
from claims_kernel.domain.document import RoleAuthorityProvider
from claims_kernel.domain.policy import DEFAULT_POLICY
from claims_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from claims_kernel.selectors.approval_selector import ApprovalSelector
from claims_kernel.selectors.compliance_selector import ComplianceSelector
from claims_kernel.services.approval_service import ApprovalService
from claims_kernel.services.compliance_service import ComplianceService
from claims_kernel.services.document_approval_service import DocumentApprovalService
from claims_kernel.services.event_sink import InMemoryEventSink

T0 = datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture claims_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, approval_service):
            approval_service.create_request(...)
            logs = captured_logs()
            assert any(r["message"] == "approval_request_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("claims_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", "sqlite://")


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """Session on a freshly created schema; rolled back and dropped afterwards."""
    init_engine_from_url(get_database_url())
    create_tables()
    db_session = get_session()
    try:
        yield db_session
    finally:
        db_session.rollback()
        db_session.close()
        drop_tables()
        reset_engine()


# =============================================================================
# Clock / sink fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(T0)


@pytest.fixture
def event_sink() -> InMemoryEventSink:
    return InMemoryEventSink()


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def approval_service(session, deterministic_clock, event_sink) -> ApprovalService:
    return ApprovalService(session, deterministic_clock, event_sink=event_sink)


@pytest.fixture
def authority_provider() -> RoleAuthorityProvider:
    """Actors holding a spread of roles under the default grants."""
    return RoleAuthorityProvider(
        actor_roles={
            "admin": ["super_admin"],
            "director": ["claims_director"],
            "manager": ["claims_manager"],
            "controller": ["finance_controller"],
            "handler": ["claims_handler"],
            "senior": ["senior_claims_handler"],
        },
        role_authorities={
            "super_admin": ["standard", "manager", "finance", "director", "specialist"],
            "claims_director": ["standard", "manager", "specialist", "director"],
            "claims_manager": ["standard", "manager"],
            "finance_controller": ["standard", "finance"],
            "claims_handler": ["standard"],
            "senior_claims_handler": ["standard", "specialist"],
        },
    )


@pytest.fixture
def document_service(
    session, authority_provider, deterministic_clock, event_sink,
) -> DocumentApprovalService:
    return DocumentApprovalService(
        session,
        authority=authority_provider,
        clock=deterministic_clock,
        policy=DEFAULT_POLICY,
        event_sink=event_sink,
    )


@pytest.fixture
def compliance_service(session, deterministic_clock, event_sink) -> ComplianceService:
    return ComplianceService(session, deterministic_clock, event_sink=event_sink)


# =============================================================================
# Selector fixtures
# =============================================================================


@pytest.fixture
def approval_selector(session, deterministic_clock) -> ApprovalSelector:
    return ApprovalSelector(session, deterministic_clock)


@pytest.fixture
def compliance_selector(session, deterministic_clock) -> ComplianceSelector:
    return ComplianceSelector(session, deterministic_clock)
