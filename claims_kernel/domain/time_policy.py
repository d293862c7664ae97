"""
Time policy (``claims_kernel.domain.time_policy``).

Responsibility
--------------
Pure lookups shared by the approval engine, the document gate and the
compliance monitor: urgency tier -> deadline duration, document type ->
required authority level, and the "falls inside a warning window" test.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O, no clock access.  Callers pass the
reference instant explicitly.

Failure modes
-------------
None.  Unknown urgencies and document types fall back to the default
tier; this is documented degraded behaviour, not an error.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime, timedelta
from enum import Enum


class Urgency(str, Enum):
    """Approval request urgency tiers, least to most urgent."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class AuthorityLevel(str, Enum):
    """Coarse approval tiers gating which documents a role may approve."""

    STANDARD = "standard"
    MANAGER = "manager"
    FINANCE = "finance"
    DIRECTOR = "director"
    SPECIALIST = "specialist"


URGENCY_DURATIONS: Mapping[str, timedelta] = {
    Urgency.URGENT.value: timedelta(hours=24),
    Urgency.HIGH.value: timedelta(days=3),
    Urgency.NORMAL.value: timedelta(days=7),
}

DEFAULT_URGENCY_DURATION = timedelta(days=14)

DOCUMENT_AUTHORITY_LEVELS: Mapping[str, AuthorityLevel] = {
    "Contract": AuthorityLevel.MANAGER,
    "Quote": AuthorityLevel.MANAGER,
    "Invoice": AuthorityLevel.FINANCE,
    "Policy Document": AuthorityLevel.DIRECTOR,
    "Claims Document": AuthorityLevel.DIRECTOR,
    "Certificate": AuthorityLevel.SPECIALIST,
    "Technical Drawing": AuthorityLevel.SPECIALIST,
}

DEFAULT_AUTHORITY_LEVEL = AuthorityLevel.STANDARD

DEFAULT_WARNING_WINDOW = timedelta(days=30)


def _key(value: Enum | str) -> str:
    return value.value if isinstance(value, Enum) else str(value)


def duration_for_urgency(
    urgency: Urgency | str | None,
    table: Mapping[str, timedelta] | None = None,
    default: timedelta | None = None,
) -> timedelta:
    """Deadline duration for an urgency tier.

    ``low``, ``None`` and unrecognised values all get the default (14 days).
    """
    durations = URGENCY_DURATIONS if table is None else table
    fallback = DEFAULT_URGENCY_DURATION if default is None else default
    if urgency is None:
        return fallback
    return durations.get(_key(urgency), fallback)


def coerce_urgency(urgency: Urgency | str | None) -> Urgency:
    """Normalise a caller-supplied urgency.

    ``None`` means the caller did not choose, so it becomes ``normal``.  An
    unrecognised value becomes ``low``, the tier that carries the default
    duration, so the stored tier and its deadline agree.
    """
    if urgency is None:
        return Urgency.NORMAL
    try:
        return Urgency(_key(urgency))
    except ValueError:
        return Urgency.LOW


def required_approval_level(
    document_type: str | None,
    table: Mapping[str, AuthorityLevel] | None = None,
) -> AuthorityLevel:
    """Authority level needed to approve a document of ``document_type``."""
    levels = DOCUMENT_AUTHORITY_LEVELS if table is None else table
    if document_type is None:
        return DEFAULT_AUTHORITY_LEVEL
    return levels.get(document_type, DEFAULT_AUTHORITY_LEVEL)


def is_within_window(
    target: date | datetime | None,
    now: datetime,
    window: timedelta = DEFAULT_WARNING_WINDOW,
) -> bool:
    """True when ``target`` falls on or before ``now + window``.

    Dates are compared against the calendar date of ``now + window``.
    Targets already in the past are inside the window.
    """
    if target is None:
        return False
    horizon = now + window
    if isinstance(target, datetime):
        return target <= horizon
    return target <= horizon.date()
