"""
Module: claims_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.  Selectors
    form the "Q" side of the CQRS-lite split, providing structured read access
    to workflow records with derived flags attached.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: Selectors accept a Session from the caller but MUST NOT
      call session.add(), session.delete(), session.commit(), or session.flush().
    - DTO return convention: Selectors return frozen dataclasses, never raw ORM
      model instances.
    - Derived flags are computed against an explicit reference instant: the
      caller's ``as_of`` when given, otherwise the injected clock.
"""

from abc import ABC
from datetime import datetime
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from claims_kernel.db.base import Base
from claims_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Guarantees:
        - session is stored as a public attribute for subclass query use.
        - No commit, flush, add, or delete operations are performed.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._clock = clock or SystemClock()

    def _as_of(self, as_of: datetime | None) -> datetime:
        return self._clock.now() if as_of is None else as_of

    def _scalars(self, stmt):
        """Execute ``stmt``, refreshing any rows already in the identity map."""
        return self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalars()
