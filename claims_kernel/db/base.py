"""
Module: claims_kernel.db.base
Responsibility: Declarative base for all SQLAlchemy ORM models.  Provides the
    opaque string primary key convention, the optimistic version column,
    portable column types, and the type annotation map used by every model.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the kernel.  ALL model files import from here.  This module MUST NOT
    import from models/, services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - Opaque string ids: every row is keyed by a String(64) id; generated ids
      are str(uuid4()), callers may supply their own.
    - Decimal precision: Decimal maps to Numeric(38, 9).  No floats for amounts.
    - Aware timestamps: UTCDateTime always hands back timezone-aware UTC
      datetimes, including on SQLite which drops the offset on storage.
    - Version counter: VersionedBase.version starts at 1 and is bumped only by
      the record store's compare-and-set UPDATE.

Failure modes:
    - ValueError on binding a naive datetime to a UTCDateTime column.
    - IntegrityError on inserting a duplicate id.
"""

from datetime import UTC, date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import uuid4

from sqlalchemy import BigInteger, Date, DateTime, Integer, Numeric, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


def new_id() -> str:
    return str(uuid4())


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime stored portably.

    Contract:
        Accepts only aware datetimes; stores them normalised to UTC.

    Guarantees:
        - process_bind_param: aware datetime -> UTC datetime.
        - process_result_value: always returns an aware UTC datetime, attaching
          UTC when the backend returned a naive value.
        - cache_ok=True enables SQLAlchemy statement caching.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"naive datetime not allowed: {value!r}")
        return value.astimezone(UTC)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is an opaque String(64), defaulting to str(uuid4()).
        - Decimal maps to Numeric(38, 9).
        - datetime maps to UTCDateTime, date to Date.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: UTCDateTime(),
        date: Date(),
        int: BigInteger,
    }

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=new_id,
    )


class VersionedBase(Base):
    """
    Abstract base adding the optimistic-concurrency version counter.

    Contract:
        The record store updates rows with
        ``UPDATE ... SET version = version + 1 WHERE id = :id AND version = :v``;
        a zero rowcount means another writer got there first.
    """

    __abstract__ = True

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
