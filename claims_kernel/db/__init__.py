"""Database layer - engine, declarative base and portable column types."""

from claims_kernel.db.base import Base, UTCDateTime, VersionedBase, new_id
from claims_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    reset_engine,
    session_scope,
)

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "drop_tables",
    "reset_engine",
    "Base",
    "VersionedBase",
    "UTCDateTime",
    "new_id",
]
