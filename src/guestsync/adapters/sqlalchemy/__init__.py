"""SQLAlchemy adapter package for guestsync."""

from __future__ import annotations

from .lifecycle import (
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
    sync_state_store,
)
from .mappings import UTCDateTime, create_all_tables, metadata, sync_state_table
from .state_store import SqlAlchemySyncStateStore

__all__ = [
    "SqlAlchemySyncStateStore",
    "StartupError",
    "UTCDateTime",
    "configured_engine",
    "create_all_tables",
    "is_started",
    "metadata",
    "shutdown",
    "startup",
    "sync_state_store",
    "sync_state_table",
]
