"""SQLAlchemy table metadata for local sync bookkeeping."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final

from sqlalchemy import (
    Column,
    DateTime,
    Dialect,
    Enum,
    Integer,
    MetaData,
    Table,
    Text,
    TypeDecorator,
)

from guestsync.domain.ports import SyncStatus

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

SYNC_STATE_ROW_ID: Final[int] = 1


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


metadata = MetaData()

sync_state_table = Table(
    "sync_state",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("last_sync_timestamp", UTCDateTime(), nullable=True),
    Column("last_sync_record_count", Integer, nullable=False, default=0),
    Column(
        "last_sync_status",
        Enum(SyncStatus, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=True,
    ),
    Column("last_sync_error", Text, nullable=True),
    Column("updated_at", UTCDateTime(), nullable=True),
)


def create_all_tables(engine: Engine) -> None:
    log.debug("Ensuring sync bookkeeping tables exist")
    metadata.create_all(engine, checkfirst=True)
