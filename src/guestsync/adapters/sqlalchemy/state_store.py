"""Watermark persistence for the catch-up path."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from guestsync.domain.ports import SyncState, SyncStatus
from guestsync.domain.types import utcnow

from .mappings import SYNC_STATE_ROW_ID, sync_state_table

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy.engine import Engine, RowMapping

    from guestsync.domain.types import Clock


def _state_from_row(row: RowMapping | None) -> SyncState:
    if row is None:
        return SyncState()
    return SyncState(
        last_sync_timestamp=row["last_sync_timestamp"],
        last_sync_record_count=row["last_sync_record_count"] or 0,
        last_sync_status=row["last_sync_status"],
        last_sync_error=row["last_sync_error"],
    )


class SqlAlchemySyncStateStore:
    """Single-row sync state table."""

    def __init__(self, engine: Engine, *, clock: Clock = utcnow) -> None:
        self._engine = engine
        self._clock = clock

    def load(self) -> SyncState:
        statement = select(sync_state_table).where(sync_state_table.c.id == SYNC_STATE_ROW_ID)
        with self._engine.connect() as connection:
            row = connection.execute(statement).mappings().first()
        return _state_from_row(row)

    def mark_success(self, *, watermark: datetime, record_count: int) -> SyncState:
        return self._save(
            {
                "last_sync_timestamp": watermark,
                "last_sync_record_count": record_count,
                "last_sync_status": SyncStatus.SUCCESS,
                "last_sync_error": None,
            }
        )

    def mark_failed(self, error: str) -> SyncState:
        """Record a failure; the stored watermark is left where it was."""

        return self._save({"last_sync_status": SyncStatus.FAILED, "last_sync_error": error})

    def _save(self, values: dict[str, object]) -> SyncState:
        values = {**values, "updated_at": self._clock()}
        table = sync_state_table
        with self._engine.begin() as connection:
            exists = connection.execute(
                select(table.c.id).where(table.c.id == SYNC_STATE_ROW_ID)
            ).first()
            if exists is None:
                connection.execute(table.insert().values(id=SYNC_STATE_ROW_ID, **values))
            else:
                connection.execute(
                    table.update().where(table.c.id == SYNC_STATE_ROW_ID).values(**values)
                )
            row = (
                connection.execute(select(table).where(table.c.id == SYNC_STATE_ROW_ID))
                .mappings()
                .first()
            )
        return _state_from_row(row)


if TYPE_CHECKING:
    from guestsync.domain.ports import SyncStateStore

    def _store_check(engine: Engine) -> SyncStateStore:
        return SqlAlchemySyncStateStore(engine)
