"""Shared fixtures for OPERA adapter tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.pool import StaticPool

from guestsync.adapters.opera import opera_tables

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine


@pytest.fixture
def opera_engine() -> Iterator[Engine]:
    # Queries run in worker threads; StaticPool keeps the one in-memory connection.
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def attach_schema(dbapi_connection: object, _record: object) -> None:
        cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
        cursor.execute("ATTACH DATABASE ':memory:' AS opera")
        cursor.close()

    opera_tables("opera").metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()
