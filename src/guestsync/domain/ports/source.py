"""Port for the upstream hotel-management database."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import date, datetime

    from guestsync.domain.types import GuestRecord, RawRowId, SourceId


class SourceError(RuntimeError):
    """Infrastructure failure while querying the source database."""


@runtime_checkable
class GuestSource(Protocol):
    """Query capabilities consumed from the source system."""

    async def resolve_change_rows(self, row_ids: Sequence[RawRowId]) -> list[SourceId]: ...

    async def fetch_by_ids(self, source_ids: Sequence[SourceId]) -> list[GuestRecord]: ...

    async def fetch_changed_since(self, watermark: datetime | None) -> list[GuestRecord]: ...

    def today(self) -> date: ...
