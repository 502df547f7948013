"""Port for persisting the catch-up watermark."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime


class SyncStatus(StrEnum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True, slots=True, kw_only=True)
class SyncState:
    last_sync_timestamp: datetime | None = None
    last_sync_record_count: int = 0
    last_sync_status: SyncStatus | None = None
    last_sync_error: str | None = None


@runtime_checkable
class SyncStateStore(Protocol):
    def load(self) -> SyncState: ...

    def mark_success(self, *, watermark: datetime, record_count: int) -> SyncState: ...

    def mark_failed(self, error: str) -> SyncState: ...
