"""Domain port definitions for adapters."""

from __future__ import annotations

from .crm import CrmError, CrmGateway
from .source import GuestSource, SourceError
from .state import SyncState, SyncStateStore, SyncStatus

__all__ = [
    "CrmError",
    "CrmGateway",
    "GuestSource",
    "SourceError",
    "SyncState",
    "SyncStateStore",
    "SyncStatus",
]
