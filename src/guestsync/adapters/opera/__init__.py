"""OPERA source adapters: guest queries and the change feed."""

from __future__ import annotations

from .notifications import OracleChangeFeed, enable_thick_mode, rowids_from_message
from .source import OperaGuestSource, add_months
from .tables import OperaTables, opera_tables

__all__ = [
    "OperaGuestSource",
    "OperaTables",
    "OracleChangeFeed",
    "add_months",
    "enable_thick_mode",
    "opera_tables",
    "rowids_from_message",
]
