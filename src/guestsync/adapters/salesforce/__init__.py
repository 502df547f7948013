"""Salesforce adapter package."""

from __future__ import annotations

from .client import SalesforceAPIError, SalesforceClient
from .gateway import SalesforceGateway
from .schema import ContactRow, GuestRow, QueryResponse, SaveResult, TokenResponse
from .translator import soql_literal

__all__ = [
    "ContactRow",
    "GuestRow",
    "QueryResponse",
    "SalesforceAPIError",
    "SalesforceClient",
    "SalesforceGateway",
    "SaveResult",
    "TokenResponse",
    "soql_literal",
]
