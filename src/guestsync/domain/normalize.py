"""String normalization shared by duplicate detection and reconciliation."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .types import CustomerData

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def normalize_email(value: str | None) -> str:
    return normalize_text(value)


def name_key(first_name: str | None, last_name: str | None) -> str | None:
    """Return ``first|last`` with non-alphanumerics stripped, or None when either is empty."""

    first = _NON_ALNUM.sub("", normalize_text(first_name))
    last = _NON_ALNUM.sub("", normalize_text(last_name))
    if not first or not last:
        return None
    return f"{first}|{last}"


def identity_name(first_name: str | None, last_name: str | None) -> tuple[str, str]:
    """Case- and whitespace-insensitive person name used for shared-email checks."""

    return normalize_text(first_name), normalize_text(last_name)


def customer_identity_name(customer: CustomerData) -> tuple[str, str]:
    return identity_name(customer.first_name, customer.last_name)


def email_domain(email: str | None) -> str:
    parts = (email or "").split("@")
    if len(parts) != 2:
        return ""
    return parts[1].strip().lower()


def same_text(left: str | None, right: str | None) -> bool:
    """Normalized equality that never matches on empty values."""

    normalized = normalize_text(left)
    return bool(normalized) and normalized == normalize_text(right)
