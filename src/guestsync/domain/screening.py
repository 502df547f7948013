"""Screening of source guest records before they enter the sync pipeline.

Records whose email is invalid or belongs to a travel agent / booking proxy are
never written to the CRM. Those checking in today are surfaced for the front desk
so staff can collect a personal email address at arrival.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from .types import LanguagePicklist, SyncEntry, entry_from_record

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import date

    from .types import GuestRecord

log = logging.getLogger(__name__)

AGENT_DOMAIN_KEYWORDS: tuple[str, ...] = (
    "reserv",
    "travel",
    "tour",
    "viaje",
    "incoming",
    "operacion",
    "ventas",
    "receptivo",
    "mayorista",
    "turismo",
    "journey",
    "experience",
    "expedition",
    ".tur.",
    "dmc",
    "mice",
    "smartflyer",
    "fora.travel",
    "traveledge",
    "travelcorp",
    "protravelinc",
    "globaltravelcollection",
    "cadencetravel",
    "dreamvacations",
    "tbhtravel",
    "foundluxury",
    "privateclients",
    "hontravel",
    "poptour",
    "maintravel",
    "kangaroo",
    "primetour",
    "booking.com",
    "expedia",
    "aspirelifestyles",
    "centurioncard",
    "vendor@",
)

_KNOWN_PROVIDERS = frozenset({"gmail", "yahoo", "hotmail", "outlook", "aol", "icloud", "mail"})
_SUSPICIOUS_TLDS = frozenset({"co", "me", "tv", "io", "to"})
_TLD_PATTERN = re.compile(r"^[a-z0-9]{2,6}$", re.IGNORECASE)
_PLACEHOLDER_FIRST_NAMES = frozenset({"", ".", "TBC"})


class ScreeningReason(StrEnum):
    INVALID_EMAIL = "invalid-email"
    BOOKING_PROXY = "booking-proxy"
    EXPEDIA_PROXY = "expedia-proxy"
    COMPANY = "company"
    AGENT_DOMAIN = "agent-domain"


def sanitize_email(email: str | None) -> str | None:
    """Validate an email address without rewriting it; return None when unusable."""

    if not email:
        return None
    cleaned = email.strip()
    if not cleaned.isascii():
        return None

    parts = cleaned.split("@")
    if len(parts) != 2:
        return None
    local_part, domain = parts
    if not local_part or "." not in domain:
        return None
    if ".." in domain or domain.startswith(".") or domain.endswith((".", ",", ";")):
        return None

    labels = domain.split(".")
    tld = labels[-1]
    if not _TLD_PATTERN.match(tld):
        return None
    if (
        len(labels) == 2
        and labels[0].lower() in _KNOWN_PROVIDERS
        and tld.lower() in _SUSPICIOUS_TLDS
    ):
        return None
    return cleaned


def agent_category(email: str, first_name: str) -> ScreeningReason | None:
    """Classify travel agents, booking proxies and company placeholders."""

    lowered = email.lower()
    if "guest.booking.com" in lowered:
        return ScreeningReason.BOOKING_PROXY
    if "expediapartnercentral.com" in lowered:
        return ScreeningReason.EXPEDIA_PROXY
    if first_name.strip() in _PLACEHOLDER_FIRST_NAMES:
        return ScreeningReason.COMPANY
    for keyword in AGENT_DOMAIN_KEYWORDS:
        if keyword in lowered:
            return ScreeningReason.AGENT_DOMAIN
    return None


def map_language(code: str | None) -> LanguagePicklist:
    """Map a source language code onto the CRM picklist."""

    if not code:
        return LanguagePicklist.UNKNOWN
    lang = code.strip().upper()
    if "ENG" in lang or lang in {"E", "EN"}:
        return LanguagePicklist.ENGLISH
    if "SPA" in lang or "ESP" in lang or lang in {"SP", "S", "ES"}:
        return LanguagePicklist.SPANISH
    if "POR" in lang or lang in {"PR", "P", "PT"}:
        return LanguagePicklist.PORTUGUESE
    return LanguagePicklist.UNKNOWN


@dataclass(frozen=True, slots=True, kw_only=True)
class FrontDeskItem:
    """On-property guest that cannot be synced and needs attention at check-in."""

    record: GuestRecord
    reason: ScreeningReason


@dataclass(slots=True)
class ScreeningResult:
    entries: list[SyncEntry] = field(default_factory=list[SyncEntry])
    front_desk: list[FrontDeskItem] = field(default_factory=list[FrontDeskItem])
    filtered: list[tuple[GuestRecord, ScreeningReason]] = field(
        default_factory=list[tuple["GuestRecord", ScreeningReason]]
    )
    without_stay: int = 0

    @property
    def invalid(self) -> list[GuestRecord]:
        return [record for record, reason in self.filtered if reason is ScreeningReason.INVALID_EMAIL]

    @property
    def agents(self) -> list[GuestRecord]:
        return [
            record for record, reason in self.filtered if reason is not ScreeningReason.INVALID_EMAIL
        ]


def screen_records(records: Iterable[GuestRecord], *, today: date) -> ScreeningResult:
    """Split fetched records into sync entries, front-desk items and filtered guests."""

    result = ScreeningResult()
    for record in records:
        email = sanitize_email(record.email)
        reason: ScreeningReason | None
        if email is None:
            reason = ScreeningReason.INVALID_EMAIL
        else:
            reason = agent_category(email, record.first_name)

        if reason is not None:
            if record.check_in == today:
                result.front_desk.append(FrontDeskItem(record=record, reason=reason))
            else:
                result.filtered.append((record, reason))
            continue

        if record.check_in is None and record.check_out is None:
            result.without_stay += 1
            continue

        result.entries.append(entry_from_record(record, email=email))

    if result.front_desk:
        log.info(
            "Front desk: %s on-property guests need email collection", len(result.front_desk)
        )
    log.info(
        "Screened guests: %s to sync, %s filtered, %s without stay",
        len(result.entries),
        len(result.filtered),
        result.without_stay,
    )
    return result
