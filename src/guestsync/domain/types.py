"""Domain records exchanged between the source system, the pipeline and the CRM."""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Protocol

# Basic aliases (PEP 695) so we can upgrade to value objects later.
type SourceId = str
type RawRowId = str
type IdentityId = str
type StayId = str


class Clock(Protocol):
    def __call__(self) -> datetime: ...


def utcnow() -> datetime:
    return datetime.now(UTC)


class LanguagePicklist(StrEnum):
    """Values accepted by the CRM language picklist."""

    ENGLISH = "English"
    SPANISH = "Spanish"
    PORTUGUESE = "Portuguese"
    UNKNOWN = "Unknown"


@dataclass(frozen=True, slots=True, kw_only=True)
class GuestRecord:
    """Reservation-linked person snapshot as read from the source system."""

    source_id: SourceId
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    language: str = ""
    city: str = ""
    state: str = ""
    country: str = ""
    check_in: date | None = None
    check_out: date | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class CustomerData:
    """Person-identity projection of a guest record."""

    email: str
    first_name: str
    last_name: str
    source_id: SourceId | None = None
    phone: str = ""
    language: str = ""
    billing_city: str = ""
    billing_state: str = ""
    billing_country: str = ""


@dataclass(frozen=True, slots=True, kw_only=True)
class InvoiceData:
    """Stay projection of a guest record."""

    check_in: date | None = None
    check_out: date | None = None


@dataclass(frozen=True, slots=True)
class SyncEntry:
    """One candidate CRM write: a customer paired with its stay."""

    customer: CustomerData
    invoice: InvoiceData

    @property
    def email_key(self) -> str:
        return self.customer.email.strip().lower()


def entry_from_record(record: GuestRecord, *, email: str | None = None) -> SyncEntry:
    customer = CustomerData(
        email=email if email is not None else record.email.strip(),
        first_name=record.first_name.strip(),
        last_name=record.last_name.strip(),
        source_id=record.source_id,
        phone=record.phone.strip(),
        language=record.language.strip(),
        billing_city=record.city.strip(),
        billing_state=record.state.strip(),
        billing_country=record.country.strip(),
    )
    return SyncEntry(
        customer=customer,
        invoice=InvoiceData(check_in=record.check_in, check_out=record.check_out),
    )


# --- CRM-side records -------------------------------------------------------


@dataclass(frozen=True, slots=True, kw_only=True)
class IdentityRecord:
    """Existing CRM identity (contact) as returned by a lookup."""

    id: IdentityId
    email: str
    first_name: str = ""
    last_name: str = ""


@dataclass(frozen=True, slots=True, kw_only=True)
class IdentityDraft:
    """Identity to be created in the CRM."""

    email: str
    first_name: str
    last_name: str
    phone: str = ""


@dataclass(frozen=True, slots=True, kw_only=True)
class StayFields:
    """Descriptive stay-record fields that take part in change detection."""

    email: str = ""
    first_name: str = ""
    last_name: str = ""
    city: str = ""
    state: str = ""
    country: str = ""
    phone: str = ""
    language: str = ""
    check_in: date | None = None
    check_out: date | None = None

    def diff(self, incoming: StayFields) -> dict[str, object]:
        """Return the incoming values of every field that differs from ``self``."""

        changes: dict[str, object] = {}
        for field_info in fields(self):
            current = getattr(self, field_info.name)
            proposed = getattr(incoming, field_info.name)
            if _comparable(current) != _comparable(proposed):
                changes[field_info.name] = proposed
        return changes


def _comparable(value: object) -> object:
    # The CRM returns null for blank text fields.
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return value


@dataclass(frozen=True, slots=True, kw_only=True)
class StayRecord:
    """Existing CRM stay record."""

    id: StayId
    identity_id: IdentityId
    fields: StayFields

    @property
    def check_in(self) -> date | None:
        return self.fields.check_in


@dataclass(frozen=True, slots=True, kw_only=True)
class StayDraft:
    """Stay record to be created in the CRM, linked to a resolved identity."""

    identity_id: IdentityId
    fields: StayFields


@dataclass(frozen=True, slots=True, kw_only=True)
class StayUpdate:
    """Field-level update of an existing stay record."""

    id: StayId
    changes: dict[str, object]


@dataclass(frozen=True, slots=True, kw_only=True)
class WriteOutcome:
    """Per-record result of a CRM create or update."""

    success: bool
    record_id: str | None = None
    error: str | None = None

    @classmethod
    def ok(cls, record_id: str | None) -> WriteOutcome:
        return cls(success=True, record_id=record_id)

    @classmethod
    def failed(cls, error: str) -> WriteOutcome:
        return cls(success=False, error=error)


@dataclass(frozen=True, slots=True, kw_only=True)
class CachedGuest:
    """Stay-level snapshot used by duplicate detection."""

    email: str = ""
    first_name: str = ""
    last_name: str = ""
    city: str = ""
    state: str = ""
    country: str = ""
    check_in: date | None = None
    check_out: date | None = None
