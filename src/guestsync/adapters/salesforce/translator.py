"""Translate between Salesforce rows and domain records."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING

from guestsync.domain.types import (
    CachedGuest,
    IdentityRecord,
    StayFields,
    StayRecord,
    WriteOutcome,
)

from .schema import ContactRow, GuestRow

if TYPE_CHECKING:
    from collections.abc import Mapping

    from guestsync.domain.types import IdentityDraft, StayDraft, StayUpdate

    from .schema import SaveResult

CONTACT_OBJECT = "Contact"
CONTACT_FIELDS = ("Id", "Email", "FirstName", "LastName")

# StayFields attribute -> stay-record field
STAY_FIELD_MAP: dict[str, str] = {
    "email": "Email__c",
    "first_name": "Guest_First_Name__c",
    "last_name": "Guest_Last_Name__c",
    "city": "City__c",
    "state": "State_Province__c",
    "country": "Country__c",
    "phone": "Telephone__c",
    "language": "Language__c",
    "check_in": "Check_In_Date__c",
    "check_out": "Check_Out_Date__c",
}

# Required checkbox fields on new stay records; never touched afterwards.
STAY_DEFAULT_FLAGS: tuple[str, ...] = (
    "Future_Sales_Prospect__c",
    "TVG__c",
    "Greeted_at_Check_In__c",
    "Received_PV_Explanation__c",
    "Vineyard_Tour__c",
    "Did_TVG_Tasting_With_Sales_Rep__c",
    "Did_TVG_Tasting_with_Sommelier__c",
    "Villa_Tour__c",
    "Attended_Happy_Hour__c",
    "Brochure_Clicked__c",
    "Replied_to_Mkt_campaign_2025__c",
    "In_Conversation__c",
    "Not_interested__c",
    "Ready_for_pardot_email_list__c",
    "In_Conversation_PV__c",
    "Follow_up__c",
    "Ready_for_PV_mail__c",
)


def soql_literal(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def soql_in(values: list[str]) -> str:
    return ", ".join(soql_literal(value) for value in values)


def stay_select_fields(contact_lookup: str) -> tuple[str, ...]:
    return ("Id", contact_lookup, *STAY_FIELD_MAP.values())


def identity_from_row(row: Mapping[str, object]) -> IdentityRecord:
    contact = ContactRow.model_validate(row)
    return IdentityRecord(
        id=contact.id,
        email=contact.email or "",
        first_name=contact.first_name or "",
        last_name=contact.last_name or "",
    )


def _stay_fields(guest: GuestRow) -> StayFields:
    return StayFields(
        email=guest.email or "",
        first_name=guest.first_name or "",
        last_name=guest.last_name or "",
        city=guest.city or "",
        state=guest.state or "",
        country=guest.country or "",
        phone=guest.phone or "",
        language=guest.language or "",
        check_in=guest.check_in,
        check_out=guest.check_out,
    )


def stay_from_row(row: Mapping[str, object], *, contact_lookup: str) -> StayRecord | None:
    """Parse an existing stay record; rows without an id or identity link are skipped."""

    guest = GuestRow.model_validate(row)
    identity_id = row.get(contact_lookup)
    if guest.id is None or not isinstance(identity_id, str) or not identity_id:
        return None
    return StayRecord(id=guest.id, identity_id=identity_id, fields=_stay_fields(guest))


def cached_guest_from_row(row: Mapping[str, object]) -> CachedGuest:
    guest = GuestRow.model_validate(row)
    return CachedGuest(
        email=guest.email or "",
        first_name=guest.first_name or "",
        last_name=guest.last_name or "",
        city=guest.city or "",
        state=guest.state or "",
        country=guest.country or "",
        check_in=guest.check_in,
        check_out=guest.check_out,
    )


def _field_value(value: object) -> object:
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        return value or None
    return value


def identity_payload(draft: IdentityDraft) -> dict[str, object]:
    return {
        "Email": draft.email,
        "FirstName": draft.first_name,
        "LastName": draft.last_name,
        "Phone": draft.phone or None,
        "Has_TVRS_Guest_Record__c": True,
    }


def stay_payload(draft: StayDraft, *, contact_lookup: str) -> dict[str, object]:
    payload: dict[str, object] = {
        field: _field_value(getattr(draft.fields, name)) for name, field in STAY_FIELD_MAP.items()
    }
    payload.update(dict.fromkeys(STAY_DEFAULT_FLAGS, False))
    payload[contact_lookup] = draft.identity_id
    return payload


def stay_update_payload(update: StayUpdate) -> dict[str, object]:
    payload: dict[str, object] = {"Id": update.id}
    for name, value in update.changes.items():
        payload[STAY_FIELD_MAP[name]] = _field_value(value)
    return payload


def outcome_from_save_result(result: SaveResult) -> WriteOutcome:
    if result.success:
        return WriteOutcome.ok(result.id)
    return WriteOutcome.failed(result.error_message)
