"""Salesforce implementation of the CRM port."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import ValidationError

from .client import SalesforceAPIError
from .translator import (
    CONTACT_FIELDS,
    CONTACT_OBJECT,
    STAY_FIELD_MAP,
    cached_guest_from_row,
    identity_from_row,
    identity_payload,
    outcome_from_save_result,
    soql_in,
    stay_from_row,
    stay_payload,
    stay_select_fields,
    stay_update_payload,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from guestsync.domain.types import (
        CachedGuest,
        IdentityDraft,
        IdentityId,
        IdentityRecord,
        StayDraft,
        StayRecord,
        StayUpdate,
        WriteOutcome,
    )

    from .client import SalesforceClient

log = getLogger(__name__)

DEFAULT_BATCH_SIZE = 200


def _chunks(values: Sequence[str], size: int) -> list[list[str]]:
    unique = list(dict.fromkeys(value for value in values if value))
    return [unique[start : start + size] for start in range(0, len(unique), size)]


def _parse_rows[T](
    rows: list[dict[str, object]],
    parse: Callable[[Mapping[str, object]], T],
) -> list[T]:
    try:
        return [parse(row) for row in rows]
    except ValidationError as exc:
        raise SalesforceAPIError(f"Malformed Salesforce record: {exc}") from exc


class SalesforceGateway:
    """Batch CRM operations over Contact and the guest stay object."""

    def __init__(
        self,
        client: SalesforceClient,
        *,
        guest_object: str,
        contact_lookup: str,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self._client = client
        self._guest_object = guest_object
        self._contact_lookup = contact_lookup
        self._batch_size = batch_size

    async def find_identities_by_email(self, emails: Sequence[str]) -> list[IdentityRecord]:
        found: list[IdentityRecord] = []
        for chunk in _chunks(emails, self._batch_size):
            soql = (
                f"SELECT {', '.join(CONTACT_FIELDS)} FROM {CONTACT_OBJECT} "
                f"WHERE Email IN ({soql_in(chunk)})"
            )
            rows = await self._client.query(soql)
            found.extend(_parse_rows(rows, identity_from_row))
        log.info("Found %s CRM identities for %s emails", len(found), len(set(emails)))
        return found

    async def create_identities(self, drafts: Sequence[IdentityDraft]) -> list[WriteOutcome]:
        if not drafts:
            return []
        results = await self._client.create_records(
            CONTACT_OBJECT, [identity_payload(draft) for draft in drafts]
        )
        return [outcome_from_save_result(result) for result in results]

    async def find_stays_for_identities(
        self, identity_ids: Sequence[IdentityId]
    ) -> list[StayRecord]:
        fields = ", ".join(stay_select_fields(self._contact_lookup))
        found: list[StayRecord] = []
        for chunk in _chunks(identity_ids, self._batch_size):
            soql = (
                f"SELECT {fields} FROM {self._guest_object} "
                f"WHERE {self._contact_lookup} IN ({soql_in(chunk)})"
            )
            rows = await self._client.query(soql)
            for stay in _parse_rows(rows, self._stay_from_row):
                if stay is not None:
                    found.append(stay)
        log.info("Found %s existing stay records", len(found))
        return found

    async def create_stays(self, drafts: Sequence[StayDraft]) -> list[WriteOutcome]:
        if not drafts:
            return []
        payloads = [stay_payload(draft, contact_lookup=self._contact_lookup) for draft in drafts]
        results = await self._client.create_records(self._guest_object, payloads)
        return [outcome_from_save_result(result) for result in results]

    async def update_stays(self, updates: Sequence[StayUpdate]) -> list[WriteOutcome]:
        if not updates:
            return []
        payloads = [stay_update_payload(update) for update in updates]
        results = await self._client.update_records(self._guest_object, payloads)
        return [outcome_from_save_result(result) for result in results]

    async def load_guest_snapshot(self) -> list[CachedGuest]:
        soql = f"SELECT {', '.join(STAY_FIELD_MAP.values())} FROM {self._guest_object}"
        rows = await self._client.query(soql)
        return _parse_rows(rows, cached_guest_from_row)

    def _stay_from_row(self, row: Mapping[str, object]) -> StayRecord | None:
        return stay_from_row(row, contact_lookup=self._contact_lookup)


if TYPE_CHECKING:
    from guestsync.config.salesforce import SalesforceConfig
    from guestsync.domain.ports import CrmGateway

    def _gateway_check(client: SalesforceClient, config: SalesforceConfig) -> CrmGateway:
        return SalesforceGateway(
            client, guest_object=config.guest_object, contact_lookup=config.contact_lookup
        )
