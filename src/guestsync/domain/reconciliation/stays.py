"""Stay-record phase of the reconciliation protocol.

Stays are keyed by ``(identity id, check-in date)``. Within one run each key is
written at most once; the first entry carrying it wins and later ones are dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from guestsync.domain.screening import map_language
from guestsync.domain.types import StayDraft, StayFields, StayUpdate

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import date

    from guestsync.domain.types import IdentityId, StayRecord, SyncEntry

type StayKey = tuple[IdentityId, date | None]


def stay_fields(entry: SyncEntry) -> StayFields:
    customer = entry.customer
    return StayFields(
        email=customer.email.strip(),
        first_name=customer.first_name,
        last_name=customer.last_name,
        city=customer.billing_city,
        state=customer.billing_state,
        country=customer.billing_country,
        phone=customer.phone,
        language=map_language(customer.language).value,
        check_in=entry.invoice.check_in,
        check_out=entry.invoice.check_out,
    )


def index_stays(records: Iterable[StayRecord]) -> dict[StayKey, StayRecord]:
    index: dict[StayKey, StayRecord] = {}
    for record in records:
        index.setdefault((record.identity_id, record.check_in), record)
    return index


@dataclass(slots=True)
class StayPlan:
    creates: list[tuple[SyncEntry, StayDraft]] = field(
        default_factory=list[tuple["SyncEntry", StayDraft]]
    )
    updates: list[tuple[SyncEntry, StayUpdate]] = field(
        default_factory=list[tuple["SyncEntry", StayUpdate]]
    )
    unchanged: int = 0
    dropped: int = 0


def plan_stays(
    entries: Iterable[tuple[SyncEntry, IdentityId]],
    existing: Iterable[StayRecord],
) -> StayPlan:
    """Decide create / update / skip for each entry against existing stays."""

    index = index_stays(existing)
    seen: set[StayKey] = set()
    plan = StayPlan()
    for entry, identity_id in entries:
        key: StayKey = (identity_id, entry.invoice.check_in)
        if key in seen:
            plan.dropped += 1
            continue
        seen.add(key)

        incoming = stay_fields(entry)
        current = index.get(key)
        if current is None:
            plan.creates.append((entry, StayDraft(identity_id=identity_id, fields=incoming)))
            continue
        changes = current.fields.diff(incoming)
        if not changes:
            plan.unchanged += 1
            continue
        plan.updates.append((entry, StayUpdate(id=current.id, changes=changes)))
    return plan
