"""Port for the downstream CRM system."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

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


class CrmError(RuntimeError):
    """Infrastructure failure while talking to the CRM (transport, auth, malformed query)."""


@runtime_checkable
class CrmGateway(Protocol):
    """Batch-oriented CRM operations used by reconciliation and duplicate detection.

    Write operations return one ``WriteOutcome`` per input, in input order. Per-record
    rejections are reported in those outcomes; only infrastructure failures raise
    ``CrmError``.
    """

    async def find_identities_by_email(self, emails: Sequence[str]) -> list[IdentityRecord]: ...

    async def create_identities(self, drafts: Sequence[IdentityDraft]) -> list[WriteOutcome]: ...

    async def find_stays_for_identities(
        self, identity_ids: Sequence[IdentityId]
    ) -> list[StayRecord]: ...

    async def create_stays(self, drafts: Sequence[StayDraft]) -> list[WriteOutcome]: ...

    async def update_stays(self, updates: Sequence[StayUpdate]) -> list[WriteOutcome]: ...

    async def load_guest_snapshot(self) -> list[CachedGuest]: ...
