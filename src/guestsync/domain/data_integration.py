"""Application services for syncing source guests into the CRM."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from guestsync.domain.ports import CrmError, SourceError
from guestsync.domain.reconciliation import LikelyDuplicate, SyncResult
from guestsync.domain.screening import screen_records
from guestsync.domain.types import utcnow

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from datetime import datetime

    from guestsync.domain.duplicates import CacheStats, DuplicateDetector, MatchResult
    from guestsync.domain.ports import GuestSource, SyncState, SyncStateStore
    from guestsync.domain.reconciliation import ReconciliationEngine
    from guestsync.domain.types import (
        Clock,
        CustomerData,
        GuestRecord,
        InvoiceData,
        SourceId,
        SyncEntry,
    )

log = logging.getLogger(__name__)


@dataclass(slots=True)
class GuestSyncService:
    """Source query, screening, duplicate filter and reconciliation in one pass.

    Runs are serialized: a change cycle and a catch-up never overlap, so the
    identity lookup and create phases of one run cannot interleave with another.
    """

    source: GuestSource
    engine: ReconciliationEngine
    detector: DuplicateDetector
    _run_lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    async def process_batch(self, source_ids: Sequence[SourceId]) -> SyncResult:
        """Sync the guests behind ``source_ids`` (change-capture path)."""

        unique_ids = list(dict.fromkeys(source_ids))
        if not unique_ids:
            return SyncResult()
        async with self._run_lock:
            records = await self.source.fetch_by_ids(unique_ids)
            log.info("Fetched %s guest records for %s ids", len(records), len(unique_ids))
            return await self._sync_records(records)

    async def process_since(self, watermark: datetime | None) -> SyncResult:
        """Sync every guest changed since ``watermark`` (catch-up path)."""

        async with self._run_lock:
            records = await self.source.fetch_changed_since(watermark)
            log.info(
                "Fetched %s guest records changed since %s", len(records), watermark or "start"
            )
            return await self._sync_records(records)

    async def check(self, customer: CustomerData, invoice: InvoiceData | None = None) -> MatchResult:
        return await self.detector.check(customer, invoice)

    def cache_stats(self) -> CacheStats:
        return self.detector.stats()

    async def filter_duplicates(
        self, entries: Iterable[SyncEntry]
    ) -> tuple[list[SyncEntry], list[LikelyDuplicate]]:
        """Hold back entries that probably duplicate a CRM guest under another email."""

        await self.detector.ensure_fresh()
        kept: list[SyncEntry] = []
        held: list[LikelyDuplicate] = []
        for entry in entries:
            match = await self.detector.check(entry.customer, entry.invoice)
            if not match.is_duplicate:
                kept.append(entry)
                continue
            log.warning(
                "Likely duplicate: %s %s <%s> (%s%%, %s candidates)",
                entry.customer.first_name,
                entry.customer.last_name,
                entry.customer.email,
                match.probability,
                len(match.matches),
            )
            held.append(LikelyDuplicate(entry=entry, match=match))
        return kept, held

    async def _sync_records(self, records: Iterable[GuestRecord]) -> SyncResult:
        screening = screen_records(records, today=self.source.today())
        entries, held = await self.filter_duplicates(screening.entries)
        result = await self.engine.reconcile(entries)
        result.screening = screening
        result.likely_duplicates.extend(held)
        return result


@dataclass(slots=True)
class CatchUpResult:
    """Outcome of one watermark-bounded catch-up run."""

    started_at: datetime
    since: datetime | None
    result: SyncResult
    state: SyncState

    @property
    def succeeded(self) -> bool:
        return not self.result.all_failed


async def catch_up(
    service: GuestSyncService,
    store: SyncStateStore,
    *,
    since: datetime | None = None,
    clock: Clock = utcnow,
) -> CatchUpResult:
    """Run ``process_since`` from the stored watermark and advance it on success.

    The next watermark is the start time of this run, so changes committed while
    the run was in progress are picked up again next time.
    """

    started_at = clock()
    watermark = since if since is not None else store.load().last_sync_timestamp
    try:
        result = await service.process_since(watermark)
    except (CrmError, SourceError) as exc:
        log.error("Catch-up sync failed: %s", exc)
        store.mark_failed(str(exc))
        raise

    if result.all_failed:
        error = f"All {result.failed} writes failed"
        log.error("Catch-up sync failed: %s", error)
        state = store.mark_failed(error)
    else:
        state = store.mark_success(watermark=started_at, record_count=result.success)
        log.info(
            "Catch-up complete: %s written, %s failed, %s need review",
            result.success,
            result.failed,
            len(result.needs_review),
        )
    return CatchUpResult(started_at=started_at, since=watermark, result=result, state=state)
