from __future__ import annotations

import asyncio
from datetime import UTC, date, datetime

import pytest

from guestsync.domain.data_integration import GuestSyncService, catch_up
from guestsync.domain.duplicates import DuplicateDetector, MatchReason
from guestsync.domain.ports import CrmError, SourceError, SyncState, SyncStatus
from guestsync.domain.reconciliation import ReconciliationEngine
from guestsync.domain.types import CachedGuest, CustomerData
from tests.helpers.guests import (
    FakeCrmGateway,
    FakeGuestSource,
    FixedClock,
    InMemorySyncStateStore,
    make_record,
)

PREVIOUS_RUN = datetime(2026, 2, 14, 6, tzinfo=UTC)


def _service(
    source: FakeGuestSource,
    gateway: FakeCrmGateway,
    *,
    duplicates_enabled: bool = True,
) -> GuestSyncService:
    detector = DuplicateDetector.from_loader(
        gateway.load_guest_snapshot,
        ttl_seconds=3600,
        enabled=duplicates_enabled,
        clock=FixedClock(),
    )
    return GuestSyncService(
        source=source,
        engine=ReconciliationEngine(gateway=gateway),
        detector=detector,
    )


def test_process_batch_fetches_unique_ids_and_reconciles() -> None:
    source = FakeGuestSource(
        [
            make_record("1", "ana@gmail.com", "Ana", "Diaz"),
            make_record("2", "bea@gmail.com", "Bea", "Cruz"),
        ]
    )
    gateway = FakeCrmGateway()

    result = asyncio.run(_service(source, gateway).process_batch(["1", "2", "1"]))

    assert source.fetched == [["1", "2"]]
    assert result.identities.created == 2
    assert result.stays.created == 2
    assert result.screening is not None
    assert len(result.screening.entries) == 2


def test_empty_batch_touches_nothing() -> None:
    source = FakeGuestSource()
    gateway = FakeCrmGateway()

    result = asyncio.run(_service(source, gateway).process_batch([]))

    assert source.fetched == []
    assert gateway.snapshot_loads == 0
    assert result.success == 0


def test_screened_out_guests_never_reach_the_crm() -> None:
    source = FakeGuestSource(
        [
            make_record("1", "reservas@andestravel.com", "Ana", "Diaz"),
            make_record("2", "not-an-email", "Bea", "Cruz"),
        ]
    )
    gateway = FakeCrmGateway()

    result = asyncio.run(_service(source, gateway).process_batch(["1", "2"]))

    assert gateway.writes == 0
    assert gateway.lookups == []
    assert result.screening is not None
    assert len(result.screening.front_desk) == 2


def test_likely_duplicates_are_held_back() -> None:
    gateway = FakeCrmGateway()
    gateway.snapshot = [
        CachedGuest(
            email="maria@gmail.com",
            first_name="Maria",
            last_name="Lopez",
            city="Mendoza",
            state="Mendoza",
            country="AR",
            check_in=date(2026, 2, 15),
        )
    ]
    source = FakeGuestSource(
        [
            make_record("1", "maria.work@gmail.com", "Maria", "Lopez"),
            make_record("2", "jo@gmail.com", "Jo", "Perez"),
        ]
    )

    result = asyncio.run(_service(source, gateway).process_batch(["1", "2"]))

    [held] = result.likely_duplicates
    assert held.entry.customer.email == "maria.work@gmail.com"
    assert held.match.probability == 100
    assert [draft.email for draft in gateway.identity_creates] == ["jo@gmail.com"]


def test_degraded_duplicate_cache_does_not_block_sync() -> None:
    gateway = FakeCrmGateway()
    gateway.snapshot_error = CrmError("snapshot query failed")
    source = FakeGuestSource([make_record("1", "maria@gmail.com", "Maria", "Lopez")])

    result = asyncio.run(_service(source, gateway).process_batch(["1"]))

    assert result.likely_duplicates == []
    assert result.stays.created == 1


def test_check_and_cache_stats_delegate_to_detector() -> None:
    gateway = FakeCrmGateway()
    gateway.snapshot = [CachedGuest(email="maria@gmail.com", first_name="Maria", last_name="Lopez")]
    service = _service(FakeGuestSource(), gateway)

    match = asyncio.run(
        service.check(CustomerData(email="maria@gmail.com", first_name="Maria", last_name="Lopez"))
    )

    assert match.reason is MatchReason.UPSERT
    assert service.cache_stats().record_count == 1


def test_catch_up_starts_from_stored_watermark_and_advances_it() -> None:
    source = FakeGuestSource([make_record("1", "ana@gmail.com", "Ana", "Diaz")])
    store = InMemorySyncStateStore(
        SyncState(last_sync_timestamp=PREVIOUS_RUN, last_sync_status=SyncStatus.SUCCESS)
    )
    clock = FixedClock(datetime(2026, 2, 15, 9, tzinfo=UTC))

    outcome = asyncio.run(catch_up(_service(source, FakeCrmGateway()), store, clock=clock))

    assert source.since_calls == [PREVIOUS_RUN]
    assert outcome.succeeded
    assert outcome.since == PREVIOUS_RUN
    assert store.state.last_sync_timestamp == datetime(2026, 2, 15, 9, tzinfo=UTC)
    assert store.state.last_sync_record_count == 1
    assert store.state.last_sync_status is SyncStatus.SUCCESS


def test_catch_up_without_watermark_runs_initial_sync() -> None:
    source = FakeGuestSource()
    store = InMemorySyncStateStore()

    outcome = asyncio.run(catch_up(_service(source, FakeCrmGateway()), store, clock=FixedClock()))

    assert source.since_calls == [None]
    assert outcome.succeeded
    assert store.state.last_sync_timestamp == FixedClock().now


def test_explicit_since_overrides_stored_watermark() -> None:
    source = FakeGuestSource()
    store = InMemorySyncStateStore(SyncState(last_sync_timestamp=PREVIOUS_RUN))
    since = datetime(2026, 1, 1, tzinfo=UTC)

    asyncio.run(catch_up(_service(source, FakeCrmGateway()), store, since=since))

    assert source.since_calls == [since]


def test_all_failed_run_keeps_previous_watermark() -> None:
    source = FakeGuestSource([make_record("1", "ana@gmail.com", "Ana", "Diaz")])
    gateway = FakeCrmGateway()
    gateway.reject_identity_emails.add("ana@gmail.com")
    store = InMemorySyncStateStore(SyncState(last_sync_timestamp=PREVIOUS_RUN))

    outcome = asyncio.run(catch_up(_service(source, gateway), store, clock=FixedClock()))

    assert not outcome.succeeded
    assert store.state.last_sync_timestamp == PREVIOUS_RUN
    assert store.state.last_sync_status is SyncStatus.FAILED
    assert store.state.last_sync_error == "All 1 writes failed"


@pytest.mark.parametrize("error", [SourceError("ORA-12541"), CrmError("401 Unauthorized")])
def test_infrastructure_failure_marks_state_and_propagates(error: Exception) -> None:
    source = FakeGuestSource([make_record("1", "ana@gmail.com")])
    gateway = FakeCrmGateway()
    if isinstance(error, SourceError):
        source.error = error
    else:
        gateway.lookup_error = error
    store = InMemorySyncStateStore(SyncState(last_sync_timestamp=PREVIOUS_RUN))

    with pytest.raises(type(error)):
        asyncio.run(
            catch_up(_service(source, gateway, duplicates_enabled=False), store, clock=FixedClock())
        )

    assert store.state.last_sync_timestamp == PREVIOUS_RUN
    assert store.state.last_sync_status is SyncStatus.FAILED
    assert store.state.last_sync_error == str(error)
