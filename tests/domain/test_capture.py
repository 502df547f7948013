from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from guestsync.domain.capture import ChangeCaptureCoordinator, CoordinatorState
from guestsync.domain.reconciliation import SyncResult

if TYPE_CHECKING:
    from collections.abc import Sequence

DEBOUNCE = 0.05


class Recorder:
    def __init__(self, *, fail_resolve: bool = False) -> None:
        self.resolved: list[list[str]] = []
        self.synced: list[list[str]] = []
        self.errors: list[Exception] = []
        self.fail_resolve = fail_resolve
        self.release = asyncio.Event()
        self.release.set()

    async def resolve(self, row_ids: Sequence[str]) -> list[str]:
        self.resolved.append(sorted(row_ids))
        if self.fail_resolve:
            raise RuntimeError("source unavailable")
        return [f"guest-{row_id.removeprefix('row-')}" for row_id in row_ids if row_id != "row-x"]

    async def sync(self, source_ids: Sequence[str]) -> SyncResult:
        self.synced.append(sorted(source_ids))
        await self.release.wait()
        return SyncResult(skipped=len(source_ids))

    def coordinator(self) -> ChangeCaptureCoordinator:
        return ChangeCaptureCoordinator(
            self.resolve,
            self.sync,
            debounce_seconds=DEBOUNCE,
            on_error=self.errors.append,
        )


async def _settle(coordinator: ChangeCaptureCoordinator) -> None:
    await asyncio.sleep(DEBOUNCE * 3)
    await coordinator.wait_idle()


def test_burst_of_notifications_becomes_one_cycle() -> None:
    async def scenario() -> tuple[Recorder, ChangeCaptureCoordinator]:
        recorder = Recorder()
        coordinator = recorder.coordinator()
        coordinator.on_notification("row-1")
        await asyncio.sleep(DEBOUNCE / 2)
        coordinator.on_notifications(["row-2", "row-1"])
        assert coordinator.state is CoordinatorState.ACCUMULATING
        assert coordinator.pending == {"row-1", "row-2"}
        await _settle(coordinator)
        return recorder, coordinator

    recorder, coordinator = asyncio.run(scenario())

    assert recorder.resolved == [["row-1", "row-2"]]
    assert recorder.synced == [["guest-1", "guest-2"]]
    assert coordinator.state is CoordinatorState.IDLE
    assert coordinator.pending == frozenset()
    assert coordinator.last_result == SyncResult(skipped=2)


def test_notifications_during_a_cycle_wait_for_the_next_one() -> None:
    async def scenario() -> tuple[Recorder, ChangeCaptureCoordinator]:
        recorder = Recorder()
        recorder.release.clear()
        coordinator = recorder.coordinator()
        coordinator.on_notification("row-1")
        await asyncio.sleep(DEBOUNCE * 2)
        assert coordinator.in_flight
        assert coordinator.state is CoordinatorState.SYNCING

        coordinator.on_notification("row-2")
        await asyncio.sleep(DEBOUNCE * 2)
        assert recorder.resolved == [["row-1"]]

        recorder.release.set()
        await coordinator.wait_idle()
        assert coordinator.state is CoordinatorState.ACCUMULATING
        assert coordinator.pending == {"row-2"}

        await coordinator.run_cycle_if_idle()
        return recorder, coordinator

    recorder, coordinator = asyncio.run(scenario())

    assert recorder.resolved == [["row-1"], ["row-2"]]
    assert recorder.synced == [["guest-1"], ["guest-2"]]
    assert coordinator.state is CoordinatorState.IDLE


def test_duplicate_resolved_ids_are_synced_once() -> None:
    async def resolve(row_ids: Sequence[str]) -> list[str]:
        return ["guest-7" for _ in row_ids]

    synced: list[list[str]] = []

    async def sync(source_ids: Sequence[str]) -> SyncResult:
        synced.append(list(source_ids))
        return SyncResult()

    async def scenario() -> None:
        coordinator = ChangeCaptureCoordinator(resolve, sync, debounce_seconds=DEBOUNCE)
        coordinator.on_notifications(["row-1", "row-2", "row-3"])
        await _settle(coordinator)

    asyncio.run(scenario())

    assert synced == [["guest-7"]]


def test_rows_resolving_to_nothing_skip_the_sync() -> None:
    async def scenario() -> tuple[Recorder, ChangeCaptureCoordinator]:
        recorder = Recorder()
        coordinator = recorder.coordinator()
        coordinator.on_notification("row-x")
        await _settle(coordinator)
        return recorder, coordinator

    recorder, coordinator = asyncio.run(scenario())

    assert recorder.resolved == [["row-x"]]
    assert recorder.synced == []
    assert coordinator.state is CoordinatorState.IDLE


def test_failed_cycle_reports_error_and_drops_the_batch() -> None:
    async def scenario() -> tuple[Recorder, ChangeCaptureCoordinator]:
        recorder = Recorder(fail_resolve=True)
        coordinator = recorder.coordinator()
        coordinator.on_notifications(["row-1", "row-2"])
        await _settle(coordinator)
        return recorder, coordinator

    recorder, coordinator = asyncio.run(scenario())

    assert [str(error) for error in recorder.errors] == ["source unavailable"]
    assert recorder.synced == []
    assert coordinator.pending == frozenset()
    assert coordinator.state is CoordinatorState.IDLE
    assert not coordinator.in_flight


def test_close_cancels_a_pending_timer() -> None:
    async def scenario() -> tuple[Recorder, ChangeCaptureCoordinator]:
        recorder = Recorder()
        coordinator = recorder.coordinator()
        coordinator.on_notification("row-1")
        await coordinator.close()
        await asyncio.sleep(DEBOUNCE * 2)
        return recorder, coordinator

    recorder, coordinator = asyncio.run(scenario())

    assert recorder.resolved == []
    assert coordinator.pending == {"row-1"}


def test_empty_notification_batch_is_ignored() -> None:
    async def scenario() -> CoordinatorState:
        coordinator = Recorder().coordinator()
        coordinator.on_notifications([])
        return coordinator.state

    assert asyncio.run(scenario()) is CoordinatorState.IDLE
