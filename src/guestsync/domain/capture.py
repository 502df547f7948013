"""Change-capture coordinator: debounce row notifications into sync batches.

Raw row identifiers from the change feed accumulate in a pending set. Every
notification restarts the quiet-period timer; when it fires and no cycle is in
flight, the pending set is snapshotted and cleared, resolved to guest ids in one
lookup and handed to the sync callable. Identifiers lost to a failed cycle are
not restored; the periodic catch-up run picks them up.
"""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from guestsync.domain.reconciliation import SyncResult
    from guestsync.domain.types import RawRowId, SourceId

type RowResolver = Callable[[Sequence[RawRowId]], Awaitable[list[SourceId]]]
type BatchSync = Callable[[Sequence[SourceId]], Awaitable[SyncResult]]
type ErrorHandler = Callable[[Exception], None]

log = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 5.0


class CoordinatorState(StrEnum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    RESOLVING = "resolving"
    SYNCING = "syncing"


class ChangeCaptureCoordinator:
    """Single owner of the pending set, the debounce timer and the in-flight guard."""

    def __init__(
        self,
        resolve: RowResolver,
        sync: BatchSync,
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        on_error: ErrorHandler | None = None,
    ) -> None:
        self._resolve = resolve
        self._sync = sync
        self._debounce = debounce_seconds
        self._on_error = on_error
        self._pending: set[RawRowId] = set()
        self._state = CoordinatorState.IDLE
        self._in_flight = False
        self._timer: asyncio.TimerHandle | None = None
        self._task: asyncio.Task[SyncResult | None] | None = None
        self.last_result: SyncResult | None = None

    @property
    def state(self) -> CoordinatorState:
        return self._state

    @property
    def pending(self) -> frozenset[RawRowId]:
        return frozenset(self._pending)

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def on_notification(self, raw_id: RawRowId) -> None:
        """Record a changed row and restart the quiet period. Must run on the loop thread."""

        self._pending.add(raw_id)
        if self._state is CoordinatorState.IDLE:
            self._state = CoordinatorState.ACCUMULATING
        self._restart_timer()

    def on_notifications(self, raw_ids: Sequence[RawRowId]) -> None:
        if not raw_ids:
            return
        self._pending.update(raw_ids)
        if self._state is CoordinatorState.IDLE:
            self._state = CoordinatorState.ACCUMULATING
        self._restart_timer()

    def _restart_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._debounce, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        if self._in_flight or not self._pending:
            return
        self._task = asyncio.get_running_loop().create_task(self.run_cycle_if_idle())

    async def run_cycle_if_idle(self) -> SyncResult | None:
        """Process the pending set unless a cycle is already running."""

        if self._in_flight or not self._pending:
            return None

        self._in_flight = True
        batch = list(self._pending)
        self._pending.clear()
        try:
            self._state = CoordinatorState.RESOLVING
            log.info("Processing %s changed rows", len(batch))
            source_ids = list(dict.fromkeys(await self._resolve(batch)))
            if not source_ids:
                log.info("No guests resolved from %s changed rows", len(batch))
                return None

            self._state = CoordinatorState.SYNCING
            result = await self._sync(source_ids)
            self.last_result = result
            return result
        except Exception as exc:
            log.exception("Change-capture cycle failed for %s rows", len(batch))
            if self._on_error is not None:
                self._on_error(exc)
            return None
        finally:
            self._in_flight = False
            self._state = CoordinatorState.ACCUMULATING if self._pending else CoordinatorState.IDLE

    async def wait_idle(self) -> None:
        """Wait for the currently scheduled cycle, if any, to finish."""

        task = self._task
        if task is not None and not task.done():
            await asyncio.shield(task)

    async def close(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        await self.wait_idle()
