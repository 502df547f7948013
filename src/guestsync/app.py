"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from guestsync.adapters.opera import OperaGuestSource, OracleChangeFeed, enable_thick_mode
from guestsync.adapters.salesforce import SalesforceClient, SalesforceGateway
from guestsync.adapters.sqlalchemy import startup, sync_state_store
from guestsync.config import (
    get_opera_config,
    get_salesforce_config,
    get_sync_config,
    optional_env,
)
from guestsync.domain.capture import ChangeCaptureCoordinator
from guestsync.domain.data_integration import GuestSyncService, catch_up
from guestsync.domain.duplicates import DuplicateDetector
from guestsync.domain.ports import CrmError, SourceError
from guestsync.domain.reconciliation import ReconciliationEngine

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from datetime import datetime

    from guestsync.adapters.opera.notifications import RowIdSink
    from guestsync.config import OperaConfig, SyncConfig
    from guestsync.domain.data_integration import CatchUpResult
    from guestsync.domain.duplicates import CacheStats
    from guestsync.domain.ports import CrmGateway, GuestSource, SyncStateStore
    from guestsync.domain.reconciliation import SyncResult
    from guestsync.domain.types import SourceId

type FeedFactory = Callable[[OperaConfig, RowIdSink], OracleChangeFeed]

log = getLogger(__name__)


@dataclass(slots=True)
class GuestSyncApp:
    """Wired service plus the resources that need closing."""

    service: GuestSyncService
    source: GuestSource
    store: SyncStateStore
    sync_config: SyncConfig
    closers: list[Callable[[], object]] = field(default_factory=list["Callable[[], object]"])

    async def aclose(self) -> None:
        for closer in reversed(self.closers):
            outcome = closer()
            if asyncio.iscoroutine(outcome):
                await outcome
        self.closers.clear()


def build_service(
    *,
    source: GuestSource,
    gateway: CrmGateway,
    sync_config: SyncConfig,
) -> GuestSyncService:
    detector = DuplicateDetector.from_loader(
        gateway.load_guest_snapshot,
        ttl_seconds=sync_config.duplicate_cache_ttl_seconds,
        enabled=sync_config.duplicate_detection_enabled,
        threshold=sync_config.duplicate_threshold,
    )
    return GuestSyncService(
        source=source,
        engine=ReconciliationEngine(gateway=gateway),
        detector=detector,
    )


def build_app(
    *,
    sync_config: SyncConfig | None = None,
    source: GuestSource | None = None,
    gateway: CrmGateway | None = None,
    store: SyncStateStore | None = None,
    opera_config: OperaConfig | None = None,
) -> GuestSyncApp:
    """Wire configuration, adapters and domain services; missing parts come from env."""

    effective_sync = sync_config or get_sync_config()
    closers: list[Callable[[], object]] = []

    if source is None:
        opera_source = OperaGuestSource.from_config(
            opera_config or get_opera_config(),
            initial_sync_months=effective_sync.initial_sync_months,
        )
        closers.append(opera_source.dispose)
        source = opera_source

    if gateway is None:
        salesforce_config = get_salesforce_config()
        client = SalesforceClient(config=salesforce_config)
        closers.append(client.aclose)
        gateway = SalesforceGateway(
            client,
            guest_object=salesforce_config.guest_object,
            contact_lookup=salesforce_config.contact_lookup,
            batch_size=effective_sync.batch_size,
        )

    if store is None:
        startup(force=True)
        store = sync_state_store()

    service = build_service(source=source, gateway=gateway, sync_config=effective_sync)
    log.info(
        "Guest sync configured: batch_size=%s, duplicate detection=%s (threshold %s)",
        effective_sync.batch_size,
        effective_sync.duplicate_detection_enabled,
        effective_sync.duplicate_threshold,
    )
    return GuestSyncApp(
        service=service,
        source=source,
        store=store,
        sync_config=effective_sync,
        closers=closers,
    )


def log_result(result: SyncResult) -> None:
    for item in result.needs_review:
        log.warning("Needs review [%s] %s: %s", item.reason, item.email, item.detail)
    for held in result.likely_duplicates:
        log.warning(
            "Held as likely duplicate: %s (%s%%)", held.entry.customer.email, held.match.probability
        )
    screening = result.screening
    if screening is not None:
        for item in screening.front_desk:
            log.info(
                "Front desk [%s]: %s %s <%s> checking in %s",
                item.reason,
                item.record.first_name,
                item.record.last_name,
                item.record.email,
                item.record.check_in,
            )


async def run_catch_up(app: GuestSyncApp, *, since: datetime | None = None) -> CatchUpResult:
    """One watermark-bounded catch-up run."""

    outcome = await catch_up(app.service, app.store, since=since)
    log_result(outcome.result)
    return outcome


async def run_sync_ids(app: GuestSyncApp, source_ids: Sequence[SourceId]) -> SyncResult:
    result = await app.service.process_batch(source_ids)
    log_result(result)
    return result


async def check_cache(app: GuestSyncApp) -> CacheStats:
    await app.service.detector.ensure_fresh()
    return app.service.cache_stats()


async def _catch_up_logged(app: GuestSyncApp) -> None:
    try:
        await run_catch_up(app)
    except (CrmError, SourceError):
        log.exception("Catch-up run failed; retrying at the next poll")


async def listen(
    app: GuestSyncApp,
    *,
    opera_config: OperaConfig | None = None,
    stop: asyncio.Event | None = None,
    feed_factory: FeedFactory | None = None,
) -> None:
    """Run the change feed and periodic catch-up until ``stop`` is set."""

    stop_event = stop or asyncio.Event()
    config = opera_config or get_opera_config()

    async def sync_batch(source_ids: Sequence[SourceId]) -> SyncResult:
        return await run_sync_ids(app, source_ids)

    coordinator = ChangeCaptureCoordinator(
        app.source.resolve_change_rows,
        sync_batch,
        debounce_seconds=app.sync_config.debounce_seconds,
    )
    if feed_factory is None:
        enable_thick_mode(optional_env("ORACLE_CLIENT_LIB_DIR"))
        feed = OracleChangeFeed(config, coordinator.on_notifications)
    else:
        feed = feed_factory(config, coordinator.on_notifications)

    await _catch_up_logged(app)
    await asyncio.to_thread(feed.start, asyncio.get_running_loop())
    log.info(
        "Listening for OPERA changes (debounce %ss, catch-up every %s min)",
        app.sync_config.debounce_seconds,
        app.sync_config.poll_interval_minutes,
    )
    try:
        while not stop_event.is_set():
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(
                    stop_event.wait(), timeout=app.sync_config.poll_interval_seconds
                )
            if not stop_event.is_set():
                await _catch_up_logged(app)
    finally:
        await asyncio.to_thread(feed.stop)
        await coordinator.close()
        log.info("Stopped listening for OPERA changes")
