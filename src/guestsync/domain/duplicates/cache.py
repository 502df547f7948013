"""TTL-bounded snapshot of CRM stay records used for duplicate detection.

The index is rebuilt wholesale and swapped in atomically; readers always see either
the previous complete index or the new one. A failed load installs an empty index
(fail-open) tagged as ``FALLBACK`` so callers can report degraded mode.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import timedelta
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING

from guestsync.domain.normalize import name_key, normalize_email
from guestsync.domain.types import CachedGuest, utcnow

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from datetime import datetime

    from guestsync.domain.types import Clock

log = logging.getLogger(__name__)

type GuestSnapshotLoader = Callable[[], Awaitable[list[CachedGuest]]]

DEFAULT_FALLBACK_RETRY_SECONDS = 60.0


@dataclass(frozen=True, slots=True)
class DuplicateCacheIndex:
    """Lookup structures derived from one snapshot of CRM stay records."""

    by_name: Mapping[str, tuple[CachedGuest, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    by_email: Mapping[str, CachedGuest] = field(default_factory=lambda: MappingProxyType({}))
    name_frequency: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    record_count: int = 0

    @classmethod
    def build(cls, records: Iterable[CachedGuest]) -> DuplicateCacheIndex:
        by_name: dict[str, list[CachedGuest]] = {}
        by_email: dict[str, CachedGuest] = {}
        frequency: dict[str, int] = {}
        count = 0
        for record in records:
            count += 1
            normalized = CachedGuest(
                email=normalize_email(record.email),
                first_name=record.first_name or "",
                last_name=record.last_name or "",
                city=record.city or "",
                state=record.state or "",
                country=record.country or "",
                check_in=record.check_in,
                check_out=record.check_out,
            )
            if normalized.email:
                by_email[normalized.email] = normalized
            key = name_key(normalized.first_name, normalized.last_name)
            if key is None:
                continue
            by_name.setdefault(key, []).append(normalized)
            frequency[key] = frequency.get(key, 0) + 1

        return cls(
            by_name=MappingProxyType({key: tuple(value) for key, value in by_name.items()}),
            by_email=MappingProxyType(by_email),
            name_frequency=MappingProxyType(frequency),
            record_count=count,
        )


class CacheStatus(StrEnum):
    FRESH = "fresh"
    FALLBACK = "fallback"


@dataclass(frozen=True, slots=True, kw_only=True)
class CacheLoad:
    """Outcome of a cache (re)build."""

    index: DuplicateCacheIndex
    status: CacheStatus
    loaded_at: datetime
    error: str | None = None

    @property
    def degraded(self) -> bool:
        return self.status is CacheStatus.FALLBACK


class DuplicateCache:
    """Owns the current index and decides when it must be rebuilt."""

    def __init__(
        self,
        loader: GuestSnapshotLoader,
        *,
        ttl_seconds: float,
        fallback_retry_seconds: float = DEFAULT_FALLBACK_RETRY_SECONDS,
        clock: Clock = utcnow,
    ) -> None:
        self._loader = loader
        self._ttl = timedelta(seconds=ttl_seconds)
        self._fallback_retry = timedelta(seconds=min(fallback_retry_seconds, ttl_seconds))
        self._clock = clock
        self._current: CacheLoad | None = None
        self._lock = asyncio.Lock()

    @property
    def current(self) -> CacheLoad | None:
        return self._current

    @property
    def ttl_seconds(self) -> float:
        return self._ttl.total_seconds()

    def stale(self) -> bool:
        current = self._current
        if current is None:
            return True
        age = self._clock() - current.loaded_at
        if current.degraded:
            return age >= self._fallback_retry
        return age > self._ttl

    def invalidate(self) -> None:
        self._current = None

    async def rebuild(self) -> CacheLoad:
        log.info("Refreshing CRM snapshot for duplicate detection...")
        try:
            records = await self._loader()
            index = DuplicateCacheIndex.build(records)
        except Exception as exc:  # noqa: BLE001
            log.error("Error refreshing duplicate-detection cache: %s", exc)
            load = CacheLoad(
                index=DuplicateCacheIndex(),
                status=CacheStatus.FALLBACK,
                loaded_at=self._clock(),
                error=str(exc),
            )
        else:
            log.info(
                "Cache built: %s records, %s unique names, %s emails",
                index.record_count,
                len(index.by_name),
                len(index.by_email),
            )
            load = CacheLoad(index=index, status=CacheStatus.FRESH, loaded_at=self._clock())
        self._current = load
        return load

    async def ensure_fresh(self) -> CacheLoad:
        async with self._lock:
            current = self._current
            if current is not None and not self.stale():
                return current
            return await self.rebuild()
