"""Duplicate detection: is an incoming guest a different-email copy of a CRM guest?"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from guestsync.domain.normalize import name_key, normalize_email
from guestsync.domain.types import utcnow

from .cache import DuplicateCache, DuplicateCacheIndex
from .scoring import score

if TYPE_CHECKING:
    from datetime import datetime

    from guestsync.domain.types import CachedGuest, Clock, CustomerData, InvoiceData

    from .cache import GuestSnapshotLoader

log = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 75


class MatchReason(StrEnum):
    DISABLED = "disabled"
    UPSERT = "upsert"
    NO_NAME = "no-name"
    NO_NAME_MATCH = "no-name-match"
    LOW_PROBABILITY = "low-probability"
    HIGH_PROBABILITY = "high-probability-match"


@dataclass(frozen=True, slots=True)
class ScoredCandidate:
    record: CachedGuest
    probability: int


@dataclass(frozen=True, slots=True, kw_only=True)
class MatchResult:
    is_duplicate: bool
    reason: MatchReason
    probability: int = 0
    matches: tuple[ScoredCandidate, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True, kw_only=True)
class CacheStats:
    enabled: bool
    threshold: int
    cached: bool
    degraded: bool = False
    record_count: int = 0
    name_count: int = 0
    email_count: int = 0
    last_refresh: datetime | None = None
    ttl_seconds: float = 0.0


def match_against_index(
    index: DuplicateCacheIndex,
    customer: CustomerData,
    invoice: InvoiceData | None,
    *,
    threshold: int = DEFAULT_THRESHOLD,
) -> MatchResult:
    """Pure decision sequence over one cache snapshot."""

    email = normalize_email(customer.email)
    if email and email in index.by_email:
        return MatchResult(is_duplicate=False, reason=MatchReason.UPSERT)

    key = name_key(customer.first_name, customer.last_name)
    if key is None:
        return MatchResult(is_duplicate=False, reason=MatchReason.NO_NAME)

    same_name = index.by_name.get(key, ())
    if not same_name:
        return MatchResult(is_duplicate=False, reason=MatchReason.NO_NAME_MATCH)

    frequency = index.name_frequency.get(key, 1)
    qualifying: list[ScoredCandidate] = []
    for cached in same_name:
        if cached.email and cached.email == email:
            continue
        probability = score(customer, invoice, cached, frequency)
        if probability >= threshold:
            qualifying.append(ScoredCandidate(record=cached, probability=probability))

    if not qualifying:
        return MatchResult(is_duplicate=False, reason=MatchReason.LOW_PROBABILITY)

    return MatchResult(
        is_duplicate=True,
        reason=MatchReason.HIGH_PROBABILITY,
        probability=max(candidate.probability for candidate in qualifying),
        matches=tuple(qualifying),
    )


class DuplicateDetector:
    """Gatekeeper in front of reconciliation backed by a TTL cache of CRM stays."""

    def __init__(
        self,
        cache: DuplicateCache,
        *,
        enabled: bool = True,
        threshold: int = DEFAULT_THRESHOLD,
    ) -> None:
        self.cache = cache
        self.enabled = enabled
        self.threshold = threshold

    @classmethod
    def from_loader(
        cls,
        loader: GuestSnapshotLoader,
        *,
        ttl_seconds: float,
        enabled: bool = True,
        threshold: int = DEFAULT_THRESHOLD,
        clock: Clock | None = None,
    ) -> DuplicateDetector:
        cache = DuplicateCache(loader, ttl_seconds=ttl_seconds, clock=clock or utcnow)
        return cls(cache, enabled=enabled, threshold=threshold)

    async def ensure_fresh(self) -> bool:
        """Load the snapshot when absent or expired; False when running degraded."""

        if not self.enabled:
            return False
        load = await self.cache.ensure_fresh()
        if load.degraded:
            log.warning("Duplicate detection degraded: running with an empty cache (%s)", load.error)
        return not load.degraded

    async def check(self, customer: CustomerData, invoice: InvoiceData | None = None) -> MatchResult:
        if not self.enabled:
            return MatchResult(is_duplicate=False, reason=MatchReason.DISABLED)
        load = await self.cache.ensure_fresh()
        return match_against_index(load.index, customer, invoice, threshold=self.threshold)

    def stats(self) -> CacheStats:
        current = self.cache.current
        if current is None:
            return CacheStats(
                enabled=self.enabled,
                threshold=self.threshold,
                cached=False,
                ttl_seconds=self.cache.ttl_seconds,
            )
        index = current.index
        return CacheStats(
            enabled=self.enabled,
            threshold=self.threshold,
            cached=True,
            degraded=current.degraded,
            record_count=index.record_count,
            name_count=len(index.by_name),
            email_count=len(index.by_email),
            last_refresh=current.loaded_at,
            ttl_seconds=self.cache.ttl_seconds,
        )
