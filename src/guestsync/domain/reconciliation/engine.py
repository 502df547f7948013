"""Orchestrator for the reconciliation protocol.

The run is strictly sequential: the conflict pre-scan, then identity lookup
(phase 1), identity creation (phase 2) and stay upsert (phase 3). Each phase needs
the identity ids resolved by the one before. ``CrmError`` raised by the gateway
aborts the run; per-record rejections become review items and the run continues.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .conflicts import scan_conflicts
from .contracts import ReviewReason, SyncResult
from .identity import classify_email_statuses, create_missing_identities, plan_identities
from .stays import plan_stays

if TYPE_CHECKING:
    from collections.abc import Sequence

    from guestsync.domain.ports import CrmGateway
    from guestsync.domain.types import IdentityId, SyncEntry, WriteOutcome

    from .stays import StayPlan

log = logging.getLogger(__name__)


@dataclass(slots=True)
class ReconciliationEngine:
    """Create-only identity and stay-record sync against one CRM gateway."""

    gateway: CrmGateway

    async def reconcile(self, entries: Sequence[SyncEntry]) -> SyncResult:
        result = SyncResult()
        if not entries:
            return result

        scan = scan_conflicts(entries)
        for entry in scan.without_email:
            log.warning("Skipping guest %s: no email", entry.customer.source_id)
        result.skipped += len(scan.without_email)
        if scan.shared:
            log.info("Pre-scan found %s shared-email groups", len(scan.shared))
        if not scan.by_email:
            return result

        # Phase 1: live identity lookup, never cached.
        identities = await self.gateway.find_identities_by_email(scan.emails)
        statuses = classify_email_statuses(scan.emails, identities)
        plan = plan_identities(scan, statuses)
        result.needs_review.extend(plan.review)
        result.skipped += len(plan.excluded)

        # Phase 2: create-only.
        resolution = await create_missing_identities(self.gateway, plan)
        result.identities.created = resolution.created
        result.identities.failed = resolution.failed
        result.identities.unchanged = len(plan.eligible) - len(plan.new_emails())
        result.needs_review.extend(resolution.review)

        # Phase 3: stay upsert.
        pairs: list[tuple[SyncEntry, IdentityId]] = [
            (entry, resolution.identity_ids[email])
            for email, group in plan.eligible.items()
            if email in resolution.identity_ids
            for entry in group
        ]
        if pairs:
            identity_ids = list(dict.fromkeys(identity_id for _, identity_id in pairs))
            existing = await self.gateway.find_stays_for_identities(identity_ids)
            stay_plan = plan_stays(pairs, existing)
            if stay_plan.dropped:
                log.debug("Dropped %s repeated identity/check-in pairs", stay_plan.dropped)
            result.stays.unchanged = stay_plan.unchanged
            await self._write_stays(stay_plan, result)

        log.info(
            "Reconciliation: identities %s created / %s failed; "
            "stays %s created / %s updated / %s unchanged / %s failed; %s need review",
            result.identities.created,
            result.identities.failed,
            result.stays.created,
            result.stays.updated,
            result.stays.unchanged,
            result.stays.failed,
            len(result.needs_review),
        )
        return result

    async def _write_stays(self, plan: StayPlan, result: SyncResult) -> None:
        if plan.creates:
            outcomes = await self.gateway.create_stays([draft for _, draft in plan.creates])
            result.stays.created += self._collect(
                [entry for entry, _ in plan.creates], outcomes, result
            )
        if plan.updates:
            outcomes = await self.gateway.update_stays([update for _, update in plan.updates])
            result.stays.updated += self._collect(
                [entry for entry, _ in plan.updates], outcomes, result
            )

    @staticmethod
    def _collect(
        entries: list[SyncEntry],
        outcomes: list[WriteOutcome],
        result: SyncResult,
    ) -> int:
        written = 0
        for entry, outcome in zip(entries, outcomes, strict=True):
            if outcome.success:
                written += 1
                continue
            result.stays.failed += 1
            error = outcome.error or "unknown error"
            log.error("Stay sync failed for %s: %s", entry.customer.email, error)
            result.flag(entry, ReviewReason.STAY_SYNC_FAILED, error)
        return written
