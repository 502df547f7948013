"""Identity phases of the reconciliation protocol.

Phase 1 classifies every email of the batch against a live CRM lookup and decides
which entries may proceed. Phase 2 creates the identities that do not exist yet.
Existing identities are never modified here: a stale or wrongly attributed source
record must not be able to rename somebody else's contact.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from guestsync.domain.normalize import customer_identity_name, identity_name, normalize_email
from guestsync.domain.types import IdentityDraft

from .contracts import EmailStatus, EmailStatusKind, NeedsReviewItem, ReviewReason

if TYPE_CHECKING:
    from collections.abc import Iterable

    from guestsync.domain.ports import CrmGateway
    from guestsync.domain.types import IdentityId, IdentityRecord, SyncEntry

    from .conflicts import ConflictScan

log = logging.getLogger(__name__)


def classify_email_statuses(
    emails: Iterable[str],
    identities: Iterable[IdentityRecord],
) -> dict[str, EmailStatus]:
    """Map each email to new / exists / ambiguous from the lookup results."""

    matches: dict[str, dict[IdentityId, IdentityRecord]] = {
        normalize_email(email): {} for email in emails
    }
    for identity in identities:
        bucket = matches.get(normalize_email(identity.email))
        if bucket is not None:
            bucket.setdefault(identity.id, identity)

    statuses: dict[str, EmailStatus] = {}
    for email, found in matches.items():
        candidates = tuple(found.values())
        if not candidates:
            statuses[email] = EmailStatus.new()
        elif len(candidates) == 1:
            statuses[email] = EmailStatus.exists(candidates[0])
        else:
            statuses[email] = EmailStatus.ambiguous(candidates)
    return statuses


@dataclass(slots=True)
class IdentityPlan:
    """Entries cleared for writing, grouped by email, plus everything held back."""

    statuses: dict[str, EmailStatus]
    eligible: dict[str, list[SyncEntry]] = field(default_factory=dict[str, list["SyncEntry"]])
    review: list[NeedsReviewItem] = field(default_factory=list[NeedsReviewItem])
    excluded: list[SyncEntry] = field(default_factory=list["SyncEntry"])

    def new_emails(self) -> list[str]:
        return [
            email
            for email in self.eligible
            if self.statuses[email].kind is EmailStatusKind.NEW
        ]

    def flag(self, entries: Iterable[SyncEntry], reason: ReviewReason, detail: str) -> None:
        self.review.extend(
            NeedsReviewItem(entry=entry, reason=reason, detail=detail) for entry in entries
        )


def plan_identities(scan: ConflictScan, statuses: dict[str, EmailStatus]) -> IdentityPlan:
    plan = IdentityPlan(statuses=statuses)
    for email, entries in scan.by_email.items():
        status = statuses[email]
        if scan.is_shared(email) and status.kind is not EmailStatusKind.AMBIGUOUS:
            _resolve_shared_email(plan, email, entries, status)
            continue
        if status.kind is EmailStatusKind.AMBIGUOUS:
            ids = ", ".join(candidate.id for candidate in status.candidates)
            log.warning("Email %s matches %s CRM identities", email, len(status.candidates))
            plan.flag(
                entries,
                ReviewReason.AMBIGUOUS_IDENTITY,
                f"{len(status.candidates)} CRM identities share {email}: {ids}",
            )
            continue
        plan.eligible[email] = entries
    return plan


def _resolve_shared_email(
    plan: IdentityPlan,
    email: str,
    entries: list[SyncEntry],
    status: EmailStatus,
) -> None:
    names = " / ".join(_display_name(entry) for entry in entries)
    identity = status.identity
    if identity is None:
        log.warning("Shared email %s used by new guests %s", email, names)
        plan.flag(
            entries,
            ReviewReason.SHARED_EMAIL_NEW_CONTACT,
            f"{email} is used by different guests in one batch: {names}",
        )
        return

    crm_name = identity_name(identity.first_name, identity.last_name)
    survivors = [entry for entry in entries if customer_identity_name(entry.customer) == crm_name]
    if not survivors:
        log.warning(
            "Shared email %s: no guest matches CRM identity %s %s",
            email,
            identity.first_name,
            identity.last_name,
        )
        plan.flag(
            entries,
            ReviewReason.SHARED_EMAIL_NAME_MISMATCH,
            f"{email} belongs to {identity.first_name} {identity.last_name} "
            f"({identity.id}); batch names: {names}",
        )
        return

    excluded = [entry for entry in entries if customer_identity_name(entry.customer) != crm_name]
    for entry in excluded:
        log.info(
            "Shared email %s: skipping %s, identity belongs to %s %s",
            email,
            _display_name(entry),
            identity.first_name,
            identity.last_name,
        )
    plan.eligible[email] = survivors
    plan.excluded.extend(excluded)


def _display_name(entry: SyncEntry) -> str:
    return f"{entry.customer.first_name} {entry.customer.last_name}".strip()


def identity_draft(entry: SyncEntry) -> IdentityDraft:
    customer = entry.customer
    return IdentityDraft(
        email=customer.email.strip(),
        first_name=customer.first_name,
        last_name=customer.last_name,
        phone=customer.phone,
    )


@dataclass(slots=True)
class IdentityResolution:
    identity_ids: dict[str, IdentityId] = field(default_factory=dict[str, "IdentityId"])
    created: int = 0
    failed: int = 0
    review: list[NeedsReviewItem] = field(default_factory=list[NeedsReviewItem])


async def create_missing_identities(gateway: CrmGateway, plan: IdentityPlan) -> IdentityResolution:
    """Create one identity per new email from its first eligible entry."""

    resolution = IdentityResolution()
    for email in plan.eligible:
        identity_id = plan.statuses[email].identity_id
        if identity_id is not None:
            resolution.identity_ids[email] = identity_id

    new_emails = plan.new_emails()
    if not new_emails:
        return resolution

    drafts = [identity_draft(plan.eligible[email][0]) for email in new_emails]
    outcomes = await gateway.create_identities(drafts)
    for email, outcome in zip(new_emails, outcomes, strict=True):
        if outcome.success and outcome.record_id:
            resolution.identity_ids[email] = outcome.record_id
            resolution.created += 1
            continue
        resolution.failed += 1
        error = outcome.error or "no id returned"
        log.error("Failed to create identity for %s: %s", email, error)
        resolution.review.extend(
            NeedsReviewItem(entry=entry, reason=ReviewReason.IDENTITY_CREATE_FAILED, detail=error)
            for entry in plan.eligible[email]
        )
    return resolution
