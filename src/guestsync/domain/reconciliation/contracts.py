"""Shared reconciliation contract components.

This module intentionally holds only:
- per-email identity status values
- review items and reason codes
- the run-level result structure returned to callers
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from guestsync.domain.duplicates import MatchResult
    from guestsync.domain.screening import ScreeningResult
    from guestsync.domain.types import IdentityId, IdentityRecord, SyncEntry


class EmailStatusKind(StrEnum):
    """Outcome of the live CRM identity lookup for one email."""

    NEW = "new"
    EXISTS = "exists"
    AMBIGUOUS = "ambiguous"


@dataclass(frozen=True, slots=True, kw_only=True)
class EmailStatus:
    kind: EmailStatusKind
    identity: IdentityRecord | None = None
    candidates: tuple[IdentityRecord, ...] = ()

    @classmethod
    def new(cls) -> EmailStatus:
        return cls(kind=EmailStatusKind.NEW)

    @classmethod
    def exists(cls, identity: IdentityRecord) -> EmailStatus:
        return cls(kind=EmailStatusKind.EXISTS, identity=identity, candidates=(identity,))

    @classmethod
    def ambiguous(cls, candidates: tuple[IdentityRecord, ...]) -> EmailStatus:
        if len(candidates) < 2:
            raise ValueError("Ambiguous status requires at least two candidates")
        return cls(kind=EmailStatusKind.AMBIGUOUS, candidates=candidates)

    @property
    def identity_id(self) -> IdentityId | None:
        return self.identity.id if self.identity is not None else None


class ReviewReason(StrEnum):
    """Why an entry was surfaced to a human instead of written."""

    SHARED_EMAIL_NAME_MISMATCH = "shared-email-name-mismatch"
    SHARED_EMAIL_NEW_CONTACT = "shared-email-in-batch"
    AMBIGUOUS_IDENTITY = "multiple-crm-identities"
    IDENTITY_CREATE_FAILED = "identity-create-failed"
    STAY_SYNC_FAILED = "stay-sync-failed"


@dataclass(frozen=True, slots=True, kw_only=True)
class NeedsReviewItem:
    entry: SyncEntry
    reason: ReviewReason
    detail: str = ""

    @property
    def email(self) -> str:
        return self.entry.customer.email


@dataclass(frozen=True, slots=True, kw_only=True)
class LikelyDuplicate:
    """Entry held back because it probably duplicates an existing CRM guest."""

    entry: SyncEntry
    match: MatchResult


@dataclass(slots=True)
class PhaseCounts:
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0


@dataclass(slots=True)
class SyncResult:
    """Outcome of one reconciliation run."""

    identities: PhaseCounts = field(default_factory=PhaseCounts)
    stays: PhaseCounts = field(default_factory=PhaseCounts)
    needs_review: list[NeedsReviewItem] = field(default_factory=list[NeedsReviewItem])
    skipped: int = 0
    likely_duplicates: list[LikelyDuplicate] = field(default_factory=list[LikelyDuplicate])
    screening: ScreeningResult | None = None

    @property
    def success(self) -> int:
        """Stay records written (created or updated)."""

        return self.stays.created + self.stays.updated

    @property
    def failed(self) -> int:
        return self.identities.failed + self.stays.failed

    @property
    def all_failed(self) -> bool:
        """Nothing was written and at least one write failed."""

        return self.success == 0 and self.failed > 0

    @property
    def writes(self) -> int:
        return (
            self.identities.created
            + self.identities.updated
            + self.stays.created
            + self.stays.updated
        )

    def flag(self, entry: SyncEntry, reason: ReviewReason, detail: str = "") -> None:
        self.needs_review.append(NeedsReviewItem(entry=entry, reason=reason, detail=detail))
