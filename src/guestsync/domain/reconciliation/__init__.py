"""Create-only reconciliation protocol for guest identities and stays."""

from __future__ import annotations

from .conflicts import ConflictScan, SharedEmailGroup, scan_conflicts
from .contracts import (
    EmailStatus,
    EmailStatusKind,
    LikelyDuplicate,
    NeedsReviewItem,
    PhaseCounts,
    ReviewReason,
    SyncResult,
)
from .engine import ReconciliationEngine
from .identity import (
    IdentityPlan,
    IdentityResolution,
    classify_email_statuses,
    create_missing_identities,
    plan_identities,
)
from .stays import StayPlan, plan_stays, stay_fields

__all__ = [
    "ConflictScan",
    "EmailStatus",
    "EmailStatusKind",
    "IdentityPlan",
    "IdentityResolution",
    "LikelyDuplicate",
    "NeedsReviewItem",
    "PhaseCounts",
    "ReconciliationEngine",
    "ReviewReason",
    "SharedEmailGroup",
    "StayPlan",
    "SyncResult",
    "classify_email_statuses",
    "create_missing_identities",
    "plan_identities",
    "plan_stays",
    "scan_conflicts",
    "stay_fields",
]
