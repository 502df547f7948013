"""Conflict pre-scan for one reconciliation batch.

Responsibilities of this stage:
- group entries by lowercased email, keeping first-seen order
- detect shared-email groups (two or more distinct person names)
- set aside entries that carry no email at all

No CRM access happens here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from guestsync.domain.normalize import customer_identity_name

if TYPE_CHECKING:
    from collections.abc import Iterable

    from guestsync.domain.types import SyncEntry


@dataclass(frozen=True, slots=True)
class SharedEmailGroup:
    """Entries of one batch that share an email but not a person."""

    email: str
    entries: tuple[SyncEntry, ...]

    @property
    def names(self) -> tuple[tuple[str, str], ...]:
        return tuple(dict.fromkeys(customer_identity_name(entry.customer) for entry in self.entries))


@dataclass(slots=True)
class ConflictScan:
    by_email: dict[str, list[SyncEntry]] = field(default_factory=dict[str, list["SyncEntry"]])
    shared: dict[str, SharedEmailGroup] = field(default_factory=dict[str, SharedEmailGroup])
    without_email: list[SyncEntry] = field(default_factory=list["SyncEntry"])

    @property
    def emails(self) -> list[str]:
        return list(self.by_email)

    def is_shared(self, email: str) -> bool:
        return email in self.shared


def scan_conflicts(entries: Iterable[SyncEntry]) -> ConflictScan:
    scan = ConflictScan()
    for entry in entries:
        email = entry.email_key
        if not email:
            scan.without_email.append(entry)
            continue
        scan.by_email.setdefault(email, []).append(entry)

    for email, group in scan.by_email.items():
        shared = SharedEmailGroup(email=email, entries=tuple(group))
        if len(shared.names) > 1:
            scan.shared[email] = shared
    return scan
