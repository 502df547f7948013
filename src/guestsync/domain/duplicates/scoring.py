"""Fixed, explainable scoring rules for "same guest?" decisions.

Each signal contributes an independent number of points; the maxima add up to 100
so the probability is the raw point total.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from guestsync.domain.normalize import email_domain, same_text

if TYPE_CHECKING:
    from datetime import date

    from guestsync.domain.types import CachedGuest, CustomerData, InvoiceData

NAME_RARITY_POINTS = 30
CITY_POINTS = 20
COUNTRY_POINTS = 10
STATE_POINTS = 5
EMAIL_DOMAIN_POINTS = 15
CHECK_IN_POINTS = 20
MAX_POINTS = (
    NAME_RARITY_POINTS
    + CITY_POINTS
    + COUNTRY_POINTS
    + STATE_POINTS
    + EMAIL_DOMAIN_POINTS
    + CHECK_IN_POINTS
)


@dataclass(frozen=True, slots=True, kw_only=True)
class ScoreBreakdown:
    name_rarity: int = 0
    city: int = 0
    country: int = 0
    state: int = 0
    email_domain: int = 0
    check_in: int = 0

    @property
    def points(self) -> int:
        return (
            self.name_rarity
            + self.city
            + self.country
            + self.state
            + self.email_domain
            + self.check_in
        )

    @property
    def probability(self) -> int:
        return round(self.points / MAX_POINTS * 100)


def name_rarity_points(frequency: int) -> int:
    if frequency <= 1:
        return 30
    if frequency == 2:
        return 22
    if frequency <= 5:
        return 12
    if frequency <= 10:
        return 5
    return 0


def check_in_points(candidate: date | None, cached: date | None) -> int:
    if candidate is None or cached is None:
        return 0
    days = abs((candidate - cached).days)
    if days == 0:
        return 20
    if days <= 3:
        return 15
    if days <= 14:
        return 8
    if days <= 60:
        return 3
    return 0


def score_breakdown(
    customer: CustomerData,
    invoice: InvoiceData | None,
    cached: CachedGuest,
    name_frequency: int,
) -> ScoreBreakdown:
    candidate_domain = email_domain(customer.email)
    cached_domain = email_domain(cached.email)
    return ScoreBreakdown(
        name_rarity=name_rarity_points(name_frequency),
        city=CITY_POINTS if same_text(customer.billing_city, cached.city) else 0,
        country=COUNTRY_POINTS if same_text(customer.billing_country, cached.country) else 0,
        state=STATE_POINTS if same_text(customer.billing_state, cached.state) else 0,
        email_domain=EMAIL_DOMAIN_POINTS
        if candidate_domain and candidate_domain == cached_domain
        else 0,
        check_in=check_in_points(invoice.check_in if invoice else None, cached.check_in),
    )


def score(
    customer: CustomerData,
    invoice: InvoiceData | None,
    cached: CachedGuest,
    name_frequency: int,
) -> int:
    """Probability (0-100) that ``customer`` is the same person as ``cached``."""

    return score_breakdown(customer, invoice, cached, name_frequency).probability
