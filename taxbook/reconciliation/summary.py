"""
Reconciliation Summary

Counts for the review dashboard: how many matches of each tier and status,
and whether anything is still waiting for the user.
"""

from typing import Iterable

from pydantic import BaseModel, Field

from taxbook.models.match import MatchRecord, MatchStatus, MatchTier


class ReconciliationSummary(BaseModel):
    """Totals over a set of match records."""

    total: int = Field(ge=0)
    by_tier: dict[MatchTier, int] = Field(default_factory=dict)
    by_status: dict[MatchStatus, int] = Field(default_factory=dict)

    @property
    def unresolved_count(self) -> int:
        return self.by_status.get(MatchStatus.UNRESOLVED, 0)

    @property
    def confirmed_count(self) -> int:
        return self.by_status.get(MatchStatus.CONFIRMED, 0)

    @property
    def dismissed_count(self) -> int:
        return self.by_status.get(MatchStatus.DISMISSED, 0)

    @property
    def has_duplicates(self) -> bool:
        """Are there matches the user still has to review?"""
        return self.unresolved_count > 0

    @property
    def is_all_clear(self) -> bool:
        return not self.has_duplicates

    def tier_counts(self) -> dict[str, int]:
        """Tier counts keyed by tier name, for logs and audit details."""
        return {tier.value: count for tier, count in self.by_tier.items()}


def summarize(matches: Iterable[MatchRecord]) -> ReconciliationSummary:
    by_tier = {tier: 0 for tier in MatchTier if tier != MatchTier.LINKED}
    by_status = {status: 0 for status in MatchStatus}
    total = 0

    for match in matches:
        total += 1
        by_tier[match.tier] = by_tier.get(match.tier, 0) + 1
        by_status[match.status] += 1

    return ReconciliationSummary(total=total, by_tier=by_tier, by_status=by_status)
