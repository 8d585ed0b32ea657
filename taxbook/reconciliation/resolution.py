"""
Match Resolution

Pure transition functions for the human review step:

    UNRESOLVED --confirm--> CONFIRMED   (genuine duplicate)
    UNRESOLVED --dismiss--> DISMISSED   (different payments)

Both return a new record and leave the input untouched. Persisting the
result is the caller's responsibility.
"""

from datetime import datetime
from typing import Optional

from taxbook.models.match import MatchRecord


def confirm(
    match: MatchRecord,
    resolved_at: datetime,
    resolved_by: Optional[str] = None,
) -> MatchRecord:
    """
    Mark a match as a genuine duplicate.

    Afterwards the bank transaction must not be promoted to a new ledger
    entry.

    Raises:
        InvalidTransitionError: If the match is already resolved
    """
    return match.with_confirmed(resolved_at, resolved_by)


def dismiss(
    match: MatchRecord,
    resolved_at: datetime,
    resolved_by: Optional[str] = None,
) -> MatchRecord:
    """
    Mark a match as not a duplicate.

    The bank transaction stays eligible for normal categorization and can
    be flagged again against other candidates.

    Raises:
        InvalidTransitionError: If the match is already resolved
    """
    return match.with_dismissed(resolved_at, resolved_by)
