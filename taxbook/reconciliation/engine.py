"""
Reconciliation Engine

Finds bank transactions that duplicate manually entered income or expense
records of the same business.

GUARANTEES:
- Pure and deterministic for a fixed `now`: no I/O, no hidden state
- Never modifies a bank transaction or a ledger entry
- Every comparison is scoped to one business id
- Direction-aware: money in is compared with income, money out with expenses
- A bad input aborts the whole run; there is no partial output

Running twice over the same inputs gives the same (bank transaction,
ledger entry, tier) set with new match ids and timestamps. The engine does
not know about matches from earlier runs; de-duplicating against stored
matches is the caller's job (see ReconciliationFlow).
"""

from collections import defaultdict
from datetime import date, datetime
from typing import Iterable, Optional
from uuid import UUID

from taxbook.models.ledger import (
    BankTransactionView,
    EntryKind,
    LedgerEntryView,
)
from taxbook.models.match import MatchRecord
from taxbook.reconciliation.classifier import classify_candidates
from taxbook.reconciliation.matching import DEFAULT_RULES, MatchingRules


class CandidateIndex:
    """
    Ledger entries of one business, indexed by (kind, date).

    Built once per run so each bank transaction only looks at entries
    of its own day and direction.
    """

    def __init__(self, business_id: UUID, entries: Iterable[LedgerEntryView]):
        self._business_id = business_id
        self._by_day: dict[tuple[EntryKind, date], list[LedgerEntryView]] = defaultdict(list)
        for entry in entries:
            if entry.business_id != business_id:
                continue
            self._by_day[(entry.kind, entry.date)].append(entry)

    def candidates_for(self, bank_transaction: BankTransactionView) -> list[LedgerEntryView]:
        """
        Same-day entries of the kind matching the transaction's direction,
        minus entries already linked to this very transaction.
        """
        kind = bank_transaction.direction
        if kind is None:
            return []
        return [
            entry
            for entry in self._by_day.get((kind, bank_transaction.date), [])
            if not entry.is_linked_to(bank_transaction.id)
        ]

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._by_day.values())


def is_eligible(bank_transaction: BankTransactionView, business_id: UUID) -> bool:
    """
    Can this bank transaction be a duplicate candidate at all?

    Not when it belongs to another business, has already been promoted to
    a ledger entry, is excluded from the books, or moves no money.
    """
    if bank_transaction.business_id != business_id:
        return False
    if bank_transaction.is_linked:
        return False
    if bank_transaction.is_excluded:
        return False
    return bank_transaction.direction is not None


def reconcile(
    bank_transactions: Optional[Iterable[BankTransactionView]],
    income_entries: Optional[Iterable[LedgerEntryView]],
    expense_entries: Optional[Iterable[LedgerEntryView]],
    business_id: Optional[UUID],
    now: datetime,
    rules: Optional[MatchingRules] = None,
) -> list[MatchRecord]:
    """
    Detect duplicate candidates for one business.

    Args:
        bank_transactions: Imported bank lines to check
        income_entries: Manually entered income records
        expense_entries: Manually entered expense records
        business_id: Business every input and output must belong to
        now: Creation timestamp for every returned match
        rules: Matching thresholds; production defaults when None

    Returns:
        New UNRESOLVED matches, in bank transaction order

    Raises:
        ValueError: If business_id is None, or if a match fails validation
    """
    if business_id is None:
        raise ValueError("business_id cannot be None")
    if not bank_transactions:
        return []

    rules = rules or DEFAULT_RULES
    index = CandidateIndex(
        business_id,
        [*(income_entries or []), *(expense_entries or [])],
    )

    all_matches: list[MatchRecord] = []
    for bank_transaction in bank_transactions:
        if not is_eligible(bank_transaction, business_id):
            continue
        all_matches.extend(classify_candidates(
            bank_transaction,
            index.candidates_for(bank_transaction),
            business_id,
            now,
            rules,
        ))

    return all_matches
