"""
Match Classifier

Compares one bank transaction with its same-day, same-direction ledger
candidates and classifies each pair into the first tier that applies:

    EXACT     exact amount + identical normalized description  -> 1.0
    LIKELY    exact amount + similarity >= 0.80                -> similarity
    POSSIBLE  amount within max(1%, 1.00)                      -> 0.30

A candidate is reported at one tier at most. Candidates do not compete:
several ledger entries may all match the same bank transaction, and the
user decides which one (if any) is the real duplicate.
"""

from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

from taxbook.models.ledger import BankTransactionView, LedgerEntryView
from taxbook.models.match import POSSIBLE_CONFIDENCE, MatchRecord, MatchTier
from taxbook.reconciliation.matching import (
    DEFAULT_RULES,
    MatchingRules,
    calculate_similarity,
    is_exact_amount,
    is_within_tolerance,
    normalize_description,
)


def classify_pair(
    bank_transaction: BankTransactionView,
    entry: LedgerEntryView,
    rules: MatchingRules = DEFAULT_RULES,
    bank_description: Optional[str] = None,
) -> Optional[tuple[MatchTier, float]]:
    """
    Classify a single pair. Returns (tier, confidence) or None.

    `bank_description` is the already-normalized bank description; pass it
    when classifying many candidates against one bank transaction.
    """
    if entry.is_linked_to(bank_transaction.id):
        # Intentional prior link, not a duplicate
        return None

    bank_amount = bank_transaction.absolute_amount

    if is_exact_amount(bank_amount, entry.amount):
        if bank_description is None:
            bank_description = normalize_description(bank_transaction.description)
        similarity = calculate_similarity(
            bank_description,
            normalize_description(entry.description),
        )
        if similarity == 1.0:
            return MatchTier.EXACT, 1.0
        if similarity >= rules.likely_threshold:
            return MatchTier.LIKELY, similarity

    # Exact amounts with dissimilar descriptions fall through to here
    if is_within_tolerance(bank_amount, entry.amount, rules):
        return MatchTier.POSSIBLE, POSSIBLE_CONFIDENCE

    return None


def classify_candidates(
    bank_transaction: BankTransactionView,
    candidates: Iterable[LedgerEntryView],
    business_id: UUID,
    now: datetime,
    rules: MatchingRules = DEFAULT_RULES,
) -> list[MatchRecord]:
    """
    Classify every candidate against one bank transaction.

    Candidates are expected to be pre-filtered by the engine (same business,
    same date, matching kind). Zero-amount transactions and self-linked
    candidates produce nothing.
    """
    if bank_transaction.direction is None:
        return []

    bank_description = normalize_description(bank_transaction.description)
    matches = []

    for entry in candidates:
        result = classify_pair(bank_transaction, entry, rules, bank_description)
        if result is None:
            continue
        tier, confidence = result
        matches.append(MatchRecord.create(
            bank_transaction_id=bank_transaction.id,
            ledger_entry_id=entry.id,
            ledger_entry_kind=entry.kind,
            confidence=confidence,
            tier=tier,
            business_id=business_id,
            now=now,
        ))

    return matches
