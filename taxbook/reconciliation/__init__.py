"""Reconciliation package: duplicate detection between bank lines and ledger entries."""

from taxbook.reconciliation.classifier import classify_candidates, classify_pair
from taxbook.reconciliation.engine import CandidateIndex, is_eligible, reconcile
from taxbook.reconciliation.matching import (
    DEFAULT_RULES,
    LIKELY_THRESHOLD,
    TOLERANCE_FLOOR,
    TOLERANCE_RATE,
    MatchingRules,
    calculate_similarity,
    create_exact_key,
    is_exact_amount,
    is_within_tolerance,
    normalize_description,
)
from taxbook.reconciliation.resolution import confirm, dismiss
from taxbook.reconciliation.summary import ReconciliationSummary, summarize

__all__ = [
    # Engine
    "CandidateIndex",
    "classify_candidates",
    "classify_pair",
    "is_eligible",
    "reconcile",
    # Matching primitives
    "DEFAULT_RULES",
    "LIKELY_THRESHOLD",
    "TOLERANCE_FLOOR",
    "TOLERANCE_RATE",
    "MatchingRules",
    "calculate_similarity",
    "create_exact_key",
    "is_exact_amount",
    "is_within_tolerance",
    "normalize_description",
    # Resolution
    "confirm",
    "dismiss",
    # Summary
    "ReconciliationSummary",
    "summarize",
]
