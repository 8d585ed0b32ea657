"""
Data Models Package

This package contains all Pydantic models used by the reconciliation core.
Every record crossing a component boundary conforms to these schemas.
"""

from taxbook.models.ledger import (
    BankTransactionView,
    EntryKind,
    ExpenseEntry,
    IncomeEntry,
    LedgerEntry,
    LedgerEntryView,
    ReviewStatus,
)
from taxbook.models.match import (
    POSSIBLE_CONFIDENCE,
    InvalidTransitionError,
    MatchRecord,
    MatchStatus,
    MatchTier,
)
from taxbook.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Input views
    "BankTransactionView",
    "EntryKind",
    "ExpenseEntry",
    "IncomeEntry",
    "LedgerEntry",
    "LedgerEntryView",
    "ReviewStatus",
    # Match models
    "POSSIBLE_CONFIDENCE",
    "InvalidTransitionError",
    "MatchRecord",
    "MatchStatus",
    "MatchTier",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
