"""
Match Records

A MatchRecord is the engine's observation that a bank line and a ledger
entry may be the same real-world payment.

DESIGN DECISION: Match records are append-only. Once created they are never
deleted; only `status`, `resolved_at` and `resolved_by` change, and each
change produces a new record value with the same id. Statutory record
retention depends on this.

CRITICAL: Only a human moves a match out of UNRESOLVED.
The engine NEVER auto-confirms.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from taxbook.models.ledger import EntryKind


POSSIBLE_CONFIDENCE = 0.30
"""
Confidence given to every POSSIBLE match.

This is a floor meaning "weak signal, human review required",
not a measured probability. Do not derive it from anything.
"""


class MatchTier(str, Enum):
    """
    Strength of a detected match, strongest first.

    LINKED describes a pair already connected on purpose. It is a
    pass-through classification and never appears in detection output.
    """
    LINKED = "LINKED"
    EXACT = "EXACT"
    LIKELY = "LIKELY"
    POSSIBLE = "POSSIBLE"

    @property
    def minimum_confidence(self) -> float:
        return _TIER_MINIMUM_CONFIDENCE[self]

    @property
    def display_name(self) -> str:
        return _TIER_DISPLAY_NAMES[self]

    @property
    def rank(self) -> int:
        """0 for the strongest tier."""
        return list(MatchTier).index(self)


_TIER_MINIMUM_CONFIDENCE = {
    MatchTier.LINKED: 1.0,
    MatchTier.EXACT: 1.0,
    MatchTier.LIKELY: 0.80,
    MatchTier.POSSIBLE: POSSIBLE_CONFIDENCE,
}

_TIER_DISPLAY_NAMES = {
    MatchTier.LINKED: "Linked",
    MatchTier.EXACT: "Exact match",
    MatchTier.LIKELY: "Likely match",
    MatchTier.POSSIBLE: "Possible match",
}


class MatchStatus(str, Enum):
    """
    Resolution status of a match.

    CONFIRMED and DISMISSED are terminal. A change of mind is a new
    record created by the review workflow, not a transition.
    """
    UNRESOLVED = "UNRESOLVED"   # Created by the engine, awaiting review
    CONFIRMED = "CONFIRMED"     # User says this is a genuine duplicate
    DISMISSED = "DISMISSED"     # User says these are different payments


class InvalidTransitionError(ValueError):
    """A resolution was attempted on a record that is already resolved."""

    def __init__(self, match_id: UUID, current: MatchStatus, target: MatchStatus):
        self.match_id = match_id
        self.current = current
        self.target = target
        super().__init__(
            f"Match {match_id} is {current.value} and cannot become {target.value}"
        )


class MatchRecord(BaseModel):
    """
    A detected duplicate candidate between one bank transaction
    and one ledger entry of the same business.
    """
    model_config = ConfigDict(frozen=True)

    # Identity
    id: UUID = Field(
        ...,
        description="Unique match ID"
    )
    bank_transaction_id: UUID
    ledger_entry_id: UUID
    ledger_entry_kind: EntryKind = Field(
        ...,
        description="INCOME or EXPENSE"
    )

    # Classification
    confidence: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        description="Certainty that both records are the same payment (0-1)"
    )
    tier: MatchTier

    # Resolution
    status: MatchStatus = MatchStatus.UNRESOLVED
    business_id: UUID
    created_at: datetime
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None

    @model_validator(mode='after')
    def validate_resolution_fields(self) -> 'MatchRecord':
        """Resolution fields exist exactly when the match is resolved."""
        if self.status == MatchStatus.UNRESOLVED:
            if self.resolved_at is not None or self.resolved_by is not None:
                raise ValueError("An unresolved match cannot carry resolution fields")
        elif self.resolved_at is None:
            raise ValueError(f"A {self.status.value} match requires resolved_at")
        return self

    @classmethod
    def create(
        cls,
        bank_transaction_id: UUID,
        ledger_entry_id: UUID,
        ledger_entry_kind: EntryKind,
        confidence: float,
        tier: MatchTier,
        business_id: UUID,
        now: datetime,
    ) -> 'MatchRecord':
        """Create a new UNRESOLVED match with a fresh id."""
        return cls(
            id=uuid4(),
            bank_transaction_id=bank_transaction_id,
            ledger_entry_id=ledger_entry_id,
            ledger_entry_kind=ledger_entry_kind,
            confidence=confidence,
            tier=tier,
            status=MatchStatus.UNRESOLVED,
            business_id=business_id,
            created_at=now,
        )

    @property
    def is_unresolved(self) -> bool:
        return self.status == MatchStatus.UNRESOLVED

    @property
    def is_confirmed(self) -> bool:
        return self.status == MatchStatus.CONFIRMED

    @property
    def is_dismissed(self) -> bool:
        return self.status == MatchStatus.DISMISSED

    @property
    def pair_key(self) -> tuple[UUID, UUID]:
        """The (bank transaction, ledger entry) pair this match is about."""
        return self.bank_transaction_id, self.ledger_entry_id

    def with_confirmed(self, resolved_at: datetime, resolved_by: Optional[str]) -> 'MatchRecord':
        """Return this match as CONFIRMED. The record itself is not changed."""
        return self._resolve(MatchStatus.CONFIRMED, resolved_at, resolved_by)

    def with_dismissed(self, resolved_at: datetime, resolved_by: Optional[str]) -> 'MatchRecord':
        """Return this match as DISMISSED. The record itself is not changed."""
        return self._resolve(MatchStatus.DISMISSED, resolved_at, resolved_by)

    def _resolve(
        self,
        target: MatchStatus,
        resolved_at: datetime,
        resolved_by: Optional[str],
    ) -> 'MatchRecord':
        if not self.is_unresolved:
            raise InvalidTransitionError(self.id, self.status, target)

        data = self.model_dump()
        data.update(
            status=target,
            resolved_at=resolved_at,
            resolved_by=resolved_by,
        )
        return MatchRecord.model_validate(data)
