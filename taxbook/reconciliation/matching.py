"""
Matching Primitives

Description normalization, description similarity and amount comparison.
Everything here is pure: no I/O, no state.

Amounts are compared as absolute values at 2-decimal currency precision.
Bank amounts are signed while ledger amounts are not, so -45.00 on the
statement and 45.00 in the ledger are the same amount.
"""

import re
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from rapidfuzz.distance import Levenshtein

from taxbook.config.settings import ReconciliationSettings


LIKELY_THRESHOLD = 0.80
TOLERANCE_RATE = Decimal("0.01")
TOLERANCE_FLOOR = Decimal("1.00")

_CENT = Decimal("0.01")
_NON_WORD = re.compile(r"[^\w\s]|_")
_WHITESPACE = re.compile(r"\s+")


class MatchingRules(BaseModel):
    """
    Numeric rules used to classify a candidate pair.

    Defaults are the production values. Tests and the review workflow may
    pass their own rules, built from settings.
    """
    model_config = ConfigDict(frozen=True)

    likely_threshold: float = Field(default=LIKELY_THRESHOLD, gt=0.0, lt=1.0)
    tolerance_rate: Decimal = Field(default=TOLERANCE_RATE, ge=0, le=1)
    tolerance_floor: Decimal = Field(default=TOLERANCE_FLOOR, ge=0)

    @classmethod
    def from_settings(cls, settings: ReconciliationSettings) -> 'MatchingRules':
        return cls(
            likely_threshold=settings.likely_threshold,
            tolerance_rate=settings.tolerance_rate,
            tolerance_floor=settings.tolerance_floor,
        )


DEFAULT_RULES = MatchingRules()


def normalize_description(text: Optional[str]) -> str:
    """
    Canonicalize a free-text description for comparison.

    Lower-cases, removes anything that is neither alphanumeric nor
    whitespace, collapses whitespace runs and trims.

        "TESCO STORES 1234" -> "tesco stores 1234"
        "Tesco  Stores 1234." -> "tesco stores 1234"
    """
    if not text:
        return ""
    lowered = text.lower()
    stripped = _NON_WORD.sub("", lowered)
    return _WHITESPACE.sub(" ", stripped).strip()


def calculate_similarity(a: Optional[str], b: Optional[str]) -> float:
    """
    Similarity of two normalized descriptions, from 0.0 to 1.0.

    1 - levenshtein(a, b) / max(len(a), len(b)). Two empty strings are
    identical (1.0); one empty string against a non-empty one scores 0.0.
    """
    a = a or ""
    b = b or ""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - Levenshtein.distance(a, b) / longest


def _to_cents(amount: Decimal) -> Decimal:
    try:
        return abs(Decimal(amount)).quantize(_CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise ValueError(f"Amount {amount} cannot be expressed in cents") from e


def is_exact_amount(a: Optional[Decimal], b: Optional[Decimal]) -> bool:
    """True when both absolute amounts are equal to the cent."""
    if a is None or b is None:
        return False
    return _to_cents(a) == _to_cents(b)


def is_within_tolerance(
    a: Optional[Decimal],
    b: Optional[Decimal],
    rules: MatchingRules = DEFAULT_RULES,
) -> bool:
    """
    True when the absolute amounts differ by at most the tolerance.

    Tolerance is max(|b| * 1%, 1.00): `b` is the ledger amount, so small
    ledger amounts get the flat 1.00 floor and large ones get 1%.
    """
    if a is None or b is None:
        return False
    bank = _to_cents(a)
    ledger = _to_cents(b)
    tolerance = max(ledger * rules.tolerance_rate, rules.tolerance_floor)
    return abs(bank - ledger) <= tolerance


def create_exact_key(entry_date: date, amount: Decimal, description: Optional[str]) -> str:
    """
    Build the lookup key import de-duplication uses for its fast path.

    "2025-06-15|100|payment for goods". Trailing zeros are dropped from
    the amount so 100.00 and 100 give the same key.
    """
    plain = abs(Decimal(amount)).normalize()
    # normalize() turns 100 into 1E+2
    amount_text = format(plain, "f")
    return f"{entry_date.isoformat()}|{amount_text}|{normalize_description(description)}"
