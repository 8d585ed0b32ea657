"""
Input Views for Reconciliation

These models describe the records the reconciliation engine reads:
bank lines imported from statements and ledger entries typed in by hand.

DESIGN DECISION: The views are frozen. Reconciliation only ever reads them;
promotion, categorization and exclusion are owned by other services.

Ledger entries are a tagged union. IncomeEntry and ExpenseEntry share one
field set and differ only in their fixed `kind`, so candidate selection can
be written once and parameterized by the tag.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class EntryKind(str, Enum):
    """Kind of a manually entered ledger record."""
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class ReviewStatus(str, Enum):
    """
    Review status of an imported bank line.

    Only EXCLUDED matters to reconciliation: excluded lines are not part
    of the books and are never compared.
    """
    PENDING = "PENDING"
    CATEGORIZED = "CATEGORIZED"
    SKIPPED = "SKIPPED"
    EXCLUDED = "EXCLUDED"


class BankTransactionView(BaseModel):
    """
    A line imported from a bank statement.

    Amount is signed: positive is money in (income-like),
    negative is money out (expense-like), zero is ignored.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID
    business_id: UUID
    date: date
    amount: Decimal = Field(
        ...,
        description="Signed amount in the application's currency"
    )
    description: Optional[str] = None
    review_status: ReviewStatus = ReviewStatus.PENDING
    linked_income_id: Optional[UUID] = Field(
        default=None,
        description="Income record this line was promoted to"
    )
    linked_expense_id: Optional[UUID] = Field(
        default=None,
        description="Expense record this line was promoted to"
    )

    @property
    def is_income(self) -> bool:
        return self.amount > 0

    @property
    def is_expense(self) -> bool:
        return self.amount < 0

    @property
    def absolute_amount(self) -> Decimal:
        return abs(self.amount)

    @property
    def is_linked(self) -> bool:
        """Has this line already been promoted to a ledger entry?"""
        return self.linked_income_id is not None or self.linked_expense_id is not None

    @property
    def is_excluded(self) -> bool:
        return self.review_status == ReviewStatus.EXCLUDED

    @property
    def direction(self) -> Optional[EntryKind]:
        """Ledger kind this line can duplicate, or None for a zero amount."""
        if self.is_income:
            return EntryKind.INCOME
        if self.is_expense:
            return EntryKind.EXPENSE
        return None


class LedgerEntryView(BaseModel):
    """
    Fields shared by every manually entered ledger record.

    `linked_bank_transaction_id` is an intentional link made when a bank
    line was reconciled into this entry. It is not a detected match.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID
    business_id: UUID
    date: date
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Unsigned amount in the application's currency"
    )
    description: Optional[str] = None
    kind: EntryKind
    linked_bank_transaction_id: Optional[UUID] = None

    def is_linked_to(self, bank_transaction_id: UUID) -> bool:
        return (
            self.linked_bank_transaction_id is not None
            and self.linked_bank_transaction_id == bank_transaction_id
        )


class IncomeEntry(LedgerEntryView):
    """A manually entered income record."""
    kind: Literal[EntryKind.INCOME] = EntryKind.INCOME


class ExpenseEntry(LedgerEntryView):
    """A manually entered expense record."""
    kind: Literal[EntryKind.EXPENSE] = EntryKind.EXPENSE


LedgerEntry = Annotated[
    Union[IncomeEntry, ExpenseEntry],
    Field(discriminator="kind"),
]
