"""
Tests for the match classifier and the reconciliation engine.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import pytest

from taxbook.models.ledger import (
    BankTransactionView,
    EntryKind,
    ExpenseEntry,
    IncomeEntry,
    ReviewStatus,
)
from taxbook.models.match import MatchStatus, MatchTier
from taxbook.reconciliation.classifier import classify_candidates, classify_pair
from taxbook.reconciliation.engine import CandidateIndex, is_eligible, reconcile
from taxbook.reconciliation.matching import MatchingRules


BUSINESS_ID = uuid4()
OTHER_BUSINESS_ID = uuid4()
DAY = date(2025, 6, 1)
NOW = datetime(2025, 6, 2, 9, 30, tzinfo=timezone.utc)


def bank_tx(
    amount: str,
    description: str = "Payment",
    on: date = DAY,
    business_id: UUID = BUSINESS_ID,
    **overrides,
) -> BankTransactionView:
    return BankTransactionView(
        id=overrides.pop("id", uuid4()),
        business_id=business_id,
        date=on,
        amount=Decimal(amount),
        description=description,
        **overrides,
    )


def income(
    amount: str,
    description: str = "Payment",
    on: date = DAY,
    business_id: UUID = BUSINESS_ID,
    linked_to: Optional[UUID] = None,
) -> IncomeEntry:
    return IncomeEntry(
        id=uuid4(),
        business_id=business_id,
        date=on,
        amount=Decimal(amount),
        description=description,
        linked_bank_transaction_id=linked_to,
    )


def expense(
    amount: str,
    description: str = "Payment",
    on: date = DAY,
    business_id: UUID = BUSINESS_ID,
    linked_to: Optional[UUID] = None,
) -> ExpenseEntry:
    return ExpenseEntry(
        id=uuid4(),
        business_id=business_id,
        date=on,
        amount=Decimal(amount),
        description=description,
        linked_bank_transaction_id=linked_to,
    )


class TestScenarios:
    """End-to-end examples of duplicate detection."""

    def test_exact_match_ignores_case_and_punctuation(self):
        tx = bank_tx("-45.00", "TESCO STORES 1234")
        entry = expense("45.00", "Tesco Stores 1234.")

        matches = reconcile([tx], [], [entry], BUSINESS_ID, NOW)

        assert len(matches) == 1
        assert matches[0].tier == MatchTier.EXACT
        assert matches[0].confidence == 1.0
        assert matches[0].ledger_entry_kind == EntryKind.EXPENSE

    def test_exact_amount_with_different_description_is_possible(self):
        tx = bank_tx("-89.99", "AMZN MKTP UK")
        entry = expense("89.99", "Amazon Marketplace UK")

        matches = reconcile([tx], [], [entry], BUSINESS_ID, NOW)

        assert len(matches) == 1
        assert matches[0].tier == MatchTier.POSSIBLE
        assert matches[0].confidence == 0.30

    def test_amount_within_floor_tolerance_is_possible(self):
        tx = bank_tx("-100.00", "Office chair")
        entry = expense("99.50", "Office chair")

        matches = reconcile([tx], [], [entry], BUSINESS_ID, NOW)

        assert [m.tier for m in matches] == [MatchTier.POSSIBLE]

    def test_amount_beyond_tolerance_is_not_matched(self):
        tx = bank_tx("-100.00", "Office chair")
        entry = expense("97.00", "Office chair")

        assert reconcile([tx], [], [entry], BUSINESS_ID, NOW) == []

    def test_entry_linked_to_this_transaction_is_not_matched(self):
        tx = bank_tx("250.00", "Client ACME invoice 42")
        entry = income("250.00", "Client ACME invoice 42", linked_to=tx.id)

        assert reconcile([tx], [entry], [], BUSINESS_ID, NOW) == []

    def test_zero_amount_transaction_is_not_matched(self):
        tx = bank_tx("0.00", "Card check")
        candidates = [income("0.00", "Card check"), income("0.50", "Card check")]

        assert reconcile([tx], candidates, [expense("0.00", "Card check")], BUSINESS_ID, NOW) == []


class TestTiers:
    """Tier selection for a single pair."""

    def test_likely_match_uses_similarity_as_confidence(self):
        tx = bank_tx("1200.00", "acme consulting ltd")
        entry = income("1200.00", "acme consulting ltd.")
        tx2 = bank_tx("1200.00", "acme consulting limited")

        exact = reconcile([tx], [entry], [], BUSINESS_ID, NOW)
        assert exact[0].tier == MatchTier.EXACT

        likely = reconcile([tx2], [income("1200.00", "acme consulting ltd")], [], BUSINESS_ID, NOW)
        # "acme consulting ltd" vs "acme consulting limited": 4 edits over 23 chars
        assert likely[0].tier == MatchTier.LIKELY
        assert likely[0].confidence == pytest.approx(1 - 4 / 23)
        assert 0.80 <= likely[0].confidence < 1.0

    def test_likely_threshold_is_inclusive(self):
        # 1 edit over 5 characters: similarity exactly 0.80
        tx = bank_tx("10.00", "abcde")
        matches = reconcile([tx], [income("10.00", "abcdx")], [], BUSINESS_ID, NOW)
        assert matches[0].tier == MatchTier.LIKELY
        assert matches[0].confidence == pytest.approx(0.80)

    def test_just_below_threshold_demotes_to_possible(self):
        # 2 edits over 9 characters: similarity 0.78
        tx = bank_tx("10.00", "abcdefghi")
        matches = reconcile([tx], [income("10.00", "abcdefgxy")], [], BUSINESS_ID, NOW)
        assert matches[0].tier == MatchTier.POSSIBLE
        assert matches[0].confidence == 0.30

    def test_identical_description_with_near_amount_is_possible(self):
        tx = bank_tx("-20.00", "Train ticket")
        matches = reconcile([tx], [], [expense("20.40", "Train ticket")], BUSINESS_ID, NOW)
        assert matches[0].tier == MatchTier.POSSIBLE

    def test_empty_descriptions_with_exact_amount_are_exact(self):
        tx = bank_tx("-5.00", "")
        entry = expense("5.00", "")
        matches = reconcile([tx], [], [entry], BUSINESS_ID, NOW)
        assert matches[0].tier == MatchTier.EXACT

    def test_classify_pair_returns_none_beyond_tolerance(self):
        assert classify_pair(bank_tx("-100.00"), expense("110.00")) is None

    def test_classify_pair_skips_self_link(self):
        tx = bank_tx("-100.00")
        assert classify_pair(tx, expense("100.00", linked_to=tx.id)) is None

    def test_custom_rules_raise_likely_threshold(self):
        tx = bank_tx("10.00", "abcde")
        rules = MatchingRules(likely_threshold=0.9)
        matches = reconcile([tx], [income("10.00", "abcdx")], [], BUSINESS_ID, NOW, rules)
        assert matches[0].tier == MatchTier.POSSIBLE


class TestDirection:
    """Money in matches income, money out matches expenses."""

    def test_income_transaction_ignores_expenses(self):
        tx = bank_tx("100.00")
        assert reconcile([tx], [], [expense("100.00")], BUSINESS_ID, NOW) == []

    def test_expense_transaction_ignores_incomes(self):
        tx = bank_tx("-100.00")
        assert reconcile([tx], [income("100.00")], [], BUSINESS_ID, NOW) == []

    def test_income_transaction_matches_only_incomes(self):
        tx = bank_tx("100.00")
        inc = income("100.00")
        matches = reconcile([tx], [inc], [expense("100.00")], BUSINESS_ID, NOW)
        assert [m.ledger_entry_id for m in matches] == [inc.id]
        assert matches[0].ledger_entry_kind == EntryKind.INCOME

    def test_expense_transaction_matches_only_expenses(self):
        tx = bank_tx("-100.00")
        exp = expense("100.00")
        matches = reconcile([tx], [income("100.00")], [exp], BUSINESS_ID, NOW)
        assert [m.ledger_entry_id for m in matches] == [exp.id]

    def test_entry_kind_decides_direction_not_the_list(self):
        # An expense passed in the income list is still an expense
        tx = bank_tx("-100.00")
        exp = expense("100.00")
        matches = reconcile([tx], [exp], [], BUSINESS_ID, NOW)
        assert [m.ledger_entry_id for m in matches] == [exp.id]


class TestFiltering:
    """Which bank transactions and candidates take part at all."""

    def test_different_dates_are_not_matched(self):
        tx = bank_tx("-45.00", "Tesco", on=date(2025, 6, 1))
        entry = expense("45.00", "Tesco", on=date(2025, 6, 2))
        assert reconcile([tx], [], [entry], BUSINESS_ID, NOW) == []

    def test_candidate_from_other_business_is_not_matched(self):
        tx = bank_tx("-45.00", "Tesco")
        entry = expense("45.00", "Tesco", business_id=OTHER_BUSINESS_ID)
        assert reconcile([tx], [], [entry], BUSINESS_ID, NOW) == []

    def test_transaction_from_other_business_is_skipped(self):
        tx = bank_tx("-45.00", "Tesco", business_id=OTHER_BUSINESS_ID)
        entry = expense("45.00", "Tesco", business_id=OTHER_BUSINESS_ID)
        assert reconcile([tx], [], [entry], BUSINESS_ID, NOW) == []

    def test_excluded_transaction_is_skipped(self):
        tx = bank_tx("-45.00", "Tesco", review_status=ReviewStatus.EXCLUDED)
        assert reconcile([tx], [], [expense("45.00", "Tesco")], BUSINESS_ID, NOW) == []

    def test_excluded_is_skipped_but_others_are_matched(self):
        excluded = bank_tx("-45.00", "Tesco", review_status=ReviewStatus.EXCLUDED)
        active = bank_tx("-45.00", "Tesco")
        matches = reconcile([excluded, active], [], [expense("45.00", "Tesco")], BUSINESS_ID, NOW)
        assert [m.bank_transaction_id for m in matches] == [active.id]

    def test_promoted_transaction_is_skipped(self):
        to_income = bank_tx("45.00", "Tesco", linked_income_id=uuid4())
        to_expense = bank_tx("-45.00", "Tesco", linked_expense_id=uuid4())
        matches = reconcile(
            [to_income, to_expense],
            [income("45.00", "Tesco")],
            [expense("45.00", "Tesco")],
            BUSINESS_ID,
            NOW,
        )
        assert matches == []

    def test_entry_linked_to_another_transaction_is_still_a_candidate(self):
        tx = bank_tx("-45.00", "Tesco")
        entry = expense("45.00", "Tesco", linked_to=uuid4())
        matches = reconcile([tx], [], [entry], BUSINESS_ID, NOW)
        assert [m.tier for m in matches] == [MatchTier.EXACT]

    def test_is_eligible(self):
        assert is_eligible(bank_tx("1.00"), BUSINESS_ID) is True
        assert is_eligible(bank_tx("0.00"), BUSINESS_ID) is False
        assert is_eligible(bank_tx("1.00"), OTHER_BUSINESS_ID) is False


class TestEngineContract:
    """Inputs, outputs and guarantees of reconcile()."""

    def test_none_business_id_raises(self):
        with pytest.raises(ValueError, match="business_id cannot be None"):
            reconcile([bank_tx("1.00")], [], [], None, NOW)

    def test_none_business_id_raises_even_without_transactions(self):
        with pytest.raises(ValueError):
            reconcile([], [], [], None, NOW)

    def test_empty_or_none_transactions(self):
        assert reconcile([], [income("1.00")], [], BUSINESS_ID, NOW) == []
        assert reconcile(None, [income("1.00")], [], BUSINESS_ID, NOW) == []

    def test_none_ledger_collections(self):
        assert reconcile([bank_tx("1.00")], None, None, BUSINESS_ID, NOW) == []

    def test_all_matches_are_new_and_unresolved(self):
        tx = bank_tx("-45.00", "Tesco")
        matches = reconcile([tx], [], [expense("45.00", "Tesco"), expense("45.50")], BUSINESS_ID, NOW)

        assert len(matches) == 2
        for match in matches:
            assert match.status == MatchStatus.UNRESOLVED
            assert match.created_at == NOW
            assert match.resolved_at is None
            assert match.resolved_by is None
            assert match.business_id == BUSINESS_ID

    def test_multiple_candidates_for_one_transaction(self):
        tx = bank_tx("-45.00", "Tesco")
        entries = [expense("45.00", "Tesco"), expense("45.00", "Tesco Express"), expense("44.50", "Other")]

        matches = reconcile([tx], [], entries, BUSINESS_ID, NOW)

        assert {m.ledger_entry_id for m in matches} == {e.id for e in entries}
        assert len(matches) == 3

    def test_multiple_transactions(self):
        tx1 = bank_tx("-45.00", "Tesco")
        tx2 = bank_tx("300.00", "Client payment")
        matches = reconcile(
            [tx1, tx2],
            [income("300.00", "Client payment")],
            [expense("45.00", "Tesco")],
            BUSINESS_ID,
            NOW,
        )
        assert [m.bank_transaction_id for m in matches] == [tx1.id, tx2.id]

    def test_rerun_gives_same_pairs_with_new_identities(self):
        tx = bank_tx("-45.00", "Tesco")
        entries = [expense("45.00", "Tesco"), expense("45.80", "Tesco")]

        first = reconcile([tx], [], entries, BUSINESS_ID, NOW)
        second = reconcile([tx], [], entries, BUSINESS_ID, NOW)

        def tuples(ms):
            return {(m.bank_transaction_id, m.ledger_entry_id, m.tier) for m in ms}

        assert tuples(first) == tuples(second)
        assert {m.id for m in first}.isdisjoint({m.id for m in second})

    def test_inputs_are_not_modified(self):
        tx = bank_tx("-45.00", "Tesco")
        entry = expense("45.00", "Tesco")
        before = (tx.model_dump(), entry.model_dump())

        reconcile([tx], [], [entry], BUSINESS_ID, NOW)

        assert (tx.model_dump(), entry.model_dump()) == before

    def test_linked_tier_is_never_emitted(self):
        tx = bank_tx("-45.00", "Tesco")
        entries = [
            expense("45.00", "Tesco", linked_to=tx.id),
            expense("45.00", "Tesco"),
            expense("45.40", "x"),
        ]
        matches = reconcile([tx], [], entries, BUSINESS_ID, NOW)
        assert MatchTier.LINKED not in {m.tier for m in matches}


class TestClassifier:
    """Direct tests for classify_candidates and CandidateIndex."""

    def test_zero_amount_produces_nothing(self):
        tx = bank_tx("0.00")
        assert classify_candidates(tx, [income("0.00")], BUSINESS_ID, NOW) == []

    def test_candidate_index_groups_by_kind_and_day(self):
        entries = [
            income("1.00"),
            income("1.00", on=date(2025, 6, 2)),
            expense("1.00"),
            expense("1.00", business_id=OTHER_BUSINESS_ID),
        ]
        index = CandidateIndex(BUSINESS_ID, entries)

        assert len(index) == 3
        assert index.candidates_for(bank_tx("5.00")) == [entries[0]]
        assert index.candidates_for(bank_tx("-5.00")) == [entries[2]]
        assert index.candidates_for(bank_tx("0.00")) == []

    def test_candidate_index_drops_self_links(self):
        tx = bank_tx("5.00")
        linked = income("5.00", linked_to=tx.id)
        free = income("5.00")
        index = CandidateIndex(BUSINESS_ID, [linked, free])
        assert index.candidates_for(tx) == [free]
