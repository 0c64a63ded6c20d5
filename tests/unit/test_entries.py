"""Tests for the LedgerEntry value object and its invariants."""

from dataclasses import FrozenInstanceError
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.entries import (
    AccountRef,
    EntryNature,
    SettlementStatus,
)
from ledger_kernel.exceptions import InvalidEntryError, LedgerEngineError


class TestInvariants:

    def test_amount_coerced_to_decimal(self, make_entry):
        assert make_entry(amount="12.30").amount == Decimal("12.30")

    @pytest.mark.parametrize("amount", [0, "-1", "x"])
    def test_amount_must_be_positive(self, make_entry, amount):
        with pytest.raises(InvalidEntryError) as exc_info:
            make_entry(amount=amount)

        assert exc_info.value.field == "amount"

    def test_settled_requires_settlement_date(self, make_entry):
        with pytest.raises(InvalidEntryError):
            make_entry(status=SettlementStatus.SETTLED)

    def test_pending_rejects_settlement_date(self, make_entry):
        with pytest.raises(InvalidEntryError):
            make_entry(settlement_date=date(2024, 1, 5))

    def test_transfer_leg_must_be_settled(self, make_entry):
        with pytest.raises(InvalidEntryError):
            make_entry(transfer_id=uuid4())

    def test_transfer_leg_settles_on_transaction_date(self, make_entry):
        with pytest.raises(InvalidEntryError):
            make_entry(
                transfer_id=uuid4(),
                status=SettlementStatus.SETTLED,
                settlement_date=date(2024, 1, 6),
            )

    def test_errors_are_ledger_errors(self, make_entry):
        with pytest.raises(LedgerEngineError):
            make_entry(amount=0)


class TestBehaviour:

    def test_frozen(self, make_entry):
        entry = make_entry()

        with pytest.raises(FrozenInstanceError):
            entry.amount = Decimal("1")

    def test_evolve_rechecks(self, make_entry):
        entry = make_entry()

        with pytest.raises(InvalidEntryError):
            entry.evolve(amount=Decimal("-5"))

    def test_evolve_returns_copy(self, make_entry):
        entry = make_entry()
        changed = entry.evolve(description="Rent (1/2)")

        assert changed.description == "Rent (1/2)"
        assert entry.description == "Rent"

    def test_flags(self, make_entry):
        entry = make_entry()

        assert entry.is_draft
        assert not entry.in_series
        assert not entry.is_transfer_leg
        assert make_entry(series_group_id=uuid4()).in_series

    def test_nature_opposite(self):
        assert EntryNature.EXPENSE.opposite == EntryNature.INCOME
        assert EntryNature.INCOME.opposite == EntryNature.EXPENSE


class TestAccountRef:

    def test_credit_card_needs_both_days(self):
        assert AccountRef("c", "Visa", closing_day=25, payment_day=5).is_credit_card
        assert not AccountRef("c", "Visa", closing_day=25).is_credit_card
        assert not AccountRef("a", "Checking").is_credit_card
