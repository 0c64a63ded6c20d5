"""
Tests for the installment and recurring series generator.

Covers:
- Installment splitting and rounding
- Recurring counts (end date, open-ended cap)
- Shared series group identifiers
- Description suffixes
- Validation errors
"""

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from ledger_engines.series import (
    DEFAULT_OPEN_ENDED_CAP,
    SeriesCadence,
    SeriesSpec,
    format_series_description,
    generate_series,
    split_series_suffix,
)
from ledger_kernel.domain.entries import (
    CostCenters,
    EntryNature,
    RecurrenceFrequency,
    SettlementStatus,
)
from ledger_kernel.exceptions import InvalidSpecError


def installment_spec(**overrides) -> SeriesSpec:
    fields = dict(
        total_amount=Decimal("1200.00"),
        cadence=SeriesCadence.INSTALLMENT,
        installment_count=12,
        anchor_due_date=date(2024, 1, 31),
        description="Laptop",
        nature=EntryNature.EXPENSE,
        account_id="acc-card",
    )
    fields.update(overrides)
    return SeriesSpec(**fields)


def recurring_spec(**overrides) -> SeriesSpec:
    fields = dict(
        total_amount=Decimal("89.90"),
        cadence=SeriesCadence.RECURRING,
        anchor_due_date=date(2024, 1, 10),
        description="Internet",
        nature=EntryNature.EXPENSE,
        account_id="acc-checking",
    )
    fields.update(overrides)
    return SeriesSpec(**fields)


class TestInstallments:
    """Installment cadence."""

    def test_splits_total_evenly(self):
        """1200 over 12 installments gives 100 each."""
        drafts = generate_series(installment_spec())

        assert len(drafts) == 12
        assert all(d.amount == Decimal("100.00") for d in drafts)

    def test_due_dates_clamp_from_anchor(self):
        """Jan 31 anchor: Feb 29, Mar 31, Apr 30."""
        drafts = generate_series(installment_spec())

        assert [d.due_date for d in drafts[:4]] == [
            date(2024, 1, 31),
            date(2024, 2, 29),
            date(2024, 3, 31),
            date(2024, 4, 30),
        ]
        assert drafts[-1].due_date == date(2024, 12, 31)

    def test_rounding_residue_not_redistributed(self):
        """100 / 3 rounds to 33.33 for every installment."""
        drafts = generate_series(installment_spec(total_amount="100", installment_count=3))

        assert [d.amount for d in drafts] == [Decimal("33.33")] * 3

    def test_rounds_half_up(self):
        """0.05 / 2 = 0.025 rounds to 0.03."""
        drafts = generate_series(installment_spec(total_amount="0.05", installment_count=2))

        assert drafts[0].amount == Decimal("0.03")

    def test_money_places_override(self):
        drafts = generate_series(
            installment_spec(total_amount="100", installment_count=3),
            money_places=0,
        )

        assert drafts[0].amount == Decimal("33")

    def test_descriptions_carry_position(self):
        drafts = generate_series(installment_spec(installment_count=3, total_amount="30"))

        assert [d.description for d in drafts] == [
            "Laptop (1/3)",
            "Laptop (2/3)",
            "Laptop (3/3)",
        ]

    def test_single_installment(self):
        drafts = generate_series(installment_spec(installment_count=1))

        assert len(drafts) == 1
        assert drafts[0].amount == Decimal("1200.00")
        assert drafts[0].description == "Laptop (1/1)"

    def test_no_recurrence_info_on_installments(self):
        drafts = generate_series(installment_spec())

        assert all(d.recurrence is None for d in drafts)

    def test_amount_rounding_to_zero_rejected(self):
        """0.01 split 3 ways would give 0.00 installments."""
        with pytest.raises(InvalidSpecError) as exc_info:
            generate_series(installment_spec(total_amount="0.01", installment_count=3))

        assert exc_info.value.field == "installment_count"


class TestRecurring:
    """Recurring cadence."""

    def test_flat_amount(self):
        drafts = generate_series(recurring_spec(end_date=date(2024, 6, 10)))

        assert all(d.amount == Decimal("89.90") for d in drafts)

    def test_end_date_count_is_inclusive(self):
        """January through June is six occurrences."""
        drafts = generate_series(recurring_spec(end_date=date(2024, 6, 1)))

        assert len(drafts) == 6
        assert drafts[-1].due_date == date(2024, 6, 10)

    def test_end_date_before_start_gives_one(self):
        drafts = generate_series(recurring_spec(end_date=date(2023, 10, 1)))

        assert len(drafts) == 1

    def test_open_ended_uses_cap(self):
        drafts = generate_series(recurring_spec())

        assert len(drafts) == DEFAULT_OPEN_ENDED_CAP == 60
        assert drafts[-1].due_date == date(2028, 12, 10)

    def test_open_ended_cap_override(self):
        drafts = generate_series(recurring_spec(), open_ended_cap=3)

        assert len(drafts) == 3

    def test_recurrence_info_on_first_entry_only(self):
        drafts = generate_series(recurring_spec(end_date=date(2024, 3, 1)))

        assert drafts[0].recurrence is not None
        assert drafts[0].recurrence.frequency == RecurrenceFrequency.MONTHLY
        assert drafts[0].recurrence.end_date == date(2024, 3, 1)
        assert all(d.recurrence is None for d in drafts[1:])

    def test_recurring_descriptions_suffixed(self):
        drafts = generate_series(recurring_spec(end_date=date(2024, 2, 1)))

        assert [d.description for d in drafts] == ["Internet (1/2)", "Internet (2/2)"]

    def test_invalid_cap_rejected(self):
        with pytest.raises(InvalidSpecError):
            generate_series(recurring_spec(), open_ended_cap=0)


class TestSharedFields:
    """Fields shared by every draft of a series."""

    def test_single_group_id_per_call(self):
        drafts = generate_series(installment_spec())

        group_ids = {d.series_group_id for d in drafts}
        assert len(group_ids) == 1
        assert isinstance(group_ids.pop(), UUID)

    def test_group_ids_differ_between_calls(self):
        first = generate_series(installment_spec())
        second = generate_series(installment_spec())

        assert first[0].series_group_id != second[0].series_group_id

    def test_injected_group_id(self):
        group_id = uuid4()
        drafts = generate_series(installment_spec(), group_id_factory=lambda: group_id)

        assert all(d.series_group_id == group_id for d in drafts)

    def test_drafts_are_pending_and_unsaved(self):
        drafts = generate_series(installment_spec())

        assert all(d.status == SettlementStatus.PENDING for d in drafts)
        assert all(d.settlement_date is None for d in drafts)
        assert all(d.is_draft for d in drafts)

    def test_transaction_date_defaults_to_anchor(self):
        drafts = generate_series(installment_spec())

        assert all(d.transaction_date == date(2024, 1, 31) for d in drafts)

    def test_explicit_transaction_date(self):
        drafts = generate_series(installment_spec(transaction_date=date(2024, 1, 20)))

        assert all(d.transaction_date == date(2024, 1, 20) for d in drafts)

    def test_references_copied(self):
        centers = CostCenters(venture_id="v1", phase_id="p1", company_id="c1")
        drafts = generate_series(installment_spec(
            category_id="cat-tech",
            counterparty_id="supplier-1",
            cost_centers=centers,
            notes="office",
        ))

        for d in drafts:
            assert d.account_id == "acc-card"
            assert d.category_id == "cat-tech"
            assert d.counterparty_id == "supplier-1"
            assert d.cost_centers == centers
            assert d.notes == "office"
            assert d.nature == EntryNature.EXPENSE


class TestValidation:
    """Rejected specs."""

    @pytest.mark.parametrize("total", ["0", "-10", Decimal("-0.01")])
    def test_non_positive_total(self, total):
        with pytest.raises(InvalidSpecError) as exc_info:
            generate_series(installment_spec(total_amount=total))

        assert exc_info.value.field == "total_amount"

    def test_unparseable_total(self):
        with pytest.raises(InvalidSpecError):
            generate_series(installment_spec(total_amount="abc"))

    @pytest.mark.parametrize("count", [0, -1, None])
    def test_bad_installment_count(self, count):
        with pytest.raises(InvalidSpecError) as exc_info:
            generate_series(installment_spec(installment_count=count))

        assert exc_info.value.field == "installment_count"

    def test_missing_anchor(self):
        with pytest.raises(InvalidSpecError) as exc_info:
            generate_series(installment_spec(anchor_due_date=None))

        assert exc_info.value.field == "anchor_due_date"

    def test_float_total_converted_exactly(self):
        drafts = generate_series(installment_spec(total_amount=99.9, installment_count=1))

        assert drafts[0].amount == Decimal("99.90")


class TestSuffixHelpers:

    def test_format(self):
        assert format_series_description("Rent", 2, 12) == "Rent (2/12)"

    def test_split_with_suffix(self):
        assert split_series_suffix("Rent (2/12)") == ("Rent", " (2/12)")

    def test_split_without_suffix(self):
        assert split_series_suffix("Rent") == ("Rent", "")

    def test_split_keeps_inner_parentheses(self):
        assert split_series_suffix("Car (blue) (3/10)") == ("Car (blue)", " (3/10)")


class TestLogging:

    def test_emits_generation_events(self, captured_logs):
        generate_series(installment_spec(installment_count=2, total_amount="10"))

        messages = [r["message"] for r in captured_logs()]
        assert "series_generation_started" in messages
        assert "series_generation_completed" in messages
        assert "LEDGER_ENGINE_TRACE" in messages
