"""
Tests for PaymentPlanService.

Covers:
- Contract creation with a cached residual row
- Review: computed residual and drift advisory (read-only)
- Explicit resynchronization of the cached residual
- Installment schedule with statuses
- Plan edits: installments, trade-ins and total price keep the plan balanced
- Provisioning ledger entries for pending installments
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from ledger_engines.residual import (
    ContractInstallment,
    InstallmentKind,
    InstallmentStatus,
    TradeInCredit,
)
from ledger_kernel.domain.entries import EntryNature, SettlementStatus
from ledger_kernel.exceptions import (
    ContractNotFoundError,
    EntryNotFoundError,
    InvalidPlanError,
    PlanItemNotFoundError,
)
from ledger_kernel.models.contract import ContractInstallmentModel, ContractModel


@pytest.fixture
def contract_id(payment_plan_service):
    """A 500k unit: 100k down, 70k construction, 30k car, 300k residual."""
    return payment_plan_service.create_contract(
        "UNIT-204",
        Decimal("500000"),
        installments=[
            ContractInstallment(
                "Down payment", date(2024, 1, 10), Decimal("100000"),
                kind=InstallmentKind.DOWN_PAYMENT, paid=True,
            ),
            ContractInstallment(
                "Construction", date(2024, 6, 10), Decimal("70000"),
                kind=InstallmentKind.CONSTRUCTION,
            ),
        ],
        trade_ins=[TradeInCredit("Car", date(2024, 1, 10), Decimal("30000"))],
        residual_due_date=date(2025, 12, 1),
    )


def _row(session, contract_id, description) -> ContractInstallmentModel:
    return session.scalars(
        select(ContractInstallmentModel)
        .where(ContractInstallmentModel.contract_id == contract_id)
        .where(ContractInstallmentModel.description == description)
    ).one()


class TestCreateContract:

    def test_stores_residual_row(self, payment_plan_service, contract_id, session):
        row = _row(session, contract_id, "Residual balance (keys)")

        assert row.kind == InstallmentKind.RESIDUAL.value
        assert row.amount == Decimal("300000")
        assert row.due_date == date(2025, 12, 1)

    def test_uses_settings_currency(self, contract_id, session):
        assert session.get(ContractModel, contract_id).currency == "BRL"

    def test_rejects_residual_among_installments(self, payment_plan_service):
        with pytest.raises(InvalidPlanError):
            payment_plan_service.create_contract(
                "UNIT-1", Decimal("1000"),
                installments=[ContractInstallment(
                    "Residual balance", None, Decimal("1000"),
                )],
            )


class TestLoadPlan:

    def test_round_trip(self, payment_plan_service, contract_id):
        plan = payment_plan_service.load_plan(contract_id)

        assert plan.total_price == Decimal("500000")
        assert [i.description for i in plan.sorted_installments] == [
            "Down payment", "Construction",
        ]
        assert [t.description for t in plan.trade_ins] == ["Car"]
        assert plan.persisted_residual == Decimal("300000")

    def test_unknown_contract(self, payment_plan_service):
        with pytest.raises(ContractNotFoundError):
            payment_plan_service.load_plan(uuid4())


class TestReview:

    def test_in_sync(self, payment_plan_service, contract_id):
        result = payment_plan_service.review(contract_id)

        assert result.computed_residual == Decimal("300000")
        assert result.advisory is None

    def test_drift_advisory_without_write(self, payment_plan_service, contract_id,
                                          session, captured_logs):
        _row(session, contract_id, "Construction").amount = Decimal("80000")
        session.flush()

        result = payment_plan_service.review(contract_id)

        assert result.computed_residual == Decimal("290000")
        assert result.advisory is not None
        assert result.advisory.persisted_residual == Decimal("300000")
        assert result.advisory.drift_amount == Decimal("-10000")
        assert _row(session, contract_id, "Residual balance (keys)").amount == Decimal("300000")
        assert any(r["message"] == "residual_drift_advisory" for r in captured_logs())


class TestResynchronize:

    def test_overwrites_cached_amount(self, payment_plan_service, contract_id, session):
        _row(session, contract_id, "Construction").amount = Decimal("80000")
        session.flush()

        residual = payment_plan_service.resynchronize_residual(contract_id)

        assert residual.amount == Decimal("290000")
        assert residual.kind == InstallmentKind.RESIDUAL
        assert payment_plan_service.review(contract_id).advisory is None

    def test_creates_missing_row(self, payment_plan_service, session, test_actor):
        contract = ContractModel(
            reference="LEGACY-1",
            total_price=Decimal("1000"),
            created_by_id=test_actor.user_id,
        )
        session.add(contract)
        session.flush()

        residual = payment_plan_service.resynchronize_residual(contract.id)

        assert residual.amount == Decimal("1000")
        assert residual.id is not None
        assert payment_plan_service.load_plan(contract.id).persisted_residual == Decimal("1000")


class TestSchedule:

    def test_statuses_on_clock_date(self, payment_plan_service, contract_id):
        """The clock reads 2024-03-15."""
        schedule = payment_plan_service.schedule(contract_id)

        assert [(i.description, s) for i, s in schedule] == [
            ("Down payment", InstallmentStatus.PAID),
            ("Construction", InstallmentStatus.PENDING),
            ("Residual balance (keys)", InstallmentStatus.PENDING),
        ]
        assert schedule[-1][0].amount == Decimal("300000")

    def test_overdue(self, payment_plan_service, contract_id):
        schedule = payment_plan_service.schedule(contract_id, as_of=date(2024, 7, 1))

        assert schedule[1][1] == InstallmentStatus.OVERDUE

    def test_pending_provisioning(self, payment_plan_service, contract_id):
        pending = payment_plan_service.pending_provisioning(contract_id)

        assert [i.description for i in pending] == ["Construction"]


def _assert_balanced(result, total):
    assert result.explicit_total + result.trade_in_total + result.computed_residual == total
    assert result.advisory is None


def _cached_residual(session, contract_id) -> Decimal:
    return _row(session, contract_id, "Residual balance (keys)").amount


class TestInstallmentEdits:
    """Explicit installments added, changed, copied and removed."""

    def test_add_installment(self, payment_plan_service, contract_id, session):
        added = payment_plan_service.add_installment(
            contract_id,
            ContractInstallment("Balloon", date(2024, 9, 10), Decimal("50000")),
        )

        assert added.id is not None
        result = payment_plan_service.review(contract_id)
        assert result.computed_residual == Decimal("250000")
        _assert_balanced(result, Decimal("500000"))
        assert _cached_residual(session, contract_id) == Decimal("250000")

    @pytest.mark.parametrize("installment, field", [
        (ContractInstallment("Residual balance", date(2025, 1, 1), Decimal("1")), "installment"),
        (ContractInstallment("Balloon", None, Decimal("1")), "due_date"),
        (ContractInstallment("Balloon", date(2025, 1, 1), Decimal("0")), "amount"),
        (ContractInstallment("  ", date(2025, 1, 1), Decimal("1")), "description"),
    ])
    def test_add_rejects_malformed(self, payment_plan_service, contract_id,
                                   installment, field):
        with pytest.raises(InvalidPlanError) as exc_info:
            payment_plan_service.add_installment(contract_id, installment)

        assert exc_info.value.field == field

    def test_update_installment(self, payment_plan_service, contract_id, session):
        construction = _row(session, contract_id, "Construction")

        updated = payment_plan_service.update_installment(
            contract_id, construction.id, amount=Decimal("80000"),
            due_date=date(2024, 7, 10),
        )

        assert updated.amount == Decimal("80000")
        assert updated.due_date == date(2024, 7, 10)
        assert updated.description == "Construction"
        _assert_balanced(payment_plan_service.review(contract_id), Decimal("500000"))
        assert _cached_residual(session, contract_id) == Decimal("290000")

    def test_residual_row_not_editable(self, payment_plan_service, contract_id, session):
        residual = _row(session, contract_id, "Residual balance (keys)")

        with pytest.raises(InvalidPlanError):
            payment_plan_service.update_installment(
                contract_id, residual.id, amount=Decimal("1"),
            )
        with pytest.raises(InvalidPlanError):
            payment_plan_service.delete_installment(contract_id, residual.id)

    def test_cannot_rename_into_residual(self, payment_plan_service, contract_id, session):
        construction = _row(session, contract_id, "Construction")

        with pytest.raises(InvalidPlanError):
            payment_plan_service.update_installment(
                contract_id, construction.id, description="Residual balance",
            )

    def test_unknown_installment(self, payment_plan_service, contract_id):
        with pytest.raises(PlanItemNotFoundError) as exc_info:
            payment_plan_service.update_installment(contract_id, uuid4(), paid=True)

        assert exc_info.value.code == "PLAN_ITEM_NOT_FOUND"

    def test_duplicate_installment(self, payment_plan_service, contract_id, session):
        down = _row(session, contract_id, "Down payment")

        copy = payment_plan_service.duplicate_installment(contract_id, down.id)

        assert copy.id != down.id
        assert (copy.description, copy.amount, copy.kind) == (
            "Down payment", Decimal("100000"), InstallmentKind.DOWN_PAYMENT,
        )
        assert copy.paid is False
        assert copy.ledger_entry_id is None
        result = payment_plan_service.review(contract_id)
        assert result.computed_residual == Decimal("200000")
        _assert_balanced(result, Decimal("500000"))

    def test_delete_installment(self, payment_plan_service, contract_id, session):
        construction = _row(session, contract_id, "Construction")

        payment_plan_service.delete_installment(contract_id, construction.id)

        plan = payment_plan_service.load_plan(contract_id)
        assert [i.description for i in plan.installments] == ["Down payment"]
        result = payment_plan_service.review(contract_id)
        assert result.computed_residual == Decimal("370000")
        _assert_balanced(result, Decimal("500000"))


class TestTradeInEdits:

    def test_add_trade_in(self, payment_plan_service, contract_id, session):
        credit = payment_plan_service.add_trade_in(
            contract_id, TradeInCredit("Motorcycle", date(2024, 2, 1), Decimal("20000")),
        )

        assert credit.id is not None
        result = payment_plan_service.review(contract_id)
        assert result.computed_residual == Decimal("280000")
        _assert_balanced(result, Decimal("500000"))

    def test_add_trade_in_rejects_non_positive(self, payment_plan_service, contract_id):
        with pytest.raises(InvalidPlanError):
            payment_plan_service.add_trade_in(
                contract_id, TradeInCredit("Nothing", date(2024, 2, 1), Decimal("0")),
            )

    def test_delete_trade_in(self, payment_plan_service, contract_id):
        [car] = payment_plan_service.load_plan(contract_id).trade_ins

        payment_plan_service.delete_trade_in(contract_id, car.id)

        result = payment_plan_service.review(contract_id)
        assert result.trade_in_total == Decimal("0")
        assert result.computed_residual == Decimal("330000")
        _assert_balanced(result, Decimal("500000"))

    def test_delete_unknown_trade_in(self, payment_plan_service, contract_id):
        with pytest.raises(PlanItemNotFoundError):
            payment_plan_service.delete_trade_in(contract_id, uuid4())


class TestTotalPrice:

    def test_update_total_price(self, payment_plan_service, contract_id, session):
        result = payment_plan_service.update_total_price(contract_id, Decimal("550000"))

        assert result.computed_residual == Decimal("350000")
        _assert_balanced(result, Decimal("550000"))
        assert _cached_residual(session, contract_id) == Decimal("350000")

    def test_rejects_non_positive(self, payment_plan_service, contract_id):
        with pytest.raises(InvalidPlanError) as exc_info:
            payment_plan_service.update_total_price(contract_id, Decimal("-1"))

        assert exc_info.value.field == "total_price"


class TestExistingDriftPreserved:
    """A plan edit never hides a drift that was already there."""

    def test_edit_keeps_stale_cache(self, payment_plan_service, contract_id,
                                    session, captured_logs):
        _row(session, contract_id, "Construction").amount = Decimal("80000")
        session.flush()

        payment_plan_service.add_trade_in(
            contract_id, TradeInCredit("Boat", date(2024, 2, 1), Decimal("10000")),
        )

        result = payment_plan_service.review(contract_id)
        assert result.computed_residual == Decimal("280000")
        assert result.advisory is not None
        assert _cached_residual(session, contract_id) == Decimal("300000")
        assert any(r["message"] == "residual_drift_preserved" for r in captured_logs())


class TestProvisioning:

    def test_provisions_pending_installments(self, payment_plan_service, contract_id,
                                             checking_account, ledger_service,
                                             recording_notifier):
        [(installment, entry)] = payment_plan_service.provision_installments(
            contract_id, checking_account,
        )

        assert installment.description == "Construction"
        assert installment.ledger_entry_id == entry.id
        assert entry.description == "UNIT-204: Construction"
        assert entry.amount == Decimal("70000")
        assert entry.nature == EntryNature.INCOME
        assert entry.status == SettlementStatus.PENDING
        assert entry.due_date == date(2024, 6, 10)
        assert entry.account_id == "acc-checking"
        assert ledger_service.get_entry(entry.id) == entry
        assert len(recording_notifier.notices) == 1

        assert payment_plan_service.pending_provisioning(contract_id) == []
        assert payment_plan_service.provision_installments(
            contract_id, checking_account,
        ) == []
        _assert_balanced(payment_plan_service.review(contract_id), Decimal("500000"))

    def test_update_mirrors_onto_entry(self, payment_plan_service, contract_id,
                                       checking_account, ledger_service):
        [(installment, entry)] = payment_plan_service.provision_installments(
            contract_id, checking_account,
        )

        payment_plan_service.update_installment(
            contract_id, installment.id, amount=Decimal("75000"), paid=True,
        )

        synced = ledger_service.get_entry(entry.id)
        assert synced.amount == Decimal("75000")
        assert synced.status == SettlementStatus.SETTLED
        assert synced.settlement_date == date(2024, 3, 15)

    def test_delete_removes_entry(self, payment_plan_service, contract_id,
                                  checking_account, ledger_service):
        [(installment, entry)] = payment_plan_service.provision_installments(
            contract_id, checking_account,
        )

        payment_plan_service.delete_installment(contract_id, installment.id)

        with pytest.raises(EntryNotFoundError):
            ledger_service.get_entry(entry.id)

    def test_deleting_entry_reopens_installment(self, payment_plan_service, contract_id,
                                                checking_account, ledger_service):
        [(installment, entry)] = payment_plan_service.provision_installments(
            contract_id, checking_account,
        )

        ledger_service.delete_entry(entry.id)

        assert [i.id for i in payment_plan_service.pending_provisioning(contract_id)] == [
            installment.id,
        ]
