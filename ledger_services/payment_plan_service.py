"""
PaymentPlanService -- contract payment plans and the residual installment.

Responsibility:
    Stores a contract's payment plan and lets the user change it: explicit
    installments are added, edited, duplicated and deleted, trade-in credits
    added and deleted, and the total price revised.  Reports the
    authoritative residual with any drift against its cached copy, and
    provisions ledger entries for pending installments.

Invariants enforced:
    - The residual is always recomputed from the explicit installments and
      trade-ins; the stored residual row is a cache read for drift
      detection.
    - ``review()`` never writes.
    - A plan change made through this service refreshes the cached residual
      only when the cache matched the computed residual before the change.
      An existing drift is left in place for the user to resolve through
      ``resynchronize_residual()``.
    - The residual row cannot be edited, duplicated or deleted as an
      explicit installment.
    - An installment's provisioned ledger entry follows it: edits are
      mirrored onto the entry, deleting the installment deletes the entry.

Failure modes:
    - ContractNotFoundError: unknown contract id.
    - PlanItemNotFoundError: installment or trade-in not on the contract.
    - InvalidPlanError: the change would produce a malformed plan.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import Any
from uuid import UUID

from ledger_config import EngineSettings, load_settings
from ledger_engines.propagation import EditScope
from ledger_engines.residual import (
    ContractInstallment,
    ContractPaymentPlan,
    InstallmentKind,
    InstallmentStatus,
    ResidualReconciliation,
    TradeInCredit,
    installment_status,
    installments_pending_provisioning,
    is_residual_row,
)
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.entries import (
    AccountRef,
    CostCenters,
    EntryNature,
    LedgerEntry,
    SettlementStatus,
)
from ledger_kernel.domain.values import to_decimal
from ledger_kernel.exceptions import (
    ContractNotFoundError,
    InvalidPlanError,
    PlanItemNotFoundError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.contract import (
    ContractInstallmentModel,
    ContractModel,
    TradeInCreditModel,
)
from ledger_kernel.models.ledger_entry import LedgerEntryModel
from ledger_services.base import BaseService
from ledger_services.identity import ActorContext
from ledger_services.ledger_entry_service import LedgerEntryService

logger = get_logger("services.payment_plan")

PROVISIONED_DESCRIPTION = "{reference}: {installment}"


def _installment_from_model(row: ContractInstallmentModel) -> ContractInstallment:
    return ContractInstallment(
        description=row.description,
        due_date=row.due_date,
        amount=row.amount,
        kind=InstallmentKind(row.kind),
        paid=row.paid,
        ledger_entry_id=row.ledger_entry_id,
        id=row.id,
    )


def _trade_in_from_model(row: TradeInCreditModel) -> TradeInCredit:
    return TradeInCredit(
        description=row.description,
        credit_date=row.credit_date,
        amount=row.amount,
        id=row.id,
    )


def _check_explicit(installment: ContractInstallment) -> None:
    """Reject an installment that cannot stand as an explicit plan row."""
    if is_residual_row(installment):
        raise InvalidPlanError(
            "installment", "the residual is computed, not entered as an installment"
        )
    if not (installment.description or "").strip():
        raise InvalidPlanError("description", "must not be empty")
    if installment.amount <= 0:
        raise InvalidPlanError("amount", f"must be positive, got {installment.amount}")


def _check_positive(field: str, value: Any) -> Any:
    amount = to_decimal(value)
    if amount <= 0:
        raise InvalidPlanError(field, f"must be positive, got {amount}")
    return amount


class PaymentPlanService(BaseService):
    """
    Maintains and reconciles contract payment plans.

    Args:
        session: SQLAlchemy session (caller owns the transaction).
        actor: User and organization recorded as provenance.
        settings: Engine settings.  Defaults to ``load_settings()``.
        clock: Source of "today" for schedules and settlements.
        ledger_service: Writes provisioned ledger entries.  Defaults to a
            LedgerEntryService on the same session.
    """

    def __init__(
        self,
        session,
        actor: ActorContext,
        settings: EngineSettings | None = None,
        clock: Clock | None = None,
        ledger_service: LedgerEntryService | None = None,
    ):
        super().__init__(session, actor)
        self.settings = settings or load_settings()
        self.clock = clock or SystemClock()
        self.ledger_service = ledger_service or LedgerEntryService(
            session, actor, settings=self.settings, clock=self.clock
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _provenance(self) -> dict[str, Any]:
        return {
            "created_by_id": self.actor.user_id,
            "organization_id": self.actor.organization_id,
        }

    def _get_contract(self, contract_id: UUID) -> ContractModel:
        contract = self.session.get(ContractModel, contract_id)
        if contract is None:
            raise ContractNotFoundError(str(contract_id))
        return contract

    def _get_installment(
        self, contract: ContractModel, installment_id: UUID
    ) -> ContractInstallmentModel:
        row = next((r for r in contract.installments if r.id == installment_id), None)
        if row is None:
            raise PlanItemNotFoundError("installment", str(installment_id), str(contract.id))
        return row

    def _get_explicit_installment(
        self, contract: ContractModel, installment_id: UUID
    ) -> ContractInstallmentModel:
        row = self._get_installment(contract, installment_id)
        if is_residual_row(_installment_from_model(row)):
            raise InvalidPlanError(
                "installment_id",
                "the residual is computed; use resynchronize_residual()",
            )
        return row

    def _plan_from_model(self, contract: ContractModel) -> ContractPaymentPlan:
        return ContractPaymentPlan.from_rows(
            contract.total_price,
            [_installment_from_model(row) for row in contract.installments],
            [_trade_in_from_model(row) for row in contract.trade_ins],
        )

    def _residual_in_sync(self, contract: ContractModel) -> bool:
        return not self._plan_from_model(contract).reconcile(
            self.settings.drift_threshold
        ).has_drift

    def _store_residual(self, contract: ContractModel) -> ContractInstallmentModel:
        """Write the computed residual into the cached row, creating it if absent."""
        plan = self._plan_from_model(contract)
        computed = plan.reconcile(self.settings.drift_threshold).computed_residual
        row = None
        if plan.residual_id is not None:
            row = next(r for r in contract.installments if r.id == plan.residual_id)
        if row is None:
            row = ContractInstallmentModel(
                description=plan.residual_description,
                due_date=plan.residual_due_date,
                amount=computed,
                kind=InstallmentKind.RESIDUAL.value,
                **self._provenance(),
            )
            contract.installments.append(row)
        else:
            row.amount = computed
            row.updated_by_id = self.actor.user_id
        return row

    def _finish_plan_change(self, contract: ContractModel, was_in_sync: bool) -> None:
        if was_in_sync:
            self._store_residual(contract)
        else:
            logger.warning("residual_drift_preserved", extra={
                "contract_id": str(contract.id),
            })
        self.session.flush()

    def _linked_entry(self, row: ContractInstallmentModel) -> LedgerEntry | None:
        if row.ledger_entry_id is None:
            return None
        if self.session.get(LedgerEntryModel, row.ledger_entry_id) is None:
            return None
        return self.ledger_service.get_entry(row.ledger_entry_id)

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    def create_contract(
        self,
        reference: str,
        total_price: Any,
        installments: Sequence[ContractInstallment] = (),
        trade_ins: Sequence[TradeInCredit] = (),
        residual_due_date: date | None = None,
        currency: str | None = None,
    ) -> UUID:
        """
        Store a contract and its plan.

        A residual row holding the computed residual is stored with it.

        Raises:
            InvalidPlanError: ``installments`` contains a residual row.
        """
        plan = ContractPaymentPlan(
            total_price=total_price,
            installments=tuple(installments),
            trade_ins=tuple(trade_ins),
            residual_due_date=residual_due_date,
        )
        residual = plan.residual_installment()
        provenance = self._provenance()

        contract = ContractModel(
            reference=reference,
            total_price=plan.total_price,
            currency=currency or self.settings.currency,
            **provenance,
        )
        for inst in (*plan.installments, residual):
            contract.installments.append(ContractInstallmentModel(
                description=inst.description,
                due_date=inst.due_date,
                amount=inst.amount,
                kind=inst.kind.value,
                paid=inst.paid,
                ledger_entry_id=inst.ledger_entry_id,
                **provenance,
            ))
        for credit in plan.trade_ins:
            contract.trade_ins.append(TradeInCreditModel(
                description=credit.description,
                credit_date=credit.credit_date,
                amount=credit.amount,
                **provenance,
            ))

        with LogContext.bind(**self.actor.log_context()):
            self.session.add(contract)
            self.session.flush()
            logger.info("contract_created", extra={
                "contract_id": str(contract.id),
                "total_price": str(plan.total_price),
                "installment_count": len(plan.installments),
                "trade_in_count": len(plan.trade_ins),
                "residual": str(residual.amount),
            })
        return contract.id

    def update_total_price(self, contract_id: UUID, total_price: Any) -> ResidualReconciliation:
        """
        Revise the contract's total price.

        Returns:
            The reconciliation against the new total.
        """
        contract = self._get_contract(contract_id)
        new_total = _check_positive("total_price", total_price)
        previous = contract.total_price

        with LogContext.bind(**self.actor.log_context()):
            was_in_sync = self._residual_in_sync(contract)
            contract.total_price = new_total
            contract.updated_by_id = self.actor.user_id
            self._finish_plan_change(contract, was_in_sync)
            logger.info("total_price_updated", extra={
                "contract_id": str(contract_id),
                "previous_total": str(previous),
                "total_price": str(new_total),
            })
        return self.review(contract_id)

    # ------------------------------------------------------------------
    # Installments
    # ------------------------------------------------------------------

    def add_installment(
        self, contract_id: UUID, installment: ContractInstallment
    ) -> ContractInstallment:
        """
        Add an explicit installment.

        Raises:
            InvalidPlanError: Residual row, empty description, missing due
                date or non-positive amount.
        """
        contract = self._get_contract(contract_id)
        _check_explicit(installment)
        if installment.due_date is None:
            raise InvalidPlanError("due_date", "required for an explicit installment")

        with LogContext.bind(**self.actor.log_context()):
            was_in_sync = self._residual_in_sync(contract)
            row = ContractInstallmentModel(
                description=installment.description,
                due_date=installment.due_date,
                amount=installment.amount,
                kind=installment.kind.value,
                paid=installment.paid,
                **self._provenance(),
            )
            contract.installments.append(row)
            self._finish_plan_change(contract, was_in_sync)
            logger.info("installment_added", extra={
                "contract_id": str(contract_id),
                "installment_id": str(row.id),
                "amount": str(row.amount),
            })
        return _installment_from_model(row)

    def update_installment(
        self,
        contract_id: UUID,
        installment_id: UUID,
        description: str | None = None,
        due_date: date | None = None,
        amount: Any = None,
        kind: InstallmentKind | None = None,
        paid: bool | None = None,
    ) -> ContractInstallment:
        """
        Change an explicit installment; ``None`` leaves a field as it is.

        A provisioned ledger entry is updated to match: description, amount
        and due date, and settlement when ``paid`` changes.
        """
        contract = self._get_contract(contract_id)
        row = self._get_explicit_installment(contract, installment_id)
        current = _installment_from_model(row)
        changed = ContractInstallment(
            description=current.description if description is None else description,
            due_date=current.due_date if due_date is None else due_date,
            amount=current.amount if amount is None else amount,
            kind=current.kind if kind is None else InstallmentKind(kind),
            paid=current.paid if paid is None else paid,
            ledger_entry_id=current.ledger_entry_id,
            id=current.id,
        )
        _check_explicit(changed)

        with LogContext.bind(**self.actor.log_context()):
            was_in_sync = self._residual_in_sync(contract)
            row.description = changed.description
            row.due_date = changed.due_date
            row.amount = changed.amount
            row.kind = changed.kind.value
            row.paid = changed.paid
            row.updated_by_id = self.actor.user_id
            self._finish_plan_change(contract, was_in_sync)
            self._sync_linked_entry(contract, row)
            logger.info("installment_updated", extra={
                "contract_id": str(contract_id),
                "installment_id": str(installment_id),
                "amount": str(row.amount),
            })
        return _installment_from_model(row)

    def _sync_linked_entry(self, contract: ContractModel, row: ContractInstallmentModel) -> None:
        entry = self._linked_entry(row)
        if entry is None:
            return
        changes: dict[str, Any] = {
            "description": PROVISIONED_DESCRIPTION.format(
                reference=contract.reference, installment=row.description
            ),
            "amount": row.amount,
        }
        if row.due_date is not None:
            changes["due_date"] = row.due_date
        if row.paid and entry.status == SettlementStatus.PENDING:
            changes.update(status=SettlementStatus.SETTLED, settlement_date=self.clock.today())
        elif not row.paid and entry.status == SettlementStatus.SETTLED:
            changes.update(status=SettlementStatus.PENDING, settlement_date=None)
        self.ledger_service.edit_entry(entry.id, entry.evolve(**changes), EditScope.SINGLE)

    def duplicate_installment(
        self, contract_id: UUID, installment_id: UUID
    ) -> ContractInstallment:
        """
        Copy an explicit installment.

        The copy is unpaid and not provisioned.
        """
        contract = self._get_contract(contract_id)
        source = self._get_explicit_installment(contract, installment_id)

        with LogContext.bind(**self.actor.log_context()):
            was_in_sync = self._residual_in_sync(contract)
            row = ContractInstallmentModel(
                description=source.description,
                due_date=source.due_date,
                amount=source.amount,
                kind=source.kind,
                paid=False,
                **self._provenance(),
            )
            contract.installments.append(row)
            self._finish_plan_change(contract, was_in_sync)
            logger.info("installment_duplicated", extra={
                "contract_id": str(contract_id),
                "source_installment_id": str(installment_id),
                "installment_id": str(row.id),
            })
        return _installment_from_model(row)

    def delete_installment(self, contract_id: UUID, installment_id: UUID) -> None:
        """Delete an explicit installment together with its provisioned entry."""
        contract = self._get_contract(contract_id)
        row = self._get_explicit_installment(contract, installment_id)
        entry_id = row.ledger_entry_id

        with LogContext.bind(**self.actor.log_context()):
            was_in_sync = self._residual_in_sync(contract)
            contract.installments.remove(row)
            self._finish_plan_change(contract, was_in_sync)
            if entry_id is not None and self.session.get(LedgerEntryModel, entry_id) is not None:
                self.ledger_service.delete_entry(entry_id)
            logger.info("installment_deleted", extra={
                "contract_id": str(contract_id),
                "installment_id": str(installment_id),
                "ledger_entry_id": str(entry_id) if entry_id else None,
            })

    # ------------------------------------------------------------------
    # Trade-ins
    # ------------------------------------------------------------------

    def add_trade_in(self, contract_id: UUID, credit: TradeInCredit) -> TradeInCredit:
        """
        Raises:
            InvalidPlanError: Empty description or non-positive amount.
        """
        contract = self._get_contract(contract_id)
        if not (credit.description or "").strip():
            raise InvalidPlanError("description", "must not be empty")
        _check_positive("amount", credit.amount)

        with LogContext.bind(**self.actor.log_context()):
            was_in_sync = self._residual_in_sync(contract)
            row = TradeInCreditModel(
                description=credit.description,
                credit_date=credit.credit_date,
                amount=credit.amount,
                **self._provenance(),
            )
            contract.trade_ins.append(row)
            self._finish_plan_change(contract, was_in_sync)
            logger.info("trade_in_added", extra={
                "contract_id": str(contract_id),
                "trade_in_id": str(row.id),
                "amount": str(row.amount),
            })
        return _trade_in_from_model(row)

    def delete_trade_in(self, contract_id: UUID, trade_in_id: UUID) -> None:
        contract = self._get_contract(contract_id)
        row = next((t for t in contract.trade_ins if t.id == trade_in_id), None)
        if row is None:
            raise PlanItemNotFoundError("trade_in", str(trade_in_id), str(contract_id))

        with LogContext.bind(**self.actor.log_context()):
            was_in_sync = self._residual_in_sync(contract)
            contract.trade_ins.remove(row)
            self._finish_plan_change(contract, was_in_sync)
            logger.info("trade_in_deleted", extra={
                "contract_id": str(contract_id),
                "trade_in_id": str(trade_in_id),
            })

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def load_plan(self, contract_id: UUID) -> ContractPaymentPlan:
        """
        Raises:
            ContractNotFoundError: If the contract doesn't exist.
        """
        return self._plan_from_model(self._get_contract(contract_id))

    def review(self, contract_id: UUID) -> ResidualReconciliation:
        """
        Computed residual and drift against the stored residual row.

        Read-only.  A drift above the configured threshold is returned as
        ``result.advisory``.
        """
        plan = self.load_plan(contract_id)
        with LogContext.bind(**self.actor.log_context()):
            result = plan.reconcile(self.settings.drift_threshold)
            if result.advisory is not None:
                logger.warning("residual_drift_advisory", extra={
                    "contract_id": str(contract_id),
                    "computed_residual": str(result.computed_residual),
                    "persisted_residual": str(result.persisted_residual),
                    "drift_amount": str(result.drift_amount),
                })
        return result

    def schedule(
        self,
        contract_id: UUID,
        as_of: date | None = None,
    ) -> list[tuple[ContractInstallment, InstallmentStatus]]:
        """
        Installments with their status on ``as_of`` (default today).

        Explicit installments come in due-date order; the residual, with
        its computed amount, comes last.
        """
        as_of = as_of or self.clock.today()
        plan = self.load_plan(contract_id)
        rows = [*plan.sorted_installments, plan.residual_installment()]
        return [(inst, installment_status(inst, as_of)) for inst in rows]

    def pending_provisioning(self, contract_id: UUID) -> list[ContractInstallment]:
        """Unpaid explicit installments without a ledger entry."""
        return installments_pending_provisioning(self.load_plan(contract_id))

    # ------------------------------------------------------------------
    # Writes against the ledger
    # ------------------------------------------------------------------

    def provision_installments(
        self,
        contract_id: UUID,
        account: AccountRef,
        nature: EntryNature = EntryNature.INCOME,
        category_id: str | None = None,
        cost_centers: CostCenters | None = None,
    ) -> list[tuple[ContractInstallment, LedgerEntry]]:
        """
        Create a pending ledger entry for every installment awaiting one.

        Each entry is due on its installment's due date and is linked back
        through ``ledger_entry_id``.  The residual is not provisioned.

        Returns:
            (installment, entry) pairs in due-date order; empty when nothing
            was pending.
        """
        contract = self._get_contract(contract_id)
        pending = installments_pending_provisioning(self._plan_from_model(contract))
        rows_by_id = {r.id: r for r in contract.installments}

        provisioned: list[tuple[ContractInstallment, LedgerEntry]] = []
        with LogContext.bind(**self.actor.log_context()):
            for installment in pending:
                if installment.due_date is None:
                    logger.warning("installment_without_due_date_skipped", extra={
                        "contract_id": str(contract_id),
                        "installment_id": str(installment.id),
                    })
                    continue
                entry = self.ledger_service.create_single(
                    PROVISIONED_DESCRIPTION.format(
                        reference=contract.reference, installment=installment.description
                    ),
                    installment.amount,
                    nature,
                    account,
                    transaction_date=installment.due_date,
                    due_date=installment.due_date,
                    category_id=category_id,
                    cost_centers=cost_centers,
                )
                row = rows_by_id[installment.id]
                row.ledger_entry_id = entry.id
                row.updated_by_id = self.actor.user_id
                provisioned.append((_installment_from_model(row), entry))

            self.session.flush()
            logger.info("installments_provisioned", extra={
                "contract_id": str(contract_id),
                "entry_count": len(provisioned),
            })
        return provisioned

    def resynchronize_residual(self, contract_id: UUID) -> ContractInstallment:
        """
        Overwrite the stored residual row with the computed residual.

        Creates the row if the contract has none.  Only called on explicit
        user request.

        Returns:
            The residual installment as now stored.
        """
        contract = self._get_contract(contract_id)
        plan = self._plan_from_model(contract)
        previous = plan.persisted_residual

        with LogContext.bind(**self.actor.log_context()):
            row = self._store_residual(contract)
            self.session.flush()
            logger.info("residual_resynchronized", extra={
                "contract_id": str(contract_id),
                "previous_residual": str(previous) if previous is not None else None,
                "computed_residual": str(row.amount),
            })

        return _installment_from_model(row)
