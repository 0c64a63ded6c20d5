"""
Module: ledger_kernel.selectors.entry_selector
Responsibility: Read access to persisted ledger entries as ``LedgerEntry``
    values: by id, by series group (optionally after a due date), and by
    transfer correlation id.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Series queries are ordered by (due_date, description) so that callers
      see siblings in schedule order.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.entries import (
    CostCenters,
    EntryNature,
    LedgerEntry,
    RecurrenceFrequency,
    RecurrenceInfo,
    SettlementStatus,
)
from ledger_kernel.models.ledger_entry import LedgerEntryModel
from ledger_kernel.selectors.base import BaseSelector


def entry_from_model(model: LedgerEntryModel) -> LedgerEntry:
    """Convert an ORM row into a ``LedgerEntry`` value."""
    recurrence = None
    if model.recurrence_frequency is not None:
        recurrence = RecurrenceInfo(
            frequency=RecurrenceFrequency(model.recurrence_frequency),
            end_date=model.recurrence_end_date,
        )
    return LedgerEntry(
        id=model.id,
        description=model.description,
        amount=model.amount,
        nature=EntryNature(model.nature),
        transaction_date=model.transaction_date,
        due_date=model.due_date,
        status=SettlementStatus(model.status),
        settlement_date=model.settlement_date,
        account_id=model.account_id,
        counterparty_id=model.counterparty_id,
        category_id=model.category_id,
        cost_centers=CostCenters(
            venture_id=model.venture_id,
            phase_id=model.phase_id,
            company_id=model.company_id,
        ),
        series_group_id=model.series_group_id,
        transfer_id=model.transfer_id,
        notes=model.notes or "",
        recurrence=recurrence,
    )


class LedgerEntrySelector(BaseSelector):
    """Queries over the ``ledger_entries`` table."""

    def get(self, entry_id: UUID) -> LedgerEntry | None:
        model = self.session.get(LedgerEntryModel, entry_id)
        if model is None:
            return None
        return entry_from_model(model)

    def series_entries(self, series_group_id: UUID) -> list[LedgerEntry]:
        """Every member of a series in schedule order."""
        stmt = (
            select(LedgerEntryModel)
            .where(LedgerEntryModel.series_group_id == series_group_id)
            .order_by(LedgerEntryModel.due_date, LedgerEntryModel.description)
        )
        return [entry_from_model(m) for m in self.session.scalars(stmt)]

    def series_entries_due_after(
        self,
        series_group_id: UUID,
        due_date: date,
        exclude_id: UUID | None = None,
    ) -> list[LedgerEntry]:
        """
        Members of a series due strictly after ``due_date``.

        This is the tail a "this and future entries" edit cascades to.
        ``exclude_id`` drops the entry being edited from the result.
        """
        stmt = (
            select(LedgerEntryModel)
            .where(LedgerEntryModel.series_group_id == series_group_id)
            .where(LedgerEntryModel.due_date > due_date)
            .order_by(LedgerEntryModel.due_date, LedgerEntryModel.description)
        )
        if exclude_id is not None:
            stmt = stmt.where(LedgerEntryModel.id != exclude_id)
        return [entry_from_model(m) for m in self.session.scalars(stmt)]

    def transfer_legs(self, transfer_id: UUID) -> list[LedgerEntry]:
        stmt = (
            select(LedgerEntryModel)
            .where(LedgerEntryModel.transfer_id == transfer_id)
            .order_by(LedgerEntryModel.nature)
        )
        return [entry_from_model(m) for m in self.session.scalars(stmt)]

