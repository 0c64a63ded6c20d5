"""
LedgerEntryService -- imperative shell over the ledger engines.

Responsibility:
    Turns user actions into persisted ledger rows: creating single entries,
    installment/recurring series and transfers, editing an entry (alone or
    with the rest of its series), and deleting entries.  All calculation is
    delegated to ``ledger_engines``; this service reads the inputs the
    engines need, writes their results, and emits notifications.

Architecture position:
    Services -- imperative shell.  Imports engines, kernel models and
    selectors, and configuration.

Invariants enforced:
    - One flush per operation: a series, a propagation batch, or a transfer
      pair is added to the session in one step and flushed once.  Commit and
      rollback stay with the caller.
    - Transfer legs are never edited or deleted alone.
    - Every created row carries the actor's user and organization ids.

Failure modes:
    - EntryNotFoundError: the entry to edit or delete does not exist.
    - InvalidSpecError / InvalidTransferError / SeriesNotFoundError /
      SeriesMismatchError: raised by the engines and propagated unchanged.

Usage:
    with session_scope() as session:
        service = LedgerEntryService(session, actor, notifier)
        entries = service.create_series(spec)
"""

from __future__ import annotations

import dataclasses
import time
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import update

from ledger_config import EngineSettings, load_settings
from ledger_engines.card_cycle import default_due_date
from ledger_engines.propagation import EditScope, propagate
from ledger_engines.series import SeriesSpec, generate_series
from ledger_engines.transfer import (
    TransferPair,
    build_transfer_pair,
    pair_legs,
    rebuild_pair,
)
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.entries import (
    AccountRef,
    CostCenters,
    EntryNature,
    LedgerEntry,
    SettlementStatus,
)
from ledger_kernel.exceptions import EntryNotFoundError, InvalidTransferError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.contract import ContractInstallmentModel
from ledger_kernel.models.ledger_entry import LedgerEntryModel
from ledger_kernel.selectors.entry_selector import LedgerEntrySelector, entry_from_model
from ledger_services.base import BaseService
from ledger_services.identity import ActorContext
from ledger_services.notifications import (
    LoggingNotifier,
    Notifier,
    build_new_entry_notice,
)

logger = get_logger("services.ledger_entry")


def _write_entry(model: LedgerEntryModel, entry: LedgerEntry) -> None:
    """Copy every value field of ``entry`` onto ``model`` (not ``id``)."""
    model.description = entry.description
    model.amount = entry.amount
    model.nature = entry.nature.value
    model.transaction_date = entry.transaction_date
    model.due_date = entry.due_date
    model.status = entry.status.value
    model.settlement_date = entry.settlement_date
    model.account_id = entry.account_id
    model.counterparty_id = entry.counterparty_id
    model.category_id = entry.category_id
    model.venture_id = entry.cost_centers.venture_id
    model.phase_id = entry.cost_centers.phase_id
    model.company_id = entry.cost_centers.company_id
    model.series_group_id = entry.series_group_id
    model.transfer_id = entry.transfer_id
    model.notes = entry.notes
    if entry.recurrence is not None:
        model.recurrence_frequency = entry.recurrence.frequency.value
        model.recurrence_end_date = entry.recurrence.end_date
    else:
        model.recurrence_frequency = None
        model.recurrence_end_date = None


class LedgerEntryService(BaseService):
    """
    Creates, edits and deletes ledger entries.

    Args:
        session: SQLAlchemy session (caller owns the transaction).
        actor: User and organization recorded as provenance.
        notifier: Receives one notice per creation batch.  Defaults to a
            notifier that only logs.
        settings: Engine settings.  Defaults to ``load_settings()``.
        clock: Source of "today" for entries without explicit dates.
    """

    def __init__(
        self,
        session,
        actor: ActorContext,
        notifier: Notifier | None = None,
        settings: EngineSettings | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session, actor)
        self.notifier = notifier or LoggingNotifier()
        self.settings = settings or load_settings()
        self.clock = clock or SystemClock()
        self._selector = LedgerEntrySelector(session)

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def _get_model(self, entry_id: UUID) -> LedgerEntryModel:
        model = self.session.get(LedgerEntryModel, entry_id)
        if model is None:
            raise EntryNotFoundError(str(entry_id))
        return model

    def _insert(self, drafts: list[LedgerEntry]) -> list[LedgerEntry]:
        models = []
        for draft in drafts:
            model = LedgerEntryModel(
                created_by_id=self.actor.user_id,
                organization_id=self.actor.organization_id,
            )
            _write_entry(model, draft)
            models.append(model)
        self.session.add_all(models)
        self.session.flush()
        return [entry_from_model(m) for m in models]

    def _update(self, entries: list[LedgerEntry]) -> list[LedgerEntry]:
        models = []
        for entry in entries:
            model = self._get_model(entry.id)
            _write_entry(model, entry)
            model.updated_by_id = self.actor.user_id
            models.append(model)
        self.session.flush()
        return [entry_from_model(m) for m in models]

    def _notify_created(self, first: LedgerEntry) -> None:
        self.notifier.notify(build_new_entry_notice(first, self.actor))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_entry(self, entry_id: UUID) -> LedgerEntry:
        """
        Raises:
            EntryNotFoundError: If the entry doesn't exist.
        """
        entry = self._selector.get(entry_id)
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return entry

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_single(
        self,
        description: str,
        amount: Any,
        nature: EntryNature,
        account: AccountRef,
        transaction_date: date | None = None,
        due_date: date | None = None,
        settled: bool = False,
        settlement_date: date | None = None,
        counterparty_id: str | None = None,
        category_id: str | None = None,
        cost_centers: CostCenters | None = None,
        notes: str = "",
    ) -> LedgerEntry:
        """
        Create one entry outside any series.

        The transaction date defaults to today.  Without an explicit due
        date, card accounts use the statement due date and other accounts
        the transaction date.  A settled entry without a settlement date
        settles on its transaction date.
        """
        transaction_date = transaction_date or self.clock.today()
        if due_date is None:
            due_date = default_due_date(account, transaction_date)

        status = SettlementStatus.SETTLED if settled else SettlementStatus.PENDING
        if settled and settlement_date is None:
            settlement_date = transaction_date

        draft = LedgerEntry(
            description=description,
            amount=amount,
            nature=nature,
            transaction_date=transaction_date,
            due_date=due_date,
            account_id=account.id,
            status=status,
            settlement_date=settlement_date if settled else None,
            counterparty_id=counterparty_id,
            category_id=category_id,
            cost_centers=cost_centers or CostCenters(),
            notes=notes,
        )

        with LogContext.bind(**self.actor.log_context()):
            [entry] = self._insert([draft])
            logger.info("entry_created", extra={
                "entry_id": str(entry.id),
                "nature": entry.nature.value,
                "amount": str(entry.amount),
                "due_date": entry.due_date.isoformat(),
            })
            self._notify_created(entry)
        return entry

    def create_series(
        self,
        spec: SeriesSpec,
        account: AccountRef | None = None,
    ) -> list[LedgerEntry]:
        """
        Generate and persist an installment or recurring series.

        When ``spec`` has no anchor due date and ``account`` is a card
        account, the anchor is the statement due date of the transaction
        date (today if unset).

        Returns:
            The persisted entries in due-date order.
        """
        t0 = time.monotonic()

        if spec.anchor_due_date is None and account is not None and account.is_credit_card:
            purchase_date = spec.transaction_date or self.clock.today()
            spec = dataclasses.replace(
                spec,
                transaction_date=purchase_date,
                anchor_due_date=default_due_date(account, purchase_date),
            )

        drafts = generate_series(
            spec,
            open_ended_cap=self.settings.open_ended_cap,
            money_places=self.settings.money_places,
        )
        group_id = drafts[0].series_group_id

        with LogContext.bind(series_group_id=group_id, **self.actor.log_context()):
            entries = self._insert(drafts)
            logger.info("series_persisted", extra={
                "cadence": spec.cadence.value,
                "entry_count": len(entries),
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            })
            self._notify_created(entries[0])
        return entries

    def create_transfer(
        self,
        source: AccountRef,
        destination: AccountRef,
        amount: Any,
        transfer_date: date,
        description: str,
        category_id: str | None = None,
        cost_centers: CostCenters | None = None,
        notes: str = "",
    ) -> TransferPair:
        """Persist both legs of a transfer in one flush."""
        pair = build_transfer_pair(
            source,
            destination,
            amount,
            transfer_date,
            description,
            category_id=category_id,
            cost_centers=cost_centers,
            notes=notes,
            out_template=self.settings.transfer_out_template,
            in_template=self.settings.transfer_in_template,
        )

        with LogContext.bind(transfer_id=pair.transfer_id, **self.actor.log_context()):
            outgoing, incoming = self._insert(list(pair))
            logger.info("transfer_persisted", extra={
                "amount": str(pair.amount),
                "source_account_id": source.id,
                "destination_account_id": destination.id,
            })
            self._notify_created(outgoing)
        return TransferPair(outgoing, incoming)

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def edit_entry(
        self,
        entry_id: UUID,
        edited: LedgerEntry,
        scope: EditScope = EditScope.SINGLE,
    ) -> list[LedgerEntry]:
        """
        Apply an edit to an entry, and for FUTURE scope to the rest of its
        series.

        ``edited`` is the entry with the user's changes; its ``id`` is forced
        to ``entry_id``.  Editing a transfer leg applies the amount, date,
        category, cost centers and notes to both legs.

        Returns:
            Every updated entry; the edited entry first.

        Raises:
            EntryNotFoundError: The entry doesn't exist.
            SeriesNotFoundError: FUTURE scope on an entry outside any series.
        """
        original = self.get_entry(entry_id)
        edited = edited.evolve(id=original.id)

        if original.is_transfer_leg:
            return self._edit_transfer_leg(original, edited)

        if scope == EditScope.SINGLE and not original.in_series:
            with LogContext.bind(**self.actor.log_context()):
                updated = self._update([edited])
                logger.info("entry_updated", extra={"entry_id": str(entry_id)})
            return updated

        tail: list[LedgerEntry] = []
        if scope == EditScope.FUTURE and original.in_series:
            tail = self._selector.series_entries_due_after(
                original.series_group_id, original.due_date, exclude_id=original.id
            )

        result = propagate(
            original.series_group_id, original, edited, scope, tail
        )

        with LogContext.bind(series_group_id=result.series_group_id, **self.actor.log_context()):
            updated = self._update(result.entries)
            logger.info("series_edit_applied", extra={
                "entry_id": str(entry_id),
                "scope": scope.value,
                "update_count": len(updated),
            })
        return updated

    def _paired_legs(self, entry: LedgerEntry) -> TransferPair:
        return pair_legs(self._selector.transfer_legs(entry.transfer_id))

    def _edit_transfer_leg(self, original: LedgerEntry, edited: LedgerEntry) -> list[LedgerEntry]:
        if edited.nature != original.nature:
            raise InvalidTransferError("nature", "a transfer leg cannot change direction")
        if edited.account_id != original.account_id:
            raise InvalidTransferError(
                "account_id", "change transfer accounts through edit_transfer()"
            )

        pair = self._paired_legs(original)
        day = edited.transaction_date
        shared = dict(
            amount=edited.amount,
            transaction_date=day,
            due_date=day,
            settlement_date=day,
            category_id=edited.category_id,
            cost_centers=edited.cost_centers,
            notes=edited.notes,
        )
        # Each leg keeps its own description, account and nature.
        legs = [leg.evolve(**shared) for leg in pair]

        with LogContext.bind(transfer_id=pair.transfer_id, **self.actor.log_context()):
            updated = self._update(legs)
            logger.info("transfer_edit_applied", extra={
                "entry_id": str(edited.id),
                "amount": str(edited.amount),
                "transfer_date": day.isoformat(),
            })
        return sorted(updated, key=lambda e: e.id != edited.id)

    def edit_transfer(
        self,
        entry_id: UUID,
        source: AccountRef,
        destination: AccountRef,
        amount: Any,
        transfer_date: date,
        description: str,
    ) -> TransferPair:
        """
        Rebuild both legs of the transfer that ``entry_id`` belongs to.

        Accounts, amount, date and description may all change.  Leg ids
        and the transfer correlation id are kept.

        Raises:
            EntryNotFoundError: The entry doesn't exist.
            InvalidTransferError: The entry is not a transfer leg, or the
                new values are invalid.
        """
        original = self.get_entry(entry_id)
        if not original.is_transfer_leg:
            raise InvalidTransferError("entry_id", "entry is not part of a transfer")

        pair = rebuild_pair(
            self._paired_legs(original),
            source,
            destination,
            amount,
            transfer_date,
            description,
            out_template=self.settings.transfer_out_template,
            in_template=self.settings.transfer_in_template,
        )

        with LogContext.bind(transfer_id=pair.transfer_id, **self.actor.log_context()):
            outgoing, incoming = self._update(list(pair))
        return TransferPair(outgoing, incoming)

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def delete_entry(self, entry_id: UUID) -> list[UUID]:
        """
        Delete an entry; a transfer leg takes its counterpart with it.

        Contract installments that were provisioned through a deleted entry
        are unlinked, not deleted.

        Returns:
            Ids of the deleted entries.

        Raises:
            EntryNotFoundError: The entry doesn't exist.
            TransferLegMissingError: The transfer's stored pair is broken.
        """
        entry = self.get_entry(entry_id)
        if entry.is_transfer_leg:
            ids = [leg.id for leg in self._paired_legs(entry)]
        else:
            ids = [entry.id]

        with LogContext.bind(**self.actor.log_context()):
            self.session.execute(
                update(ContractInstallmentModel)
                .where(ContractInstallmentModel.ledger_entry_id.in_(ids))
                .values(ledger_entry_id=None)
            )
            for entry_to_delete in ids:
                self.session.delete(self._get_model(entry_to_delete))
            self.session.flush()
            logger.info("entries_deleted", extra={
                "entry_ids": [str(i) for i in ids],
                "transfer_id": str(entry.transfer_id) if entry.transfer_id else None,
            })
        return ids
