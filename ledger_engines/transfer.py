"""
Module: ledger_engines.transfer
Responsibility:
    Build and rebuild the two linked ledger entries that store an
    inter-account transfer: an outgoing EXPENSE leg on the source account and
    an incoming INCOME leg on the destination account.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel.domain and ledger_kernel.exceptions.

Invariants enforced:
    - Both legs share one transfer correlation identifier, are created
      settled on the transfer date and carry the counterpart account's name
      in their description.
    - The two legs are one unit.  The module offers ``rebuild_pair`` (paired
      edit) and ``pair_legs`` (validate a stored pair) but no single-leg
      update.

Failure modes:
    - InvalidTransferError for identical accounts or a non-positive amount.
    - TransferLegMissingError when a stored pair lacks exactly one leg of
      each direction.

Usage:
    from ledger_engines.transfer import build_transfer_pair

    outgoing, incoming = build_transfer_pair(
        source=checking, destination=savings,
        amount=Decimal("500.00"), transfer_date=date(2024, 3, 1),
        description="Monthly reserve",
    )
    outgoing.description   # "Transfer to Savings: Monthly reserve"
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import date
from decimal import Decimal
from typing import Any, NamedTuple
from uuid import UUID, uuid4

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.entries import (
    AccountRef,
    CostCenters,
    EntryNature,
    LedgerEntry,
    SettlementStatus,
)
from ledger_kernel.domain.values import to_decimal
from ledger_kernel.exceptions import InvalidTransferError, TransferLegMissingError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.transfer")


DEFAULT_OUT_TEMPLATE = "Transfer to {account}: {description}"
DEFAULT_IN_TEMPLATE = "Transfer from {account}: {description}"


class TransferPair(NamedTuple):
    """The two legs of one transfer, outgoing first."""

    outgoing: LedgerEntry
    incoming: LedgerEntry

    @property
    def transfer_id(self) -> UUID:
        return self.outgoing.transfer_id

    @property
    def amount(self) -> Decimal:
        return self.outgoing.amount


def _validate(source: AccountRef, destination: AccountRef, amount: Any) -> Decimal:
    if source.id == destination.id:
        raise InvalidTransferError(
            "destination", "source and destination accounts must differ"
        )
    try:
        value = to_decimal(amount)
    except ValueError as exc:
        raise InvalidTransferError("amount", str(exc)) from exc
    if value <= 0:
        raise InvalidTransferError("amount", f"must be positive, got {value}")
    return value


def _legs(
    transfer_id: UUID,
    source: AccountRef,
    destination: AccountRef,
    amount: Decimal,
    transfer_date: date,
    description: str,
    out_template: str,
    in_template: str,
    shared: dict[str, Any],
    ids: tuple[Any, Any] = (None, None),
) -> TransferPair:
    common = dict(
        amount=amount,
        transaction_date=transfer_date,
        due_date=transfer_date,
        status=SettlementStatus.SETTLED,
        settlement_date=transfer_date,
        transfer_id=transfer_id,
        **shared,
    )
    outgoing = LedgerEntry(
        description=out_template.format(account=destination.name, description=description),
        nature=EntryNature.EXPENSE,
        account_id=source.id,
        id=ids[0],
        **common,
    )
    incoming = LedgerEntry(
        description=in_template.format(account=source.name, description=description),
        nature=EntryNature.INCOME,
        account_id=destination.id,
        id=ids[1],
        **common,
    )
    return TransferPair(outgoing, incoming)


@traced_engine(
    "transfer", "1.0",
    fingerprint_fields=("source", "destination", "amount", "transfer_date"),
)
def build_transfer_pair(
    source: AccountRef,
    destination: AccountRef,
    amount: Any,
    transfer_date: date,
    description: str,
    category_id: str | None = None,
    cost_centers: CostCenters | None = None,
    notes: str = "",
    out_template: str = DEFAULT_OUT_TEMPLATE,
    in_template: str = DEFAULT_IN_TEMPLATE,
    transfer_id_factory: Callable[[], UUID] = uuid4,
) -> TransferPair:
    """
    Build the outgoing and incoming legs of a transfer.

    Pure function - no side effects, no I/O.

    Raises:
        InvalidTransferError: Source equals destination, or amount <= 0
    """
    value = _validate(source, destination, amount)
    transfer_id = transfer_id_factory()

    pair = _legs(
        transfer_id, source, destination, value, transfer_date, description,
        out_template, in_template,
        shared={
            "category_id": category_id,
            "cost_centers": cost_centers or CostCenters(),
            "notes": notes,
        },
    )

    logger.info("transfer_pair_built", extra={
        "transfer_id": str(transfer_id),
        "source_account_id": source.id,
        "destination_account_id": destination.id,
        "amount": str(value),
        "transfer_date": transfer_date.isoformat(),
    })
    return pair


def pair_legs(entries: Sequence[LedgerEntry]) -> TransferPair:
    """
    Assemble a stored pair from its two legs, in any order.

    Raises:
        TransferLegMissingError: Not exactly one outgoing and one incoming leg
            sharing a single transfer correlation identifier
    """
    transfer_ids = {e.transfer_id for e in entries}
    transfer_id = next(iter(transfer_ids)) if len(transfer_ids) == 1 else None
    label = str(transfer_id) if transfer_id else None

    if len(entries) != 2 or transfer_id is None:
        raise TransferLegMissingError(label, len(entries))

    outgoing = [e for e in entries if e.nature == EntryNature.EXPENSE]
    incoming = [e for e in entries if e.nature == EntryNature.INCOME]
    if len(outgoing) != 1 or len(incoming) != 1:
        raise TransferLegMissingError(label, len(entries))
    return TransferPair(outgoing[0], incoming[0])


@traced_engine("transfer", "1.0", fingerprint_fields=("amount", "transfer_date"))
def rebuild_pair(
    pair: TransferPair,
    source: AccountRef,
    destination: AccountRef,
    amount: Any,
    transfer_date: date,
    description: str,
    out_template: str = DEFAULT_OUT_TEMPLATE,
    in_template: str = DEFAULT_IN_TEMPLATE,
) -> TransferPair:
    """
    Apply an edit to both legs of an existing transfer.

    Identifiers and the transfer correlation id are preserved; category,
    cost centers and notes are taken from the outgoing leg.

    Raises:
        InvalidTransferError: Source equals destination, or amount <= 0
    """
    value = _validate(source, destination, amount)
    template = pair.outgoing

    rebuilt = _legs(
        pair.transfer_id, source, destination, value, transfer_date, description,
        out_template, in_template,
        shared={
            "category_id": template.category_id,
            "cost_centers": template.cost_centers,
            "notes": template.notes,
        },
        ids=(pair.outgoing.id, pair.incoming.id),
    )

    logger.info("transfer_pair_rebuilt", extra={
        "transfer_id": str(pair.transfer_id),
        "amount": str(value),
        "transfer_date": transfer_date.isoformat(),
    })
    return rebuilt
