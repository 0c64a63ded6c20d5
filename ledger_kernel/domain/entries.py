"""
Entries -- The LedgerEntry value object and its reference types.

Responsibility:
    Defines the in-memory shape of a single financial movement as every
    engine sees it.  Drafts (no ``id``) come out of the series generator and
    the transfer builder; persisted entries come back from selectors as the
    same type with ``id`` set.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every engine.  No outward dependencies except
    ``ledger_kernel.domain.values`` and ``ledger_kernel.exceptions``.

Invariants enforced:
    - amount > 0; direction is carried by ``nature``, never by sign.
    - settlement_date is present iff status is SETTLED.
    - A transfer leg (``transfer_id`` set) is SETTLED and its settlement date
      equals its transaction date.

Failure modes:
    - InvalidEntryError on construction when any invariant is violated.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.domain.values import to_decimal
from ledger_kernel.exceptions import InvalidEntryError


class EntryNature(str, Enum):
    """Direction of a ledger movement."""

    EXPENSE = "expense"
    INCOME = "income"

    @property
    def opposite(self) -> "EntryNature":
        return EntryNature.INCOME if self is EntryNature.EXPENSE else EntryNature.EXPENSE


class SettlementStatus(str, Enum):
    """Settlement lifecycle of a ledger entry."""

    PENDING = "pending"
    SETTLED = "settled"


class RecurrenceFrequency(str, Enum):
    """Cadence recorded on the first entry of a recurring series."""

    MONTHLY = "monthly"


@dataclass(frozen=True)
class CostCenters:
    """Optional cost-center references: venture, phase and company."""

    venture_id: str | None = None
    phase_id: str | None = None
    company_id: str | None = None


@dataclass(frozen=True)
class RecurrenceInfo:
    """Bookkeeping metadata carried by the first entry of a recurring series."""

    frequency: RecurrenceFrequency = RecurrenceFrequency.MONTHLY
    end_date: date | None = None


@dataclass(frozen=True)
class AccountRef:
    """
    Reference to a financial account owned by the surrounding application.

    ``closing_day`` and ``payment_day`` are set only for credit-card accounts
    and drive the statement due-date calculation.
    """

    id: str
    name: str
    closing_day: int | None = None
    payment_day: int | None = None

    @property
    def is_credit_card(self) -> bool:
        return self.closing_day is not None and self.payment_day is not None


@dataclass(frozen=True)
class LedgerEntry:
    """
    A single financial movement.

    Contract:
        Immutable.  Edits produce new instances through ``evolve()``; the
        persistence layer assigns ``id``.

    Guarantees:
        - amount is a positive Decimal
        - status/settlement_date are consistent
        - transfer legs are always settled on their transaction date
    """

    description: str
    amount: Decimal
    nature: EntryNature
    transaction_date: date
    due_date: date
    account_id: str
    status: SettlementStatus = SettlementStatus.PENDING
    settlement_date: date | None = None
    counterparty_id: str | None = None
    category_id: str | None = None
    cost_centers: CostCenters = field(default_factory=CostCenters)
    series_group_id: UUID | None = None
    transfer_id: UUID | None = None
    notes: str = ""
    recurrence: RecurrenceInfo | None = None
    id: UUID | None = None

    def __post_init__(self) -> None:
        try:
            amount = to_decimal(self.amount)
        except ValueError as exc:
            raise InvalidEntryError("amount", str(exc)) from exc
        object.__setattr__(self, "amount", amount)

        if amount <= 0:
            raise InvalidEntryError("amount", f"must be positive, got {amount}")

        if self.status == SettlementStatus.SETTLED and self.settlement_date is None:
            raise InvalidEntryError(
                "settlement_date", "required when status is settled"
            )
        if self.status == SettlementStatus.PENDING and self.settlement_date is not None:
            raise InvalidEntryError(
                "settlement_date", "must be empty while status is pending"
            )

        if self.transfer_id is not None:
            if self.status != SettlementStatus.SETTLED:
                raise InvalidEntryError("status", "transfer legs are always settled")
            if self.settlement_date != self.transaction_date:
                raise InvalidEntryError(
                    "settlement_date",
                    "transfer legs settle on their transaction date",
                )

    @property
    def is_draft(self) -> bool:
        return self.id is None

    @property
    def in_series(self) -> bool:
        return self.series_group_id is not None

    @property
    def is_transfer_leg(self) -> bool:
        return self.transfer_id is not None

    def evolve(self, **changes) -> "LedgerEntry":
        """Return a copy with ``changes`` applied (invariants re-checked)."""
        return dataclasses.replace(self, **changes)
