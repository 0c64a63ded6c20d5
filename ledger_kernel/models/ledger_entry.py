"""
Module: ledger_kernel.models.ledger_entry
Responsibility: ORM persistence for ledger entries (single entries, members of
    installment/recurring series, and transfer legs).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Series siblings are found through ``series_group_id``; the
      (series_group_id, due_date) index serves "every sibling due after X".
    - Transfer legs are found through ``transfer_id``.
    - amount is stored positive; direction lives in ``nature``.

Failure modes:
    - IntegrityError on NULL in a required column.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class LedgerEntryModel(TrackedBase):
    """
    Persisted ledger entry.

    Enum-valued columns (``nature``, ``status``, ``recurrence_frequency``)
    hold the enum's string value; selectors convert them back.
    """

    __tablename__ = "ledger_entries"

    __table_args__ = (
        Index("idx_ledger_entry_series", "series_group_id"),
        Index("idx_ledger_entry_series_due", "series_group_id", "due_date"),
        Index("idx_ledger_entry_transfer", "transfer_id"),
        Index("idx_ledger_entry_account_due", "account_id", "due_date"),
    )

    description: Mapped[str] = mapped_column(String(500), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    nature: Mapped[str] = mapped_column(String(10), nullable=False)

    transaction_date: Mapped[date] = mapped_column(nullable=False)

    due_date: Mapped[date] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(String(10), nullable=False, default="pending")

    settlement_date: Mapped[date | None] = mapped_column(nullable=True)

    # References owned by the surrounding application
    account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    counterparty_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    category_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Cost centers
    venture_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    phase_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    company_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    series_group_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    transfer_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Set on the first entry of a recurring series only
    recurrence_frequency: Mapped[str | None] = mapped_column(String(20), nullable=True)
    recurrence_end_date: Mapped[date | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return (
            f"<LedgerEntryModel {self.description!r} {self.amount} "
            f"{self.nature} due={self.due_date}>"
        )
