"""
Module: ledger_kernel.models.contract
Responsibility: ORM persistence for sale contracts and their payment plans:
    explicit installments, the cached residual row, and trade-in credits.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - The residual row's ``amount`` is a cached copy.  It is read only for
      drift detection.  It is written by an explicit resynchronization, or by
      a plan change made while the copy still matched the computed value.
    - ``total_price`` is the contract's authoritative total.

Failure modes:
    - IntegrityError on an installment or trade-in referencing a missing
      contract.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString


class ContractModel(TrackedBase):
    """A sale contract with a total price and a payment plan."""

    __tablename__ = "contracts"

    reference: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        doc="Contract number or unit reference shown to users",
    )

    total_price: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="BRL")

    installments: Mapped[list["ContractInstallmentModel"]] = relationship(
        back_populates="contract",
        lazy="selectin",
        order_by="ContractInstallmentModel.due_date",
        cascade="all, delete-orphan",
    )

    trade_ins: Mapped[list["TradeInCreditModel"]] = relationship(
        back_populates="contract",
        lazy="selectin",
        order_by="TradeInCreditModel.credit_date",
        cascade="all, delete-orphan",
    )


class ContractInstallmentModel(TrackedBase):
    """
    One stored installment of a contract payment plan.

    ``kind`` holds an ``InstallmentKind`` value.  The residual row is either
    tagged "residual" or recognised by its description.
    """

    __tablename__ = "contract_installments"

    __table_args__ = (
        Index("idx_installment_contract", "contract_id"),
    )

    contract_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("contracts.id"),
        nullable=False,
    )

    contract: Mapped["ContractModel"] = relationship(back_populates="installments")

    description: Mapped[str] = mapped_column(String(255), nullable=False)

    due_date: Mapped[date | None] = mapped_column(nullable=True)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    kind: Mapped[str] = mapped_column(String(20), nullable=False, default="additional")

    paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    ledger_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("ledger_entries.id"),
        nullable=True,
        doc="Ledger entry provisioned for this installment",
    )


class TradeInCreditModel(TrackedBase):
    """A non-cash value (vehicle, property, ...) credited against the price."""

    __tablename__ = "contract_trade_ins"

    __table_args__ = (
        Index("idx_trade_in_contract", "contract_id"),
    )

    contract_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("contracts.id"),
        nullable=False,
    )

    contract: Mapped["ContractModel"] = relationship(back_populates="trade_ins")

    description: Mapped[str] = mapped_column(String(255), nullable=False)

    credit_date: Mapped[date] = mapped_column(nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)
