"""
Module: ledger_engines.residual
Responsibility:
    Contract payment plans and residual reconciliation.  A sale contract's
    payment plan is a set of explicit installments (down payment,
    construction, additional) plus non-cash trade-in credits.  The final
    "residual installment" is the balancing term

        residual = total price - sum(explicit installments) - sum(trade-ins)

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel.domain and ledger_kernel.exceptions.

Invariants enforced:
    - The residual is never an independent input; it is recomputed on every
      read.
    - A persisted copy is never silently corrected: drift beyond the
      threshold is reported as a ``ReconciliationDrift`` advisory and the
      decision to resynchronize is left to the caller.
    - Decimal-only arithmetic for all monetary amounts.

Failure modes:
    - InvalidPlanError when a ``ContractPaymentPlan`` is built directly with
      the residual row among its explicit installments.

Audit relevance:
    Each reconciliation is traced via ``@traced_engine``.

Usage:
    from ledger_engines.residual import ContractPaymentPlan, reconcile_residual

    result = reconcile_residual(
        total=Decimal("500000"),
        explicit_installments=[down_payment, construction],
        trade_ins=[car],
        persisted_residual=Decimal("380000"),
    )
    result.computed_residual   # authoritative value to display
    result.advisory            # ReconciliationDrift or None
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.values import ZERO, quantize_money, sum_amounts, to_decimal
from ledger_kernel.exceptions import InvalidPlanError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.residual")


# Smallest monetary subdivision; differences at or below it are rounding noise.
DEFAULT_DRIFT_THRESHOLD = Decimal("0.01")

DEFAULT_RESIDUAL_DESCRIPTION = "Residual balance (keys)"

# Marker used to recognise a stored residual row by its description.
RESIDUAL_MARKER = "residual balance"

_PERCENT_PLACES = 4


class InstallmentKind(str, Enum):
    """Category tag of a contract installment."""

    DOWN_PAYMENT = "down_payment"
    CONSTRUCTION = "construction"
    ADDITIONAL = "additional"
    RESIDUAL = "residual"


class InstallmentStatus(str, Enum):
    """Display status of a contract installment on a given date."""

    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


# ============================================================================
# Value Objects
# ============================================================================


@dataclass(frozen=True)
class ContractInstallment:
    """
    One installment of a contract payment plan.

    Attributes:
        description: Human-readable label
        due_date: Due date (may be unknown for an unscheduled residual)
        amount: Installment amount
        kind: Category tag
        paid: Whether the installment has been paid
        ledger_entry_id: Ledger entry provisioned for this installment, if any
        id: Persistence identifier, if any
    """

    description: str
    due_date: date | None
    amount: Decimal
    kind: InstallmentKind = InstallmentKind.ADDITIONAL
    paid: bool = False
    ledger_entry_id: Any = None
    id: Any = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))


@dataclass(frozen=True)
class TradeInCredit:
    """A non-cash value applied against the contract's total price."""

    description: str
    credit_date: date
    amount: Decimal
    id: Any = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))


@dataclass(frozen=True)
class ReconciliationDrift:
    """
    Advisory: the persisted residual copy differs from the computed value.

    Not an error.  Surfaced as a non-blocking banner showing both values so
    the user can trigger a resynchronization.
    """

    computed_residual: Decimal
    persisted_residual: Decimal
    drift_amount: Decimal


@dataclass(frozen=True)
class ResidualReconciliation:
    """
    Result of reconciling a payment plan's residual installment.

    Attributes:
        computed_residual: total - explicit - trade-ins (authoritative)
        drift_amount: computed - persisted (zero without a persisted copy)
        persisted_residual: The stored copy, if any
        explicit_total: Sum of explicit installments
        trade_in_total: Sum of trade-in credits
        drift_threshold: Drift at or below this is treated as rounding noise
    """

    computed_residual: Decimal
    drift_amount: Decimal
    persisted_residual: Decimal | None
    explicit_total: Decimal
    trade_in_total: Decimal
    drift_threshold: Decimal = DEFAULT_DRIFT_THRESHOLD

    @property
    def has_drift(self) -> bool:
        return abs(self.drift_amount) > self.drift_threshold

    @property
    def is_over_allocated(self) -> bool:
        return self.computed_residual < 0

    @property
    def advisory(self) -> ReconciliationDrift | None:
        if not self.has_drift or self.persisted_residual is None:
            return None
        return ReconciliationDrift(
            computed_residual=self.computed_residual,
            persisted_residual=self.persisted_residual,
            drift_amount=self.drift_amount,
        )


# ============================================================================
# Reconciliation
# ============================================================================


def _amount_of(item: Any) -> Decimal:
    return to_decimal(getattr(item, "amount", item))


@traced_engine(
    "residual", "1.0",
    fingerprint_fields=("total", "explicit_installments", "trade_ins", "persisted_residual"),
)
def reconcile_residual(
    total: Any,
    explicit_installments: Iterable[Any],
    trade_ins: Iterable[Any],
    persisted_residual: Any = None,
    drift_threshold: Decimal = DEFAULT_DRIFT_THRESHOLD,
) -> ResidualReconciliation:
    """
    Compute the authoritative residual and its drift against a stored copy.

    Pure function - no side effects, no I/O, deterministic output.

    Installments and trade-ins may be value objects with an ``amount``
    attribute or bare amounts.  A negative residual (over-allocated plan) is
    a valid result and is returned, not rejected.

    Args:
        total: Contract total price
        explicit_installments: Every installment except the residual
        trade_ins: Trade-in credits
        persisted_residual: Stored residual amount, or None
        drift_threshold: Largest |drift| treated as rounding noise

    Returns:
        ResidualReconciliation where
        explicit_total + trade_in_total + computed_residual == total exactly
    """
    t0 = time.monotonic()

    total_amount = to_decimal(total)
    explicit_total = sum_amounts(_amount_of(i) for i in explicit_installments)
    trade_in_total = sum_amounts(_amount_of(t) for t in trade_ins)
    computed = total_amount - explicit_total - trade_in_total

    persisted = to_decimal(persisted_residual) if persisted_residual is not None else None
    drift = computed - persisted if persisted is not None else ZERO

    result = ResidualReconciliation(
        computed_residual=computed,
        drift_amount=drift,
        persisted_residual=persisted,
        explicit_total=explicit_total,
        trade_in_total=trade_in_total,
        drift_threshold=to_decimal(drift_threshold),
    )

    duration_ms = round((time.monotonic() - t0) * 1000, 2)
    log_extra = {
        "total": str(total_amount),
        "explicit_total": str(explicit_total),
        "trade_in_total": str(trade_in_total),
        "computed_residual": str(computed),
        "persisted_residual": str(persisted) if persisted is not None else None,
        "drift_amount": str(drift),
        "duration_ms": duration_ms,
    }
    if result.has_drift:
        logger.warning("residual_drift_detected", extra=log_extra)
    else:
        logger.info("residual_reconciled", extra=log_extra)
    if result.is_over_allocated:
        logger.warning("residual_over_allocated", extra={
            "computed_residual": str(computed),
        })

    return result


# ============================================================================
# Payment plan
# ============================================================================


def is_residual_row(installment: ContractInstallment) -> bool:
    """A stored row is the residual if tagged so or labelled "residual balance"."""
    return (
        installment.kind == InstallmentKind.RESIDUAL
        or RESIDUAL_MARKER in (installment.description or "").lower()
    )


@dataclass(frozen=True)
class ContractPaymentPlan:
    """
    Schedule attached to a sale contract.

    The residual installment is derived on every read; the persisted copy
    (``persisted_residual``) is kept only for drift detection.
    """

    total_price: Decimal
    installments: tuple[ContractInstallment, ...] = ()
    trade_ins: tuple[TradeInCredit, ...] = ()
    residual_description: str = DEFAULT_RESIDUAL_DESCRIPTION
    residual_due_date: date | None = None
    persisted_residual: Decimal | None = None
    residual_id: Any = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "total_price", to_decimal(self.total_price))
        object.__setattr__(self, "installments", tuple(self.installments))
        object.__setattr__(self, "trade_ins", tuple(self.trade_ins))
        if any(is_residual_row(i) for i in self.installments):
            raise InvalidPlanError(
                "installments", "must not include the residual; use from_rows()"
            )

    @classmethod
    def from_rows(
        cls,
        total_price: Any,
        rows: Sequence[ContractInstallment],
        trade_ins: Sequence[TradeInCredit] = (),
    ) -> "ContractPaymentPlan":
        """
        Build a plan from stored installment rows.

        The first row recognised as the residual supplies the residual's
        description, due date and persisted amount; any further residual rows
        are ignored with a warning.
        """
        explicit: list[ContractInstallment] = []
        stored_residual: ContractInstallment | None = None
        for row in rows:
            if not is_residual_row(row):
                explicit.append(row)
            elif stored_residual is None:
                stored_residual = row
            else:
                logger.warning("duplicate_residual_row_ignored", extra={
                    "installment_id": str(row.id),
                })

        return cls(
            total_price=total_price,
            installments=tuple(explicit),
            trade_ins=tuple(trade_ins),
            residual_description=(
                stored_residual.description if stored_residual
                else DEFAULT_RESIDUAL_DESCRIPTION
            ),
            residual_due_date=stored_residual.due_date if stored_residual else None,
            persisted_residual=stored_residual.amount if stored_residual else None,
            residual_id=stored_residual.id if stored_residual else None,
        )

    @property
    def sorted_installments(self) -> tuple[ContractInstallment, ...]:
        """Explicit installments by due date; undated ones last."""
        return tuple(sorted(
            self.installments,
            key=lambda i: (i.due_date is None, i.due_date or date.max),
        ))

    def reconcile(
        self, drift_threshold: Decimal = DEFAULT_DRIFT_THRESHOLD
    ) -> ResidualReconciliation:
        return reconcile_residual(
            self.total_price,
            self.installments,
            self.trade_ins,
            self.persisted_residual,
            drift_threshold=drift_threshold,
        )

    def residual_installment(self) -> ContractInstallment:
        """The residual with its stored label/date and the computed amount."""
        return ContractInstallment(
            description=self.residual_description,
            due_date=self.residual_due_date,
            amount=self.reconcile().computed_residual,
            kind=InstallmentKind.RESIDUAL,
            id=self.residual_id,
        )


def installment_status(installment: ContractInstallment, as_of: date) -> InstallmentStatus:
    """PAID if paid, OVERDUE if due before ``as_of``, otherwise PENDING."""
    if installment.paid:
        return InstallmentStatus.PAID
    if installment.due_date is not None and installment.due_date < as_of:
        return InstallmentStatus.OVERDUE
    return InstallmentStatus.PENDING


def installments_pending_provisioning(
    plan: ContractPaymentPlan,
) -> list[ContractInstallment]:
    """Unpaid explicit installments that have no ledger entry yet."""
    return [
        i for i in plan.sorted_installments
        if not i.paid and i.ledger_entry_id is None
    ]


def percent_of_total(amount: Any, total: Any) -> Decimal:
    """Share of ``total`` represented by ``amount``, in percent (4 places)."""
    total_amount = to_decimal(total)
    if total_amount == 0:
        return Decimal("0")
    return quantize_money(to_decimal(amount) / total_amount * 100, _PERCENT_PLACES)


def amount_from_percent(percent: Any, total: Any) -> Decimal:
    """Amount corresponding to ``percent`` of ``total``, rounded to cents."""
    return quantize_money(to_decimal(percent) / 100 * to_decimal(total))
