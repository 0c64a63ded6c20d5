"""
Module: ledger_engines
Responsibility:
    Package entrypoint that re-exports all public symbols from the pure
    scheduling and reconciliation engines.  This is the canonical import
    surface for the service layer.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel.domain, ledger_kernel.exceptions and
    ledger_kernel.logging_config (and sibling engine modules).
    MUST NOT import ledger_services or ledger_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Dates must be passed in as explicit parameters.
    - Decimal-only arithmetic: monetary amounts are ``Decimal``; floats are
      converted through ``str()`` at the boundary.
    - Determinism: identical inputs always produce identical outputs, apart
      from freshly generated group/transfer identifiers (injectable).

Failure modes:
    - InvalidSpecError, InvalidTransferError, InvalidPlanError,
      InvalidAccountError, SeriesNotFoundError and SeriesMismatchError
      raised synchronously on invalid input.

Usage:
    from ledger_engines.cadence import shift
    from ledger_engines.series import SeriesSpec, generate_series
    from ledger_engines.propagation import EditScope, propagate
    from ledger_engines.residual import reconcile_residual
    from ledger_engines.transfer import build_transfer_pair
"""

from ledger_kernel.logging_config import get_logger

logger = get_logger("engines")

from ledger_engines.cadence import (
    anchor_to_day,
    last_day_of_month,
    months_between,
    shift,
)
from ledger_engines.card_cycle import (
    card_due_date,
    default_due_date,
)
from ledger_engines.propagation import (
    EditCommand,
    EditScope,
    EntryUpdate,
    PropagationResult,
    SeriesEdit,
    SingleEdit,
    UpdateRole,
    propagate,
    resolve_edit,
)
from ledger_engines.residual import (
    DEFAULT_DRIFT_THRESHOLD,
    ContractInstallment,
    ContractPaymentPlan,
    InstallmentKind,
    InstallmentStatus,
    ReconciliationDrift,
    ResidualReconciliation,
    TradeInCredit,
    amount_from_percent,
    installment_status,
    installments_pending_provisioning,
    is_residual_row,
    percent_of_total,
    reconcile_residual,
)
from ledger_engines.series import (
    DEFAULT_OPEN_ENDED_CAP,
    SeriesCadence,
    SeriesSpec,
    format_series_description,
    generate_series,
    split_series_suffix,
)
from ledger_engines.transfer import (
    TransferPair,
    build_transfer_pair,
    pair_legs,
    rebuild_pair,
)

__all__ = [
    # Cadence
    "shift",
    "anchor_to_day",
    "months_between",
    "last_day_of_month",
    # Card cycle
    "card_due_date",
    "default_due_date",
    # Series
    "DEFAULT_OPEN_ENDED_CAP",
    "SeriesCadence",
    "SeriesSpec",
    "generate_series",
    "format_series_description",
    "split_series_suffix",
    # Propagation
    "EditScope",
    "EditCommand",
    "SingleEdit",
    "SeriesEdit",
    "UpdateRole",
    "EntryUpdate",
    "PropagationResult",
    "propagate",
    "resolve_edit",
    # Residual / payment plan
    "DEFAULT_DRIFT_THRESHOLD",
    "InstallmentKind",
    "InstallmentStatus",
    "ContractInstallment",
    "TradeInCredit",
    "ContractPaymentPlan",
    "ReconciliationDrift",
    "ResidualReconciliation",
    "reconcile_residual",
    "is_residual_row",
    "installment_status",
    "installments_pending_provisioning",
    "percent_of_total",
    "amount_from_percent",
    # Transfer
    "TransferPair",
    "build_transfer_pair",
    "pair_legs",
    "rebuild_pair",
]

logger.debug("engines_package_loaded", extra={
    "module_count": 6,
    "modules": [
        "cadence", "card_cycle", "series", "propagation", "residual", "transfer",
    ],
})
