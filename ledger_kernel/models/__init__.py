"""ORM models for the ledger kernel."""

from ledger_kernel.models.contract import (
    ContractInstallmentModel,
    ContractModel,
    TradeInCreditModel,
)
from ledger_kernel.models.ledger_entry import LedgerEntryModel

__all__ = [
    "ContractInstallmentModel",
    "ContractModel",
    "LedgerEntryModel",
    "TradeInCreditModel",
]
