"""Read-only selectors over the ledger tables."""

from ledger_kernel.selectors.entry_selector import LedgerEntrySelector, entry_from_model

__all__ = ["LedgerEntrySelector", "entry_from_model"]
