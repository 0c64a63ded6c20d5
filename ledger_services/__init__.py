"""
ledger_services -- Package init and public API.

Responsibility:
    Services that run the pure ledger engines against a database session:
    they read the inputs the engines need, persist their results with actor
    provenance, and hand new-entry notices to a notifier.

Architecture position:
    Services -- imperative shell over engines + kernel.

        ledger_services/ -> ledger_engines/  (allowed)
        ledger_services/ -> ledger_kernel/   (allowed)
        ledger_engines/  -> ledger_services/ (FORBIDDEN)
        ledger_kernel/   -> ledger_services/ (FORBIDDEN)

Invariants enforced:
    - Services flush; the caller owns commit and rollback.
"""

from ledger_services.identity import ActorContext
from ledger_services.ledger_entry_service import LedgerEntryService
from ledger_services.notifications import (
    LoggingNotifier,
    NewEntryNotice,
    Notifier,
    build_new_entry_notice,
)
from ledger_services.payment_plan_service import PaymentPlanService

__all__ = [
    "ActorContext",
    "LedgerEntryService",
    "PaymentPlanService",
    "NewEntryNotice",
    "Notifier",
    "LoggingNotifier",
    "build_new_entry_notice",
]
