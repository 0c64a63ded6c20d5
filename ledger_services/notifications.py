"""
New-entry notifications.

After a creation batch is flushed, the service builds one ``NewEntryNotice``
from the first persisted entry and hands it to a ``Notifier``.  Formatting
and delivery belong to the notifier; the ledger only supplies the data.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from ledger_kernel.domain.entries import EntryNature, LedgerEntry
from ledger_kernel.logging_config import get_logger
from ledger_services.identity import ActorContext

logger = get_logger("services.notifications")

NOTICE_PERMISSION = "finance"

_TITLE_KEYS = {
    EntryNature.INCOME: "ledger.new_income",
    EntryNature.EXPENSE: "ledger.new_expense",
}


@dataclass(frozen=True)
class NewEntryNotice:
    """
    Data for a "new entry" alert.

    Attributes:
        title_key: Message key chosen by the entry's nature
        description: Entry description
        amount: Entry amount
        nature: EXPENSE or INCOME
        organization_id: Tenant the alert is scoped to
        permission: Permission a recipient needs to see the alert
        entry_id: Persisted entry the alert points to
    """

    title_key: str
    description: str
    amount: Decimal
    nature: EntryNature
    organization_id: UUID | None
    permission: str = NOTICE_PERMISSION
    entry_id: UUID | None = None


def build_new_entry_notice(entry: LedgerEntry, actor: ActorContext) -> NewEntryNotice:
    return NewEntryNotice(
        title_key=_TITLE_KEYS[entry.nature],
        description=entry.description,
        amount=entry.amount,
        nature=entry.nature,
        organization_id=actor.organization_id,
        entry_id=entry.id,
    )


class Notifier(Protocol):
    """Receives notices for newly created entries."""

    def notify(self, notice: NewEntryNotice) -> None:
        ...


class LoggingNotifier:
    """Notifier that only writes the notice to the structured log."""

    def notify(self, notice: NewEntryNotice) -> None:
        logger.info("new_entry_notice", extra={
            "title_key": notice.title_key,
            "description": notice.description,
            "amount": str(notice.amount),
            "nature": notice.nature.value,
            "entry_id": str(notice.entry_id) if notice.entry_id else None,
        })
