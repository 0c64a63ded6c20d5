"""
Module: ledger_engines.card_cycle
Responsibility:
    Credit-card statement due dates.  A purchase on a credit-card account is
    not due on its transaction date but on the payment day of the statement
    it falls into.  ``default_due_date`` picks the due date a new entry gets
    for any account.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel.domain, ledger_kernel.exceptions and
    ledger_engines.cadence.

Invariants enforced:
    - Purchases made on or after the closing day roll into the next
      statement.
    - When the payment day comes before the closing day in the month,
      payment happens in the month after the statement closes.
    - Payment days are clamped to the length of the due month.

Failure modes:
    - InvalidAccountError when a closing or payment day is not an integer
      between 1 and 31.  ``field`` names the offending day.
"""

from __future__ import annotations

from datetime import date

from ledger_engines.cadence import anchor_to_day, shift
from ledger_kernel.domain.entries import AccountRef
from ledger_kernel.exceptions import InvalidAccountError


def card_due_date(purchase_date: date, closing_day: int, payment_day: int) -> date:
    """
    Due date of a card purchase.

    Raises:
        InvalidAccountError: If either day is outside 1..31 (``field`` names it)
    """
    for name, day in (("closing_day", closing_day), ("payment_day", payment_day)):
        if isinstance(day, bool) or not isinstance(day, int) or not 1 <= day <= 31:
            raise InvalidAccountError(name, f"must be a day between 1 and 31, got {day!r}")

    offset = 0
    if purchase_date.day >= closing_day:
        offset += 1
    if payment_day < closing_day:
        offset += 1
    return anchor_to_day(shift(purchase_date, offset), payment_day)


def default_due_date(account: AccountRef | None, transaction_date: date) -> date:
    """Statement due date on card accounts, the transaction date otherwise."""
    if account is not None and account.is_credit_card:
        return card_due_date(transaction_date, account.closing_day, account.payment_day)
    return transaction_date
