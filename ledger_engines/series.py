"""
Module: ledger_engines.series
Responsibility:
    Turn one user intent (amount + cadence + anchor date) into the full list
    of ledger-entry drafts that make up an installment or recurring series.

    Cadences:
    - INSTALLMENT: ``total_amount`` is split into ``installment_count`` equal
      parts, each rounded to cents.
    - RECURRING: ``total_amount`` is the flat amount of every occurrence.  The
      series runs month by month up to ``end_date`` (inclusive month count)
      or, when open-ended, for ``open_ended_cap`` occurrences.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel.domain, ledger_kernel.exceptions and
    ledger_engines.cadence.  Persisting the drafts is the caller's job and
    must happen as one batch.

Invariants enforced:
    - Every draft produced by one call shares one freshly assigned series
      group identifier.
    - Due dates follow ``cadence.shift`` from the anchor; day-of-month
      clamping never compounds across the series.
    - Decimal-only arithmetic.  Installment rounding residue is bounded by
      one cent per entry and is not redistributed.

Failure modes:
    - InvalidSpecError for a non-positive or non-numeric amount, a missing
      anchor date, an unknown cadence, an installment count below one, an
      open-ended cap below one, or an amount that rounds to zero per
      installment.

Audit relevance:
    Each generation is traced via ``@traced_engine`` with a fingerprint of
    the spec.

Usage:
    from ledger_engines.series import SeriesCadence, SeriesSpec, generate_series

    spec = SeriesSpec(
        total_amount=Decimal("1200.00"),
        cadence=SeriesCadence.INSTALLMENT,
        installment_count=12,
        anchor_due_date=date(2024, 1, 31),
        description="Laptop",
        nature=EntryNature.EXPENSE,
        account_id="acc-card",
    )
    drafts = generate_series(spec)
    drafts[1].due_date         # date(2024, 2, 29)
    drafts[1].description      # "Laptop (2/12)"
"""

from __future__ import annotations

import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from ledger_engines.cadence import months_between, shift
from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.entries import (
    CostCenters,
    EntryNature,
    LedgerEntry,
    RecurrenceFrequency,
    RecurrenceInfo,
    SettlementStatus,
)
from ledger_kernel.domain.values import MONEY_PLACES, quantize_money, to_decimal
from ledger_kernel.exceptions import InvalidSpecError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.series")


# Upper bound on an open-ended recurring batch.  Overridable per call and
# through EngineSettings.open_ended_cap.
DEFAULT_OPEN_ENDED_CAP = 60

_SUFFIX_RE = re.compile(r"^(?P<prefix>.*?)(?P<suffix>\s*\(\d+/\d+\))$", re.DOTALL)


class SeriesCadence(str, Enum):
    """How the total amount of a series is spread over its entries."""

    INSTALLMENT = "installment"
    RECURRING = "recurring"


@dataclass(frozen=True)
class SeriesSpec:
    """
    Complete input for series generation.

    Attributes:
        total_amount: Installment total to divide, or the flat recurring amount
        cadence: INSTALLMENT or RECURRING
        anchor_due_date: Due date of the first entry
        description: Base description; each entry gets a "(k/n)" suffix
        nature: EXPENSE or INCOME, copied onto every entry
        account_id: Account reference copied onto every entry
        installment_count: Number of installments (INSTALLMENT only)
        end_date: Last month of a recurring series; None means open-ended
        transaction_date: Transaction date of every entry (defaults to anchor)
        frequency: Recurrence frequency recorded on the first recurring entry
    """

    total_amount: Any
    cadence: SeriesCadence
    anchor_due_date: date | None
    description: str
    nature: EntryNature
    account_id: str
    installment_count: int | None = None
    end_date: date | None = None
    transaction_date: date | None = None
    category_id: str | None = None
    counterparty_id: str | None = None
    cost_centers: CostCenters = field(default_factory=CostCenters)
    notes: str = ""
    frequency: RecurrenceFrequency = RecurrenceFrequency.MONTHLY


# ============================================================================
# Description suffix helpers
# ============================================================================


def format_series_description(prefix: str, position: int, count: int) -> str:
    """Append the 1-based "(position/count)" marker to a description."""
    return f"{prefix} ({position}/{count})"


def split_series_suffix(description: str) -> tuple[str, str]:
    """
    Split a series description into its prefix and "(k/n)" suffix.

    The suffix keeps its leading whitespace so that ``prefix + suffix`` gives
    back the original text.  Descriptions without a marker return an empty
    suffix.
    """
    match = _SUFFIX_RE.match(description)
    if match is None:
        return description, ""
    return match.group("prefix"), match.group("suffix")


# ============================================================================
# Validation
# ============================================================================


def _validated_total(spec: SeriesSpec) -> Decimal:
    try:
        total = to_decimal(spec.total_amount)
    except ValueError as exc:
        raise InvalidSpecError("total_amount", str(exc)) from exc
    if total <= 0:
        raise InvalidSpecError("total_amount", f"must be positive, got {total}")
    return total


def _entry_count(spec: SeriesSpec, open_ended_cap: int) -> int:
    if spec.cadence == SeriesCadence.INSTALLMENT:
        count = spec.installment_count
        if count is None or isinstance(count, bool) or not isinstance(count, int):
            raise InvalidSpecError(
                "installment_count", "an integer count is required for installments"
            )
        if count < 1:
            raise InvalidSpecError(
                "installment_count", f"must be at least 1, got {count}"
            )
        return count

    if spec.end_date is not None:
        # Inclusive month count; an end date before the start still yields one.
        return max(months_between(spec.anchor_due_date, spec.end_date) + 1, 1)

    if open_ended_cap < 1:
        raise InvalidSpecError(
            "open_ended_cap", f"must be at least 1, got {open_ended_cap}"
        )
    return open_ended_cap


# ============================================================================
# Generation
# ============================================================================


@traced_engine(
    "series", "1.0", fingerprint_fields=("spec", "open_ended_cap", "money_places"),
)
def generate_series(
    spec: SeriesSpec,
    open_ended_cap: int = DEFAULT_OPEN_ENDED_CAP,
    group_id_factory: Callable[[], UUID] = uuid4,
    money_places: int = MONEY_PLACES,
) -> list[LedgerEntry]:
    """
    Build every draft of an installment or recurring series.

    Pure function - no side effects beyond returning drafts.  Either the whole
    list is produced or an exception is raised; there is no partial result.

    Args:
        spec: Series definition
        open_ended_cap: Occurrence count for recurring specs without end date
        group_id_factory: Source of the shared series group identifier
        money_places: Decimal places installment amounts are rounded to

    Returns:
        Drafts ordered by due date, all sharing one series_group_id

    Raises:
        InvalidSpecError: total <= 0, installment count < 1, missing anchor
            date, or installment amounts that round to zero
    """
    t0 = time.monotonic()

    if spec.anchor_due_date is None:
        raise InvalidSpecError("anchor_due_date", "an anchor due date is required")
    if not isinstance(spec.cadence, SeriesCadence):
        raise InvalidSpecError("cadence", f"unknown cadence {spec.cadence!r}")

    total = _validated_total(spec)
    count = _entry_count(spec, open_ended_cap)
    is_recurring = spec.cadence == SeriesCadence.RECURRING

    if is_recurring:
        entry_amount = total
    else:
        entry_amount = quantize_money(total / count, money_places)
        if entry_amount <= 0:
            raise InvalidSpecError(
                "installment_count",
                f"{total} split {count} ways rounds to zero per installment",
            )

    group_id = group_id_factory()
    transaction_date = spec.transaction_date or spec.anchor_due_date

    logger.info("series_generation_started", extra={
        "cadence": spec.cadence.value,
        "series_group_id": str(group_id),
        "entry_count": count,
        "entry_amount": str(entry_amount),
        "open_ended": is_recurring and spec.end_date is None,
    })

    drafts: list[LedgerEntry] = []
    for i in range(count):
        recurrence = None
        if is_recurring and i == 0:
            recurrence = RecurrenceInfo(frequency=spec.frequency, end_date=spec.end_date)

        drafts.append(LedgerEntry(
            description=format_series_description(spec.description, i + 1, count),
            amount=entry_amount,
            nature=spec.nature,
            transaction_date=transaction_date,
            due_date=shift(spec.anchor_due_date, i),
            account_id=spec.account_id,
            status=SettlementStatus.PENDING,
            counterparty_id=spec.counterparty_id,
            category_id=spec.category_id,
            cost_centers=spec.cost_centers,
            series_group_id=group_id,
            notes=spec.notes,
            recurrence=recurrence,
        ))

    duration_ms = round((time.monotonic() - t0) * 1000, 2)
    logger.info("series_generation_completed", extra={
        "series_group_id": str(group_id),
        "entry_count": len(drafts),
        "first_due_date": drafts[0].due_date.isoformat(),
        "last_due_date": drafts[-1].due_date.isoformat(),
        "rounding_residue": str(total - entry_amount * count) if not is_recurring else "0",
        "duration_ms": duration_ms,
    })

    return drafts
