"""
Module: ledger_engines.propagation
Responsibility:
    Propagate an edit of one series member under the scope the user picked:

    - SINGLE: only the edited entry changes.
    - FUTURE: the edited entry (the pivot) and every later member of the
      series change.  The tail receives the pivot's shared fields, and its
      dates are moved by the same whole-month offsets the user applied to
      the pivot, then re-anchored on the pivot's day-of-month.

    The scope can be handed over either as an explicit ``EditScope`` through
    ``propagate()`` or as a command object (``SingleEdit`` / ``SeriesEdit``)
    through ``resolve_edit()``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel.domain, ledger_kernel.exceptions and
    ledger_engines.cadence.  Loading the tail and persisting the batch belong
    to the service layer.

Invariants enforced:
    - Transaction and due-date offsets are computed once from the pivot
      (original vs edited), never per entry, so a long series stays aligned
      on one billing day.
    - Each tail entry keeps its own ``(k/n)`` suffix and settlement status.
    - The pivot is always first in the returned batch, followed by the tail
      in due-date order.

Failure modes:
    - SeriesNotFoundError for a FUTURE edit of an entry without a series
      group, or with a group id that does not match the entry.
    - SeriesMismatchError when a tail entry belongs to another group.
    - TypeError from ``resolve_edit`` for an unknown command type.

Usage:
    from ledger_engines.propagation import EditScope, propagate

    result = propagate(
        series_group_id=original.series_group_id,
        original_entry=original,
        edited_entry=edited,
        scope=EditScope.FUTURE,
        future_entries=tail,
    )
    batch = result.entries   # pivot first, then the tail in due-date order
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from enum import Enum
from uuid import UUID

from ledger_engines.cadence import anchor_to_day, months_between, shift
from ledger_engines.series import split_series_suffix
from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.entries import LedgerEntry
from ledger_kernel.exceptions import SeriesMismatchError, SeriesNotFoundError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.propagation")


class EditScope(str, Enum):
    """Which members of a series an edit applies to."""

    SINGLE = "single"
    FUTURE = "future"


class UpdateRole(str, Enum):
    """Why an entry is part of a propagation batch."""

    PIVOT = "pivot"
    FUTURE = "future"


@dataclass(frozen=True)
class SingleEdit:
    """Edit command: apply ``entry`` to itself only."""

    entry: LedgerEntry


@dataclass(frozen=True)
class SeriesEdit:
    """Edit command: apply ``entry`` and cascade to ``affected_tail``."""

    entry: LedgerEntry
    affected_tail: tuple[LedgerEntry, ...] = ()


EditCommand = SingleEdit | SeriesEdit


@dataclass(frozen=True)
class EntryUpdate:
    """One entry of a propagation batch, tagged with its role."""

    role: UpdateRole
    entry: LedgerEntry


@dataclass(frozen=True)
class PropagationResult:
    """
    Update batch for one edit request.

    The batch is meant to be persisted atomically: pivot plus tail, or
    nothing.

    Attributes:
        scope: Scope the batch was computed for
        series_group_id: Series the edit belongs to
        due_offset: Whole-month move of the pivot's due date
        transaction_offset: Whole-month move of the pivot's transaction date
        updates: Pivot first, then the tail in due-date order
    """

    scope: EditScope
    series_group_id: UUID
    due_offset: int
    transaction_offset: int
    updates: tuple[EntryUpdate, ...]

    @property
    def pivot(self) -> LedgerEntry:
        return self.updates[0].entry

    @property
    def future_updates(self) -> tuple[LedgerEntry, ...]:
        return tuple(u.entry for u in self.updates if u.role == UpdateRole.FUTURE)

    @property
    def entries(self) -> list[LedgerEntry]:
        return [u.entry for u in self.updates]

    def __len__(self) -> int:
        return len(self.updates)


# ============================================================================
# Helpers
# ============================================================================


def _move(value: date, offset: int, day: int) -> date:
    return anchor_to_day(shift(value, offset), day)


def _apply_pivot(
    entry: LedgerEntry,
    edited: LedgerEntry,
    due_offset: int,
    transaction_offset: int,
) -> LedgerEntry:
    """Copy the pivot's shared fields onto a tail entry and move its dates."""
    prefix, _ = split_series_suffix(edited.description)
    _, own_suffix = split_series_suffix(entry.description)

    return entry.evolve(
        description=prefix + own_suffix,
        amount=edited.amount,
        nature=edited.nature,
        account_id=edited.account_id,
        category_id=edited.category_id,
        counterparty_id=edited.counterparty_id,
        cost_centers=edited.cost_centers,
        notes=edited.notes,
        due_date=_move(entry.due_date, due_offset, edited.due_date.day),
        transaction_date=_move(
            entry.transaction_date, transaction_offset, edited.transaction_date.day
        ),
    )


def _select_tail(
    group_id: UUID,
    original: LedgerEntry,
    edited: LedgerEntry,
    future_entries: Sequence[LedgerEntry],
) -> list[LedgerEntry]:
    tail: list[LedgerEntry] = []
    for entry in future_entries:
        if entry.series_group_id != group_id:
            raise SeriesMismatchError(
                str(entry.id), str(group_id),
                str(entry.series_group_id) if entry.series_group_id else None,
            )
        if entry.id is not None and entry.id in (original.id, edited.id):
            continue
        if entry.due_date <= original.due_date:
            logger.warning("propagation_tail_entry_ignored", extra={
                "entry_id": str(entry.id),
                "due_date": entry.due_date.isoformat(),
                "pivot_due_date": original.due_date.isoformat(),
            })
            continue
        tail.append(entry)
    return sorted(tail, key=lambda e: (e.due_date, e.description))


# ============================================================================
# Core Propagation
# ============================================================================


@traced_engine(
    "propagation", "1.0",
    fingerprint_fields=("series_group_id", "original_entry", "edited_entry", "scope"),
)
def propagate(
    series_group_id: UUID | None,
    original_entry: LedgerEntry,
    edited_entry: LedgerEntry,
    scope: EditScope,
    future_entries: Sequence[LedgerEntry] = (),
) -> PropagationResult:
    """
    Compute the update batch for an edit to one member of a series.

    Pure function - no side effects, no I/O, deterministic output.

    Args:
        series_group_id: Series the caller believes the entry belongs to
        original_entry: The entry as persisted before the edit
        edited_entry: The entry with the user's changes applied
        scope: SINGLE or FUTURE
        future_entries: Series members due strictly after the original due
            date (ignored for SINGLE).  Entries due on or before it are
            skipped with a warning.

    Returns:
        PropagationResult.  SINGLE holds exactly the pivot; FUTURE holds the
        pivot followed by one update per tail entry.

    Raises:
        SeriesNotFoundError: The edited entry has no series group, or not the
            one named by ``series_group_id``
        SeriesMismatchError: A tail entry belongs to another series
    """
    t0 = time.monotonic()

    if edited_entry.series_group_id is None or series_group_id is None:
        raise SeriesNotFoundError(
            str(edited_entry.id),
            str(series_group_id) if series_group_id else None,
        )
    if edited_entry.series_group_id != series_group_id:
        raise SeriesNotFoundError(str(edited_entry.id), str(series_group_id))

    due_offset = months_between(original_entry.due_date, edited_entry.due_date)
    transaction_offset = months_between(
        original_entry.transaction_date, edited_entry.transaction_date
    )

    logger.info("propagation_started", extra={
        "series_group_id": str(series_group_id),
        "entry_id": str(edited_entry.id),
        "scope": scope.value,
        "due_offset": due_offset,
        "transaction_offset": transaction_offset,
    })

    updates = [EntryUpdate(role=UpdateRole.PIVOT, entry=edited_entry)]

    if scope == EditScope.FUTURE:
        tail = _select_tail(series_group_id, original_entry, edited_entry, future_entries)
        updates.extend(
            EntryUpdate(
                role=UpdateRole.FUTURE,
                entry=_apply_pivot(entry, edited_entry, due_offset, transaction_offset),
            )
            for entry in tail
        )

    result = PropagationResult(
        scope=scope,
        series_group_id=series_group_id,
        due_offset=due_offset,
        transaction_offset=transaction_offset,
        updates=tuple(updates),
    )

    duration_ms = round((time.monotonic() - t0) * 1000, 2)
    logger.info("propagation_completed", extra={
        "series_group_id": str(series_group_id),
        "scope": scope.value,
        "update_count": len(result),
        "duration_ms": duration_ms,
    })

    return result


def resolve_edit(command: EditCommand, original_entry: LedgerEntry) -> PropagationResult:
    """
    Resolve an edit command into its update batch.

    ``SingleEdit`` maps to SINGLE scope, ``SeriesEdit`` to FUTURE scope with
    its affected tail.

    Raises:
        TypeError: If ``command`` is neither command type
    """
    if isinstance(command, SingleEdit):
        return propagate(
            command.entry.series_group_id, original_entry, command.entry,
            EditScope.SINGLE,
        )
    if isinstance(command, SeriesEdit):
        return propagate(
            command.entry.series_group_id, original_entry, command.entry,
            EditScope.FUTURE, command.affected_tail,
        )
    raise TypeError(f"Unsupported edit command: {type(command).__name__}")
