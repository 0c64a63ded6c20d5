"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every failure the scheduling engine can report is an input-validation failure
that a user interface has to turn into a rejected action with the offending
field named.  Parsing message strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (field, reason, identifiers)

Example:
    try:
        drafts = generate_series(spec)
    except InvalidSpecError as e:
        api_response(code=e.code, field=e.field, reason=e.reason)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerEngineError (base)
    |
    +-- InvalidEntryError
    +-- InvalidSpecError
    +-- InvalidPlanError
    +-- InvalidAccountError
    |
    +-- TransferError
    |   +-- InvalidTransferError
    |   +-- TransferLegMissingError
    |
    +-- SeriesError
    |   +-- SeriesNotFoundError
    |   +-- SeriesMismatchError
    |
    +-- EntryNotFoundError
    +-- ContractNotFoundError
    +-- PlanItemNotFoundError
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                    | When Raised
------------------------|------------------------------------------------------
INVALID_ENTRY           | LedgerEntry built with a broken invariant
INVALID_SPEC            | Series generation input is malformed
INVALID_PLAN            | Payment plan input is malformed (e.g. residual given
                        | as an explicit installment)
INVALID_ACCOUNT         | Card closing/payment day outside 1..31
INVALID_TRANSFER        | Same source/destination account, or amount <= 0
TRANSFER_LEG_MISSING    | A transfer pair is incomplete or mixes two transfers
SERIES_NOT_FOUND        | Propagation on an entry without a series group
SERIES_MISMATCH         | Tail entry belongs to a different series group
ENTRY_NOT_FOUND         | Entry ID does not exist
CONTRACT_NOT_FOUND      | Contract ID does not exist
PLAN_ITEM_NOT_FOUND     | Installment or trade-in ID not on the given contract
CONFIGURATION_ERROR     | Engine settings file holds an invalid value

Residual drift is NOT an exception: it is reported through the
``ReconciliationDrift`` advisory returned by the residual reconciler.

None of these errors are transient.  Nothing in the kernel retries them.
"""


class LedgerEngineError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_ENGINE_ERROR"


class InvalidEntryError(LedgerEngineError):
    """A LedgerEntry was constructed with an invariant violated."""

    code: str = "INVALID_ENTRY"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid ledger entry ({field}): {reason}")


class InvalidSpecError(LedgerEngineError):
    """Series generation input is malformed."""

    code: str = "INVALID_SPEC"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid series spec ({field}): {reason}")


class InvalidPlanError(LedgerEngineError):
    """Contract payment plan input is malformed."""

    code: str = "INVALID_PLAN"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid payment plan ({field}): {reason}")


class InvalidAccountError(LedgerEngineError):
    """Account reference carries an unusable card cycle."""

    code: str = "INVALID_ACCOUNT"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid account ({field}): {reason}")


# Transfer-related exceptions


class TransferError(LedgerEngineError):
    """Base exception for transfer pair errors."""

    code: str = "TRANSFER_ERROR"


class InvalidTransferError(TransferError):
    """Degenerate transfer request."""

    code: str = "INVALID_TRANSFER"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid transfer ({field}): {reason}")


class TransferLegMissingError(TransferError):
    """
    A transfer pair could not be assembled from the given entries.

    Raised when the entries do not form exactly one outgoing and one
    incoming leg sharing one transfer correlation identifier.
    """

    code: str = "TRANSFER_LEG_MISSING"

    def __init__(self, transfer_id: str | None, found: int):
        self.transfer_id = transfer_id
        self.found = found
        super().__init__(
            f"Transfer {transfer_id} is not a complete pair "
            f"({found} leg(s) found)"
        )


# Series-related exceptions


class SeriesError(LedgerEngineError):
    """Base exception for series propagation errors."""

    code: str = "SERIES_ERROR"


class SeriesNotFoundError(SeriesError):
    """Propagation requested on an entry that has no series group."""

    code: str = "SERIES_NOT_FOUND"

    def __init__(self, entry_id: str | None, series_group_id: str | None = None):
        self.entry_id = entry_id
        self.series_group_id = series_group_id
        super().__init__(
            f"Entry {entry_id} does not belong to series {series_group_id}"
            if series_group_id
            else f"Entry {entry_id} has no series group"
        )


class SeriesMismatchError(SeriesError):
    """A tail entry handed to the propagator belongs to another series."""

    code: str = "SERIES_MISMATCH"

    def __init__(self, entry_id: str | None, expected: str, actual: str | None):
        self.entry_id = entry_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Entry {entry_id} belongs to series {actual}, expected {expected}"
        )


# Lookup exceptions


class EntryNotFoundError(LedgerEngineError):
    """Ledger entry with given ID was not found."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Ledger entry not found: {entry_id}")


class ContractNotFoundError(LedgerEngineError):
    """Contract with given ID was not found."""

    code: str = "CONTRACT_NOT_FOUND"

    def __init__(self, contract_id: str):
        self.contract_id = contract_id
        super().__init__(f"Contract not found: {contract_id}")


class PlanItemNotFoundError(LedgerEngineError):
    """Installment or trade-in not found on the given contract."""

    code: str = "PLAN_ITEM_NOT_FOUND"

    def __init__(self, item_kind: str, item_id: str, contract_id: str):
        self.item_kind = item_kind
        self.item_id = item_id
        self.contract_id = contract_id
        super().__init__(f"{item_kind} {item_id} not found on contract {contract_id}")


class ConfigurationError(LedgerEngineError):
    """Engine settings contain an invalid value."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration for {key}: {reason}")
