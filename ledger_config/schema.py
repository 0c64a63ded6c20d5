"""
Configuration schema (``ledger_config.schema``).

Frozen dataclass describing the tunable constants of the ledger engines.
Every field has a default equal to the engine's own module constant, so an
empty configuration reproduces the engines' built-in behavior.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ledger_engines.residual import DEFAULT_DRIFT_THRESHOLD
from ledger_engines.series import DEFAULT_OPEN_ENDED_CAP
from ledger_engines.transfer import DEFAULT_IN_TEMPLATE, DEFAULT_OUT_TEMPLATE
from ledger_kernel.domain.values import MONEY_PLACES


@dataclass(frozen=True)
class EngineSettings:
    """
    Tunable engine constants.

    Attributes:
        open_ended_cap: Occurrences generated for an open-ended recurring spec
        drift_threshold: Largest residual drift treated as rounding noise
        money_places: Decimal places of the currency's minor unit
        currency: ISO 4217 code used in notices and logs
        transfer_out_template: Description of the outgoing transfer leg
        transfer_in_template: Description of the incoming transfer leg
    """

    open_ended_cap: int = DEFAULT_OPEN_ENDED_CAP
    drift_threshold: Decimal = DEFAULT_DRIFT_THRESHOLD
    money_places: int = MONEY_PLACES
    currency: str = "BRL"
    transfer_out_template: str = DEFAULT_OUT_TEMPLATE
    transfer_in_template: str = DEFAULT_IN_TEMPLATE
