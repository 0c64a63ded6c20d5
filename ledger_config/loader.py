"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads the engine settings YAML file and parses it into a frozen
``EngineSettings`` instance.

Invariants enforced
-------------------
* Unknown keys and out-of-range values raise ``ConfigurationError``; there
  are no silent fallbacks for values that are present but wrong.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity in audit logs.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ConfigurationError``.
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import EngineSettings
from ledger_kernel.exceptions import ConfigurationError

_SECTION = "engine_settings"

_TEMPLATE_FIELDS = ("account", "description")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _parse_positive_int(key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(key, f"expected an integer, got {value!r}")
    if value < 1:
        raise ConfigurationError(key, f"must be at least 1, got {value}")
    return value


def _parse_threshold(value: Any) -> Decimal:
    try:
        threshold = Decimal(str(value))
    except InvalidOperation as exc:
        raise ConfigurationError("drift_threshold", f"not a number: {value!r}") from exc
    if not threshold.is_finite() or threshold < 0:
        raise ConfigurationError(
            "drift_threshold", f"must be a non-negative number, got {value!r}"
        )
    return threshold


def _parse_template(key: str, value: Any) -> str:
    if not isinstance(value, str):
        raise ConfigurationError(key, f"expected a string, got {value!r}")
    try:
        value.format(**{name: "" for name in _TEMPLATE_FIELDS})
    except (KeyError, IndexError, ValueError) as exc:
        raise ConfigurationError(
            key, f"may only use {{account}} and {{description}}: {exc}"
        ) from exc
    return value


def parse_settings(data: dict[str, Any]) -> EngineSettings:
    """
    Parse an ``EngineSettings`` from the ``engine_settings`` mapping.

    Raises:
        ConfigurationError: unknown keys or invalid values.
    """
    known = {f.name for f in dataclasses.fields(EngineSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(", ".join(unknown), "unknown setting")

    kwargs: dict[str, Any] = {}
    if "open_ended_cap" in data:
        kwargs["open_ended_cap"] = _parse_positive_int(
            "open_ended_cap", data["open_ended_cap"]
        )
    if "drift_threshold" in data:
        kwargs["drift_threshold"] = _parse_threshold(data["drift_threshold"])
    if "money_places" in data:
        places = data["money_places"]
        if isinstance(places, bool) or not isinstance(places, int) or places < 0:
            raise ConfigurationError(
                "money_places", f"must be a non-negative integer, got {places!r}"
            )
        kwargs["money_places"] = places
    if "currency" in data:
        currency = str(data["currency"]).upper().strip()
        if len(currency) != 3 or not currency.isalpha():
            raise ConfigurationError("currency", f"not an ISO 4217 code: {data['currency']!r}")
        kwargs["currency"] = currency
    for key in ("transfer_out_template", "transfer_in_template"):
        if key in data:
            kwargs[key] = _parse_template(key, data[key])

    return EngineSettings(**kwargs)


def load_settings_file(path: Path) -> EngineSettings:
    """Load and parse a settings file."""
    data = load_yaml_file(path)
    section = data.get(_SECTION, {})
    if not isinstance(section, dict):
        raise ConfigurationError(_SECTION, "expected a mapping")
    return parse_settings(section)


def compute_checksum(settings: EngineSettings) -> str:
    """Deterministic SHA-256 of the settings' canonical JSON form."""
    canonical = json.dumps(
        {k: str(v) for k, v in dataclasses.asdict(settings).items()},
        sort_keys=True,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
