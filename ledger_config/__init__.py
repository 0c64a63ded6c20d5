"""
ledger_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides ``load_settings()``, the only way services obtain the tunable
    engine constants (open-ended recurring cap, drift threshold, transfer
    description templates).  Engines never read configuration; services
    pass the relevant values to them as explicit arguments.

Failure modes:
    - ``FileNotFoundError`` -- the configured settings file does not exist.
    - ``ConfigurationError`` -- a value in the file is invalid.

Audit relevance:
    Every ``load_settings()`` call emits a ``LEDGER_CONFIG_TRACE`` log entry
    carrying the source path and settings checksum.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from ledger_config.loader import compute_checksum, load_settings_file
from ledger_config.schema import EngineSettings

_logger = logging.getLogger("ledger_kernel.config")

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "defaults.yaml"

ENV_VAR = "LEDGER_ENGINE_CONFIG"


def load_settings(path: Path | str | None = None) -> EngineSettings:
    """
    Load engine settings.

    Resolution order: explicit ``path``, then the ``LEDGER_ENGINE_CONFIG``
    environment variable, then the packaged ``defaults.yaml``.
    """
    if path is None:
        path = os.environ.get(ENV_VAR) or DEFAULT_SETTINGS_PATH
    source = Path(path)
    settings = load_settings_file(source)

    _logger.info("LEDGER_CONFIG_TRACE", extra={
        "trace_type": "LEDGER_CONFIG_TRACE",
        "source": str(source),
        "checksum": compute_checksum(settings),
        "open_ended_cap": settings.open_ended_cap,
        "drift_threshold": str(settings.drift_threshold),
    })
    return settings


__all__ = [
    "DEFAULT_SETTINGS_PATH",
    "ENV_VAR",
    "EngineSettings",
    "compute_checksum",
    "load_settings",
]
