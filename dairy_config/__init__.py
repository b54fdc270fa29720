"""
dairy_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a frozen ``LedgerConfig``; use
    ``dairy_config.bridges.build_flow_policies`` to hand it to the kernel.

Architecture position:
    Configuration -- sits above ``dairy_kernel``.  The kernel MUST NEVER
    import from ``dairy_config``.

Resolution order:
    1. ``config_path`` argument
    2. ``DAIRY_LEDGER_CONFIG`` environment variable
    3. ``dairy_config/sets/default.yaml``

Failure modes:
    - ``FileNotFoundError`` -- the resolved file does not exist.
    - ``ConfigError`` (a ``ValueError``) -- malformed document.

Audit relevance:
    Every successful call logs ``ledger_config_loaded`` with the source
    path and the SHA-256 checksum of the document, tying each settlement
    back to the rules that governed it.
"""

from __future__ import annotations

import os
from pathlib import Path

from dairy_config.loader import ConfigError, load_config_file
from dairy_config.schema import FlowConfig, LedgerConfig
from dairy_kernel.logging_config import get_logger

_logger = get_logger("config")

CONFIG_ENV_VAR = "DAIRY_LEDGER_CONFIG"

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"


def get_active_config(config_path: Path | str | None = None) -> LedgerConfig:
    """The ONLY public configuration entrypoint."""
    if config_path is None:
        config_path = os.environ.get(CONFIG_ENV_VAR) or _DEFAULT_CONFIG_DIR / "default.yaml"
    path = Path(config_path)

    config = load_config_file(path)

    _logger.info(
        "ledger_config_loaded",
        extra={
            "source": config.source,
            "checksum": config.checksum,
            "currency_places": config.currency_places,
            "flows": sorted(config.flows),
        },
    )
    return config


__all__ = [
    "CONFIG_ENV_VAR",
    "ConfigError",
    "FlowConfig",
    "LedgerConfig",
    "get_active_config",
]
