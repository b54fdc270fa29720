"""
Configuration Loader (``dairy_config.loader``).

Responsibility
--------------
Loads a ledger configuration YAML document and parses it into the frozen
``dairy_config.schema`` dataclasses.  The single public entry point for
runtime config is ``dairy_config.get_active_config()``.

Invariants enforced
-------------------
* Every parse error raises ``ConfigError`` (a ``ValueError``) naming the
  offending key; there are no silent defaults for required fields.
* Monetary thresholds are parsed as ``Decimal`` from their string form.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  document for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``ConfigError`` wrapping ``yaml.YAMLError``.
* Missing or mistyped keys  -> ``ConfigError``.
"""

from __future__ import annotations

import hashlib
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from dairy_config.schema import FLOW_NAMES, FlowConfig, LedgerConfig

_FLOW_BOOL_KEYS = (
    "minimum_inclusive",
    "enforce_period_overlap",
    "allow_manual_period_total",
    "deduct_advances",
)


class ConfigError(ValueError):
    """Configuration document is malformed or incomplete."""


def compute_checksum(text: str) -> str:
    """SHA-256 hex digest of the document text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def load_yaml_text(text: str) -> dict[str, Any]:
    """Parse YAML text into a mapping (empty documents become ``{}``)."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("Configuration document must be a mapping")
    return data


def parse_decimal(value: Any, key: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ConfigError(f"{key} must be a number, got {value!r}")
    try:
        result = Decimal(str(value))
    except InvalidOperation as exc:
        raise ConfigError(f"{key} must be a number, got {value!r}") from exc
    if not result.is_finite():
        raise ConfigError(f"{key} must be finite, got {value!r}")
    return result


def parse_flow(name: str, data: Any) -> FlowConfig:
    """Parse one ``flows.<name>`` block."""
    if not isinstance(data, dict):
        raise ConfigError(f"flows.{name} must be a mapping")
    try:
        minimum = parse_decimal(data["minimum_payment"], f"flows.{name}.minimum_payment")
        flags = {key: data[key] for key in _FLOW_BOOL_KEYS}
    except KeyError as exc:
        raise ConfigError(f"flows.{name} is missing required key {exc.args[0]!r}") from None

    for key, value in flags.items():
        if not isinstance(value, bool):
            raise ConfigError(f"flows.{name}.{key} must be true or false, got {value!r}")

    return FlowConfig(name=name, minimum_payment=minimum, **flags)


def parse_ledger_config(data: dict[str, Any], source: str = "", checksum: str = "") -> LedgerConfig:
    """Parse a whole document.  Both flows must be present."""
    places = data.get("currency_places")
    if isinstance(places, bool) or not isinstance(places, int) or places < 0:
        raise ConfigError(f"currency_places must be a non-negative integer, got {places!r}")

    flows_data = data.get("flows")
    if not isinstance(flows_data, dict):
        raise ConfigError("flows must be a mapping")

    missing = [name for name in FLOW_NAMES if name not in flows_data]
    if missing:
        raise ConfigError(f"flows is missing: {', '.join(missing)}")
    unknown = sorted(set(flows_data) - set(FLOW_NAMES))
    if unknown:
        raise ConfigError(f"Unknown flows: {', '.join(unknown)}")

    return LedgerConfig(
        currency_places=places,
        flows={name: parse_flow(name, flows_data[name]) for name in FLOW_NAMES},
        source=source,
        checksum=checksum,
    )


def load_config_file(path: Path) -> LedgerConfig:
    """Read, parse and checksum a configuration file."""
    with open(path, encoding="utf-8") as f:
        text = f.read()
    return parse_ledger_config(
        load_yaml_text(text),
        source=str(path),
        checksum=compute_checksum(text),
    )
