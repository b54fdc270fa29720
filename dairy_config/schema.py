"""
Configuration Schema (``dairy_config.schema``).

Frozen dataclasses describing a parsed ledger configuration document.
Nothing here touches the filesystem; ``dairy_config.loader`` produces
these from YAML and ``dairy_config.bridges`` turns them into kernel
inputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

FLOW_NAMES = ("farmer", "member")


@dataclass(frozen=True)
class FlowConfig:
    """Settlement rules for one reconciliation flow."""

    name: str
    minimum_payment: Decimal
    minimum_inclusive: bool
    enforce_period_overlap: bool
    allow_manual_period_total: bool
    deduct_advances: bool


@dataclass(frozen=True)
class LedgerConfig:
    """A complete, validated ledger configuration."""

    currency_places: int
    flows: dict[str, FlowConfig] = field(default_factory=dict)
    source: str = ""
    checksum: str = ""

    def flow(self, name: str) -> FlowConfig:
        try:
            return self.flows[name]
        except KeyError:
            raise KeyError(f"No configuration for flow {name!r}") from None
