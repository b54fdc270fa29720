"""
Config -> Kernel Bridges.

Converts a ``LedgerConfig`` into the per-flow ``FlowPolicy`` values the
settlement engine consumes.  Lives here because the kernel must never
import ``dairy_config``.

Usage:
    from dairy_config import get_active_config
    from dairy_config.bridges import build_flow_policies

    policies = build_flow_policies(get_active_config())
    service = SettlementService(session, clock, policies=policies)
"""

from __future__ import annotations

from dairy_config.schema import LedgerConfig
from dairy_kernel.domain.dtos import SettlementFlow
from dairy_kernel.domain.settlement import FlowPolicy


def build_flow_policies(config: LedgerConfig) -> dict[SettlementFlow, FlowPolicy]:
    """One FlowPolicy per settlement flow."""
    policies = {}
    for flow in SettlementFlow:
        flow_config = config.flow(flow.value)
        policies[flow] = FlowPolicy(
            minimum_payment=flow_config.minimum_payment,
            minimum_inclusive=flow_config.minimum_inclusive,
            enforce_period_overlap=flow_config.enforce_period_overlap,
            allow_manual_period_total=flow_config.allow_manual_period_total,
            deduct_advances=flow_config.deduct_advances,
            currency_places=config.currency_places,
        )
    return policies
