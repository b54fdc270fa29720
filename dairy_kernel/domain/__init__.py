"""Pure domain core: clock, value objects, DTOs and settlement arithmetic."""

from dairy_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from dairy_kernel.domain.dtos import (
    AdvanceInfo,
    CounterpartyInfo,
    LineItemInfo,
    Page,
    PendingAdvances,
    PeriodTotals,
    SettlementCompletedEvent,
    SettlementFlow,
    SettlementInfo,
    SettlementSummary,
)
from dairy_kernel.domain.settlement import (
    FARMER_POLICY,
    MEMBER_POLICY,
    VALID_TRANSITIONS,
    FlowPolicy,
    SettlementComputation,
    SettlementState,
    compute_settlement,
    find_overlaps,
    transition,
    validate_amount,
)
from dairy_kernel.domain.values import DateRange, FarmerLedgerBalance, MemberLedgerBalance

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "AdvanceInfo",
    "CounterpartyInfo",
    "LineItemInfo",
    "Page",
    "PendingAdvances",
    "PeriodTotals",
    "SettlementCompletedEvent",
    "SettlementFlow",
    "SettlementInfo",
    "SettlementSummary",
    "FARMER_POLICY",
    "MEMBER_POLICY",
    "VALID_TRANSITIONS",
    "FlowPolicy",
    "SettlementComputation",
    "SettlementState",
    "compute_settlement",
    "find_overlaps",
    "transition",
    "validate_amount",
    "DateRange",
    "FarmerLedgerBalance",
    "MemberLedgerBalance",
]
