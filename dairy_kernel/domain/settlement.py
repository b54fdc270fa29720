"""
Settlement -- Pure settlement arithmetic and request state machine.

Responsibility:
    Computes net payable and closing balance from a previous balance, a
    period total, an advance deduction and a paid amount; validates the paid
    amount against a per-flow minimum; detects period overlaps; and defines
    the lifecycle a settlement request moves through.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Called by SettlementService (the imperative shell) both for previews and
    immediately before commit.

Invariants enforced:
    - net_payable == previous_balance + period_total - advance_deduction
    - closing_balance == net_payable - amount, exactly, because every input
      is quantized to the currency places before arithmetic.
    - closing_balance is never clamped: negative means overpayment/credit.
    - Overlap uses the closed-interval test ``start <= e AND end >= s``.

Failure modes:
    - InvalidAmountError for non-numeric, non-finite, or below-minimum amounts.
    - InvalidSettlementTransitionError for a state change outside
      VALID_TRANSITIONS (a programming error in the engine).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum

from dairy_kernel.db.types import MONEY_DECIMAL_PLACES, ZERO, round_money, to_decimal
from dairy_kernel.domain.values import DateRange
from dairy_kernel.exceptions import InvalidAmountError


class SettlementState(str, Enum):
    """Lifecycle of one settlement request."""

    PREVIEW = "preview"
    VALIDATED = "validated"
    COMMITTED = "committed"
    REJECTED = "rejected"


VALID_TRANSITIONS: dict[SettlementState, frozenset[SettlementState]] = {
    SettlementState.PREVIEW: frozenset({SettlementState.VALIDATED, SettlementState.REJECTED}),
    SettlementState.VALIDATED: frozenset({SettlementState.COMMITTED, SettlementState.REJECTED}),
    # Terminal
    SettlementState.COMMITTED: frozenset(),
    SettlementState.REJECTED: frozenset(),
}


class InvalidSettlementTransitionError(ValueError):
    """Raised when the engine attempts a transition VALID_TRANSITIONS forbids."""

    def __init__(self, current: SettlementState, target: SettlementState):
        self.current = current
        self.target = target
        super().__init__(f"Invalid settlement transition: {current.value} -> {target.value}")


def transition(current: SettlementState, target: SettlementState) -> SettlementState:
    """Return ``target`` if reachable from ``current``, else raise."""
    if target not in VALID_TRANSITIONS[current]:
        raise InvalidSettlementTransitionError(current, target)
    return target


@dataclass(frozen=True)
class FlowPolicy:
    """
    Per-flow settlement rules.

    The farmer and member flows historically disagree on the minimum
    payment; both rules are kept as data rather than unified.
    """

    minimum_payment: Decimal
    minimum_inclusive: bool
    enforce_period_overlap: bool
    allow_manual_period_total: bool
    deduct_advances: bool
    currency_places: int = MONEY_DECIMAL_PLACES


FARMER_POLICY = FlowPolicy(
    minimum_payment=Decimal("0"),
    minimum_inclusive=False,
    enforce_period_overlap=True,
    allow_manual_period_total=True,
    deduct_advances=True,
)

MEMBER_POLICY = FlowPolicy(
    minimum_payment=Decimal("1"),
    minimum_inclusive=True,
    enforce_period_overlap=False,
    allow_manual_period_total=True,
    deduct_advances=False,
)


@dataclass(frozen=True)
class SettlementComputation:
    """Result of the balance arithmetic for one settlement."""

    previous_balance: Decimal
    period_total: Decimal
    advance_deduction: Decimal
    amount: Decimal
    net_payable: Decimal
    closing_balance: Decimal


def compute_settlement(
    previous_balance: Decimal,
    period_total: Decimal,
    advance_deduction: Decimal = ZERO,
    amount: Decimal = ZERO,
    decimal_places: int = MONEY_DECIMAL_PLACES,
) -> SettlementComputation:
    """
    Apply the settlement formula.

    A preview is simply ``amount=0``: closing balance then equals net payable.
    """
    previous = round_money(previous_balance, decimal_places)
    total = round_money(period_total, decimal_places)
    deduction = round_money(advance_deduction, decimal_places)
    paid = round_money(amount, decimal_places)

    net_payable = previous + total - deduction
    return SettlementComputation(
        previous_balance=previous,
        period_total=total,
        advance_deduction=deduction,
        amount=paid,
        net_payable=net_payable,
        closing_balance=net_payable - paid,
    )


def coerce_amount(value: object, field: str = "amount") -> Decimal:
    """Convert a caller-supplied amount to a finite Decimal or raise InvalidAmountError."""
    try:
        result = to_decimal(value)
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmountError(value, reason=f"{field} must be a number") from exc
    if not result.is_finite():
        raise InvalidAmountError(value, reason=f"{field} must be a finite number")
    return result


def validate_amount(
    value: object,
    minimum: Decimal,
    inclusive: bool,
    decimal_places: int = MONEY_DECIMAL_PLACES,
) -> Decimal:
    """
    Enforce a flow's minimum payment on the amount as it will be recorded.

    The value is rounded to ``decimal_places`` before the comparison, so a
    sub-unit amount that rounds to zero cannot pass a ``> 0`` rule.
    ``inclusive=True`` accepts ``amount >= minimum``; ``False`` requires
    ``amount > minimum``.
    """
    amount = round_money(coerce_amount(value), decimal_places)
    too_small = amount < minimum if inclusive else amount <= minimum
    if too_small:
        comparator = ">=" if inclusive else ">"
        raise InvalidAmountError(
            value, minimum=minimum, reason=f"amount must be {comparator} {minimum}"
        )
    return amount


def find_overlaps(
    requested: DateRange,
    existing: Iterable[tuple[date | None, date | None]],
) -> list[tuple[date, date]]:
    """
    Existing closed periods intersecting ``requested``, sorted by start.

    Periods with a missing bound never conflict.
    """
    if not requested.is_closed:
        return []
    conflicts = {
        (start, end)
        for start, end in existing
        if start is not None and end is not None and requested.overlaps(start, end)
    }
    return sorted(conflicts)
