"""
Property-based checks of the settlement arithmetic and period overlap rules.

Generated inputs stay within two decimal places so the arithmetic identities
hold exactly; rounding itself is covered in tests/domain.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from hypothesis import HealthCheck, assume, given, settings
from hypothesis import strategies as st

from dairy_kernel.domain.settlement import (
    FARMER_POLICY,
    MEMBER_POLICY,
    compute_settlement,
    find_overlaps,
    validate_amount,
)
from dairy_kernel.domain.values import DateRange
from dairy_kernel.exceptions import InvalidAmountError, InvalidPeriodError

money = st.decimals(
    min_value=Decimal("-1000000"),
    max_value=Decimal("1000000"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
non_negative_money = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("1000000"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
days = st.dates(min_value=date(2023, 1, 1), max_value=date(2025, 12, 31))


@st.composite
def periods(draw):
    start = draw(days)
    length = draw(st.integers(min_value=0, max_value=40))
    return start, start + timedelta(days=length)


FUZZ_SETTINGS = settings(max_examples=200, suppress_health_check=[HealthCheck.too_slow])


class TestSettlementFormula:
    @given(
        previous=money,
        total=non_negative_money,
        deduction=non_negative_money,
        amount=non_negative_money,
    )
    @FUZZ_SETTINGS
    def test_closing_balance_identity(self, previous, total, deduction, amount):
        result = compute_settlement(previous, total, deduction, amount)

        assert result.net_payable == previous + total - deduction
        assert result.closing_balance == result.net_payable - amount
        assert result.closing_balance == previous + total - deduction - amount

    @given(previous=money, total=non_negative_money, deduction=non_negative_money)
    @FUZZ_SETTINGS
    def test_preview_closing_equals_net(self, previous, total, deduction):
        result = compute_settlement(previous, total, deduction)

        assert result.amount == Decimal("0")
        assert result.closing_balance == result.net_payable

    @given(previous=money, total=non_negative_money, first=non_negative_money, second=non_negative_money)
    @FUZZ_SETTINGS
    def test_chained_settlements_match_single_payment(self, previous, total, first, second):
        once = compute_settlement(previous, total, amount=first)
        twice = compute_settlement(once.closing_balance, Decimal("0"), amount=second)

        combined = compute_settlement(previous, total, amount=first + second)

        assert twice.closing_balance == combined.closing_balance


class TestMinimumPayment:
    @given(amount=money)
    @FUZZ_SETTINGS
    def test_member_minimum_is_inclusive(self, amount):
        policy = MEMBER_POLICY
        if amount >= policy.minimum_payment:
            assert validate_amount(amount, policy.minimum_payment, policy.minimum_inclusive) == amount
        else:
            with pytest.raises(InvalidAmountError):
                validate_amount(amount, policy.minimum_payment, policy.minimum_inclusive)

    @given(amount=money)
    @FUZZ_SETTINGS
    def test_farmer_minimum_is_exclusive(self, amount):
        policy = FARMER_POLICY
        if amount > policy.minimum_payment:
            assert validate_amount(amount, policy.minimum_payment, policy.minimum_inclusive) == amount
        else:
            with pytest.raises(InvalidAmountError):
                validate_amount(amount, policy.minimum_payment, policy.minimum_inclusive)


class TestPeriodOverlap:
    @given(requested=periods(), existing=st.lists(periods(), max_size=12))
    @FUZZ_SETTINGS
    def test_conflicts_sorted_unique_and_intersecting(self, requested, existing):
        window = DateRange(*requested)

        conflicts = find_overlaps(window, existing)

        assert conflicts == sorted(set(conflicts))
        for start, end in conflicts:
            assert window.start <= end and window.end >= start
        missed = set(existing) - set(conflicts)
        for start, end in missed:
            assert end < window.start or start > window.end

    @given(period=periods(), gap=st.integers(min_value=1, max_value=30), length=st.integers(0, 30))
    @FUZZ_SETTINGS
    def test_adjacent_periods_never_conflict(self, period, gap, length):
        start, end = period
        following_start = end + timedelta(days=gap)
        following = (following_start, following_start + timedelta(days=length))

        assert find_overlaps(DateRange(start, end), [following]) == []
        assert find_overlaps(DateRange(*following), [period]) == []

    @given(period=periods(), existing=st.lists(periods(), max_size=5))
    @FUZZ_SETTINGS
    def test_open_bound_never_conflicts(self, period, existing):
        start, _ = period

        assert find_overlaps(DateRange(start, None), existing) == []
        assert find_overlaps(DateRange(None, start), existing) == []

    @given(first=days, second=days)
    @FUZZ_SETTINGS
    def test_inverted_range_rejected(self, first, second):
        assume(first != second)
        start, end = max(first, second), min(first, second)

        with pytest.raises(InvalidPeriodError):
            DateRange(start, end)
