"""
Pure settlement arithmetic, minimum-payment validation and overlap detection.

No database; everything here runs against dairy_kernel.domain.settlement.
"""

from datetime import date
from decimal import Decimal

import pytest

from dairy_kernel.domain.settlement import (
    FARMER_POLICY,
    MEMBER_POLICY,
    coerce_amount,
    compute_settlement,
    find_overlaps,
    validate_amount,
)
from dairy_kernel.domain.values import DateRange
from dairy_kernel.exceptions import InvalidAmountError


class TestComputeSettlement:
    """net_payable = previous + period_total - advances; closing = net - amount."""

    def test_member_scenario(self):
        result = compute_settlement(Decimal("200"), Decimal("750"), amount=Decimal("600"))

        assert result.net_payable == Decimal("950.00")
        assert result.closing_balance == Decimal("350.00")

    def test_farmer_scenario_with_advance(self):
        """Overpaid farmer (-100) plus 2000 of milk less a 300 advance."""
        result = compute_settlement(
            Decimal("-100"), Decimal("2000"), Decimal("300"), Decimal("1500")
        )

        assert result.net_payable == Decimal("1600.00")
        assert result.closing_balance == Decimal("100.00")

    def test_preview_closing_equals_net_payable(self):
        result = compute_settlement(Decimal("10"), Decimal("90"))

        assert result.amount == Decimal("0.00")
        assert result.closing_balance == result.net_payable == Decimal("100.00")

    def test_overpayment_leaves_negative_closing_balance(self):
        result = compute_settlement(Decimal("0"), Decimal("500"), amount=Decimal("800"))

        assert result.closing_balance == Decimal("-300.00")

    def test_inputs_rounded_half_up_before_arithmetic(self):
        result = compute_settlement(Decimal("0.005"), Decimal("1.115"), amount=Decimal("0.125"))

        assert result.previous_balance == Decimal("0.01")
        assert result.period_total == Decimal("1.12")
        assert result.amount == Decimal("0.13")
        assert result.closing_balance == Decimal("1.00")

    def test_currency_places_respected(self):
        result = compute_settlement(Decimal("1.2345"), Decimal("0"), decimal_places=3)

        assert result.previous_balance == Decimal("1.235")

    def test_no_line_items_is_still_a_valid_settlement(self):
        result = compute_settlement(Decimal("250"), Decimal("0"), amount=Decimal("250"))

        assert result.period_total == Decimal("0.00")
        assert result.closing_balance == Decimal("0.00")


class TestValidateAmount:
    """Per-flow minimum payment rules."""

    def test_farmer_rejects_zero(self):
        with pytest.raises(InvalidAmountError) as exc_info:
            validate_amount(0, FARMER_POLICY.minimum_payment, FARMER_POLICY.minimum_inclusive)

        assert exc_info.value.code == "INVALID_AMOUNT"

    def test_farmer_accepts_small_positive(self):
        assert validate_amount(
            "0.01", FARMER_POLICY.minimum_payment, FARMER_POLICY.minimum_inclusive
        ) == Decimal("0.01")

    def test_farmer_rejects_amount_rounding_to_zero(self):
        with pytest.raises(InvalidAmountError):
            validate_amount("0.004", FARMER_POLICY.minimum_payment, FARMER_POLICY.minimum_inclusive)

    def test_amount_rounded_before_comparison(self):
        assert validate_amount("0.005", Decimal("0"), False) == Decimal("0.01")
        assert validate_amount("0.995", Decimal("1"), True) == Decimal("1.00")

    def test_member_accepts_exactly_one(self):
        assert validate_amount(
            1, MEMBER_POLICY.minimum_payment, MEMBER_POLICY.minimum_inclusive
        ) == Decimal("1")

    def test_member_rejects_below_one(self):
        with pytest.raises(InvalidAmountError):
            validate_amount(
                "0.99", MEMBER_POLICY.minimum_payment, MEMBER_POLICY.minimum_inclusive
            )

    @pytest.mark.parametrize("value", ["abc", "", None, "NaN", "Infinity", True])
    def test_non_numeric_rejected(self, value):
        with pytest.raises(InvalidAmountError):
            validate_amount(value, Decimal("0"), False)


class TestCoerceAmount:
    def test_float_goes_through_repr(self):
        assert coerce_amount(0.1) == Decimal("0.1")

    def test_string_is_stripped(self):
        assert coerce_amount(" 42.50 ") == Decimal("42.50")


class TestFindOverlaps:
    """Closed-interval overlap: start <= existing_end AND end >= existing_start."""

    EXISTING = [(date(2024, 1, 1), date(2024, 1, 10))]

    def test_overlapping_window_reported(self):
        conflicts = find_overlaps(DateRange(date(2024, 1, 5), date(2024, 1, 15)), self.EXISTING)

        assert conflicts == [(date(2024, 1, 1), date(2024, 1, 10))]

    def test_adjacent_window_does_not_conflict(self):
        assert find_overlaps(DateRange(date(2024, 1, 11), date(2024, 1, 20)), self.EXISTING) == []

    def test_shared_boundary_day_conflicts(self):
        conflicts = find_overlaps(DateRange(date(2024, 1, 10), date(2024, 1, 20)), self.EXISTING)

        assert len(conflicts) == 1

    def test_every_conflict_listed_sorted(self):
        existing = [
            (date(2024, 2, 1), date(2024, 2, 10)),
            (date(2024, 1, 1), date(2024, 1, 10)),
            (date(2024, 3, 1), date(2024, 3, 10)),
        ]

        conflicts = find_overlaps(DateRange(date(2024, 1, 5), date(2024, 2, 5)), existing)

        assert conflicts == [
            (date(2024, 1, 1), date(2024, 1, 10)),
            (date(2024, 2, 1), date(2024, 2, 10)),
        ]

    def test_open_request_never_conflicts(self):
        assert find_overlaps(DateRange(date(2024, 1, 5), None), self.EXISTING) == []

    def test_existing_without_bounds_ignored(self):
        existing = [(None, None), (date(2024, 1, 1), None)]

        assert find_overlaps(DateRange(date(2024, 1, 1), date(2024, 1, 31)), existing) == []
