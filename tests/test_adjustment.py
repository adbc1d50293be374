"""Tests for the Section 481(a) adjustment calculator."""

from decimal import Decimal

import pytest

from form3115_preparer.domain.payloads import PartIVPayload
from form3115_preparer.domain.value_objects import AdjustmentDirection
from form3115_preparer.exceptions import AdjustmentError
from form3115_preparer.services.adjustment import (
    apply_adjustment,
    calculate_481a_adjustment,
    spread_adjustment,
)


class TestCalculate481aAdjustment:
    def test_one_year_spread(self) -> None:
        adjustment = calculate_481a_adjustment(
            Decimal("100000"), Decimal("150000"), 1
        )

        assert adjustment.adjustment_amount == Decimal("50000.00")
        assert adjustment.direction == AdjustmentDirection.POSITIVE
        assert adjustment.yearly_amounts == (
            Decimal("50000.00"),
            Decimal("0"),
            Decimal("0"),
            Decimal("0"),
        )
        assert adjustment.recognized_amounts == (Decimal("50000.00"),)

    def test_four_year_spread_even(self) -> None:
        adjustment = calculate_481a_adjustment(
            Decimal("100000"), Decimal("150000"), 4
        )
        assert adjustment.yearly_amounts == (Decimal("12500.00"),) * 4

    def test_four_year_remainder_goes_to_year_one(self) -> None:
        adjustment = calculate_481a_adjustment(Decimal("0"), Decimal("100.01"), 4)

        assert adjustment.yearly_amounts == (
            Decimal("25.01"),
            Decimal("25.00"),
            Decimal("25.00"),
            Decimal("25.00"),
        )
        assert sum(adjustment.yearly_amounts) == Decimal("100.01")

    def test_negative_adjustment_spreads_absolute_amount(self) -> None:
        adjustment = calculate_481a_adjustment(
            Decimal("200000"), Decimal("120000"), 4
        )

        assert adjustment.adjustment_amount == Decimal("-80000.00")
        assert adjustment.direction == AdjustmentDirection.NEGATIVE
        assert adjustment.absolute_amount == Decimal("80000.00")
        assert adjustment.yearly_amounts == (Decimal("20000.00"),) * 4

    def test_equal_incomes_count_as_positive(self) -> None:
        adjustment = calculate_481a_adjustment(Decimal("500"), Decimal("500"), 1)

        assert adjustment.adjustment_amount == Decimal("0")
        assert adjustment.direction == AdjustmentDirection.POSITIVE

    def test_missing_incomes_count_as_zero(self) -> None:
        adjustment = calculate_481a_adjustment(None, Decimal("1000"), 1)
        assert adjustment.present_method_income == Decimal("0")
        assert adjustment.adjustment_amount == Decimal("1000.00")

        nothing = calculate_481a_adjustment(None, None, 4)
        assert nothing.adjustment_amount == Decimal("0")
        assert nothing.yearly_amounts == (Decimal("0"),) * 4

    def test_large_adjustment_flag(self) -> None:
        adjustment = calculate_481a_adjustment(
            Decimal("0"), Decimal("-10000000.01"), 1
        )
        assert adjustment.is_large

        at_threshold = calculate_481a_adjustment(Decimal("0"), Decimal("10000000"), 1)
        assert not at_threshold.is_large

    @pytest.mark.parametrize("spread", [0, 2, 3, 5])
    def test_invalid_spread_raises(self, spread: int) -> None:
        with pytest.raises(AdjustmentError) as exc_info:
            calculate_481a_adjustment(Decimal("1"), Decimal("2"), spread)
        assert exc_info.value.status_code == 400


class TestSpreadAdjustment:
    def test_always_four_entries(self) -> None:
        assert len(spread_adjustment(Decimal("10"), 1)) == 4
        assert len(spread_adjustment(Decimal("10"), 4)) == 4

    def test_shares_rounded_down_to_cents(self) -> None:
        assert spread_adjustment(Decimal("0.03"), 4) == (
            Decimal("0.03"),
            Decimal("0.00"),
            Decimal("0.00"),
            Decimal("0.00"),
        )


class TestApplyAdjustment:
    def test_four_year_fields(self) -> None:
        payload = PartIVPayload(
            present_method_income=Decimal("100000"),
            proposed_method_income=Decimal("150000"),
        )
        adjustment = calculate_481a_adjustment(
            payload.present_method_income, payload.proposed_method_income, 4
        )

        updated = apply_adjustment(payload, adjustment)

        assert updated.adjustment_amount == Decimal("50000.00")
        assert updated.adjustment_direction == "positive"
        assert updated.spread_period == 4
        assert updated.year_four_amount == Decimal("12500.00")
        # Input is left untouched
        assert payload.adjustment_amount is None

    def test_one_year_clears_later_years(self) -> None:
        payload = PartIVPayload(year_two_amount=Decimal("5"))
        adjustment = calculate_481a_adjustment(Decimal("0"), Decimal("40"), 1)

        updated = apply_adjustment(payload, adjustment)

        assert updated.year_one_amount == Decimal("40.00")
        assert updated.year_two_amount is None
        assert updated.year_three_amount is None
        assert updated.year_four_amount is None
