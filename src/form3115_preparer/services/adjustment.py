"""Section 481(a) adjustment calculator.

The adjustment is the cumulative difference between income computed under
the proposed method and under the present method as of the beginning of
the year of change. It is recognized either entirely in the year of change
(1-year spread) or ratably over four years.

Amounts are carried as Decimal and the four-year shares are rounded down
to whole cents; the cents lost to rounding are added to year one so the
shares always sum to the full adjustment.
"""

from dataclasses import dataclass
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

from form3115_preparer.domain.payloads import PartIVPayload
from form3115_preparer.domain.value_objects import SPREAD_PERIODS, AdjustmentDirection
from form3115_preparer.exceptions import AdjustmentError

CENT = Decimal("0.01")
ZERO = Decimal("0")
MAX_SPREAD_YEARS = 4
LARGE_ADJUSTMENT_THRESHOLD = Decimal("10_000_000")


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Section481aAdjustment:
    present_method_income: Decimal
    proposed_method_income: Decimal
    adjustment_amount: Decimal
    direction: AdjustmentDirection
    spread_period: int
    # Always four entries; years past the spread period are zero
    yearly_amounts: tuple[Decimal, ...]

    @property
    def absolute_amount(self) -> Decimal:
        return abs(self.adjustment_amount)

    @property
    def is_large(self) -> bool:
        return self.absolute_amount > LARGE_ADJUSTMENT_THRESHOLD

    @property
    def recognized_amounts(self) -> tuple[Decimal, ...]:
        """Per-year amounts for the years inside the spread period."""
        return self.yearly_amounts[: self.spread_period]


def spread_adjustment(absolute_amount: Decimal, spread_period: int) -> tuple[Decimal, ...]:
    if spread_period not in SPREAD_PERIODS:
        raise AdjustmentError(spread_period)
    if spread_period == 1:
        return (absolute_amount, ZERO, ZERO, ZERO)

    share = (absolute_amount / spread_period).quantize(CENT, rounding=ROUND_DOWN)
    remainder = absolute_amount - share * spread_period
    return (share + remainder, share, share, share)


def calculate_481a_adjustment(
    present_method_income: Decimal | None,
    proposed_method_income: Decimal | None,
    spread_period: int,
) -> Section481aAdjustment:
    """Compute the signed adjustment and its per-year distribution.

    Args:
        present_method_income: Cumulative income under the present method.
            None counts as zero (an untouched field).
        proposed_method_income: Cumulative income under the proposed method.
            None counts as zero.
        spread_period: 1 or 4.

    Raises:
        AdjustmentError: If spread_period is not 1 or 4.
    """
    present = _money(present_method_income if present_method_income is not None else ZERO)
    proposed = _money(
        proposed_method_income if proposed_method_income is not None else ZERO
    )
    amount = proposed - present
    direction = (
        AdjustmentDirection.POSITIVE if amount >= 0 else AdjustmentDirection.NEGATIVE
    )
    return Section481aAdjustment(
        present_method_income=present,
        proposed_method_income=proposed,
        adjustment_amount=amount,
        direction=direction,
        spread_period=spread_period,
        yearly_amounts=spread_adjustment(abs(amount), spread_period),
    )


def apply_adjustment(
    payload: PartIVPayload, adjustment: Section481aAdjustment
) -> PartIVPayload:
    """Return a copy of the Part IV payload carrying the derived figures."""
    yearly: list[Decimal | None] = [None] * MAX_SPREAD_YEARS
    for index, amount in enumerate(adjustment.recognized_amounts):
        yearly[index] = amount
    return payload.model_copy(
        update={
            "adjustment_amount": adjustment.adjustment_amount,
            "adjustment_direction": adjustment.direction.value,
            "spread_period": adjustment.spread_period,
            "year_one_amount": yearly[0],
            "year_two_amount": yearly[1],
            "year_three_amount": yearly[2],
            "year_four_amount": yearly[3],
        }
    )


__all__ = [
    "LARGE_ADJUSTMENT_THRESHOLD",
    "Section481aAdjustment",
    "apply_adjustment",
    "calculate_481a_adjustment",
    "spread_adjustment",
]
