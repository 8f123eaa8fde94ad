"""Estimate pricing.

Totals are derived from the raw line item inputs every time they are needed and
are never persisted. All arithmetic is done on ``Decimal`` without intermediate
rounding so that option totals add up exactly to the estimate total; call
``round_money`` only when presenting a figure.
"""

import enum
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Protocol

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")

# Percent applied when neither the estimate nor the settings name a rate
DEFAULT_TAX_RATE = Decimal("7.5")


class DiscountType(str, enum.Enum):
    NONE = "NONE"
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"


class PricedItem(Protocol):
    quantity: Decimal
    unit_price: Decimal
    is_taxable: bool


@dataclass(frozen=True)
class OptionTotals:
    subtotal: Decimal
    discount_amount: Decimal
    taxable_amount: Decimal
    tax_amount: Decimal
    total: Decimal

    def rounded(self) -> "OptionTotals":
        return OptionTotals(
            subtotal=round_money(self.subtotal),
            discount_amount=round_money(self.discount_amount),
            taxable_amount=round_money(self.taxable_amount),
            tax_amount=round_money(self.tax_amount),
            total=round_money(self.total),
        )


@dataclass(frozen=True)
class EstimateTotals:
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total: Decimal

    def rounded(self) -> "EstimateTotals":
        return EstimateTotals(
            subtotal=round_money(self.subtotal),
            discount_amount=round_money(self.discount_amount),
            tax_amount=round_money(self.tax_amount),
            total=round_money(self.total),
        )


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # repr() keeps 0.1 as 0.1 instead of its binary expansion
        return Decimal(repr(value))
    return Decimal(value)


def round_money(value: Decimal) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(item: PricedItem) -> Decimal:
    return to_decimal(item.quantity) * to_decimal(item.unit_price)


def calculate_discount(
    subtotal: Decimal, discount_type: DiscountType, discount_value: Decimal
) -> Decimal:
    """Discount in currency for an option.

    FIXED_AMOUNT is passed through as given. It is not clamped to the subtotal,
    so an oversized fixed discount produces a negative amount after discount.
    """
    discount_type = DiscountType(discount_type)
    discount_value = to_decimal(discount_value)
    if discount_type == DiscountType.PERCENTAGE:
        return subtotal * (discount_value / HUNDRED)
    if discount_type == DiscountType.FIXED_AMOUNT:
        return discount_value
    return ZERO


def calculate_option_totals(
    line_items: Iterable[PricedItem],
    discount_type: DiscountType = DiscountType.NONE,
    discount_value: Decimal = ZERO,
    tax_rate: Decimal = ZERO,
) -> OptionTotals:
    """Compute subtotal, discount, tax and total for one option.

    Every line item counts, including optional and unselected ones. The
    discount is spread over taxable and non-taxable items in proportion to
    their share of the subtotal, and tax is charged on the taxable share that
    remains. When the subtotal is zero the taxable share of the discount is
    taken as zero.
    """
    items = list(line_items)
    subtotal = sum((line_total(item) for item in items), ZERO)
    taxable_amount = sum((line_total(item) for item in items if item.is_taxable), ZERO)
    discount_amount = calculate_discount(subtotal, discount_type, discount_value)

    if subtotal == ZERO:
        taxable_discount = ZERO
    else:
        taxable_discount = (taxable_amount / subtotal) * discount_amount

    tax_amount = (taxable_amount - taxable_discount) * (to_decimal(tax_rate) / HUNDRED)
    total = (subtotal - discount_amount) + tax_amount

    return OptionTotals(
        subtotal=subtotal,
        discount_amount=discount_amount,
        taxable_amount=taxable_amount,
        tax_amount=tax_amount,
        total=total,
    )


def calculate_estimate_totals(option_totals: Iterable[OptionTotals]) -> EstimateTotals:
    """Sum option totals field by field."""
    subtotal = discount_amount = tax_amount = total = ZERO
    for totals in option_totals:
        subtotal += totals.subtotal
        discount_amount += totals.discount_amount
        tax_amount += totals.tax_amount
        total += totals.total
    return EstimateTotals(
        subtotal=subtotal,
        discount_amount=discount_amount,
        tax_amount=tax_amount,
        total=total,
    )
