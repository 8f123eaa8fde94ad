from dataclasses import dataclass
from decimal import Decimal

import pytest

from fieldsmart.estimates.pricing import (
    DiscountType,
    calculate_discount,
    calculate_estimate_totals,
    calculate_option_totals,
    round_money,
    to_decimal,
)


@dataclass
class Item:
    quantity: Decimal
    unit_price: Decimal
    is_taxable: bool = True


SERVICE_AND_MATERIAL = [
    Item(Decimal("1"), Decimal("150.00")),
    Item(Decimal("2"), Decimal("25.00")),
]


def test_option_without_discount():
    totals = calculate_option_totals(SERVICE_AND_MATERIAL, DiscountType.NONE, Decimal("0"), Decimal("8.0"))

    assert totals.subtotal == Decimal("200.00")
    assert totals.discount_amount == Decimal("0")
    assert totals.taxable_amount == Decimal("200.00")
    assert totals.tax_amount == Decimal("16.00")
    assert totals.total == Decimal("216.00")


def test_option_with_percentage_discount():
    totals = calculate_option_totals(
        SERVICE_AND_MATERIAL, DiscountType.PERCENTAGE, Decimal("10"), Decimal("8.0")
    )

    assert totals.discount_amount == Decimal("20.00")
    assert totals.tax_amount == Decimal("14.40")
    assert totals.total == Decimal("194.40")


def test_discount_is_shared_between_taxable_and_non_taxable_items():
    items = [
        Item(Decimal("1"), Decimal("100.00"), is_taxable=True),
        Item(Decimal("1"), Decimal("100.00"), is_taxable=False),
    ]
    totals = calculate_option_totals(items, DiscountType.FIXED_AMOUNT, Decimal("50"), Decimal("10"))

    # Half of the 50 discount lands on the taxable half
    assert totals.taxable_amount == Decimal("100.00")
    assert totals.tax_amount == Decimal("7.5")
    assert totals.total == Decimal("157.5")


def test_optional_and_unselected_items_still_count():
    @dataclass
    class OptionalItem(Item):
        is_optional: bool = True
        is_selected: bool = False

    items = [Item(Decimal("1"), Decimal("10")), OptionalItem(Decimal("1"), Decimal("5"))]
    assert calculate_option_totals(items).subtotal == Decimal("15")


def test_pricing_is_idempotent():
    first = calculate_option_totals(SERVICE_AND_MATERIAL, DiscountType.PERCENTAGE, Decimal("12.5"), Decimal("7.5"))
    second = calculate_option_totals(SERVICE_AND_MATERIAL, DiscountType.PERCENTAGE, Decimal("12.5"), Decimal("7.5"))
    assert first == second


@pytest.mark.parametrize("discount_type", [DiscountType.PERCENTAGE, DiscountType.FIXED_AMOUNT])
def test_zero_discount_matches_no_discount(discount_type):
    none = calculate_option_totals(SERVICE_AND_MATERIAL, DiscountType.NONE, Decimal("0"), Decimal("8"))
    zero = calculate_option_totals(SERVICE_AND_MATERIAL, discount_type, Decimal("0"), Decimal("8"))
    assert zero == none


def test_fixed_discount_is_not_clamped_to_subtotal():
    items = [Item(Decimal("1"), Decimal("40.00"), is_taxable=False)]
    totals = calculate_option_totals(items, DiscountType.FIXED_AMOUNT, Decimal("60"), Decimal("8"))

    assert totals.discount_amount == Decimal("60")
    assert totals.tax_amount == Decimal("0")
    assert totals.total == Decimal("-20.00")


def test_zero_subtotal_takes_no_taxable_discount():
    items = [Item(Decimal("0"), Decimal("99.00"))]
    totals = calculate_option_totals(items, DiscountType.FIXED_AMOUNT, Decimal("10"), Decimal("8"))

    assert totals.subtotal == Decimal("0")
    assert totals.tax_amount == Decimal("0")
    assert totals.total == Decimal("-10")


def test_empty_option_totals_are_zero():
    totals = calculate_option_totals([], DiscountType.PERCENTAGE, Decimal("10"), Decimal("8"))
    assert totals.total == Decimal("0")


def test_estimate_totals_are_exact_sums_of_options():
    options = [
        calculate_option_totals(SERVICE_AND_MATERIAL, DiscountType.NONE, Decimal("0"), Decimal("7.25")),
        calculate_option_totals(SERVICE_AND_MATERIAL, DiscountType.PERCENTAGE, Decimal("3.3"), Decimal("7.25")),
        calculate_option_totals(
            [Item(Decimal("3"), Decimal("0.10"))], DiscountType.FIXED_AMOUNT, Decimal("0.07"), Decimal("7.25")
        ),
    ]
    estimate = calculate_estimate_totals(options)

    assert estimate.subtotal == sum(o.subtotal for o in options)
    assert estimate.discount_amount == sum(o.discount_amount for o in options)
    assert estimate.tax_amount == sum(o.tax_amount for o in options)
    assert estimate.total == sum(o.total for o in options)


def test_rounding_happens_only_on_presentation():
    items = [Item(Decimal("1"), Decimal("0.005"))] * 3
    totals = calculate_option_totals(items)

    assert totals.subtotal == Decimal("0.015")
    assert totals.rounded().subtotal == Decimal("0.02")


def test_round_money_rounds_half_up():
    assert round_money(Decimal("2.675")) == Decimal("2.68")
    assert round_money(Decimal("-1.005")) == Decimal("-1.01")


def test_to_decimal_keeps_short_float_repr():
    assert to_decimal(0.1) == Decimal("0.1")
    assert to_decimal("19.99") == Decimal("19.99")
    assert to_decimal(3) == Decimal("3")


def test_calculate_discount_accepts_raw_enum_values():
    assert calculate_discount(Decimal("80"), "PERCENTAGE", Decimal("25")) == Decimal("20")
