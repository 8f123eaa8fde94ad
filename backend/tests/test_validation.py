from types import SimpleNamespace

from fieldsmart.estimates.validation import (
    find_duplicate_names,
    validate_estimate,
    validate_options,
)


def _item(name):
    return SimpleNamespace(name=name)


def _option(name, *item_names):
    return SimpleNamespace(name=name, line_items=[_item(n) for n in item_names])


def test_valid_options_have_no_errors():
    options = [_option("Good", "Tune-up"), _option("Better", "Tune-up", "Filter")]
    assert validate_options(options) == {}


def test_no_options():
    assert validate_options([]) == {"options": "At least one option is required"}


def test_option_names_compare_trimmed_and_case_insensitive():
    errors = validate_options([_option(" Standard ", "Labor"), _option("standard", "Labor")])

    assert "duplicateOptions" in errors
    assert "standard" in errors["duplicateOptions"]


def test_duplicate_line_items_within_one_option():
    errors = validate_options([_option("Repair", "Capacitor", "CAPACITOR ")])

    assert errors == {
        "option-0-duplicate-items": "Duplicate line items in Repair: capacitor",
    }


def test_same_item_name_in_different_options_is_allowed():
    errors = validate_options([_option("A", "Labor"), _option("B", "Labor")])
    assert errors == {}


def test_blank_names_and_empty_options():
    errors = validate_options([_option("  "), _option("Replace", "", "Unit")])

    assert errors["option-0-name"] == "Option name is required"
    assert errors["option-0-items"] == "At least one line item is required"
    assert errors["item-1-0-name"] == "Item name is required"
    assert "option-1-items" not in errors


def test_blank_names_are_not_duplicates():
    assert find_duplicate_names(["", "  ", None, "a", "A"]) == ["a"]


def test_estimate_header_fields_are_required():
    errors = validate_estimate([_option("A", "Labor")], title=" ", customer_id=None, address_id=None)

    assert set(errors) == {"title", "customerId", "addressId"}


def test_header_checks_can_be_skipped():
    errors = validate_estimate([_option("A", "Labor")], require_header=False)
    assert errors == {}
