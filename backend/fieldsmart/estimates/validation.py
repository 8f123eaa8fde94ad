"""Pre-submission checks for an estimate's option tree.

The checks are pure: they read the option and line item objects (ORM rows,
request schemas or form drafts alike) and return a map of field key to a
message suitable for showing next to the form control. An empty map means the
estimate may be submitted.
"""

from typing import Any, Iterable, Sequence


def _normalized_name(name: str | None) -> str:
    return (name or "").strip().lower()


def find_duplicate_names(names: Iterable[str | None]) -> list[str]:
    """Normalized names that occur more than once, in order of first repeat.

    Blank names are ignored here; they are reported by the required-name check.
    """
    seen: set[str] = set()
    duplicates: list[str] = []
    for name in names:
        key = _normalized_name(name)
        if not key:
            continue
        if key in seen and key not in duplicates:
            duplicates.append(key)
        seen.add(key)
    return duplicates


def validate_options(options: Sequence[Any]) -> dict[str, str]:
    errors: dict[str, str] = {}

    if not options:
        errors["options"] = "At least one option is required"
        return errors

    duplicate_options = find_duplicate_names(option.name for option in options)
    if duplicate_options:
        errors["duplicateOptions"] = (
            f"Duplicate option names found: {', '.join(duplicate_options)}"
        )

    for idx, option in enumerate(options):
        if not _normalized_name(option.name):
            errors[f"option-{idx}-name"] = "Option name is required"
        if not option.line_items:
            errors[f"option-{idx}-items"] = "At least one line item is required"

        duplicate_items = find_duplicate_names(item.name for item in option.line_items)
        if duplicate_items:
            label = (option.name or "").strip() or f"option {idx + 1}"
            errors[f"option-{idx}-duplicate-items"] = (
                f"Duplicate line items in {label}: {', '.join(duplicate_items)}"
            )

        for item_idx, item in enumerate(option.line_items):
            if not _normalized_name(item.name):
                errors[f"item-{idx}-{item_idx}-name"] = "Item name is required"

    return errors


def validate_estimate(
    options: Sequence[Any],
    *,
    title: str | None = None,
    customer_id: Any = None,
    address_id: Any = None,
    require_header: bool = True,
) -> dict[str, str]:
    """Validate an estimate before it is sent anywhere.

    With ``require_header`` the title, customer and service address are also
    checked; partial updates that only replace options pass ``False``.
    """
    errors: dict[str, str] = {}
    if require_header:
        if not (title or "").strip():
            errors["title"] = "Title is required"
        if not customer_id:
            errors["customerId"] = "Customer is required"
        if not address_id:
            errors["addressId"] = "Service address is required"
    errors.update(validate_options(options))
    return errors
