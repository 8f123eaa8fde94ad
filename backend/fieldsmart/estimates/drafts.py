"""Editable estimate state held by a form before anything is saved.

Drafts are immutable; every edit returns a new draft. Totals are computed with
the same pricing functions the API uses, and ``to_payload`` only ever sends the
raw inputs.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Any, Mapping

from fieldsmart.estimates.models import EstimateStatus, LineItemType
from fieldsmart.estimates.pricing import (
    DEFAULT_TAX_RATE,
    ZERO,
    DiscountType,
    EstimateTotals,
    OptionTotals,
    calculate_estimate_totals,
    calculate_option_totals,
    line_total,
    to_decimal,
)
from fieldsmart.estimates.schemas import EstimateUpdate
from fieldsmart.estimates.validation import validate_estimate


@dataclass(frozen=True)
class LineItemDraft:
    name: str = ""
    type: LineItemType = LineItemType.SERVICE
    description: str | None = None
    quantity: Decimal = Decimal("1")
    unit_price: Decimal = ZERO
    unit_cost: Decimal = ZERO
    is_taxable: bool = True
    is_optional: bool = False
    is_selected: bool = True

    def __post_init__(self):
        # Accept ints, strings and floats from form inputs
        for name in ("quantity", "unit_price", "unit_cost"):
            object.__setattr__(self, name, to_decimal(getattr(self, name)))

    @property
    def total(self) -> Decimal:
        return line_total(self)

    def to_payload(self, sort_order: int) -> dict:
        return {
            "type": self.type.value,
            "name": self.name,
            "description": self.description or None,
            "quantity": str(self.quantity),
            "unit_price": str(self.unit_price),
            "unit_cost": str(self.unit_cost),
            "is_taxable": self.is_taxable,
            "is_optional": self.is_optional,
            "is_selected": self.is_selected,
            "sort_order": sort_order,
        }


@dataclass(frozen=True)
class OptionDraft:
    name: str = ""
    description: str | None = None
    is_recommended: bool = False
    discount_type: DiscountType = DiscountType.NONE
    discount_value: Decimal = ZERO
    line_items: tuple[LineItemDraft, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "discount_value", to_decimal(self.discount_value))
        object.__setattr__(self, "line_items", tuple(self.line_items))

    def totals(self, tax_rate: Decimal) -> OptionTotals:
        return calculate_option_totals(
            self.line_items, self.discount_type, self.discount_value, tax_rate
        )

    def add_item(self, item: LineItemDraft | None = None) -> OptionDraft:
        return replace(self, line_items=self.line_items + (item or LineItemDraft(),))

    def update_item(self, index: int, **changes: Any) -> OptionDraft:
        items = list(self.line_items)
        items[index] = replace(items[index], **changes)
        return replace(self, line_items=tuple(items))

    def remove_item(self, index: int) -> OptionDraft:
        items = list(self.line_items)
        del items[index]
        return replace(self, line_items=tuple(items))

    def to_payload(self, sort_order: int) -> dict:
        return {
            "name": self.name,
            "description": self.description or None,
            "is_recommended": self.is_recommended,
            "discount_type": self.discount_type.value,
            "discount_value": str(self.discount_value),
            "sort_order": sort_order,
            "line_items": [item.to_payload(i) for i, item in enumerate(self.line_items)],
        }


@dataclass(frozen=True)
class EstimateDraft:
    title: str = ""
    message: str | None = None
    terms_and_conditions: str | None = None
    valid_until: date | None = None
    customer_can_approve: bool = False
    status: EstimateStatus = EstimateStatus.DRAFT
    tax_rate: Decimal = DEFAULT_TAX_RATE
    options: tuple[OptionDraft, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "tax_rate", to_decimal(self.tax_rate))
        object.__setattr__(self, "options", tuple(self.options))

    @classmethod
    def from_response(cls, data: Mapping[str, Any]) -> EstimateDraft:
        """Rebuild a draft from an estimate as the API returns it.

        The payload is parsed with ``EstimateUpdate``, which ignores ids,
        timestamps and computed totals.
        """
        parsed = EstimateUpdate.model_validate(data)
        options = tuple(
            OptionDraft(
                name=opt.name,
                description=opt.description,
                is_recommended=opt.is_recommended,
                discount_type=opt.discount_type,
                discount_value=opt.discount_value,
                line_items=tuple(
                    LineItemDraft(**item.model_dump(exclude={"sort_order"}))
                    for item in opt.line_items
                ),
            )
            for opt in parsed.options or ()
        )
        return cls(
            title=parsed.title or "",
            message=parsed.message,
            terms_and_conditions=parsed.terms_and_conditions,
            valid_until=parsed.valid_until,
            customer_can_approve=bool(parsed.customer_can_approve),
            status=parsed.status or EstimateStatus.DRAFT,
            tax_rate=DEFAULT_TAX_RATE if parsed.tax_rate is None else parsed.tax_rate,
            options=options,
        )

    # -- edits ------------------------------------------------------------

    def update(self, **changes: Any) -> EstimateDraft:
        return replace(self, **changes)

    def add_option(self, option: OptionDraft | None = None) -> EstimateDraft:
        if option is None:
            option = OptionDraft(name=f"Option {len(self.options) + 1}")
        return replace(self, options=self.options + (option,))

    def update_option(self, index: int, **changes: Any) -> EstimateDraft:
        options = list(self.options)
        options[index] = replace(options[index], **changes)
        return replace(self, options=tuple(options))

    def remove_option(self, index: int) -> EstimateDraft:
        options = list(self.options)
        del options[index]
        return replace(self, options=tuple(options))

    def add_item(self, option_index: int, item: LineItemDraft | None = None) -> EstimateDraft:
        return self._with_option(option_index, self.options[option_index].add_item(item))

    def update_item(self, option_index: int, item_index: int, **changes: Any) -> EstimateDraft:
        return self._with_option(
            option_index, self.options[option_index].update_item(item_index, **changes)
        )

    def remove_item(self, option_index: int, item_index: int) -> EstimateDraft:
        return self._with_option(
            option_index, self.options[option_index].remove_item(item_index)
        )

    def _with_option(self, index: int, option: OptionDraft) -> EstimateDraft:
        options = list(self.options)
        options[index] = option
        return replace(self, options=tuple(options))

    # -- derived ----------------------------------------------------------

    def option_totals(self) -> list[OptionTotals]:
        return [option.totals(self.tax_rate) for option in self.options]

    def totals(self) -> EstimateTotals:
        return calculate_estimate_totals(self.option_totals())

    def validate(self, customer_id: Any = None, address_id: Any = None) -> dict[str, str]:
        return validate_estimate(
            self.options, title=self.title, customer_id=customer_id, address_id=address_id,
        )

    def to_payload(self) -> dict:
        return {
            "title": self.title.strip(),
            "message": self.message or None,
            "terms_and_conditions": self.terms_and_conditions or None,
            "valid_until": self.valid_until.isoformat() if self.valid_until else None,
            "customer_can_approve": self.customer_can_approve,
            "status": self.status.value,
            "tax_rate": str(self.tax_rate),
            "options": [opt.to_payload(i) for i, opt in enumerate(self.options)],
        }
