import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from fieldsmart.customers.schemas import AddressResponse, CustomerSummary
from fieldsmart.estimates.models import Estimate, EstimateStatus, LineItemType
from fieldsmart.estimates.pricing import DiscountType


class EstimateLineItemCreate(BaseModel):
    type: LineItemType = LineItemType.SERVICE
    name: str = Field(max_length=255)
    description: str | None = None
    quantity: Decimal = Field(default=Decimal("1"), ge=0)
    unit_price: Decimal = Field(default=Decimal("0"), ge=0)
    unit_cost: Decimal = Field(default=Decimal("0"), ge=0)
    is_taxable: bool = True
    is_optional: bool = False
    is_selected: bool = True
    sort_order: int | None = None


class EstimateOptionCreate(BaseModel):
    name: str = Field(max_length=255)
    description: str | None = None
    is_recommended: bool = False
    discount_type: DiscountType = DiscountType.NONE
    discount_value: Decimal = Field(default=Decimal("0"), ge=0)
    sort_order: int | None = None
    line_items: list[EstimateLineItemCreate] = []


class EstimateCreate(BaseModel):
    customer_id: uuid.UUID
    address_id: uuid.UUID
    title: str = Field(max_length=255)
    message: str | None = None
    terms_and_conditions: str | None = None
    valid_until: Optional[date] = None
    customer_can_approve: bool = True
    use_same_as_primary: bool = False
    status: EstimateStatus = EstimateStatus.DRAFT
    tax_rate: Decimal | None = Field(default=None, ge=0)
    options: list[EstimateOptionCreate] = []


class EstimateUpdate(BaseModel):
    address_id: uuid.UUID | None = None
    title: str | None = Field(None, max_length=255)
    message: str | None = None
    terms_and_conditions: str | None = None
    valid_until: Optional[date] = None
    customer_can_approve: bool | None = None
    use_same_as_primary: bool | None = None
    status: EstimateStatus | None = None
    tax_rate: Decimal | None = Field(None, ge=0)
    options: list[EstimateOptionCreate] | None = None


class EstimateLineItemResponse(BaseModel):
    id: uuid.UUID
    option_id: uuid.UUID
    type: LineItemType
    name: str
    description: str | None
    quantity: Decimal
    unit_price: Decimal
    unit_cost: Decimal
    is_taxable: bool
    is_optional: bool
    is_selected: bool
    sort_order: int
    total: Decimal

    model_config = {"from_attributes": True}


class EstimateOptionResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: str | None
    is_recommended: bool
    discount_type: DiscountType
    discount_value: Decimal
    sort_order: int
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total: Decimal
    line_items: list[EstimateLineItemResponse] = []


class EstimateResponse(BaseModel):
    id: uuid.UUID
    estimate_number: str
    status: EstimateStatus
    title: str
    message: str | None
    terms_and_conditions: str | None
    valid_until: Optional[date]
    customer_can_approve: bool
    use_same_as_primary: bool
    tax_rate: Decimal
    customer_id: uuid.UUID
    address_id: uuid.UUID | None
    customer: CustomerSummary | None = None
    address: AddressResponse | None = None
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total: Decimal
    options: list[EstimateOptionResponse] = []
    sent_at: datetime | None
    viewed_at: datetime | None
    approved_at: datetime | None
    declined_at: datetime | None
    expired_at: datetime | None
    created_by: uuid.UUID
    created_at: datetime
    updated_at: datetime


class EstimateListItem(BaseModel):
    id: uuid.UUID
    estimate_number: str
    status: EstimateStatus
    title: str
    valid_until: Optional[date]
    customer_id: uuid.UUID
    customer: CustomerSummary | None = None
    total: Decimal
    created_at: datetime


class EstimateFilter(BaseModel):
    search: str | None = None
    status: EstimateStatus | None = None
    customer_id: uuid.UUID | None = None


def build_estimate_response(estimate: Estimate) -> EstimateResponse:
    """Serialize an estimate with totals recomputed from its line items."""
    options = []
    for option in estimate.options:
        totals = option.totals(estimate.tax_rate).rounded()
        options.append(EstimateOptionResponse(
            id=option.id,
            name=option.name,
            description=option.description,
            is_recommended=option.is_recommended,
            discount_type=option.discount_type,
            discount_value=option.discount_value,
            sort_order=option.sort_order,
            subtotal=totals.subtotal,
            discount_amount=totals.discount_amount,
            tax_amount=totals.tax_amount,
            total=totals.total,
            line_items=[
                EstimateLineItemResponse.model_validate(item) for item in option.line_items
            ],
        ))

    totals = estimate.totals().rounded()
    return EstimateResponse(
        id=estimate.id,
        estimate_number=estimate.estimate_number,
        status=estimate.status,
        title=estimate.title,
        message=estimate.message,
        terms_and_conditions=estimate.terms_and_conditions,
        valid_until=estimate.valid_until,
        customer_can_approve=estimate.customer_can_approve,
        use_same_as_primary=estimate.use_same_as_primary,
        tax_rate=estimate.tax_rate,
        customer_id=estimate.customer_id,
        address_id=estimate.address_id,
        customer=CustomerSummary.model_validate(estimate.customer) if estimate.customer else None,
        address=AddressResponse.model_validate(estimate.address) if estimate.address else None,
        subtotal=totals.subtotal,
        discount_amount=totals.discount_amount,
        tax_amount=totals.tax_amount,
        total=totals.total,
        options=options,
        sent_at=estimate.sent_at,
        viewed_at=estimate.viewed_at,
        approved_at=estimate.approved_at,
        declined_at=estimate.declined_at,
        expired_at=estimate.expired_at,
        created_by=estimate.created_by,
        created_at=estimate.created_at,
        updated_at=estimate.updated_at,
    )


def build_estimate_list_item(estimate: Estimate) -> EstimateListItem:
    return EstimateListItem(
        id=estimate.id,
        estimate_number=estimate.estimate_number,
        status=estimate.status,
        title=estimate.title,
        valid_until=estimate.valid_until,
        customer_id=estimate.customer_id,
        customer=CustomerSummary.model_validate(estimate.customer) if estimate.customer else None,
        total=estimate.totals().rounded().total,
        created_at=estimate.created_at,
    )
