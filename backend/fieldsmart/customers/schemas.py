from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from fieldsmart.customers.models import AddressType


class AddressCreate(BaseModel):
    type: AddressType = AddressType.SERVICE
    name: str | None = Field(None, max_length=255)
    street: str = Field(min_length=1, max_length=255)
    street_line2: str | None = Field(None, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(min_length=1, max_length=100)
    zip: str = Field(min_length=1, max_length=20)
    country: str = Field(default="US", max_length=100)
    access_notes: str | None = None
    gate_code: str | None = Field(None, max_length=50)


class AddressResponse(BaseModel):
    id: uuid.UUID
    customer_id: uuid.UUID
    type: AddressType
    is_primary: bool
    name: str | None
    street: str
    street_line2: str | None
    city: str
    state: str
    zip: str
    country: str
    access_notes: str | None
    gate_code: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class CustomerCreate(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    company_name: str | None = Field(None, max_length=255)
    email: str | None = Field(None, max_length=255)
    mobile_phone: str | None = Field(None, max_length=50)
    notes: str | None = None
    primary_address: AddressCreate | None = None


class CustomerUpdate(BaseModel):
    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    company_name: str | None = Field(None, max_length=255)
    email: str | None = Field(None, max_length=255)
    mobile_phone: str | None = Field(None, max_length=50)
    notes: str | None = None
    is_active: bool | None = None


class CustomerResponse(BaseModel):
    id: uuid.UUID
    customer_number: str
    first_name: str
    last_name: str
    company_name: str | None
    email: str | None
    mobile_phone: str | None
    notes: str | None
    is_active: bool
    addresses: list[AddressResponse] = []
    created_by: uuid.UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CustomerSummary(BaseModel):
    id: uuid.UUID
    customer_number: str
    first_name: str
    last_name: str
    email: str | None
    mobile_phone: str | None

    model_config = {"from_attributes": True}


class CustomerListItem(CustomerSummary):
    company_name: str | None
    is_active: bool
    created_at: datetime


class CustomerFilter(BaseModel):
    search: str | None = None
    is_active: bool | None = None
