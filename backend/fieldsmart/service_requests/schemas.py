import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from fieldsmart.customers.schemas import AddressResponse, CustomerSummary
from fieldsmart.jobs.models import Priority
from fieldsmart.service_requests.models import RequestSource, ServiceRequestStatus


class ServiceRequestCreate(BaseModel):
    customer_id: uuid.UUID
    address_id: uuid.UUID
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    priority: Priority = Priority.NORMAL
    source: RequestSource = RequestSource.MANUAL
    use_same_as_primary: bool = False


class ServiceRequestUpdate(BaseModel):
    address_id: uuid.UUID | None = None
    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    status: ServiceRequestStatus | None = None
    priority: Priority | None = None
    use_same_as_primary: bool | None = None


class ServiceRequestConvert(BaseModel):
    scheduled_start: datetime | None = None
    scheduled_end: datetime | None = None


class ServiceRequestResponse(BaseModel):
    id: uuid.UUID
    request_number: str
    customer_id: uuid.UUID
    address_id: uuid.UUID | None
    customer: CustomerSummary | None = None
    address: AddressResponse | None = None
    title: str
    description: str | None
    status: ServiceRequestStatus
    priority: Priority
    source: RequestSource
    use_same_as_primary: bool
    job_id: uuid.UUID | None
    created_by: uuid.UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ServiceRequestListItem(BaseModel):
    id: uuid.UUID
    request_number: str
    customer_id: uuid.UUID
    customer: CustomerSummary | None = None
    title: str
    status: ServiceRequestStatus
    priority: Priority
    source: RequestSource
    created_at: datetime

    model_config = {"from_attributes": True}


class ServiceRequestFilter(BaseModel):
    search: str | None = None
    status: ServiceRequestStatus | None = None
    priority: Priority | None = None
    customer_id: uuid.UUID | None = None
