import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from fieldsmart.customers.schemas import AddressResponse, CustomerSummary
from fieldsmart.jobs.models import JobStatus, Priority


class JobCreate(BaseModel):
    customer_id: uuid.UUID
    address_id: uuid.UUID
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    status: JobStatus = JobStatus.UNSCHEDULED
    priority: Priority = Priority.NORMAL
    scheduled_start: datetime | None = None
    scheduled_end: datetime | None = None
    use_same_as_primary: bool = False


class JobUpdate(BaseModel):
    address_id: uuid.UUID | None = None
    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    status: JobStatus | None = None
    priority: Priority | None = None
    scheduled_start: datetime | None = None
    scheduled_end: datetime | None = None
    use_same_as_primary: bool | None = None


class JobResponse(BaseModel):
    id: uuid.UUID
    job_number: str
    customer_id: uuid.UUID
    address_id: uuid.UUID | None
    customer: CustomerSummary | None = None
    address: AddressResponse | None = None
    title: str
    description: str | None
    status: JobStatus
    priority: Priority
    scheduled_start: datetime | None
    scheduled_end: datetime | None
    completed_at: datetime | None
    use_same_as_primary: bool
    created_by: uuid.UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class JobListItem(BaseModel):
    id: uuid.UUID
    job_number: str
    customer_id: uuid.UUID
    customer: CustomerSummary | None = None
    title: str
    status: JobStatus
    priority: Priority
    scheduled_start: datetime | None

    model_config = {"from_attributes": True}


class JobFilter(BaseModel):
    search: str | None = None
    status: JobStatus | None = None
    priority: Priority | None = None
    customer_id: uuid.UUID | None = None
