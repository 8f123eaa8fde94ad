import logging
import uuid

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldsmart.auth.models import User
from fieldsmart.core.exceptions import ConflictError, NotFoundError, ValidationError
from fieldsmart.core.numbering import next_document_number
from fieldsmart.core.pagination import PaginationParams, paginate
from fieldsmart.customers.service import get_customer_address
from fieldsmart.database import require_non_null
from fieldsmart.jobs.models import Job
from fieldsmart.jobs.schemas import JobCreate
from fieldsmart.jobs.service import create_job
from fieldsmart.service_requests.models import ServiceRequest, ServiceRequestStatus
from fieldsmart.service_requests.schemas import (
    ServiceRequestConvert,
    ServiceRequestCreate,
    ServiceRequestFilter,
    ServiceRequestUpdate,
)

logger = logging.getLogger(__name__)


async def create_service_request(
    db: AsyncSession, data: ServiceRequestCreate, user: User
) -> ServiceRequest:
    await get_customer_address(db, data.customer_id, data.address_id, user.tenant_id)

    request = ServiceRequest(
        **data.model_dump(),
        tenant_id=user.tenant_id,
        request_number=await next_document_number(
            db, ServiceRequest.request_number, ServiceRequest.tenant_id, user.tenant_id, "SR"
        ),
        created_by=user.id,
    )
    db.add(request)
    await db.commit()
    logger.info("Created service request %s via %s", request.request_number, data.source.value)
    return await get_service_request(db, request.id, user.tenant_id)


async def list_service_requests(
    db: AsyncSession,
    tenant_id: uuid.UUID,
    filters: ServiceRequestFilter,
    pagination: PaginationParams,
) -> tuple[list[ServiceRequest], dict]:
    query = select(ServiceRequest).where(ServiceRequest.tenant_id == tenant_id)

    if filters.search:
        term = f"%{filters.search}%"
        query = query.where(
            or_(
                ServiceRequest.request_number.ilike(term),
                ServiceRequest.title.ilike(term),
                ServiceRequest.description.ilike(term),
            )
        )
    if filters.status is not None:
        query = query.where(ServiceRequest.status == filters.status)
    if filters.priority is not None:
        query = query.where(ServiceRequest.priority == filters.priority)
    if filters.customer_id is not None:
        query = query.where(ServiceRequest.customer_id == filters.customer_id)

    query = query.order_by(ServiceRequest.created_at.desc(), ServiceRequest.request_number.desc())
    return await paginate(db, query, pagination)


async def get_service_request(
    db: AsyncSession, request_id: uuid.UUID, tenant_id: uuid.UUID
) -> ServiceRequest:
    result = await db.execute(
        select(ServiceRequest)
        .where(ServiceRequest.id == request_id, ServiceRequest.tenant_id == tenant_id)
        .execution_options(populate_existing=True)
    )
    request = result.scalar_one_or_none()
    if request is None:
        raise NotFoundError("Service request", str(request_id))
    return request


async def update_service_request(
    db: AsyncSession, request_id: uuid.UUID, data: ServiceRequestUpdate, user: User
) -> ServiceRequest:
    request = await get_service_request(db, request_id, user.tenant_id)
    update_data = data.model_dump(exclude_unset=True)

    if update_data.get("status") == ServiceRequestStatus.CONVERTED and request.job_id is None:
        raise ValidationError("Use the convert action to turn a request into a job.")

    if "address_id" in update_data:
        if update_data["address_id"] is None:
            raise ValidationError(
                "Service request has validation errors.",
                details={"addressId": "Service address is required"},
            )
        await get_customer_address(
            db, request.customer_id, update_data["address_id"], user.tenant_id
        )

    require_non_null(ServiceRequest, update_data, "Service request has validation errors.")

    for key, value in update_data.items():
        setattr(request, key, value)

    await db.commit()
    logger.info("Updated service request %s", request.request_number)
    return await get_service_request(db, request_id, user.tenant_id)


async def convert_to_job(
    db: AsyncSession, request_id: uuid.UUID, data: ServiceRequestConvert, user: User
) -> Job:
    """Create a job from a service request and mark the request converted."""
    request = await get_service_request(db, request_id, user.tenant_id)
    if request.status in (ServiceRequestStatus.CONVERTED, ServiceRequestStatus.CLOSED):
        raise ConflictError(
            f"Service request {request.request_number} is {request.status.value.lower()}."
        )
    if request.address_id is None:
        raise ValidationError(
            "Service request has no service address.",
            details={"addressId": "Service address is required"},
        )

    job = await create_job(
        db,
        JobCreate(
            customer_id=request.customer_id,
            address_id=request.address_id,
            title=request.title,
            description=request.description,
            priority=request.priority,
            scheduled_start=data.scheduled_start,
            scheduled_end=data.scheduled_end,
            use_same_as_primary=request.use_same_as_primary,
        ),
        user,
    )

    request.status = ServiceRequestStatus.CONVERTED
    request.job_id = job.id
    await db.commit()
    logger.info("Converted service request %s to job %s", request.request_number, job.job_number)
    return job


async def delete_service_request(
    db: AsyncSession, request_id: uuid.UUID, tenant_id: uuid.UUID
) -> None:
    request = await get_service_request(db, request_id, tenant_id)
    await db.delete(request)
    await db.commit()
