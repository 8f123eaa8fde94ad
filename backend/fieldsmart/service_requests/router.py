import uuid

from fastapi import APIRouter, Query

from fieldsmart.core.pagination import Pagination
from fieldsmart.dependencies import AdminUser, CurrentUser, DbSession, OfficeUser
from fieldsmart.jobs.models import Priority
from fieldsmart.jobs.schemas import JobResponse
from fieldsmart.service_requests import service
from fieldsmart.service_requests.models import ServiceRequestStatus
from fieldsmart.service_requests.schemas import (
    ServiceRequestConvert,
    ServiceRequestCreate,
    ServiceRequestFilter,
    ServiceRequestListItem,
    ServiceRequestResponse,
    ServiceRequestUpdate,
)

router = APIRouter()


@router.get("")
async def list_service_requests(
    db: DbSession,
    current_user: CurrentUser,
    pagination: Pagination,
    search: str | None = Query(None),
    status: ServiceRequestStatus | None = Query(None),
    priority: Priority | None = Query(None),
    customer_id: uuid.UUID | None = Query(None),
) -> dict:
    filters = ServiceRequestFilter(
        search=search, status=status, priority=priority, customer_id=customer_id,
    )
    requests, meta = await service.list_service_requests(
        db, current_user.tenant_id, filters, pagination
    )
    return {"data": [ServiceRequestListItem.model_validate(r) for r in requests], "meta": meta}


@router.post("", status_code=201)
async def create_service_request(
    data: ServiceRequestCreate,
    db: DbSession,
    current_user: OfficeUser,
) -> dict:
    request = await service.create_service_request(db, data, current_user)
    return {"data": ServiceRequestResponse.model_validate(request)}


@router.get("/{request_id}")
async def get_service_request(
    request_id: uuid.UUID,
    db: DbSession,
    current_user: CurrentUser,
) -> dict:
    request = await service.get_service_request(db, request_id, current_user.tenant_id)
    return {"data": ServiceRequestResponse.model_validate(request)}


@router.put("/{request_id}")
async def update_service_request(
    request_id: uuid.UUID,
    data: ServiceRequestUpdate,
    db: DbSession,
    current_user: OfficeUser,
) -> dict:
    request = await service.update_service_request(db, request_id, data, current_user)
    return {"data": ServiceRequestResponse.model_validate(request)}


@router.post("/{request_id}/convert-to-job", status_code=201)
async def convert_to_job(
    request_id: uuid.UUID,
    data: ServiceRequestConvert,
    db: DbSession,
    current_user: OfficeUser,
) -> dict:
    job = await service.convert_to_job(db, request_id, data, current_user)
    return {"data": JobResponse.model_validate(job)}


@router.delete("/{request_id}")
async def delete_service_request(
    request_id: uuid.UUID,
    db: DbSession,
    current_user: AdminUser,
) -> dict:
    await service.delete_service_request(db, request_id, current_user.tenant_id)
    return {"data": {"message": "Service request deleted"}}
