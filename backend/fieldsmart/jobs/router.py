import uuid

from fastapi import APIRouter, Query

from fieldsmart.core.pagination import Pagination
from fieldsmart.dependencies import AdminUser, CurrentUser, DbSession, OfficeUser
from fieldsmart.jobs import service
from fieldsmart.jobs.models import JobStatus, Priority
from fieldsmart.jobs.schemas import JobCreate, JobFilter, JobListItem, JobResponse, JobUpdate

router = APIRouter()


@router.get("")
async def list_jobs(
    db: DbSession,
    current_user: CurrentUser,
    pagination: Pagination,
    search: str | None = Query(None),
    status: JobStatus | None = Query(None),
    priority: Priority | None = Query(None),
    customer_id: uuid.UUID | None = Query(None),
) -> dict:
    filters = JobFilter(search=search, status=status, priority=priority, customer_id=customer_id)
    jobs, meta = await service.list_jobs(db, current_user.tenant_id, filters, pagination)
    return {"data": [JobListItem.model_validate(job) for job in jobs], "meta": meta}


@router.post("", status_code=201)
async def create_job(
    data: JobCreate,
    db: DbSession,
    current_user: OfficeUser,
) -> dict:
    job = await service.create_job(db, data, current_user)
    return {"data": JobResponse.model_validate(job)}


@router.get("/{job_id}")
async def get_job(
    job_id: uuid.UUID,
    db: DbSession,
    current_user: CurrentUser,
) -> dict:
    job = await service.get_job(db, job_id, current_user.tenant_id)
    return {"data": JobResponse.model_validate(job)}


@router.put("/{job_id}")
async def update_job(
    job_id: uuid.UUID,
    data: JobUpdate,
    db: DbSession,
    current_user: CurrentUser,
) -> dict:
    job = await service.update_job(db, job_id, data, current_user)
    return {"data": JobResponse.model_validate(job)}


@router.delete("/{job_id}")
async def delete_job(
    job_id: uuid.UUID,
    db: DbSession,
    current_user: AdminUser,
) -> dict:
    await service.delete_job(db, job_id, current_user.tenant_id)
    return {"data": {"message": "Job deleted"}}
