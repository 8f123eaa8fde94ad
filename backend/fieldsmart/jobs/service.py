import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldsmart.auth.models import User
from fieldsmart.core.exceptions import NotFoundError, ValidationError
from fieldsmart.core.numbering import next_document_number
from fieldsmart.core.pagination import PaginationParams, paginate
from fieldsmart.customers.service import get_customer_address
from fieldsmart.database import require_non_null
from fieldsmart.jobs.models import Job, JobStatus
from fieldsmart.jobs.schemas import JobCreate, JobFilter, JobUpdate

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _check_schedule(start: datetime | None, end: datetime | None) -> None:
    if start is not None and end is not None and _as_utc(end) < _as_utc(start):
        raise ValidationError(
            "Scheduled end must not be before scheduled start.",
            details={"scheduled_end": "Must be on or after the scheduled start"},
        )


def _apply_status(job: Job, status: JobStatus) -> None:
    job.status = status
    if status == JobStatus.COMPLETED and job.completed_at is None:
        job.completed_at = datetime.now(timezone.utc)


async def create_job(db: AsyncSession, data: JobCreate, user: User) -> Job:
    _check_schedule(data.scheduled_start, data.scheduled_end)
    await get_customer_address(db, data.customer_id, data.address_id, user.tenant_id)

    job = Job(
        **data.model_dump(exclude={"status"}),
        tenant_id=user.tenant_id,
        job_number=await next_document_number(
            db, Job.job_number, Job.tenant_id, user.tenant_id, "JOB"
        ),
        created_by=user.id,
    )
    # A job with a start time is scheduled unless the caller said otherwise
    status = data.status
    if status == JobStatus.UNSCHEDULED and data.scheduled_start is not None:
        status = JobStatus.SCHEDULED
    _apply_status(job, status)

    db.add(job)
    await db.commit()
    logger.info("Created job %s for customer %s", job.job_number, data.customer_id)
    return await get_job(db, job.id, user.tenant_id)


async def list_jobs(
    db: AsyncSession,
    tenant_id: uuid.UUID,
    filters: JobFilter,
    pagination: PaginationParams,
) -> tuple[list[Job], dict]:
    query = select(Job).where(Job.tenant_id == tenant_id)

    if filters.search:
        term = f"%{filters.search}%"
        query = query.where(
            or_(
                Job.job_number.ilike(term),
                Job.title.ilike(term),
                Job.description.ilike(term),
            )
        )
    if filters.status is not None:
        query = query.where(Job.status == filters.status)
    if filters.priority is not None:
        query = query.where(Job.priority == filters.priority)
    if filters.customer_id is not None:
        query = query.where(Job.customer_id == filters.customer_id)

    query = query.order_by(Job.created_at.desc(), Job.job_number.desc())
    return await paginate(db, query, pagination)


async def get_job(db: AsyncSession, job_id: uuid.UUID, tenant_id: uuid.UUID) -> Job:
    result = await db.execute(
        select(Job)
        .where(Job.id == job_id, Job.tenant_id == tenant_id)
        .execution_options(populate_existing=True)
    )
    job = result.scalar_one_or_none()
    if job is None:
        raise NotFoundError("Job", str(job_id))
    return job


async def update_job(
    db: AsyncSession, job_id: uuid.UUID, data: JobUpdate, user: User
) -> Job:
    job = await get_job(db, job_id, user.tenant_id)
    update_data = data.model_dump(exclude_unset=True, exclude={"status"})

    if "address_id" in update_data:
        if update_data["address_id"] is None:
            raise ValidationError(
                "Job has validation errors.",
                details={"addressId": "Service address is required"},
            )
        await get_customer_address(db, job.customer_id, update_data["address_id"], user.tenant_id)

    require_non_null(Job, update_data, "Job has validation errors.")

    _check_schedule(
        update_data.get("scheduled_start", job.scheduled_start),
        update_data.get("scheduled_end", job.scheduled_end),
    )

    for key, value in update_data.items():
        setattr(job, key, value)
    if data.status is not None:
        _apply_status(job, data.status)

    await db.commit()
    logger.info("Updated job %s", job.job_number)
    return await get_job(db, job_id, user.tenant_id)


async def delete_job(db: AsyncSession, job_id: uuid.UUID, tenant_id: uuid.UUID) -> None:
    job = await get_job(db, job_id, tenant_id)
    await db.delete(job)
    await db.commit()
