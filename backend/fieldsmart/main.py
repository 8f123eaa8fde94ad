from contextlib import asynccontextmanager
from importlib import import_module

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldsmart.config import Settings
from fieldsmart.core.exceptions import register_exception_handlers
from fieldsmart.core.scheduler import setup_scheduler, shutdown_scheduler
from fieldsmart.database import build_engine, build_session_factory
from fieldsmart.dependencies import CurrentUser, DbSession
from fieldsmart.logging_config import setup_logging
from fieldsmart.models import Base, Customer, Estimate, Job, ServiceRequest

API_ROUTERS = [
    ("fieldsmart.auth.router", "/api/auth", "auth"),
    ("fieldsmart.customers.router", "/api/customers", "customers"),
    ("fieldsmart.estimates.router", "/api/estimates", "estimates"),
    ("fieldsmart.jobs.router", "/api/jobs", "jobs"),
    ("fieldsmart.service_requests.router", "/api/service-requests", "service-requests"),
]


@asynccontextmanager
async def lifespan(application: FastAPI):
    settings: Settings = application.state.settings
    setup_logging(settings)

    sqlite_path = settings.sqlite_path
    if sqlite_path is not None:
        sqlite_path.parent.mkdir(parents=True, exist_ok=True)

    engine = build_engine(settings.database_url)

    # Development databases get their tables without running migrations
    if settings.is_sqlite:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    application.state.engine = engine
    application.state.session_factory = build_session_factory(engine)

    if settings.scheduler_enabled:
        setup_scheduler(application.state.session_factory)

    yield

    shutdown_scheduler()
    await engine.dispose()


async def tenant_stats(db: AsyncSession, tenant_id) -> dict:
    """Dashboard counters for one tenant."""
    from fieldsmart.estimates.service import OPEN_STATUSES
    from fieldsmart.jobs.models import JobStatus
    from fieldsmart.service_requests.models import ServiceRequestStatus

    async def count(model, *conditions) -> int:
        query = select(func.count(model.id)).where(model.tenant_id == tenant_id, *conditions)
        return (await db.execute(query)).scalar() or 0

    return {
        "customer_count": await count(Customer),
        "open_estimates": await count(Estimate, Estimate.status.in_(OPEN_STATUSES)),
        "active_jobs": await count(
            Job,
            Job.status.in_([JobStatus.UNSCHEDULED, JobStatus.SCHEDULED, JobStatus.IN_PROGRESS]),
        ),
        "new_service_requests": await count(
            ServiceRequest, ServiceRequest.status == ServiceRequestStatus.NEW
        ),
    }


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings()

    fastapi_app = FastAPI(
        title="FieldSmart",
        description="Field service management: customers, estimates, jobs and service requests",
        version="0.1.0",
        lifespan=lifespan,
    )
    fastapi_app.state.settings = settings

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for module_path, prefix, tag in API_ROUTERS:
        fastapi_app.include_router(import_module(module_path).router, prefix=prefix, tags=[tag])

    @fastapi_app.get("/api/system/health", tags=["system"])
    async def health():
        return {"data": {"status": "healthy"}}

    @fastapi_app.get("/api/system/stats", tags=["system"])
    async def stats(db: DbSession, current_user: CurrentUser):
        return {"data": await tenant_stats(db, current_user.tenant_id)}

    register_exception_handlers(fastapi_app)

    return fastapi_app


app = create_app()
