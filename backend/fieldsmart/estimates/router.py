import uuid

from fastapi import APIRouter, Query
from fastapi.responses import Response

from fieldsmart.core.pagination import Pagination
from fieldsmart.dependencies import AdminUser, AppSettings, CurrentUser, DbSession, OfficeUser
from fieldsmart.estimates import service
from fieldsmart.estimates.models import EstimateStatus
from fieldsmart.estimates.pdf import generate_estimate_pdf
from fieldsmart.estimates.schemas import (
    EstimateCreate,
    EstimateFilter,
    EstimateUpdate,
    build_estimate_list_item,
    build_estimate_response,
)

router = APIRouter()


def _pdf_response(content: bytes, estimate_number: str, download: bool) -> Response:
    disposition = "attachment" if download else "inline"
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'{disposition}; filename="estimate-{estimate_number}.pdf"'},
    )


@router.get("")
async def list_estimates(
    db: DbSession,
    current_user: CurrentUser,
    pagination: Pagination,
    search: str | None = Query(None, description="Matches number, title or message"),
    status: EstimateStatus | None = Query(None),
    customer_id: uuid.UUID | None = Query(None),
) -> dict:
    filters = EstimateFilter(search=search, status=status, customer_id=customer_id)
    rows, meta = await service.list_estimates(db, current_user.tenant_id, filters, pagination)
    return {"data": [build_estimate_list_item(row) for row in rows], "meta": meta}


@router.post("", status_code=201)
async def create_estimate(
    data: EstimateCreate, db: DbSession, settings: AppSettings, author: OfficeUser
) -> dict:
    estimate = await service.create_estimate(
        db,
        data,
        author,
        default_tax_rate=settings.default_tax_rate,
        valid_days=settings.estimate_valid_days,
    )
    return {"data": build_estimate_response(estimate)}


@router.get("/{estimate_id}")
async def get_estimate(estimate_id: uuid.UUID, db: DbSession, current_user: CurrentUser) -> dict:
    estimate = await service.get_estimate(db, estimate_id, current_user.tenant_id)
    return {"data": build_estimate_response(estimate)}


@router.put("/{estimate_id}")
async def update_estimate(
    estimate_id: uuid.UUID, data: EstimateUpdate, db: DbSession, editor: OfficeUser
) -> dict:
    estimate = await service.update_estimate(db, estimate_id, data, editor)
    return {"data": build_estimate_response(estimate)}


@router.delete("/{estimate_id}")
async def delete_estimate(estimate_id: uuid.UUID, db: DbSession, admin: AdminUser) -> dict:
    await service.delete_estimate(db, estimate_id, admin.tenant_id)
    return {"data": {"message": "Estimate deleted"}}


@router.get("/{estimate_id}/pdf")
async def get_estimate_pdf(
    estimate_id: uuid.UUID,
    db: DbSession,
    current_user: CurrentUser,
    download: bool = Query(True, description="false renders the PDF inline"),
) -> Response:
    estimate = await service.get_estimate(db, estimate_id, current_user.tenant_id)
    content = generate_estimate_pdf(estimate, business_name=current_user.tenant.name)
    return _pdf_response(content, estimate.estimate_number, download)
