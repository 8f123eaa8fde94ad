import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fieldsmart.auth.models import User
from fieldsmart.core.exceptions import NotFoundError, ValidationError
from fieldsmart.core.numbering import next_document_number
from fieldsmart.core.pagination import PaginationParams, paginate
from fieldsmart.customers.service import get_customer_address
from fieldsmart.database import require_non_null
from fieldsmart.estimates.models import (
    STATUS_TIMESTAMPS,
    Estimate,
    EstimateLineItem,
    EstimateOption,
    EstimateStatus,
)
from fieldsmart.estimates.schemas import (
    EstimateCreate,
    EstimateFilter,
    EstimateOptionCreate,
    EstimateUpdate,
)
from fieldsmart.estimates.pricing import DEFAULT_TAX_RATE
from fieldsmart.estimates.validation import validate_estimate, validate_options

logger = logging.getLogger(__name__)

OPEN_STATUSES = [EstimateStatus.DRAFT, EstimateStatus.SENT, EstimateStatus.VIEWED]


def _build_options(options_data: list[EstimateOptionCreate]) -> list[EstimateOption]:
    options = []
    for option_idx, opt in enumerate(options_data):
        option = EstimateOption(
            name=opt.name.strip(),
            description=opt.description or None,
            is_recommended=opt.is_recommended,
            discount_type=opt.discount_type,
            discount_value=opt.discount_value,
            sort_order=opt.sort_order if opt.sort_order is not None else option_idx,
        )
        option.line_items = [
            EstimateLineItem(
                type=li.type,
                name=li.name.strip(),
                description=li.description or None,
                quantity=li.quantity,
                unit_price=li.unit_price,
                unit_cost=li.unit_cost,
                is_taxable=li.is_taxable,
                is_optional=li.is_optional,
                is_selected=li.is_selected,
                sort_order=li.sort_order if li.sort_order is not None else item_idx,
            )
            for item_idx, li in enumerate(opt.line_items)
        ]
        options.append(option)
    return options


def _apply_status(estimate: Estimate, status: EstimateStatus) -> None:
    """Set the status and stamp its timestamp the first time it is entered."""
    estimate.status = status
    column = STATUS_TIMESTAMPS.get(status)
    if column and getattr(estimate, column) is None:
        setattr(estimate, column, datetime.now(timezone.utc))


async def create_estimate(
    db: AsyncSession,
    data: EstimateCreate,
    user: User,
    default_tax_rate: Decimal = DEFAULT_TAX_RATE,
    valid_days: int | None = None,
) -> Estimate:
    errors = validate_estimate(
        data.options,
        title=data.title,
        customer_id=data.customer_id,
        address_id=data.address_id,
    )
    if errors:
        raise ValidationError("Estimate has validation errors.", details=errors)

    await get_customer_address(db, data.customer_id, data.address_id, user.tenant_id)

    valid_until = data.valid_until
    if valid_until is None and valid_days:
        valid_until = date.today() + timedelta(days=valid_days)

    estimate = Estimate(
        tenant_id=user.tenant_id,
        estimate_number=await next_document_number(
            db, Estimate.estimate_number, Estimate.tenant_id, user.tenant_id, "EST"
        ),
        customer_id=data.customer_id,
        address_id=data.address_id,
        title=data.title.strip(),
        message=data.message or None,
        terms_and_conditions=data.terms_and_conditions or None,
        valid_until=valid_until,
        customer_can_approve=data.customer_can_approve,
        use_same_as_primary=data.use_same_as_primary,
        tax_rate=data.tax_rate if data.tax_rate is not None else default_tax_rate,
        created_by=user.id,
    )
    _apply_status(estimate, data.status)
    estimate.options = _build_options(data.options)
    db.add(estimate)
    await db.commit()

    logger.info(
        "Created estimate %s with %d option(s) for customer %s",
        estimate.estimate_number, len(data.options), data.customer_id,
    )
    return await get_estimate(db, estimate.id, user.tenant_id)


async def list_estimates(
    db: AsyncSession,
    tenant_id: uuid.UUID,
    filters: EstimateFilter,
    pagination: PaginationParams,
) -> tuple[list[Estimate], dict]:
    query = select(Estimate).where(Estimate.tenant_id == tenant_id)

    if filters.search:
        term = f"%{filters.search}%"
        query = query.where(
            or_(
                Estimate.estimate_number.ilike(term),
                Estimate.title.ilike(term),
                Estimate.message.ilike(term),
            )
        )
    if filters.status is not None:
        query = query.where(Estimate.status == filters.status)
    if filters.customer_id is not None:
        query = query.where(Estimate.customer_id == filters.customer_id)

    query = query.order_by(Estimate.created_at.desc(), Estimate.estimate_number.desc())
    return await paginate(db, query, pagination)


async def get_estimate(
    db: AsyncSession, estimate_id: uuid.UUID, tenant_id: uuid.UUID
) -> Estimate:
    result = await db.execute(
        select(Estimate)
        .options(
            selectinload(Estimate.customer),
            selectinload(Estimate.address),
            selectinload(Estimate.options).selectinload(EstimateOption.line_items),
        )
        .where(Estimate.id == estimate_id, Estimate.tenant_id == tenant_id)
        .execution_options(populate_existing=True)
    )
    estimate = result.scalar_one_or_none()
    if estimate is None:
        raise NotFoundError("Estimate", str(estimate_id))
    return estimate


async def update_estimate(
    db: AsyncSession, estimate_id: uuid.UUID, data: EstimateUpdate, user: User
) -> Estimate:
    estimate = await get_estimate(db, estimate_id, user.tenant_id)
    update_data = data.model_dump(exclude_unset=True, exclude={"options", "status"})

    if data.options is not None:
        errors = validate_options(data.options)
        if errors:
            raise ValidationError("Estimate has validation errors.", details=errors)

    if "title" in update_data and not (update_data["title"] or "").strip():
        raise ValidationError("Estimate has validation errors.", details={"title": "Title is required"})

    if update_data.get("address_id") is not None:
        await get_customer_address(db, estimate.customer_id, update_data["address_id"], user.tenant_id)
    elif "address_id" in update_data:
        raise ValidationError(
            "Estimate has validation errors.",
            details={"addressId": "Service address is required"},
        )

    require_non_null(Estimate, update_data, "Estimate has validation errors.")

    for key, value in update_data.items():
        setattr(estimate, key, value)

    if data.status is not None:
        _apply_status(estimate, data.status)

    if data.options is not None:
        # The option tree is always replaced as a whole
        estimate.options = _build_options(data.options)

    await db.commit()
    logger.info("Updated estimate %s", estimate.estimate_number)
    return await get_estimate(db, estimate_id, user.tenant_id)


async def delete_estimate(
    db: AsyncSession, estimate_id: uuid.UUID, tenant_id: uuid.UUID
) -> None:
    estimate = await get_estimate(db, estimate_id, tenant_id)
    await db.delete(estimate)
    await db.commit()


async def check_expired_estimates(db: AsyncSession, today: date | None = None) -> int:
    """Expire open estimates whose ``valid_until`` date has passed."""
    today = today or date.today()
    result = await db.execute(
        select(Estimate).where(
            Estimate.valid_until.is_not(None),
            Estimate.valid_until < today,
            Estimate.status.in_(OPEN_STATUSES),
        )
    )
    estimates = result.scalars().all()
    for est in estimates:
        _apply_status(est, EstimateStatus.EXPIRED)
    if estimates:
        await db.commit()
    return len(estimates)
