import logging
import uuid

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fieldsmart.auth.models import User
from fieldsmart.core.exceptions import NotFoundError, ValidationError
from fieldsmart.core.numbering import next_document_number
from fieldsmart.core.pagination import PaginationParams, paginate
from fieldsmart.customers.models import Address, AddressType, Customer
from fieldsmart.customers.schemas import (
    AddressCreate,
    CustomerCreate,
    CustomerFilter,
    CustomerUpdate,
)

logger = logging.getLogger(__name__)


async def create_customer(
    db: AsyncSession, data: CustomerCreate, user: User
) -> Customer:
    customer_number = await next_document_number(
        db, Customer.customer_number, Customer.tenant_id, user.tenant_id, "CUS"
    )
    customer = Customer(
        **data.model_dump(exclude={"primary_address"}),
        tenant_id=user.tenant_id,
        customer_number=customer_number,
        created_by=user.id,
    )
    db.add(customer)
    await db.flush()

    if data.primary_address is not None:
        fields = data.primary_address.model_dump()
        fields["type"] = AddressType.PRIMARY
        db.add(Address(customer_id=customer.id, **fields))

    await db.commit()
    logger.info("Created customer %s (%s)", customer.customer_number, customer.id)
    return await get_customer(db, customer.id, user.tenant_id)


async def list_customers(
    db: AsyncSession,
    tenant_id: uuid.UUID,
    filters: CustomerFilter,
    pagination: PaginationParams,
) -> tuple[list[Customer], dict]:
    query = select(Customer).where(Customer.tenant_id == tenant_id)

    if filters.search:
        term = f"%{filters.search}%"
        query = query.where(
            or_(
                Customer.first_name.ilike(term),
                Customer.last_name.ilike(term),
                Customer.company_name.ilike(term),
                Customer.email.ilike(term),
                Customer.customer_number.ilike(term),
            )
        )
    if filters.is_active is not None:
        query = query.where(Customer.is_active == filters.is_active)

    query = query.order_by(Customer.last_name, Customer.first_name)
    return await paginate(db, query, pagination)


async def get_customer(
    db: AsyncSession, customer_id: uuid.UUID, tenant_id: uuid.UUID
) -> Customer:
    result = await db.execute(
        select(Customer)
        .options(selectinload(Customer.addresses))
        .where(Customer.id == customer_id, Customer.tenant_id == tenant_id)
        .execution_options(populate_existing=True)
    )
    customer = result.scalar_one_or_none()
    if customer is None:
        raise NotFoundError("Customer", str(customer_id))
    return customer


async def update_customer(
    db: AsyncSession, customer_id: uuid.UUID, data: CustomerUpdate, user: User
) -> Customer:
    customer = await get_customer(db, customer_id, user.tenant_id)
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(customer, key, value)
    await db.commit()
    return await get_customer(db, customer_id, user.tenant_id)


async def delete_customer(
    db: AsyncSession, customer_id: uuid.UUID, tenant_id: uuid.UUID
) -> None:
    customer = await get_customer(db, customer_id, tenant_id)
    await db.delete(customer)
    await db.commit()


async def list_addresses(
    db: AsyncSession, customer_id: uuid.UUID, tenant_id: uuid.UUID
) -> list[Address]:
    """Every address on file for a customer, of every type."""
    await get_customer(db, customer_id, tenant_id)
    result = await db.execute(
        select(Address)
        .where(Address.customer_id == customer_id)
        .order_by(Address.created_at, Address.id)
    )
    return list(result.scalars().all())


async def add_address(
    db: AsyncSession, customer_id: uuid.UUID, data: AddressCreate, tenant_id: uuid.UUID
) -> Address:
    await get_customer(db, customer_id, tenant_id)

    # A customer keeps at most one PRIMARY address; the old one stays as a SERVICE address
    if data.type == AddressType.PRIMARY:
        await db.execute(
            update(Address)
            .where(Address.customer_id == customer_id, Address.type == AddressType.PRIMARY)
            .values(type=AddressType.SERVICE)
        )

    address = Address(customer_id=customer_id, **data.model_dump())
    db.add(address)
    await db.commit()
    await db.refresh(address)
    logger.info("Added %s address %s to customer %s", address.type.value, address.id, customer_id)
    return address


async def get_customer_address(
    db: AsyncSession,
    customer_id: uuid.UUID,
    address_id: uuid.UUID,
    tenant_id: uuid.UUID,
) -> Address:
    """Load an address and check it belongs to the given customer of the tenant."""
    await get_customer(db, customer_id, tenant_id)
    result = await db.execute(
        select(Address).where(Address.id == address_id, Address.customer_id == customer_id)
    )
    address = result.scalar_one_or_none()
    if address is None:
        raise NotFoundError("Address", str(address_id))
    return address


async def delete_address(
    db: AsyncSession,
    customer_id: uuid.UUID,
    address_id: uuid.UUID,
    tenant_id: uuid.UUID,
) -> None:
    address = await get_customer_address(db, customer_id, address_id, tenant_id)
    if address.is_primary:
        raise ValidationError("The primary address cannot be deleted; set another primary first.")
    await db.delete(address)
    await db.commit()
