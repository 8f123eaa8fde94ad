import uuid

from fastapi import APIRouter, Query

from fieldsmart.core.pagination import Pagination
from fieldsmart.customers import service
from fieldsmart.customers.schemas import (
    AddressCreate,
    AddressResponse,
    CustomerCreate,
    CustomerFilter,
    CustomerListItem,
    CustomerResponse,
    CustomerUpdate,
)
from fieldsmart.dependencies import AdminUser, CurrentUser, DbSession, OfficeUser

router = APIRouter()


@router.get("")
async def list_customers(
    db: DbSession,
    current_user: CurrentUser,
    pagination: Pagination,
    search: str | None = Query(None),
    is_active: bool | None = Query(None),
) -> dict:
    filters = CustomerFilter(search=search, is_active=is_active)
    customers, meta = await service.list_customers(db, current_user.tenant_id, filters, pagination)
    return {"data": [CustomerListItem.model_validate(c) for c in customers], "meta": meta}


@router.post("", status_code=201)
async def create_customer(
    data: CustomerCreate,
    db: DbSession,
    current_user: OfficeUser,
) -> dict:
    customer = await service.create_customer(db, data, current_user)
    return {"data": CustomerResponse.model_validate(customer)}


@router.get("/{customer_id}")
async def get_customer(
    customer_id: uuid.UUID,
    db: DbSession,
    current_user: CurrentUser,
) -> dict:
    customer = await service.get_customer(db, customer_id, current_user.tenant_id)
    return {"data": CustomerResponse.model_validate(customer)}


@router.put("/{customer_id}")
async def update_customer(
    customer_id: uuid.UUID,
    data: CustomerUpdate,
    db: DbSession,
    current_user: OfficeUser,
) -> dict:
    customer = await service.update_customer(db, customer_id, data, current_user)
    return {"data": CustomerResponse.model_validate(customer)}


@router.delete("/{customer_id}")
async def delete_customer(
    customer_id: uuid.UUID,
    db: DbSession,
    current_user: AdminUser,
) -> dict:
    await service.delete_customer(db, customer_id, current_user.tenant_id)
    return {"data": {"message": "Customer deleted"}}


@router.get("/{customer_id}/addresses")
async def list_addresses(
    customer_id: uuid.UUID,
    db: DbSession,
    current_user: CurrentUser,
) -> dict:
    addresses = await service.list_addresses(db, customer_id, current_user.tenant_id)
    return {"data": [AddressResponse.model_validate(a) for a in addresses]}


@router.post("/{customer_id}/addresses", status_code=201)
async def add_address(
    customer_id: uuid.UUID,
    data: AddressCreate,
    db: DbSession,
    current_user: OfficeUser,
) -> dict:
    address = await service.add_address(db, customer_id, data, current_user.tenant_id)
    return {"data": AddressResponse.model_validate(address)}


@router.delete("/{customer_id}/addresses/{address_id}")
async def delete_address(
    customer_id: uuid.UUID,
    address_id: uuid.UUID,
    db: DbSession,
    current_user: OfficeUser,
) -> dict:
    await service.delete_address(db, customer_id, address_id, current_user.tenant_id)
    return {"data": {"message": "Address deleted"}}
