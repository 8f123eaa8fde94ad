"""Where customer addresses are looked up and created.

Forms talk to an ``AddressDirectory`` rather than to the database so the same
reconciliation and submission code runs in-process (``SessionAddressDirectory``)
or against a running API (``HttpAddressDirectory``).
"""

import logging
import uuid
from typing import Any, Protocol, Sequence

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from fieldsmart.addresses.reconcile import AddressFields
from fieldsmart.customers import service as customer_service
from fieldsmart.customers.schemas import AddressCreate, AddressResponse

logger = logging.getLogger(__name__)


class AddressDirectory(Protocol):
    async def list_addresses_for_customer(self, customer_id: uuid.UUID) -> Sequence[Any]: ...

    async def create_address(self, customer_id: uuid.UUID, fields: AddressFields) -> Any: ...


class SessionAddressDirectory:
    """Directory backed by the customers service on an open session."""

    def __init__(self, db: AsyncSession, tenant_id: uuid.UUID):
        self.db = db
        self.tenant_id = tenant_id

    async def list_addresses_for_customer(self, customer_id: uuid.UUID) -> list[AddressResponse]:
        addresses = await customer_service.list_addresses(self.db, customer_id, self.tenant_id)
        return [AddressResponse.model_validate(a) for a in addresses]

    async def create_address(self, customer_id: uuid.UUID, fields: AddressFields) -> AddressResponse:
        address = await customer_service.add_address(
            self.db, customer_id, AddressCreate(**fields.to_payload()), self.tenant_id
        )
        return AddressResponse.model_validate(address)


class HttpAddressDirectory:
    """Directory that calls the customers API over HTTP.

    The caller owns ``client``; it should carry the base URL and the bearer
    token of the user filling in the form.
    """

    def __init__(self, client: httpx.AsyncClient, prefix: str = "/api/customers"):
        self.client = client
        self.prefix = prefix.rstrip("/")

    async def list_addresses_for_customer(self, customer_id: uuid.UUID) -> list[AddressResponse]:
        response = await self.client.get(f"{self.prefix}/{customer_id}/addresses")
        response.raise_for_status()
        return [AddressResponse.model_validate(item) for item in response.json()["data"]]

    async def create_address(self, customer_id: uuid.UUID, fields: AddressFields) -> AddressResponse:
        response = await self.client.post(
            f"{self.prefix}/{customer_id}/addresses", json=fields.to_payload()
        )
        if response.is_error:
            logger.error(
                "Address create failed for customer %s: %s %s",
                customer_id, response.status_code, response.text,
            )
        response.raise_for_status()
        return AddressResponse.model_validate(response.json()["data"])
