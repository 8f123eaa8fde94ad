import uuid

import pytest

from fieldsmart.addresses.directory import SessionAddressDirectory
from fieldsmart.addresses.reconcile import AddressFields, FieldState, ServiceAddressField
from fieldsmart.addresses.submission import submit_with_addresses
from fieldsmart.core.exceptions import NotFoundError


async def _directory(client, headers, db_session):
    me = (await client.get("/api/auth/me", headers=headers)).json()["data"]
    return SessionAddressDirectory(db_session, uuid.UUID(me["tenant_id"]))


async def test_staged_primary_is_saved_then_reused(client, admin_headers, make_customer, db_session):
    customer = await make_customer(admin_headers)
    customer_id = uuid.UUID(customer["id"])
    directory = await _directory(client, admin_headers, db_session)

    field = ServiceAddressField(directory=directory)
    field.select_customer(customer_id)
    field.set_use_same_as_primary(True)
    await field.resolve_same_as_primary()
    assert field.state == FieldState.STAGED_PENDING

    async def persist(body):
        return body

    result = await submit_with_addresses(
        directory, customer_id, {}, persist, selected=field.selected, pending=field.pending
    )

    addresses = await directory.list_addresses_for_customer(customer_id)
    assert sorted(a.type.value for a in addresses) == ["PRIMARY", "SERVICE"]
    service = next(a for a in addresses if a.type.value == "SERVICE")
    assert result.address_id == service.id

    again = ServiceAddressField(directory=directory)
    again.select_customer(customer_id)
    again.set_use_same_as_primary(True)
    await again.resolve_same_as_primary()
    assert again.state == FieldState.REUSING_EXISTING
    assert again.address_ref == service.id


async def test_other_tenants_customers_are_not_found(client, register, make_customer, db_session):
    acme = await register()
    globex = await register(company="Globex Cooling", email="owner@globexcooling.com")
    customer = await make_customer(acme)
    directory = await _directory(client, globex, db_session)

    with pytest.raises(NotFoundError) as exc_info:
        await directory.create_address(
            uuid.UUID(customer["id"]), AddressFields("1 Sneaky Ln", "X", "Y", "1")
        )
    assert exc_info.value.code == "CUSTOMER_NOT_FOUND"
