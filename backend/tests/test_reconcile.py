import asyncio
import uuid
from itertools import count
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from fieldsmart.addresses.reconcile import (
    AddressFields,
    FieldState,
    PendingAddress,
    PendingOrigin,
    PersistedAddress,
    ServiceAddressField,
    find_matching_service_address,
    normalize_address_key,
)


def _address(type_, street="123 Main St", city="Springfield", state="IL", zip="62701"):
    return SimpleNamespace(
        id=uuid.uuid4(), type=type_, street=street, city=city, state=state, zip=zip, street_line2=None
    )


def _draft_ids():
    counter = count(1)
    return lambda: f"draft-{next(counter)}"


CUSTOMER = uuid.uuid4()


def test_normalized_key_ignores_case_and_padding():
    a = _address("PRIMARY", street=" 123 MAIN ST ", city="springfield ", state=" il", zip=" 62701 ")
    b = _address("SERVICE")
    assert normalize_address_key(a) == normalize_address_key(b)


def test_match_only_considers_service_addresses():
    primary = _address("PRIMARY")
    billing = _address("BILLING")
    assert find_matching_service_address([primary, billing], primary) is None


def test_reuses_matching_service_address():
    primary = _address("PRIMARY")
    service = _address("SERVICE", street="123 main st ")
    field = ServiceAddressField()

    field.select_customer(CUSTOMER, [primary, service])
    field.set_use_same_as_primary(True)

    assert field.state == FieldState.REUSING_EXISTING
    assert field.selected == PersistedAddress(id=service.id, fields=AddressFields.from_record(service))
    assert field.pending == []


def test_stages_copy_of_primary_when_no_service_match():
    primary = _address("PRIMARY")
    other = _address("SERVICE", street="9 Elm St")
    field = ServiceAddressField(draft_id_factory=_draft_ids())

    field.select_customer(CUSTOMER, [primary, other])
    field.set_use_same_as_primary(True)

    assert field.state == FieldState.STAGED_PENDING
    assert len(field.pending) == 1
    staged = field.pending[0]
    assert staged.origin == PendingOrigin.SAME_AS_PRIMARY
    assert staged.fields.type.value == "SERVICE"
    assert staged.fields.street == "123 Main St"
    assert field.address_ref == "draft-1"


def test_rechecking_does_not_stage_twice():
    field = ServiceAddressField(draft_id_factory=_draft_ids())
    field.select_customer(CUSTOMER, [_address("PRIMARY")])

    field.set_use_same_as_primary(True)
    field.set_use_same_as_primary(False)
    field.set_use_same_as_primary(True)

    assert [p.draft_id for p in field.pending] == ["draft-2"]


def test_unchecking_keeps_user_added_addresses():
    field = ServiceAddressField(draft_id_factory=_draft_ids())
    field.select_customer(CUSTOMER, [_address("PRIMARY")])
    typed = field.add_new_address(AddressFields("1 Oak Ave", "Shelbyville", "IL", "62565"))
    field.set_use_same_as_primary(True)

    field.set_use_same_as_primary(False)

    assert field.pending == [typed]
    assert field.selected is None
    assert field.state == FieldState.UNSET


def test_changing_customer_discards_pending_and_selection():
    field = ServiceAddressField()
    field.select_customer(CUSTOMER, [_address("PRIMARY")])
    field.set_use_same_as_primary(True)
    field.add_new_address(AddressFields("1 Oak Ave", "Shelbyville", "IL", "62565"))

    field.select_customer(uuid.uuid4(), [])

    assert field.pending == []
    assert field.selected is None
    assert field.state == FieldState.UNSET


def test_clearing_customer_unchecks_same_as_primary():
    field = ServiceAddressField()
    field.select_customer(CUSTOMER, [_address("PRIMARY")])
    field.set_use_same_as_primary(True)

    field.select_customer(None)

    assert field.use_same_as_primary is False
    assert field.state == FieldState.UNSET


def test_no_primary_address_leaves_field_unset():
    field = ServiceAddressField()
    field.select_customer(CUSTOMER, [_address("SERVICE")])
    field.set_use_same_as_primary(True)

    assert field.state == FieldState.UNSET
    assert field.selected is None
    assert field.notice == "No primary address on file for this customer"


def test_manual_choice_turns_off_same_as_primary():
    primary = _address("PRIMARY")
    other = _address("SERVICE", street="9 Elm St")
    field = ServiceAddressField()
    field.select_customer(CUSTOMER, [primary, other])
    field.set_use_same_as_primary(True)

    field.choose(PersistedAddress(id=other.id))

    assert field.use_same_as_primary is False
    assert field.pending == []
    assert field.state == FieldState.REUSING_EXISTING
    assert field.address_ref == other.id


def test_choosing_unknown_pending_address_is_rejected():
    field = ServiceAddressField()
    field.select_customer(CUSTOMER, [])
    stray = PendingAddress(draft_id="draft-x", fields=AddressFields("1 A St", "B", "C", "1"))

    with pytest.raises(ValueError):
        field.choose(stray)


def test_options_list_service_addresses_then_pending():
    primary = _address("PRIMARY")
    service = _address("SERVICE", street="9 Elm St")
    field = ServiceAddressField(draft_id_factory=_draft_ids())
    field.select_customer(CUSTOMER, [primary, service])
    typed = field.add_new_address(AddressFields("1 Oak Ave", "Shelbyville", "IL", "62565"))

    options = field.options()

    assert [getattr(o, "id", None) for o in options[:1]] == [service.id]
    assert options[1:] == [typed]


async def test_resolves_against_directory():
    primary = _address("PRIMARY")
    service = _address("SERVICE")
    directory = AsyncMock()
    directory.list_addresses_for_customer.return_value = [primary, service]
    field = ServiceAddressField(directory=directory)

    field.select_customer(CUSTOMER)
    field.set_use_same_as_primary(True)
    assert field.state == FieldState.SEARCHING

    assert await field.resolve_same_as_primary() is True
    assert field.state == FieldState.REUSING_EXISTING
    assert field.address_ref == service.id
    directory.list_addresses_for_customer.assert_awaited_once_with(CUSTOMER)


async def test_stale_lookup_is_discarded():
    first_customer, second_customer = uuid.uuid4(), uuid.uuid4()
    release = asyncio.Event()

    async def slow_lookup(customer_id):
        await release.wait()
        return [_address("PRIMARY")]

    directory = AsyncMock()
    directory.list_addresses_for_customer.side_effect = slow_lookup
    field = ServiceAddressField(directory=directory)
    field.select_customer(first_customer)
    field.set_use_same_as_primary(True)

    in_flight = asyncio.create_task(field.resolve_same_as_primary())
    await asyncio.sleep(0)
    field.select_customer(second_customer)
    release.set()

    assert await in_flight is False
    assert field.customer_id == second_customer
    assert field.pending == []
    assert field.state == FieldState.SEARCHING


async def test_lookup_failure_falls_back_to_known_addresses(caplog):
    primary = _address("PRIMARY")
    directory = AsyncMock()
    directory.list_addresses_for_customer.side_effect = RuntimeError("connection reset")
    field = ServiceAddressField(directory=directory, draft_id_factory=_draft_ids())
    field.select_customer(CUSTOMER, [primary])
    field.set_use_same_as_primary(True)

    assert await field.resolve_same_as_primary() is True

    assert field.state == FieldState.STAGED_PENDING
    assert field.pending[0].origin == PendingOrigin.SAME_AS_PRIMARY
    assert field.notice is None
    assert "Address lookup failed" in caplog.text
