import uuid
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock

from fieldsmart.addresses.reconcile import AddressFields, FieldState
from fieldsmart.config import Settings
from fieldsmart.core.exceptions import AppError, ValidationError
from fieldsmart.estimates.drafts import EstimateDraft, LineItemDraft, OptionDraft
from fieldsmart.estimates.form import EstimateForm
from fieldsmart.estimates.pricing import DEFAULT_TAX_RATE

CUSTOMER = uuid.uuid4()


def _address(type_, street="123 Main St"):
    return SimpleNamespace(
        id=uuid.uuid4(), type=type_, street=street, city="Springfield", state="IL", zip="62701"
    )


def _ready_draft() -> EstimateDraft:
    return EstimateDraft(title="AC replacement", tax_rate="8.0").add_option(
        OptionDraft(
            name="Standard",
            line_items=(
                LineItemDraft(name="Service call", unit_price="150.00"),
                LineItemDraft(name="Filter", quantity=2, unit_price="25.00"),
            ),
        )
    )


def _store(saved_id=None):
    store = AsyncMock()
    saved_id = saved_id or uuid.uuid4()
    store.create_estimate.side_effect = lambda payload: {"id": str(saved_id), **payload}
    store.update_estimate.side_effect = lambda estimate_id, payload: {"id": str(estimate_id), **payload}
    return store


def test_draft_totals_use_shared_pricing():
    totals = _ready_draft().totals().rounded()

    assert totals.subtotal == Decimal("200.00")
    assert totals.tax_amount == Decimal("16.00")
    assert totals.total == Decimal("216.00")


def test_draft_edits_return_new_drafts():
    draft = EstimateDraft().add_option()
    edited = draft.add_item(0, LineItemDraft(name="Labor", quantity="1.5", unit_price=80))

    assert draft.options[0].line_items == ()
    assert edited.options[0].name == "Option 1"
    assert edited.options[0].line_items[0].total == Decimal("120.0")


def test_draft_payload_sends_raw_inputs_only():
    payload = _ready_draft().to_payload()
    option = payload["options"][0]

    assert "total" not in payload
    assert "subtotal" not in option
    assert option["line_items"][1]["quantity"] == "2"
    assert option["line_items"][1]["sort_order"] == 1
    assert payload["tax_rate"] == "8.0"


def test_draft_from_api_response():
    draft = EstimateDraft.from_response({
        "title": "Boiler",
        "id": str(uuid.uuid4()),
        "total": "2970.00",
        "status": "SENT",
        "tax_rate": "6.250",
        "valid_until": "2026-11-30",
        "options": [{
            "name": "Good",
            "discount_type": "PERCENTAGE",
            "discount_value": "10.00",
            "line_items": [{"name": "Boiler", "type": "EQUIPMENT", "quantity": "1", "unit_price": "3000.00"}],
        }],
    })

    assert draft.status.value == "SENT"
    assert draft.valid_until.isoformat() == "2026-11-30"
    assert draft.option_totals()[0].discount_amount == Decimal("300.0000")


async def test_validation_errors_block_submit():
    store = _store()
    form = EstimateForm(store)

    assert form.visible_errors == {}
    assert await form.submit() is None

    store.create_estimate.assert_not_awaited()
    assert form.notice.message == "Please fix the validation errors"
    assert {"title", "customerId", "addressId", "option-0-items"} <= set(form.visible_errors)


async def test_create_with_same_as_primary_saves_staged_address_first():
    primary = _address("PRIMARY")
    new_address_id = uuid.uuid4()
    directory = AsyncMock()
    directory.list_addresses_for_customer.return_value = [primary]
    directory.create_address.return_value = SimpleNamespace(id=new_address_id)
    store = _store()
    form = EstimateForm(store, directory=directory, draft=_ready_draft())

    form.select_customer(CUSTOMER)
    form.set_use_same_as_primary(True)
    saved = await form.submit()

    assert saved is not None
    directory.create_address.assert_awaited_once()
    payload = store.create_estimate.await_args.args[0]
    assert payload["customer_id"] == str(CUSTOMER)
    assert payload["address_id"] == str(new_address_id)
    assert payload["use_same_as_primary"] is True
    assert form.notice.message == "Estimate created successfully!"
    assert form.notice.level == "success"
    assert form.address.pending == []
    assert form.address.state == FieldState.REUSING_EXISTING
    assert form.estimate_id == uuid.UUID(saved["id"])


async def test_second_submit_updates_existing_estimate():
    primary = _address("PRIMARY")
    service = _address("SERVICE")
    store = _store()
    form = EstimateForm(store, draft=_ready_draft())
    form.select_customer(CUSTOMER, [primary, service])
    form.set_use_same_as_primary(True)

    await form.submit()
    form.edit(form.draft.update(title="AC replacement (revised)"))
    await form.submit()

    store.update_estimate.assert_awaited_once()
    estimate_id, payload = store.update_estimate.await_args.args
    assert estimate_id == form.estimate_id
    assert "customer_id" not in payload
    assert payload["address_id"] == str(service.id)
    assert form.notice.message == "Estimate updated successfully!"


async def test_failed_address_save_keeps_form_state():
    directory = AsyncMock()
    directory.create_address.side_effect = RuntimeError("503 from address service")
    store = _store()
    form = EstimateForm(store, directory=directory, draft=_ready_draft())
    form.select_customer(CUSTOMER)
    form.add_new_address(AddressFields("1 Oak Ave", "Shelbyville", "IL", "62565"))

    assert await form.submit() is None

    store.create_estimate.assert_not_awaited()
    assert form.estimate_id is None
    assert len(form.address.pending) == 1
    assert form.notice.message.startswith("The service address could not be saved")
    assert form.is_saving is False


async def test_server_validation_errors_are_shown_on_the_form():
    store = AsyncMock()
    store.create_estimate.side_effect = ValidationError(
        "Estimate has validation errors.", details={"duplicateOptions": "Duplicate option names found: a"}
    )
    form = EstimateForm(store, draft=_ready_draft())
    form.select_customer(CUSTOMER, [_address("PRIMARY"), _address("SERVICE")])
    form.set_use_same_as_primary(True)

    assert await form.submit() is None
    assert form.visible_errors == {"duplicateOptions": "Duplicate option names found: a"}


async def test_unexpected_failure_becomes_a_notice():
    store = AsyncMock()
    store.create_estimate.side_effect = ConnectionError("reset by peer")
    form = EstimateForm(store, draft=_ready_draft())
    form.select_customer(CUSTOMER, [_address("PRIMARY"), _address("SERVICE")])
    form.set_use_same_as_primary(True)

    assert await form.submit() is None
    assert form.notice.message == "Failed to save estimate"

    form.dismiss_notice()
    assert form.notice is None


async def test_app_errors_keep_their_message():
    store = AsyncMock()
    store.create_estimate.side_effect = AppError("CUSTOMER_NOT_FOUND", "Customer was not found.", 404)
    form = EstimateForm(store, draft=_ready_draft())
    form.select_customer(CUSTOMER, [_address("PRIMARY"), _address("SERVICE")])
    form.set_use_same_as_primary(True)

    assert await form.submit() is None
    assert form.notice.message == "Customer was not found."


async def test_retry_after_failed_save_reuses_the_created_address():
    primary = _address("PRIMARY")
    created = _address("SERVICE")
    directory = AsyncMock()
    directory.list_addresses_for_customer.return_value = [primary]
    directory.create_address.return_value = created
    store = _store()
    store.create_estimate.side_effect = [
        ValidationError("Request body is invalid.", details={"body.title": "too long"}),
        {"id": str(uuid.uuid4()), "address_id": str(created.id)},
    ]
    form = EstimateForm(store, directory=directory, draft=_ready_draft())
    form.select_customer(CUSTOMER)
    form.set_use_same_as_primary(True)

    assert await form.submit() is None
    assert form.address.pending == []
    assert form.address.selected.id == created.id
    assert form.address.state == FieldState.REUSING_EXISTING

    assert await form.submit() is not None
    directory.create_address.assert_awaited_once()
    assert store.create_estimate.await_args.args[0]["address_id"] == str(created.id)


async def test_saved_address_is_offered_and_used_when_lookup_fails():
    primary = _address("PRIMARY")
    created = _address("SERVICE")
    directory = AsyncMock()
    directory.list_addresses_for_customer.return_value = [primary]
    directory.create_address.return_value = created
    form = EstimateForm(_store(), directory=directory, draft=_ready_draft())
    form.select_customer(CUSTOMER)
    form.set_use_same_as_primary(True)
    await form.submit()

    assert created.id in [choice.id for choice in form.address.options()]

    directory.list_addresses_for_customer.side_effect = RuntimeError("lookup down")
    form.set_use_same_as_primary(False)
    form.set_use_same_as_primary(True)
    await form.address.resolve_same_as_primary()

    assert form.address.state == FieldState.REUSING_EXISTING
    assert form.address.selected.id == created.id
    assert form.address.pending == []


def test_drafts_and_settings_share_the_default_tax_rate():
    assert EstimateDraft().tax_rate == DEFAULT_TAX_RATE
    assert Settings(_env_file=None).default_tax_rate == DEFAULT_TAX_RATE
