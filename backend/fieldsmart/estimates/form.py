import logging
import uuid
from dataclasses import dataclass
from functools import partial
from typing import Any, Iterable, Protocol

import httpx

from fieldsmart.addresses.reconcile import (
    AddressFields,
    FieldState,
    ServiceAddressField,
)
from fieldsmart.addresses.submission import (
    AddressPersistenceError,
    AddressSaveOutcome,
    RecordSaveError,
    submit_with_addresses,
)
from fieldsmart.core.exceptions import AppError
from fieldsmart.estimates.drafts import EstimateDraft

logger = logging.getLogger(__name__)


class EstimateStore(Protocol):
    async def create_estimate(self, payload: dict) -> dict: ...

    async def update_estimate(self, estimate_id: uuid.UUID, payload: dict) -> dict: ...


def _raise_for_error(response: httpx.Response) -> None:
    """Turn an error envelope from the API back into an ``AppError``."""
    if not response.is_error:
        return
    try:
        error = response.json()["error"]
    except (ValueError, KeyError, TypeError):
        response.raise_for_status()
    raise AppError(
        code=error.get("code", "HTTP_ERROR"),
        message=error.get("message") or "Request failed",
        status_code=response.status_code,
        details=error.get("details"),
    )


class HttpEstimateStore:
    def __init__(self, client: httpx.AsyncClient, prefix: str = "/api/estimates"):
        self.client = client
        self.prefix = prefix.rstrip("/")

    async def create_estimate(self, payload: dict) -> dict:
        response = await self.client.post(self.prefix, json=payload)
        _raise_for_error(response)
        return response.json()["data"]

    async def update_estimate(self, estimate_id: uuid.UUID, payload: dict) -> dict:
        response = await self.client.put(f"{self.prefix}/{estimate_id}", json=payload)
        _raise_for_error(response)
        return response.json()["data"]


@dataclass
class Notice:
    message: str
    level: str = "error"


class EstimateForm:
    """Create or edit one estimate: option tree, service address and submit.

    Validation messages are held back until the first submit attempt. Remote
    failures never escape ``submit``; they end up in ``notice``.
    """

    def __init__(
        self,
        store: EstimateStore,
        directory: Any = None,
        draft: EstimateDraft | None = None,
        estimate_id: uuid.UUID | None = None,
    ):
        self.store = store
        self.directory = directory
        self.draft = draft if draft is not None else EstimateDraft().add_option()
        self.estimate_id = estimate_id
        self.address = ServiceAddressField(directory=directory)
        self.errors: dict[str, str] = {}
        self.show_validation = False
        self.notice: Notice | None = None
        self.is_saving = False

    @property
    def customer_id(self) -> uuid.UUID | None:
        return self.address.customer_id

    @property
    def visible_errors(self) -> dict[str, str]:
        return self.errors if self.show_validation else {}

    def select_customer(self, customer_id: uuid.UUID | None, addresses: Iterable[Any] = ()) -> None:
        self.address.select_customer(customer_id, addresses)
        self._revalidate()

    def set_use_same_as_primary(self, checked: bool) -> None:
        self.address.set_use_same_as_primary(checked)
        self._revalidate()

    def add_new_address(self, fields: AddressFields) -> None:
        self.address.add_new_address(fields)
        self._revalidate()

    def edit(self, draft: EstimateDraft) -> None:
        self.draft = draft
        self._revalidate()

    def dismiss_notice(self) -> None:
        self.notice = None

    def validate(self) -> dict[str, str]:
        return self.draft.validate(
            customer_id=self.customer_id, address_id=self.address.address_ref
        )

    def _revalidate(self) -> None:
        if self.show_validation:
            self.errors = self.validate()

    async def submit(self) -> dict | None:
        """Validate, save staged addresses, then create or update the estimate.

        Returns the saved estimate, or ``None`` when nothing was saved.
        """
        if self.address.state == FieldState.SEARCHING:
            await self.address.resolve_same_as_primary()

        self.show_validation = True
        self.errors = self.validate()
        if self.errors:
            self.notice = Notice("Please fix the validation errors")
            return None

        payload = self.draft.to_payload()
        payload["use_same_as_primary"] = self.address.use_same_as_primary
        if self.estimate_id is None:
            payload["customer_id"] = str(self.customer_id)
            persist = self.store.create_estimate
        else:
            persist = partial(self.store.update_estimate, self.estimate_id)

        self.is_saving = True
        try:
            result = await submit_with_addresses(
                self.directory,
                self.customer_id,
                payload,
                persist,
                selected=self.address.selected,
                pending=list(self.address.pending),
            )
        except AddressPersistenceError as exc:
            self.notice = Notice(exc.message)
            return None
        except RecordSaveError as exc:
            # Addresses created before the failure are on file now; a retry reuses them
            self._adopt_saved_addresses(o for o in exc.outcomes if o.ok)
            self._report_failure(exc.error)
            return None
        finally:
            self.is_saving = False

        creating = self.estimate_id is None
        saved = result.record
        self.estimate_id = uuid.UUID(str(saved["id"]))
        self._adopt_saved_addresses(result.saved_addresses)

        if result.failed_addresses:
            self.notice = Notice(
                f"{len(result.failed_addresses)} additional address(es) could not be saved",
                level="warning",
            )
        else:
            verb = "created" if creating else "updated"
            self.notice = Notice(f"Estimate {verb} successfully!", level="success")
        return saved

    def _adopt_saved_addresses(self, outcomes: Iterable[AddressSaveOutcome]) -> None:
        for outcome in outcomes:
            self.address.mark_saved(outcome.pending, outcome.address)

    def _report_failure(self, error: Exception) -> None:
        if isinstance(error, AppError):
            if error.code == "VALIDATION_ERROR" and error.details:
                self.errors = dict(error.details)
            self.notice = Notice(error.message)
            return
        logger.warning("Saving estimate failed: %s", error, exc_info=error)
        self.notice = Notice("Failed to save estimate")
