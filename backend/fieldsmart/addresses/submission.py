import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Sequence, TypeVar

from fieldsmart.addresses.reconcile import AddressChoice, PendingAddress, PersistedAddress
from fieldsmart.core.exceptions import AppError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class AddressSaveOutcome:
    pending: PendingAddress
    address: Any = None
    error: Exception | None = None

    @property
    def address_id(self) -> uuid.UUID | None:
        return self.address.id if self.address is not None else None

    @property
    def ok(self) -> bool:
        return self.error is None and self.address is not None


@dataclass
class SubmissionResult(Generic[T]):
    record: T
    address_id: uuid.UUID | None
    outcomes: list[AddressSaveOutcome] = field(default_factory=list)

    @property
    def saved_addresses(self) -> list[AddressSaveOutcome]:
        return [o for o in self.outcomes if o.ok]

    @property
    def failed_addresses(self) -> list[AddressSaveOutcome]:
        return [o for o in self.outcomes if not o.ok]


class AddressPersistenceError(AppError):
    """A pending address the record points at could not be saved."""

    def __init__(self, outcomes: list[AddressSaveOutcome]):
        failed = [o for o in outcomes if not o.ok]
        super().__init__(
            code="ADDRESS_PERSISTENCE_FAILED",
            message="The service address could not be saved. Nothing was submitted.",
            status_code=502,
            details={o.pending.draft_id: str(o.error) for o in failed},
        )
        self.outcomes = outcomes


class RecordSaveError(Exception):
    """The record failed to save after its pending addresses were created.

    ``outcomes`` lists the addresses that now exist on file, so a retry can
    point at them instead of creating them again.
    """

    def __init__(self, error: Exception, outcomes: list[AddressSaveOutcome]):
        super().__init__(str(error))
        self.error = error
        self.outcomes = outcomes


async def persist_pending_addresses(
    directory: Any, customer_id: uuid.UUID, pending: Sequence[PendingAddress]
) -> list[AddressSaveOutcome]:
    """Create each pending address in turn, one outcome per address.

    Calls are awaited one after another; a failure is recorded and the loop
    moves on to the next address.
    """
    outcomes: list[AddressSaveOutcome] = []
    for item in pending:
        try:
            created = await directory.create_address(customer_id, item.fields)
        except Exception as exc:
            logger.warning(
                "Could not save pending address %s for customer %s: %s",
                item.draft_id, customer_id, exc,
            )
            outcomes.append(AddressSaveOutcome(pending=item, error=exc))
            continue
        outcomes.append(AddressSaveOutcome(pending=item, address=created))
    return outcomes


async def submit_with_addresses(
    directory: Any,
    customer_id: uuid.UUID,
    payload: dict,
    persist: Callable[[dict], Awaitable[T]],
    *,
    selected: AddressChoice | None,
    pending: Sequence[PendingAddress] = (),
    address_key: str = "address_id",
) -> SubmissionResult[T]:
    """Save staged addresses, then the record that points at one of them.

    The pending address behind ``selected`` is created first. If that fails
    the submission stops with ``AddressPersistenceError`` and ``persist`` is
    never called. Other pending addresses are then saved best-effort; their
    failures are reported on the result. ``persist`` receives a copy of
    ``payload`` whose ``address_key`` holds a durable identifier or ``None``;
    if it fails, the error is re-raised as ``RecordSaveError`` carrying the
    address outcomes.
    """
    referenced: list[PendingAddress] = []
    if isinstance(selected, PendingAddress):
        referenced.append(selected)
    others = [p for p in pending if p not in referenced]

    outcomes = await persist_pending_addresses(directory, customer_id, referenced)
    if any(not o.ok for o in outcomes):
        raise AddressPersistenceError(outcomes)

    outcomes += await persist_pending_addresses(directory, customer_id, others)

    if isinstance(selected, PersistedAddress):
        address_id = selected.id
    elif isinstance(selected, PendingAddress):
        address_id = outcomes[0].address_id
    else:
        address_id = None

    body = dict(payload)
    body[address_key] = str(address_id) if address_id is not None else None
    try:
        record = await persist(body)
    except Exception as exc:
        raise RecordSaveError(exc, outcomes) from exc
    return SubmissionResult(record=record, address_id=address_id, outcomes=outcomes)
