"""Service address selection for forms that create jobs, estimates and requests.

A form's service address is either an address already on file
(``PersistedAddress``) or one held locally until the form is submitted
(``PendingAddress``). Ticking "use same as primary" reuses a SERVICE address
whose street, city, state and zip match the customer's PRIMARY address, and
stages a pending copy of the primary only when no such address exists, so the
customer never ends up with duplicate address rows.
"""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable, Union

from fieldsmart.customers.models import AddressType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AddressFields:
    street: str
    city: str
    state: str
    zip: str
    street_line2: str | None = None
    type: AddressType = AddressType.SERVICE

    @classmethod
    def from_record(cls, record: Any, type: AddressType = AddressType.SERVICE) -> AddressFields:
        return cls(
            street=record.street or "",
            city=record.city or "",
            state=record.state or "",
            zip=record.zip or "",
            street_line2=getattr(record, "street_line2", None),
            type=type,
        )

    def to_payload(self) -> dict:
        payload = {
            "type": self.type.value,
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "zip": self.zip,
        }
        if self.street_line2:
            payload["street_line2"] = self.street_line2
        return payload


class PendingOrigin(str, enum.Enum):
    SAME_AS_PRIMARY = "SAME_AS_PRIMARY"
    USER_ADDED = "USER_ADDED"


@dataclass(frozen=True)
class PersistedAddress:
    id: uuid.UUID
    fields: AddressFields | None = None


@dataclass(frozen=True)
class PendingAddress:
    draft_id: str
    fields: AddressFields
    origin: PendingOrigin = PendingOrigin.USER_ADDED


AddressChoice = Union[PersistedAddress, PendingAddress]


class FieldState(str, enum.Enum):
    UNSET = "UNSET"
    SEARCHING = "SEARCHING"
    REUSING_EXISTING = "REUSING_EXISTING"
    STAGED_PENDING = "STAGED_PENDING"


def _address_type(record: Any) -> str:
    value = getattr(record, "type", None)
    value = getattr(value, "value", value)
    return (value or "").upper()


def normalize_address_key(record: Any) -> tuple[str, str, str, str]:
    """Comparison key: street, city and state trimmed and lower-cased, zip trimmed."""
    return (
        (record.street or "").strip().lower(),
        (record.city or "").strip().lower(),
        (record.state or "").strip().lower(),
        (record.zip or "").strip(),
    )


def find_primary(addresses: Iterable[Any]) -> Any | None:
    for address in addresses:
        if _address_type(address) == AddressType.PRIMARY.value:
            return address
    return None


def find_matching_service_address(addresses: Iterable[Any], primary: Any) -> Any | None:
    """First SERVICE address whose normalized key equals the primary's."""
    key = normalize_address_key(primary)
    for address in addresses:
        if _address_type(address) != AddressType.SERVICE.value:
            continue
        if normalize_address_key(address) == key:
            return address
    return None


def _new_draft_id() -> str:
    return f"draft-{uuid.uuid4().hex}"


@dataclass
class ServiceAddressField:
    """Per-form state for the service address control.

    ``directory`` is optional. Without one, "use same as primary" resolves
    synchronously against the addresses handed to ``select_customer``. With
    one, the field moves to ``SEARCHING`` and ``resolve_same_as_primary``
    fetches the customer's full address list before deciding.
    """

    directory: Any = None
    draft_id_factory: Callable[[], str] = _new_draft_id

    customer_id: uuid.UUID | None = None
    use_same_as_primary: bool = False
    state: FieldState = FieldState.UNSET
    selected: AddressChoice | None = None
    pending: list[PendingAddress] = field(default_factory=list)
    notice: str | None = None
    _known_addresses: list[Any] = field(default_factory=list, init=False, repr=False)
    _generation: int = field(default=0, init=False, repr=False)

    # -- user actions -----------------------------------------------------

    def select_customer(self, customer_id: uuid.UUID | None, addresses: Iterable[Any] = ()) -> None:
        """Bind the field to a customer, discarding everything tied to the previous one."""
        self._generation += 1
        self.customer_id = customer_id
        self._known_addresses = list(addresses)
        self.pending = []
        self.selected = None
        self.notice = None

        if customer_id is None:
            self.use_same_as_primary = False
            self.state = FieldState.UNSET
            return

        if self.use_same_as_primary:
            self._start_search()
        else:
            self.state = FieldState.UNSET

    def set_use_same_as_primary(self, checked: bool) -> None:
        self._generation += 1
        self.use_same_as_primary = checked
        self.notice = None

        if not checked:
            self._discard_auto_staged()
            self.selected = None
            self.state = FieldState.UNSET
            return

        if self.customer_id is None:
            self.state = FieldState.UNSET
            return
        self._start_search()

    def add_new_address(self, fields: AddressFields) -> PendingAddress:
        """Stage an address typed in by the user and select it."""
        pending = PendingAddress(
            draft_id=self.draft_id_factory(),
            fields=replace(fields, type=AddressType.SERVICE),
            origin=PendingOrigin.USER_ADDED,
        )
        self.pending.append(pending)
        self.choose(pending)
        return pending

    def choose(self, choice: AddressChoice) -> None:
        """Select an address by hand, which turns "use same as primary" off."""
        if self.use_same_as_primary:
            self._generation += 1
            self.use_same_as_primary = False
            self._discard_auto_staged()
        if isinstance(choice, PendingAddress) and choice not in self.pending:
            raise ValueError(f"Pending address {choice.draft_id} is not staged on this form")
        self.selected = choice
        self.notice = None
        if isinstance(choice, PendingAddress):
            self.state = FieldState.STAGED_PENDING
        else:
            self.state = FieldState.REUSING_EXISTING

    def mark_saved(self, pending: PendingAddress, record: Any) -> None:
        """A staged address now exists on file as ``record``; point at that instead."""
        self.pending = [p for p in self.pending if p.draft_id != pending.draft_id]
        self._known_addresses.append(record)
        if isinstance(self.selected, PendingAddress) and self.selected.draft_id == pending.draft_id:
            self.selected = PersistedAddress(id=record.id, fields=pending.fields)
            self.state = FieldState.REUSING_EXISTING

    async def resolve_same_as_primary(self) -> bool:
        """Fetch the customer's addresses and settle a ``SEARCHING`` field.

        Returns ``False`` when the lookup was superseded by a newer customer
        selection or checkbox change while it was in flight; the stale result
        is dropped. A failed lookup falls back to the addresses already known
        and, failing a match there, stages a pending copy of the primary.
        """
        if self.state != FieldState.SEARCHING:
            return True
        if self.directory is None:
            self._resolve(self._known_addresses)
            return True

        generation = self._generation
        customer_id = self.customer_id
        try:
            addresses = await self.directory.list_addresses_for_customer(customer_id)
        except Exception:
            if generation != self._generation:
                return False
            logger.warning(
                "Address lookup failed for customer %s; staging a new address instead",
                customer_id, exc_info=True,
            )
            self._resolve(self._known_addresses)
            return True

        if generation != self._generation or customer_id != self.customer_id:
            logger.debug("Discarding stale address lookup for customer %s", customer_id)
            return False

        self._known_addresses = list(addresses)
        self._resolve(self._known_addresses)
        return True

    # -- queries ----------------------------------------------------------

    @property
    def address_ref(self) -> uuid.UUID | str | None:
        """The identifier the form currently points at, durable or draft."""
        if isinstance(self.selected, PersistedAddress):
            return self.selected.id
        if isinstance(self.selected, PendingAddress):
            return self.selected.draft_id
        return None

    def referenced_pending(self) -> list[PendingAddress]:
        """Pending addresses the record being submitted actually points at."""
        if isinstance(self.selected, PendingAddress):
            return [self.selected]
        return []

    def options(self) -> list[AddressChoice]:
        """SERVICE addresses on file followed by pending ones, for a picker."""
        choices: list[AddressChoice] = [
            PersistedAddress(id=a.id, fields=AddressFields.from_record(a))
            for a in self._known_addresses
            if _address_type(a) == AddressType.SERVICE.value
        ]
        choices.extend(self.pending)
        return choices

    # -- internals --------------------------------------------------------

    def _start_search(self) -> None:
        self.selected = None
        self.state = FieldState.SEARCHING
        if self.directory is None:
            self._resolve(self._known_addresses)

    def _discard_auto_staged(self) -> None:
        self.pending = [p for p in self.pending if p.origin != PendingOrigin.SAME_AS_PRIMARY]
        if isinstance(self.selected, PendingAddress) and self.selected.origin == PendingOrigin.SAME_AS_PRIMARY:
            self.selected = None

    def _resolve(self, addresses: list[Any]) -> None:
        primary = find_primary(addresses)
        if primary is None:
            self.selected = None
            self.state = FieldState.UNSET
            self.notice = "No primary address on file for this customer"
            return

        match = find_matching_service_address(addresses, primary)
        if match is not None:
            self._discard_auto_staged()
            self.selected = PersistedAddress(id=match.id, fields=AddressFields.from_record(match))
            self.state = FieldState.REUSING_EXISTING
            return

        self._discard_auto_staged()
        staged = PendingAddress(
            draft_id=self.draft_id_factory(),
            fields=AddressFields.from_record(primary, type=AddressType.SERVICE),
            origin=PendingOrigin.SAME_AS_PRIMARY,
        )
        self.pending.append(staged)
        self.selected = staged
        self.state = FieldState.STAGED_PENDING
