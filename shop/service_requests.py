"""
Service Request Workflow: opening and revising a service request.

One workflow object drives one pass through the intake lifecycle:

    IDENTIFYING_CUSTOMER  → find by last name; pick from the matches or
                            register a new customer
    IDENTIFYING_VEHICLE   → pick one of the customer's cars, or register
                            and link a new one
    CONFIRMING_VEHICLE    → operator re-types the VIN; it must match
    CHOOSING_ACTION       → revise an open request, or open a new one
    VALIDATING            → every field checked before anything is written
    PERSISTING            → write + readback in one transaction
    CONFIRMED             → done; the object refuses further calls

ABORTED is reachable from any non-terminal state and never touches the
store. Failed validation drops back to CHOOSING_ACTION with nothing
written. The terminal builds a fresh workflow per menu invocation, so no
state leaks between runs.

The workflow never keeps its own copy of a row it did not just read: each
decision re-queries the store.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from core.record_store import RecordStore
from shop.errors import (
    ExistenceConflict,
    NoOpenRequestError,
    ValidationError,
    VinMismatchError,
    WorkflowStateError,
)
from shop.models import Car, Customer, ServiceRequest
from shop.ownership import OwnershipResolver, select_from_menu
from shop.registrar import EntityRegistrar
from shop.validation import require_int, validate_request_fields

logger = logging.getLogger("shop.requests")


class RequestState(str, Enum):
    IDENTIFYING_CUSTOMER = "identifying_customer"
    IDENTIFYING_VEHICLE = "identifying_vehicle"
    CONFIRMING_VEHICLE = "confirming_vehicle"
    CHOOSING_ACTION = "choosing_action"
    VALIDATING = "validating"
    PERSISTING = "persisting"
    CONFIRMED = "confirmed"
    ABORTED = "aborted"


_TERMINAL = (RequestState.CONFIRMED, RequestState.ABORTED)


@dataclass
class RequestRevision:
    """An in-place update of an open request: the row before and after."""
    before: ServiceRequest
    after: ServiceRequest


_OPEN_FOR_PAIR = """
    SELECT sr.* FROM service_request sr
    WHERE sr.customer_id = ? AND sr.car_vin = ?
      AND NOT EXISTS (SELECT 1 FROM closed_request cr WHERE cr.rid = sr.rid)
    ORDER BY sr.rid
"""


class ServiceRequestWorkflow:
    """Drives a single intake pass from customer lookup to a saved request.

    Args:
        store:      The shared RecordStore.
        registrar:  Entity Registrar (defaults to one over the same store).
        ownership:  Ownership Resolver (defaults to one over the same store).
    """

    def __init__(
        self,
        store: RecordStore,
        registrar: EntityRegistrar | None = None,
        ownership: OwnershipResolver | None = None,
    ):
        self._store = store
        self._registrar = registrar or EntityRegistrar(store)
        self._ownership = ownership or OwnershipResolver(store)
        self.state = RequestState.IDENTIFYING_CUSTOMER
        self.customer_id: int | None = None
        self.vin: str | None = None
        self.result: ServiceRequest | RequestRevision | None = None

    # -------------------------------------------------------------------
    # State guard
    # -------------------------------------------------------------------

    def _expect(self, *states: RequestState):
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise WorkflowStateError(
                f"cannot do that while {self.state.value} (expected {allowed})"
            )

    def _move(self, state: RequestState):
        logger.debug("Request workflow: %s → %s", self.state.value, state.value)
        self.state = state

    def abort(self):
        """Abandon this pass without writing anything."""
        if self.state not in _TERMINAL:
            self._move(RequestState.ABORTED)
            logger.info("Service request intake aborted")

    # -------------------------------------------------------------------
    # IDENTIFYING_CUSTOMER
    # -------------------------------------------------------------------

    def find_customers(self, last_name: str) -> list[Customer]:
        """Customers matching the last name; empty means register a new one."""
        self._expect(RequestState.IDENTIFYING_CUSTOMER)
        return self._registrar.find_customers_by_last_name(last_name)

    def select_customer(self, snapshot: Sequence[Customer], index) -> Customer:
        """Pick the active customer from a numbered list of matches."""
        self._expect(RequestState.IDENTIFYING_CUSTOMER)
        customer = select_from_menu(snapshot, index)
        self.customer_id = customer.id
        self._move(RequestState.IDENTIFYING_VEHICLE)
        return customer

    def register_customer(self, customer_id, fname: str, lname: str,
                          phone: str, address: str) -> Customer:
        """Create the customer when no match was found.

        Raises:
            ExistenceConflict: the id is taken; ask for another one.
            ValidationError:   a field breaks its rule.
        """
        self._expect(RequestState.IDENTIFYING_CUSTOMER)
        reg = self._registrar.register_customer(customer_id, fname, lname, phone, address)
        if reg.existed:
            raise ExistenceConflict("customer", reg.record.id)
        self.customer_id = reg.record.id
        self._move(RequestState.IDENTIFYING_VEHICLE)
        return reg.record

    # -------------------------------------------------------------------
    # IDENTIFYING_VEHICLE
    # -------------------------------------------------------------------

    def owned_vehicles(self) -> list[Car]:
        """The active customer's cars. Empty means fall back to a new vehicle."""
        self._expect(RequestState.IDENTIFYING_VEHICLE)
        return self._ownership.vehicles_owned_by(self.customer_id)

    def select_vehicle(self, snapshot: Sequence[Car], index) -> Car:
        """Pick one of the customer's cars from the numbered list."""
        self._expect(RequestState.IDENTIFYING_VEHICLE)
        car = select_from_menu(snapshot, index)
        self.vin = car.vin
        self._move(RequestState.CONFIRMING_VEHICLE)
        return car

    def register_vehicle(self, vin: str, make: str, model: str, year) -> Car:
        """Create a car and link it to the active customer.

        Raises:
            ExistenceConflict: the VIN is already registered.
            ValidationError:   a field breaks its rule.
        """
        self._expect(RequestState.IDENTIFYING_VEHICLE)
        with self._store.transaction():
            reg = self._registrar.register_car(vin, make, model, year)
            if reg.existed:
                raise ExistenceConflict("car", reg.record.vin)
            self._ownership.link_ownership(self.customer_id, reg.record.vin)
        self.vin = reg.record.vin
        self._move(RequestState.CONFIRMING_VEHICLE)
        return reg.record

    # -------------------------------------------------------------------
    # CONFIRMING_VEHICLE
    # -------------------------------------------------------------------

    def confirm_vin(self, typed: str) -> str:
        """Check the re-typed VIN against the resolved car.

        The resolved VIN is what every later step uses; the typed string is
        only compared.

        Raises:
            VinMismatchError: the strings differ.
        """
        self._expect(RequestState.CONFIRMING_VEHICLE)
        entered = "" if typed is None else str(typed).strip()
        if entered != self.vin:
            logger.warning("VIN confirmation mismatch for customer %s", self.customer_id)
            raise VinMismatchError(self.vin, entered)
        self._move(RequestState.CHOOSING_ACTION)
        return self.vin

    # -------------------------------------------------------------------
    # CHOOSING_ACTION
    # -------------------------------------------------------------------

    def open_requests(self) -> list[ServiceRequest]:
        """Open requests for the active customer and car."""
        self._expect(RequestState.CHOOSING_ACTION)
        rows = self._store.execute_query(_OPEN_FOR_PAIR, (self.customer_id, self.vin))
        return [ServiceRequest.from_row(row) for row in rows]

    def rid_available(self, rid) -> bool:
        """Existence pre-check for a new request number."""
        self._expect(RequestState.CHOOSING_ACTION)
        number = require_int("rid", rid)
        return self._store.row_count(
            "SELECT 1 FROM service_request WHERE rid = ?", (number,),
        ) == 0

    def update_request(self, rid, odometer, service_date, complaint) -> RequestRevision:
        """Revise an open request in place.

        The prior row is read before the update and the new row after it,
        both inside the same transaction.

        Raises:
            NoOpenRequestError: the pair has no open request.
            ValidationError:    any field is bad, or rid is not one of the
                                pair's open requests. Nothing is written.
        """
        self._expect(RequestState.CHOOSING_ACTION)
        open_rids = {sr.rid for sr in self.open_requests()}
        if not open_rids:
            raise NoOpenRequestError(
                f"no open service request for customer {self.customer_id} and car {self.vin}"
            )

        self._move(RequestState.VALIDATING)
        try:
            number = require_int("rid", rid)
            if number not in open_rids:
                raise ValidationError(
                    "rid", f"{number} is not an open request for this customer and car"
                )
            reading, when, text = validate_request_fields(odometer, service_date, complaint)
        except ValidationError:
            self._move(RequestState.CHOOSING_ACTION)
            raise

        self._move(RequestState.PERSISTING)
        try:
            with self._store.transaction():
                before = self._read_request(number)
                self._store.execute_update(
                    "UPDATE service_request SET date = ?, odometer = ?, complain = ? WHERE rid = ?",
                    (when, reading, text, number),
                )
                after = self._read_request(number)
        except Exception:
            self._move(RequestState.CHOOSING_ACTION)
            raise

        self.result = RequestRevision(before=before, after=after)
        self._move(RequestState.CONFIRMED)
        logger.info("Service request %s updated", number)
        return self.result

    def create_request(self, rid, odometer, service_date, complaint) -> ServiceRequest:
        """Open a new request for the active customer and resolved car.

        Raises:
            ExistenceConflict: the rid is taken; ask for another one.
            ValidationError:   any field is bad. Nothing is written.
        """
        self._expect(RequestState.CHOOSING_ACTION)
        self._move(RequestState.VALIDATING)
        try:
            number = require_int("rid", rid)
            reading, when, text = validate_request_fields(odometer, service_date, complaint)
        except ValidationError:
            self._move(RequestState.CHOOSING_ACTION)
            raise

        self._move(RequestState.PERSISTING)
        try:
            with self._store.transaction():
                if self._store.row_count(
                    "SELECT 1 FROM service_request WHERE rid = ?", (number,),
                ):
                    raise ExistenceConflict("service request", number)
                self._store.execute_update(
                    """INSERT INTO service_request
                           (rid, customer_id, car_vin, date, odometer, complain)
                       VALUES (?, ?, ?, ?, ?, ?)""",
                    (number, self.customer_id, self.vin, when, reading, text),
                )
                created = self._read_request(number)
        except Exception:
            self._move(RequestState.CHOOSING_ACTION)
            raise

        self.result = created
        self._move(RequestState.CONFIRMED)
        logger.info("Service request %s opened for customer %s", number, self.customer_id)
        return created

    def _read_request(self, rid: int) -> ServiceRequest:
        row = self._store.query_one("SELECT * FROM service_request WHERE rid = ?", (rid,))
        return ServiceRequest.from_row(row)
