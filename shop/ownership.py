"""
Ownership Resolver: which cars a customer owns, and linking new ones.

Menu selection lives here too. The terminal prints a numbered snapshot of
rows; select_from_menu() maps the operator's 1-based choice back onto that
same snapshot, so the choice never depends on a second query returning rows
in the same order.
"""

import logging
from typing import Sequence, TypeVar

from core.record_store import RecordStore
from shop.errors import InvalidSelectionError, NotFoundError
from shop.models import Car
from shop.validation import parse_customer_id, parse_vin, require_int

logger = logging.getLogger("shop.ownership")

T = TypeVar("T")


def select_from_menu(snapshot: Sequence[T], index) -> T:
    """Return the row at a 1-based menu position.

    Raises:
        InvalidSelectionError: empty menu, non-integer, or out of range.
    """
    if not snapshot:
        raise InvalidSelectionError("there is nothing to select")
    try:
        position = require_int("selection", index)
    except ValueError:
        raise InvalidSelectionError(f"'{index}' is not a menu number") from None
    if not 1 <= position <= len(snapshot):
        raise InvalidSelectionError(f"choose a number between 1 and {len(snapshot)}")
    return snapshot[position - 1]


class OwnershipResolver:
    """Reads and writes the owns relation.

    Args:
        store: The shared RecordStore.
    """

    def __init__(self, store: RecordStore):
        self._store = store

    def vehicles_owned_by(self, customer_id) -> list[Car]:
        """Cars linked to the customer, in whatever order the store returns them."""
        cid = parse_customer_id(customer_id)
        rows = self._store.execute_query(
            """SELECT c.vin, c.make, c.model, c.year
               FROM car c JOIN owns o ON c.vin = o.car_vin
               WHERE o.customer_id = ?""",
            (cid,),
        )
        return [Car.from_row(row) for row in rows]

    def owns(self, customer_id, vin: str) -> bool:
        return self._store.row_count(
            "SELECT 1 FROM owns WHERE customer_id = ? AND car_vin = ?",
            (parse_customer_id(customer_id), parse_vin(vin)),
        ) > 0

    def link_ownership(self, customer_id, vin: str) -> int:
        """Link a car to a customer and return the ownership id.

        Linking a pair that is already linked returns the existing id.

        Raises:
            NotFoundError: the customer or the car does not exist.
        """
        cid = parse_customer_id(customer_id)
        car_vin = parse_vin(vin)

        with self._store.transaction():
            existing = self._store.query_one(
                "SELECT ownership_id FROM owns WHERE customer_id = ? AND car_vin = ?",
                (cid, car_vin),
            )
            if existing is not None:
                return existing["ownership_id"]

            if self._store.row_count("SELECT 1 FROM customer WHERE id = ?", (cid,)) == 0:
                raise NotFoundError(f"customer {cid} does not exist")
            if self._store.row_count("SELECT 1 FROM car WHERE vin = ?", (car_vin,)) == 0:
                raise NotFoundError(f"car {car_vin} does not exist")

            ownership_id = self._store.insert(
                "INSERT INTO owns (customer_id, car_vin) VALUES (?, ?)",
                (cid, car_vin),
            )

        logger.info("Ownership linked: customer %s → car %s (#%s)", cid, car_vin, ownership_id)
        return ownership_id
