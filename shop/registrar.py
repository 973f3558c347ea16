"""
Entity Registrar: create-or-find for customers, mechanics and cars.

Every registration follows the same four steps:

    1. look the key up (existence pre-check)
    2. found      → report existed=True and hand back the stored row
    3. not found  → validate every field, nothing written on failure
    4. insert, then read the row back by key inside the same transaction

The readback is what the terminal shows the operator as proof the row
landed.

Usage:
    from shop.registrar import EntityRegistrar, EntityKind

    registrar = EntityRegistrar(store)
    reg = registrar.register_customer(501, "Ana", "Ruiz", "555-0100", "12 Oak")
    if reg.existed:
        ...
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from core.record_store import RecordStore
from shop import validation
from shop.models import Car, Customer, Mechanic
from shop.validation import require_text

logger = logging.getLogger("shop.registrar")


class EntityKind(str, Enum):
    CUSTOMER = "customer"
    MECHANIC = "mechanic"
    CAR = "car"


@dataclass
class Registration:
    """Outcome of register_if_absent().

    Attributes:
        existed:  True when the key was already present and nothing was inserted.
        record:   The stored row (pre-existing or freshly read back).
    """
    existed: bool
    record: Customer | Mechanic | Car


@dataclass(frozen=True)
class _EntitySpec:
    table: str
    key_column: str
    columns: tuple[str, ...]
    parse_key: Callable[[Any], Any]
    validate: Callable[[dict[str, Any]], dict[str, Any]]
    record_type: type


_SPECS: dict[EntityKind, _EntitySpec] = {
    EntityKind.CUSTOMER: _EntitySpec(
        table="customer",
        key_column="id",
        columns=Customer.COLUMNS,
        parse_key=validation.parse_customer_id,
        validate=validation.validate_customer,
        record_type=Customer,
    ),
    EntityKind.MECHANIC: _EntitySpec(
        table="mechanic",
        key_column="id",
        columns=Mechanic.COLUMNS,
        parse_key=validation.parse_mechanic_id,
        validate=validation.validate_mechanic,
        record_type=Mechanic,
    ),
    EntityKind.CAR: _EntitySpec(
        table="car",
        key_column="vin",
        columns=Car.COLUMNS,
        parse_key=validation.parse_vin,
        validate=validation.validate_car,
        record_type=Car,
    ),
}


# ---------------------------------------------------------------------------
# EntityRegistrar
# ---------------------------------------------------------------------------

class EntityRegistrar:
    """Create-or-find logic for the three caller-keyed entities.

    Args:
        store: The shared RecordStore.
    """

    def __init__(self, store: RecordStore):
        self._store = store

    # -------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------

    def exists(self, kind: EntityKind, key: Any) -> bool:
        """Existence pre-check by key. The key is validated first."""
        spec = _SPECS[EntityKind(kind)]
        parsed = spec.parse_key(key)
        return self._store.row_count(
            f"SELECT 1 FROM {spec.table} WHERE {spec.key_column} = ?",
            (parsed,),
        ) > 0

    def lookup(self, kind: EntityKind, key: Any) -> Customer | Mechanic | Car | None:
        """Fetch a record by key, or None."""
        spec = _SPECS[EntityKind(kind)]
        return self._read(spec, spec.parse_key(key))

    def _read(self, spec: _EntitySpec, key: Any):
        row = self._store.query_one(
            f"SELECT * FROM {spec.table} WHERE {spec.key_column} = ?",
            (key,),
        )
        return spec.record_type.from_row(row) if row else None

    def find_customers_by_last_name(self, last_name: str) -> list[Customer]:
        """Every customer with this exact last name."""
        lname = require_text("lname", last_name, 1, validation.CUSTOMER_LIMITS["lname"][1])
        rows = self._store.execute_query(
            "SELECT * FROM customer WHERE lname = ? ORDER BY id",
            (lname,),
        )
        return [Customer.from_row(row) for row in rows]

    # -------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------

    def register_if_absent(self, kind: EntityKind, candidate_key: Any,
                           fields: dict[str, Any]) -> Registration:
        """Reuse the row stored under candidate_key, or validate and insert one.

        Args:
            kind:           Which entity table.
            candidate_key:  Customer/mechanic id or car VIN.
            fields:         Remaining columns by name.

        Returns:
            Registration(existed, record).

        Raises:
            ValidationError: key or a field breaks its rule. Nothing is written.
        """
        kind = EntityKind(kind)
        spec = _SPECS[kind]
        key = spec.parse_key(candidate_key)

        existing = self._read(spec, key)
        if existing is not None:
            logger.debug("%s %s already registered", kind.value, key)
            return Registration(existed=True, record=existing)

        cleaned = spec.validate(fields)
        cleaned[spec.key_column] = key
        values = tuple(cleaned[column] for column in spec.columns)
        placeholders = ", ".join("?" for _ in spec.columns)

        with self._store.transaction():
            self._store.execute_update(
                f"INSERT INTO {spec.table} ({', '.join(spec.columns)}) VALUES ({placeholders})",
                values,
            )
            record = self._read(spec, key)

        logger.info("%s registered: %s", kind.value.capitalize(), key)
        return Registration(existed=False, record=record)

    def register_customer(self, customer_id: Any, fname: str, lname: str,
                          phone: str, address: str) -> Registration:
        return self.register_if_absent(
            EntityKind.CUSTOMER, customer_id,
            {"fname": fname, "lname": lname, "phone": phone, "address": address},
        )

    def register_mechanic(self, mechanic_id: Any, fname: str, lname: str,
                          experience: Any) -> Registration:
        return self.register_if_absent(
            EntityKind.MECHANIC, mechanic_id,
            {"fname": fname, "lname": lname, "experience": experience},
        )

    def register_car(self, vin: str, make: str, model: str, year: Any) -> Registration:
        return self.register_if_absent(
            EntityKind.CAR, vin,
            {"make": make, "model": model, "year": year},
        )
