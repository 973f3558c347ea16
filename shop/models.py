"""
Typed rows for the shop tables.

Each record mirrors one table row, converts from a sqlite3.Row, and knows
its column order so the terminal can render it as a table.
"""

import sqlite3
from dataclasses import asdict, dataclass
from typing import Any


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------

@dataclass
class Customer:
    """A shop customer.

    Attributes:
        id:       Caller-supplied customer number.
        fname:    First name (1-32 chars).
        lname:    Last name (1-32 chars).
        phone:    Phone number (1-13 chars).
        address:  Street address (1-256 chars).
    """
    id: int
    fname: str
    lname: str
    phone: str
    address: str

    COLUMNS = ("id", "fname", "lname", "phone", "address")

    @property
    def display_name(self) -> str:
        return f"{self.fname} {self.lname}"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def values(self) -> tuple:
        return (self.id, self.fname, self.lname, self.phone, self.address)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Customer":
        return cls(
            id=row["id"],
            fname=row["fname"],
            lname=row["lname"],
            phone=row["phone"],
            address=row["address"],
        )


@dataclass
class Mechanic:
    """A mechanic who closes service requests."""
    id: int
    fname: str
    lname: str
    experience: int

    COLUMNS = ("id", "fname", "lname", "experience")

    @property
    def display_name(self) -> str:
        return f"{self.fname} {self.lname}"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def values(self) -> tuple:
        return (self.id, self.fname, self.lname, self.experience)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Mechanic":
        return cls(
            id=row["id"],
            fname=row["fname"],
            lname=row["lname"],
            experience=row["experience"],
        )


@dataclass
class Car:
    """A vehicle, keyed by VIN."""
    vin: str
    make: str
    model: str
    year: str

    COLUMNS = ("vin", "make", "model", "year")

    @property
    def display_name(self) -> str:
        """Human-readable vehicle name: 'year make model'."""
        return f"{self.year} {self.make} {self.model}"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def values(self) -> tuple:
        return (self.vin, self.make, self.model, self.year)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Car":
        return cls(
            vin=row["vin"],
            make=row["make"],
            model=row["model"],
            year=row["year"],
        )


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

@dataclass
class ServiceRequest:
    """A service request for a customer's car.

    Attributes:
        rid:          Request number.
        customer_id:  Customer the request was opened for.
        car_vin:      Car being serviced.
        date:         Request date, "YYYY-MM-DD 00:00".
        odometer:     Odometer reading at intake.
        complaint:    What the customer reported (column ``complain``).
    """
    rid: int
    customer_id: int
    car_vin: str
    date: str
    odometer: int
    complaint: str

    COLUMNS = ("rid", "customer_id", "car_vin", "date", "odometer", "complain")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def values(self) -> tuple:
        return (self.rid, self.customer_id, self.car_vin, self.date,
                self.odometer, self.complaint)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "ServiceRequest":
        return cls(
            rid=row["rid"],
            customer_id=row["customer_id"],
            car_vin=row["car_vin"],
            date=row["date"],
            odometer=row["odometer"],
            complaint=row["complain"] or "",
        )


@dataclass
class ClosedRequest:
    """The closure of a service request: mechanic, bill and comment."""
    wid: int
    rid: int
    mid: int
    date: str
    comment: str
    bill: int

    COLUMNS = ("wid", "rid", "mid", "date", "comment", "bill")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def values(self) -> tuple:
        return (self.wid, self.rid, self.mid, self.date, self.comment, self.bill)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "ClosedRequest":
        return cls(
            wid=row["wid"],
            rid=row["rid"],
            mid=row["mid"],
            date=row["date"],
            comment=row["comment"] or "",
            bill=row["bill"],
        )


@dataclass
class ClosedRequestDetail:
    """A closed request joined with its request, customer, car and mechanic.

    This is what the closure confirmation and the printed bill show.
    """
    wid: int
    rid: int
    mid: int
    date: str
    comment: str
    bill: int
    customer_id: int
    fname: str
    lname: str
    car_vin: str
    make: str
    model: str
    year: str
    request_date: str
    odometer: int
    complaint: str
    mechanic_name: str

    COLUMNS = ("wid", "rid", "customer", "car_vin", "car", "mid", "date", "bill", "comment")

    @property
    def customer_name(self) -> str:
        return f"{self.fname} {self.lname}"

    @property
    def car_name(self) -> str:
        return f"{self.year} {self.make} {self.model}"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def values(self) -> tuple:
        return (self.wid, self.rid, self.customer_name, self.car_vin,
                self.car_name, self.mid, self.date, self.bill, self.comment)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "ClosedRequestDetail":
        return cls(
            wid=row["wid"],
            rid=row["rid"],
            mid=row["mid"],
            date=row["date"],
            comment=row["comment"] or "",
            bill=row["bill"],
            customer_id=row["customer_id"],
            fname=row["fname"],
            lname=row["lname"],
            car_vin=row["car_vin"],
            make=row["make"],
            model=row["model"],
            year=row["year"],
            request_date=row["request_date"],
            odometer=row["odometer"],
            complaint=row["complain"] or "",
            mechanic_name=row["mechanic_name"] or "",
        )
