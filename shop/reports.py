"""Read-only reports over the shop tables.

Each report is one parameterized SELECT returned as a ReportResult the
terminal renders as a table. Thresholds default to the [reports] section of
the config but every method takes them as arguments too.
"""

import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Any

from core.record_store import RecordStore
from shop.validation import require_int, require_positive_int

logger = logging.getLogger("shop.reports")


@dataclass
class ReportResult:
    """Rows of one report plus the headers to show above them."""

    title: str
    columns: tuple[str, ...]
    rows: list[tuple] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "columns": list(self.columns),
            "rows": [list(r) for r in self.rows],
        }


def _result(title: str, columns: tuple[str, ...], rows: list[sqlite3.Row]) -> ReportResult:
    logger.debug("Report %r: %d row(s)", title, len(rows))
    return ReportResult(title=title, columns=columns, rows=[tuple(r) for r in rows])


class ReportQueries:
    """The five shop reports.

    Args:
        store:     The shared RecordStore.
        settings:  Optional [reports] config section for default thresholds.
    """

    def __init__(self, store: RecordStore, settings=None):
        self._store = store
        self._settings = settings

    def _default(self, name: str, fallback: int) -> int:
        if self._settings is None:
            return fallback
        return self._settings.get(name, fallback)

    def bills_under_threshold(self, threshold: int | None = None) -> ReportResult:
        """Closed requests billed at or under the threshold, highest bill first."""
        limit = require_int(
            "threshold",
            self._default("bill_threshold", 100) if threshold is None else threshold,
        )
        rows = self._store.execute_query(
            """SELECT DISTINCT cr.date, c.fname, c.lname, cr.bill, cr.comment
               FROM closed_request cr
               JOIN service_request sr ON cr.rid = sr.rid
               JOIN customer c ON sr.customer_id = c.id
               WHERE cr.bill <= ?
               ORDER BY cr.bill DESC""",
            (limit,),
        )
        return _result(
            f"Customers with bill <= {limit}",
            ("date", "fname", "lname", "bill", "comment"),
            rows,
        )

    def customers_with_many_cars(self, min_cars: int | None = None) -> ReportResult:
        """Customers owning more than min_cars cars."""
        floor = require_int(
            "min_cars",
            self._default("min_cars", 20) if min_cars is None else min_cars,
        )
        rows = self._store.execute_query(
            """SELECT c.fname, c.lname, COUNT(o.car_vin) AS cars
               FROM customer c JOIN owns o ON o.customer_id = c.id
               GROUP BY c.id, c.fname, c.lname
               HAVING COUNT(o.car_vin) > ?
               ORDER BY cars DESC""",
            (floor,),
        )
        return _result(
            f"Customers with more than {floor} cars",
            ("fname", "lname", "cars"),
            rows,
        )

    def old_low_mileage_cars(self, year_before: int | None = None,
                             odometer_under: int | None = None) -> ReportResult:
        """Cars built before a year that came in under an odometer limit."""
        year = require_int(
            "year_before",
            self._default("year_before", 1995) if year_before is None else year_before,
        )
        miles = require_int(
            "odometer_under",
            self._default("odometer_under", 50000) if odometer_under is None else odometer_under,
        )
        rows = self._store.execute_query(
            """SELECT DISTINCT car.make, car.model, car.year
               FROM car JOIN service_request sr ON car.vin = sr.car_vin
               WHERE CAST(car.year AS INTEGER) < ? AND sr.odometer < ?
               ORDER BY car.year, car.make, car.model""",
            (year, miles),
        )
        return _result(
            f"Cars before {year} under {miles} miles",
            ("make", "model", "year"),
            rows,
        )

    def top_serviced_models(self, k) -> ReportResult:
        """The k make/model pairs with the most service requests.

        k is validated before any query runs; ties come back in store order.
        """
        count = require_positive_int("k", k)
        rows = self._store.execute_query(
            """SELECT car.make, car.model, COUNT(sr.rid) AS service
               FROM car JOIN service_request sr ON car.vin = sr.car_vin
               GROUP BY car.make, car.model
               ORDER BY service DESC
               LIMIT ?""",
            (count,),
        )
        return _result(
            f"{count} most serviced car models",
            ("make", "model", "service"),
            rows,
        )

    def customers_by_total_bill(self) -> ReportResult:
        """Customers ranked by the sum of their closed-request bills."""
        rows = self._store.execute_query(
            """SELECT c.fname, c.lname, SUM(cr.bill) AS total
               FROM customer c
               JOIN service_request sr ON sr.customer_id = c.id
               JOIN closed_request cr ON cr.rid = sr.rid
               GROUP BY c.id, c.fname, c.lname
               ORDER BY total DESC"""
        )
        return _result(
            "Customers by total bill",
            ("fname", "lname", "total"),
            rows,
        )
