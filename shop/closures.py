"""
Closure Workflow: closing a service request with a bill.

    IDENTIFYING_MECHANIC                → list the mechanic's past closures
    SELECTING_CLOSED_REQUEST_RECORD     → (browsing aid only)
    SELECTING_REQUEST_ID                → operator names the request
    SHOWING_CURRENT_SERVICE_REQUEST     → request row shown as context
    SELECTING_OR_CREATING_CLOSED_RECORD → operator names the closure (wid)
    ENTERING_BILL_AND_COMMENT           → comment + bill
    PERSISTING                          → upsert + joined readback
    CONFIRMED

An unknown mechanic id is not rejected at lookup time; it just has no past
closures. It only matters when a new closure row has to be inserted.

Closing always upserts: an existing wid is updated in place (date, bill,
comment), a missing one is inserted against the selected request and
mechanic.
"""

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum

from core.record_store import RecordStore
from shop.errors import NotFoundError, ValidationError, WorkflowStateError
from shop.models import ClosedRequest, ClosedRequestDetail, ServiceRequest
from shop.validation import require_int

logger = logging.getLogger("shop.closures")


class ClosureState(str, Enum):
    IDENTIFYING_MECHANIC = "identifying_mechanic"
    SELECTING_CLOSED_REQUEST_RECORD = "selecting_closed_request_record"
    SELECTING_REQUEST_ID = "selecting_request_id"
    SHOWING_CURRENT_SERVICE_REQUEST = "showing_current_service_request"
    SELECTING_OR_CREATING_CLOSED_RECORD = "selecting_or_creating_closed_record"
    ENTERING_BILL_AND_COMMENT = "entering_bill_and_comment"
    PERSISTING = "persisting"
    CONFIRMED = "confirmed"
    ABORTED = "aborted"


_TERMINAL = (ClosureState.CONFIRMED, ClosureState.ABORTED)


@dataclass
class ClosureResult:
    """Outcome of close().

    Attributes:
        before:   The closure row prior to the write, None for a new closure.
        after:    The joined readback (request, customer, car, bill).
        created:  True when a new closure row was inserted.
    """
    before: ClosedRequest | None
    after: ClosedRequestDetail
    created: bool


DETAIL_QUERY = """
    SELECT cr.wid, cr.rid, cr.mid, cr.date, cr.comment, cr.bill,
           sr.customer_id, c.fname, c.lname,
           sr.car_vin, car.make, car.model, car.year,
           sr.date AS request_date, sr.odometer, sr.complain,
           m.fname || ' ' || m.lname AS mechanic_name
    FROM closed_request cr
    JOIN service_request sr ON sr.rid = cr.rid
    JOIN customer c ON c.id = sr.customer_id
    JOIN car ON car.vin = sr.car_vin
    LEFT JOIN mechanic m ON m.id = cr.mid
    WHERE cr.wid = ?
"""


def read_closure_detail(store: RecordStore, wid: int) -> ClosedRequestDetail | None:
    """Closed request joined with its request, customer, car and mechanic."""
    row = store.query_one(DETAIL_QUERY, (wid,))
    return ClosedRequestDetail.from_row(row) if row else None


class ClosureWorkflow:
    """Drives one closure from mechanic lookup to a saved, billed record.

    Args:
        store:  The shared RecordStore.
        today:  Callable returning the close date (tests pin it).
    """

    def __init__(self, store: RecordStore, today=date.today):
        self._store = store
        self._today = today
        self.state = ClosureState.IDENTIFYING_MECHANIC
        self.mid: int | None = None
        self.rid: int | None = None
        self.wid: int | None = None
        self.result: ClosureResult | None = None

    def _expect(self, *states: ClosureState):
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise WorkflowStateError(
                f"cannot do that while {self.state.value} (expected {allowed})"
            )

    def _move(self, state: ClosureState):
        logger.debug("Closure workflow: %s → %s", self.state.value, state.value)
        self.state = state

    def abort(self):
        """Abandon this closure without writing anything."""
        if self.state not in _TERMINAL:
            self._move(ClosureState.ABORTED)
            logger.info("Closure aborted")

    # -------------------------------------------------------------------
    # Mechanic and request selection
    # -------------------------------------------------------------------

    def identify_mechanic(self, mid) -> list[ClosedRequest]:
        """Closures already attributed to this mechanic (may be empty)."""
        self._expect(ClosureState.IDENTIFYING_MECHANIC)
        self.mid = require_int("mid", mid)
        self._move(ClosureState.SELECTING_CLOSED_REQUEST_RECORD)
        rows = self._store.execute_query(
            "SELECT * FROM closed_request WHERE mid = ? ORDER BY wid",
            (self.mid,),
        )
        self._move(ClosureState.SELECTING_REQUEST_ID)
        return [ClosedRequest.from_row(row) for row in rows]

    def open_requests(self) -> list[ServiceRequest]:
        """Every request that has not been closed yet."""
        rows = self._store.execute_query(
            """SELECT sr.* FROM service_request sr
               WHERE NOT EXISTS (SELECT 1 FROM closed_request cr WHERE cr.rid = sr.rid)
               ORDER BY sr.rid"""
        )
        return [ServiceRequest.from_row(row) for row in rows]

    def select_request(self, rid) -> ServiceRequest:
        """The request being closed, shown to the operator as context.

        Raises:
            NotFoundError: no request with that rid.
        """
        self._expect(ClosureState.SELECTING_REQUEST_ID)
        number = require_int("rid", rid)
        row = self._store.query_one("SELECT * FROM service_request WHERE rid = ?", (number,))
        if row is None:
            raise NotFoundError(f"service request {number} does not exist")
        self.rid = number
        self._move(ClosureState.SHOWING_CURRENT_SERVICE_REQUEST)
        self._move(ClosureState.SELECTING_OR_CREATING_CLOSED_RECORD)
        return ServiceRequest.from_row(row)

    def select_closed_record(self, wid) -> ClosedRequest | None:
        """The closure row to update, or None when this wid is new.

        Raises:
            ValidationError: the wid already closes a different request, or
                             the request is already closed under another wid.
        """
        self._expect(ClosureState.SELECTING_OR_CREATING_CLOSED_RECORD)
        number = require_int("wid", wid)
        current = self._read_closed(number)
        if current is not None and current.rid != self.rid:
            raise ValidationError(
                "wid", f"closed request {number} belongs to service request {current.rid}"
            )
        if current is None:
            other = self._store.query_one(
                "SELECT wid FROM closed_request WHERE rid = ?", (self.rid,),
            )
            if other is not None:
                raise ValidationError(
                    "wid", f"service request {self.rid} is already closed as {other['wid']}"
                )
        self.wid = number
        self._move(ClosureState.ENTERING_BILL_AND_COMMENT)
        return current

    # -------------------------------------------------------------------
    # Persist
    # -------------------------------------------------------------------

    def close(self, comment: str, bill) -> ClosureResult:
        """Record the bill and comment, dated today.

        Raises:
            ValidationError: bill is not a non-negative integer.
            NotFoundError:   a new closure names a mechanic that doesn't exist.
        """
        self._expect(ClosureState.ENTERING_BILL_AND_COMMENT)
        amount = require_int("bill", bill, minimum=0)
        text = "" if comment is None else str(comment).strip()
        closed_on = self._today().isoformat()

        self._move(ClosureState.PERSISTING)
        try:
            with self._store.transaction():
                before = self._read_closed(self.wid)
                if before is not None:
                    self._store.execute_update(
                        "UPDATE closed_request SET date = ?, bill = ?, comment = ? WHERE wid = ?",
                        (closed_on, amount, text, self.wid),
                    )
                else:
                    if self._store.row_count(
                        "SELECT 1 FROM mechanic WHERE id = ?", (self.mid,),
                    ) == 0:
                        raise NotFoundError(f"mechanic {self.mid} does not exist")
                    self._store.execute_update(
                        """INSERT INTO closed_request (wid, rid, mid, date, comment, bill)
                           VALUES (?, ?, ?, ?, ?, ?)""",
                        (self.wid, self.rid, self.mid, closed_on, text, amount),
                    )
                after = read_closure_detail(self._store, self.wid)
        except Exception:
            self._move(ClosureState.ENTERING_BILL_AND_COMMENT)
            raise

        self.result = ClosureResult(before=before, after=after, created=before is None)
        self._move(ClosureState.CONFIRMED)
        logger.info(
            "Service request %s closed as %s (bill %s, %s)",
            self.rid, self.wid, amount, "new" if before is None else "updated",
        )
        return self.result

    def _read_closed(self, wid: int) -> ClosedRequest | None:
        row = self._store.query_one("SELECT * FROM closed_request WHERE wid = ?", (wid,))
        return ClosedRequest.from_row(row) if row else None
