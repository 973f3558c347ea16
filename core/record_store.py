"""
Mechanic Shop Record Store

Owns the single SQLite connection the shop runs on. Every component gets
the store handed to it explicitly; nothing in the codebase opens its own
connection.

Three primitives cover everything the workflows need:
    execute_update(sql, params)   INSERT / UPDATE / DELETE, returns rowcount
    execute_query(sql, params)    SELECT, returns a list of sqlite3.Row
    row_count(sql, params)        number of result rows (existence checks)

All SQL uses ``?`` placeholders. Values never end up in statement text.

Usage:
    from core.record_store import RecordStore

    with RecordStore(db_path="data/mechanic_shop.db") as store:
        with store.transaction():
            store.execute_update("INSERT INTO mechanic VALUES (?, ?, ?, ?)",
                                 (7, "Lee", "Park", 12))
            row = store.query_one("SELECT * FROM mechanic WHERE id = ?", (7,))
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Sequence

logger = logging.getLogger("shop.store")


TABLES = (
    "customer",
    "mechanic",
    "car",
    "owns",
    "service_request",
    "closed_request",
)


class StoreError(Exception):
    """A statement or connection failed at the SQLite layer."""


# ---------------------------------------------------------------------------
# RecordStore
# ---------------------------------------------------------------------------

class RecordStore:
    """SQLite-backed record store for the shop tables.

    Args:
        db_path:       Path to the SQLite database file, or ":memory:".
        foreign_keys:  Enforce REFERENCES clauses (PRAGMA foreign_keys).
        timeout:       Seconds to wait on a locked database file.
    """

    def __init__(
        self,
        db_path: str = "data/mechanic_shop.db",
        foreign_keys: bool = True,
        timeout: float = 5.0,
    ):
        self._db_path = db_path
        self._depth = 0

        try:
            if db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(db_path, timeout=timeout)
            self._conn.row_factory = sqlite3.Row
            if foreign_keys:
                self._conn.execute("PRAGMA foreign_keys = ON")
            self._init_db()
        except (OSError, sqlite3.Error) as e:
            raise StoreError(f"Unable to open database {db_path}: {e}") from e

        logger.info("RecordStore initialized (db=%s)", db_path)

    @property
    def db_path(self) -> str:
        return self._db_path

    # -------------------------------------------------------------------
    # Schema
    # -------------------------------------------------------------------

    def _init_db(self):
        """Create the shop tables if they don't exist."""
        cur = self._conn.cursor()

        cur.execute("""
            CREATE TABLE IF NOT EXISTS customer (
                id INTEGER PRIMARY KEY,
                fname TEXT NOT NULL,
                lname TEXT NOT NULL,
                phone TEXT NOT NULL,
                address TEXT NOT NULL
            )
        """)
        cur.execute("""
            CREATE INDEX IF NOT EXISTS idx_customer_lname
            ON customer(lname)
        """)

        cur.execute("""
            CREATE TABLE IF NOT EXISTS mechanic (
                id INTEGER PRIMARY KEY,
                fname TEXT NOT NULL,
                lname TEXT NOT NULL,
                experience INTEGER NOT NULL CHECK (experience >= 0)
            )
        """)

        cur.execute("""
            CREATE TABLE IF NOT EXISTS car (
                vin TEXT PRIMARY KEY,
                make TEXT NOT NULL,
                model TEXT NOT NULL,
                year TEXT NOT NULL
            )
        """)

        cur.execute("""
            CREATE TABLE IF NOT EXISTS owns (
                ownership_id INTEGER PRIMARY KEY AUTOINCREMENT,
                customer_id INTEGER NOT NULL REFERENCES customer(id),
                car_vin TEXT NOT NULL REFERENCES car(vin),
                UNIQUE (customer_id, car_vin)
            )
        """)

        cur.execute("""
            CREATE TABLE IF NOT EXISTS service_request (
                rid INTEGER PRIMARY KEY,
                customer_id INTEGER NOT NULL REFERENCES customer(id),
                car_vin TEXT NOT NULL REFERENCES car(vin),
                date TEXT NOT NULL,
                odometer INTEGER NOT NULL CHECK (odometer >= 0),
                complain TEXT
            )
        """)
        cur.execute("""
            CREATE INDEX IF NOT EXISTS idx_request_customer_car
            ON service_request(customer_id, car_vin)
        """)

        cur.execute("""
            CREATE TABLE IF NOT EXISTS closed_request (
                wid INTEGER PRIMARY KEY,
                rid INTEGER NOT NULL REFERENCES service_request(rid),
                mid INTEGER NOT NULL REFERENCES mechanic(id),
                date TEXT NOT NULL,
                comment TEXT,
                bill INTEGER NOT NULL CHECK (bill >= 0)
            )
        """)
        cur.execute("""
            CREATE INDEX IF NOT EXISTS idx_closed_mechanic
            ON closed_request(mid)
        """)
        cur.execute("""
            CREATE INDEX IF NOT EXISTS idx_closed_rid
            ON closed_request(rid)
        """)

        self._conn.commit()

    # -------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------

    def execute_update(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run an INSERT, UPDATE or DELETE statement.

        Commits immediately unless called inside transaction().

        Returns:
            Number of rows affected.
        """
        try:
            cur = self._conn.execute(sql, params)
            if self._depth == 0:
                self._conn.commit()
        except sqlite3.Error as e:
            if self._depth == 0:
                self._conn.rollback()
            logger.error("Update failed: %s", e)
            raise StoreError(str(e)) from e
        return cur.rowcount

    def insert(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run an INSERT and return the new row's rowid."""
        try:
            cur = self._conn.execute(sql, params)
            if self._depth == 0:
                self._conn.commit()
        except sqlite3.Error as e:
            if self._depth == 0:
                self._conn.rollback()
            logger.error("Insert failed: %s", e)
            raise StoreError(str(e)) from e
        return cur.lastrowid

    def execute_query(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        """Run a SELECT and return every row."""
        try:
            return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            logger.error("Query failed: %s", e)
            raise StoreError(str(e)) from e

    def query_one(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Row | None:
        """Run a SELECT and return the first row, or None."""
        try:
            return self._conn.execute(sql, params).fetchone()
        except sqlite3.Error as e:
            logger.error("Query failed: %s", e)
            raise StoreError(str(e)) from e

    def row_count(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Number of rows the query returns."""
        return len(self.execute_query(sql, params))

    @contextmanager
    def transaction(self) -> Iterator["RecordStore"]:
        """Group statements so they commit or roll back together.

        Nested calls join the outermost transaction.
        """
        self._depth += 1
        try:
            yield self
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                self._conn.rollback()
                logger.debug("Transaction rolled back")
            raise
        else:
            self._depth -= 1
            if self._depth == 0:
                try:
                    self._conn.commit()
                except sqlite3.Error as e:
                    self._conn.rollback()
                    raise StoreError(str(e)) from e

    # -------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------

    def table_counts(self) -> dict[str, int]:
        """Row count per shop table."""
        counts = {}
        for table in TABLES:
            row = self.query_one(f"SELECT COUNT(*) FROM {table}")
            counts[table] = row[0] if row else 0
        return counts

    # -------------------------------------------------------------------
    # Cleanup
    # -------------------------------------------------------------------

    def close(self):
        """Close the SQLite connection."""
        self._conn.close()
        logger.info("RecordStore closed")

    def __enter__(self) -> "RecordStore":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
