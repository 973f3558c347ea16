import sqlite3

import pytest

from core.record_store import TABLES, RecordStore, StoreError


def test_schema_created_empty(store):
    assert store.table_counts() == {table: 0 for table in TABLES}


def test_execute_update_returns_rowcount(store):
    store.execute_update("INSERT INTO mechanic VALUES (?, ?, ?, ?)", (1, "Lee", "Park", 3))
    store.execute_update("INSERT INTO mechanic VALUES (?, ?, ?, ?)", (2, "Max", "Park", 5))
    changed = store.execute_update("UPDATE mechanic SET lname = ? WHERE lname = ?", ("Kim", "Park"))
    assert changed == 2


def test_query_helpers(store):
    store.execute_update("INSERT INTO mechanic VALUES (?, ?, ?, ?)", (1, "Lee", "Park", 3))
    row = store.query_one("SELECT * FROM mechanic WHERE id = ?", (1,))
    assert isinstance(row, sqlite3.Row)
    assert row["fname"] == "Lee"
    assert store.query_one("SELECT * FROM mechanic WHERE id = ?", (2,)) is None
    assert store.row_count("SELECT 1 FROM mechanic WHERE id = ?", (1,)) == 1
    assert store.row_count("SELECT 1 FROM mechanic WHERE id = ?", (2,)) == 0


def test_values_are_bound_not_interpolated(store):
    name = "O'Brien'); DROP TABLE customer; --"
    store.execute_update("INSERT INTO customer VALUES (?, ?, ?, ?, ?)", (1, "Pat", name, "1", "x"))
    assert store.query_one("SELECT lname FROM customer WHERE id = 1")["lname"] == name
    assert store.table_counts()["customer"] == 1


def test_insert_returns_rowid(store):
    store.execute_update("INSERT INTO customer VALUES (1, 'A', 'B', '1', 'x')")
    store.execute_update("INSERT INTO car VALUES ('V1', 'Make', 'Model', '2001')")
    ownership_id = store.insert("INSERT INTO owns (customer_id, car_vin) VALUES (?, ?)", (1, "V1"))
    assert ownership_id == 1


def test_transaction_rolls_back_on_error(store):
    with pytest.raises(RuntimeError):
        with store.transaction():
            store.execute_update("INSERT INTO mechanic VALUES (1, 'Lee', 'Park', 3)")
            raise RuntimeError("boom")
    assert store.table_counts()["mechanic"] == 0


def test_nested_transaction_joins_outer(store):
    with pytest.raises(RuntimeError):
        with store.transaction():
            with store.transaction():
                store.execute_update("INSERT INTO mechanic VALUES (1, 'Lee', 'Park', 3)")
            assert store.table_counts()["mechanic"] == 1
            raise RuntimeError("boom")
    assert store.table_counts()["mechanic"] == 0


def test_transaction_commits(store):
    with store.transaction():
        store.execute_update("INSERT INTO mechanic VALUES (1, 'Lee', 'Park', 3)")
        store.execute_update("INSERT INTO mechanic VALUES (2, 'Max', 'Kim', 1)")
    assert store.table_counts()["mechanic"] == 2


def test_constraint_violation_is_store_error(store):
    store.execute_update("INSERT INTO mechanic VALUES (1, 'Lee', 'Park', 3)")
    with pytest.raises(StoreError) as excinfo:
        store.execute_update("INSERT INTO mechanic VALUES (1, 'Dup', 'Park', 3)")
    assert isinstance(excinfo.value.__cause__, sqlite3.IntegrityError)


def test_check_constraints(store):
    with pytest.raises(StoreError):
        store.execute_update("INSERT INTO mechanic VALUES (1, 'Lee', 'Park', -1)")


def test_foreign_keys_enforced(store):
    with pytest.raises(StoreError):
        store.execute_update("INSERT INTO owns (customer_id, car_vin) VALUES (99, 'NOPE')")


def test_bad_sql_is_store_error(store):
    with pytest.raises(StoreError):
        store.execute_query("SELECT * FROM no_such_table")


def test_file_database_persists(tmp_path):
    path = tmp_path / "nested" / "shop.db"
    with RecordStore(db_path=str(path)) as first:
        first.execute_update("INSERT INTO mechanic VALUES (1, 'Lee', 'Park', 3)")
    assert path.exists()
    with RecordStore(db_path=str(path)) as second:
        assert second.table_counts()["mechanic"] == 1


def test_unopenable_path_is_store_error(tmp_path):
    with pytest.raises(StoreError):
        RecordStore(db_path=str(tmp_path))
