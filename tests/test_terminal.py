from io import StringIO
from pathlib import Path

from rich.console import Console

from core.record_store import StoreError
from interfaces.cli.terminal import ShopTerminal
from shop.reports import ReportQueries

from conftest import VIN, add_closure, add_request


def scripted(*lines):
    answers = iter(lines)

    def fake_input(prompt=""):
        try:
            return next(answers)
        except StopIteration:
            raise EOFError
    return fake_input


def run(store, config, *lines) -> str:
    buf = StringIO()
    console = Console(file=buf, width=200)
    ShopTerminal(store, config, console=console, input_fn=scripted(*lines)).run()
    return buf.getvalue()


def test_banner_and_exit(store, config):
    output = run(store, config, "11")
    assert "Test Garage" in output
    assert "Goodbye." in output


def test_end_of_input_exits(store, config):
    assert "Goodbye." in run(store, config)


def test_add_customer(store, config):
    output = run(store, config, "1", "501", "Ana", "Ruiz", "555-0100", "12 Oak St", "11")
    assert "Customer added" in output
    row = store.query_one("SELECT * FROM customer WHERE id = 501")
    assert (row["fname"], row["lname"]) == ("Ana", "Ruiz")


def test_field_prompt_repeats_until_valid(store, config):
    output = run(store, config, "1", "abc", "502", "x" * 33, "Bo", "Diaz", "555-0101", "3 Elm", "11")
    assert "must be an integer" in output
    assert "at most 32 characters" in output
    assert store.query_one("SELECT fname FROM customer WHERE id = 502")["fname"] == "Bo"


def test_existing_id_asks_for_another(seeded, config):
    output = run(seeded, config, "1", "501", "503", "Cy", "Lane", "555-0102", "4 Pine", "11")
    assert "customer 501 already exists" in output
    assert seeded.table_counts()["customer"] == 2


def test_cancel_abandons_without_writing(store, config):
    output = run(store, config, "1", "504", "cancel", "11")
    assert "Cancelled" in output
    assert store.table_counts()["customer"] == 0


def test_end_of_input_mid_operation(store, config):
    output = run(store, config, "2", "7", "Lee")
    assert "Cancelled" in output
    assert "Goodbye." in output
    assert store.table_counts()["mechanic"] == 0


def test_add_mechanic(store, config):
    run(store, config, "2", "7", "Lee", "Park", "-1", "12", "11")
    assert store.query_one("SELECT experience FROM mechanic WHERE id = 7")["experience"] == 12


def test_add_car_with_owner(seeded, config):
    output = run(seeded, config, "3", "2T1BURHE0JC000001", "Toyota", "Corolla", "18", "2018",
                 "999", "501", "11")
    assert "must be exactly 4 digits" in output
    assert "customer 999 does not exist" in output
    assert seeded.row_count(
        "SELECT 1 FROM owns WHERE customer_id = 501 AND car_vin = ?", ("2T1BURHE0JC000001",),
    ) == 1


def test_add_car_without_owner(store, config):
    run(store, config, "3", "V1", "Ford", "Escort", "1992", "", "11")
    assert store.table_counts()["car"] == 1
    assert store.table_counts()["owns"] == 0


def test_service_request_for_known_customer(seeded, config):
    output = run(
        seeded, config,
        "4", "Ruiz", "1",          # customer
        "n", "1",                  # existing vehicle
        "WRONG", VIN,              # VIN confirmation
        "n", "9001", "42000", "01/15/2024", "brake noise",
        "11",
    )
    assert "does not match" in output
    assert "Service request opened" in output
    row = seeded.query_one("SELECT * FROM service_request WHERE rid = 9001")
    assert (row["customer_id"], row["car_vin"], row["date"], row["odometer"], row["complain"]) == (
        501, VIN, "2024-01-15 00:00", 42000, "brake noise",
    )


def test_service_request_new_customer_without_vehicles(seeded, config):
    output = run(
        seeded, config,
        "4", "Diaz",
        "501", "502", "Bo", "Diaz", "555-0101", "3 Elm",
        "n",                                   # no vehicles: falls back to adding one
        "V2", "Ford", "Escort", "1992",
        "V2",
        "n", "9002", "1000", "2024-03-01", "rattle",
        "11",
    )
    assert "no vehicles on file" in output
    assert seeded.row_count("SELECT 1 FROM owns WHERE customer_id = 502 AND car_vin = 'V2'") == 1
    assert seeded.query_one("SELECT customer_id FROM service_request WHERE rid = 9002")[0] == 502


def test_update_open_request(seeded, config):
    add_request(seeded, 9001)
    output = run(
        seeded, config,
        "4", "Ruiz", "1", "n", "1", VIN,
        "y", "9999", "9001", "43000", "02/01/2024", "grinding",
        "11",
    )
    assert "not one of the open requests" in output
    assert "Service request updated" in output
    assert seeded.query_one("SELECT odometer FROM service_request WHERE rid = 9001")[0] == 43000


def test_update_with_no_open_request_goes_back_to_choice(seeded, config):
    output = run(
        seeded, config,
        "4", "Ruiz", "1", "n", "1", VIN,
        "y", "n", "9001", "42000", "01/15/2024", "brake noise",
        "11",
    )
    assert "no open request to update" in output
    assert seeded.table_counts()["service_request"] == 1


def test_close_request(seeded, config):
    add_request(seeded, 9001)
    output = run(seeded, config, "5", "7", "424242", "9001", "3001", "pads replaced", "-5", "180", "11")
    assert "service request 424242 does not exist" in output
    assert "must be at least 0" in output
    assert "Service request 9001 closed" in output
    row = seeded.query_one("SELECT * FROM closed_request WHERE wid = 3001")
    assert (row["rid"], row["mid"], row["bill"], row["comment"]) == (9001, 7, 180, "pads replaced")


def test_close_with_unknown_mechanic_is_reported(seeded, config):
    add_request(seeded, 9001)
    output = run(seeded, config, "5", "99", "9001", "3001", "x", "10", "11")
    assert "mechanic 99 does not exist" in output
    assert seeded.table_counts()["closed_request"] == 0


def test_reports(seeded, config):
    add_request(seeded, 9001)
    add_closure(seeded, 3001, 9001, bill=80, comment="oil")
    output = run(seeded, config, "6", "9", "0", "3", "10", "11")
    assert "Customers with bill <= 100 (1)" in output
    assert "must be greater than 0" in output
    assert "3 most serviced car models" in output
    assert "Customers by total bill" in output


def test_empty_report(store, config):
    assert "no rows" in run(store, config, "7", "11")


def test_store_error_keeps_loop_running(store, config, monkeypatch):
    def broken(self, threshold=None):
        raise StoreError("disk I/O error")

    monkeypatch.setattr(ReportQueries, "bills_under_threshold", broken)
    output = run(store, config, "6", "help", "11")
    assert "Database error" in output
    assert "Commands" in output


def test_unknown_choice(store, config):
    assert "Unknown choice" in run(store, config, "zzz", "quit")


def test_bill_command(seeded, config):
    add_request(seeded, 9001)
    add_closure(seeded, 3001, 9001, bill=180)
    output = run(seeded, config, "bill", "3001", "bill", "4040", "11")
    assert "Bill written to" in output
    assert "No closed request 4040" in output
    assert Path(config.bills.output_dir, "bill_3001.pdf").exists()


def test_config_and_reload(store, config):
    output = run(store, config, "config", "reload", "11")
    assert "Configuration" in output
    assert "bill_threshold" in output
    assert "no changes" in output


def test_self_test_command(store, config):
    assert "7/7 passed" in run(store, config, "test", "exit")


def test_bill_write_failure_keeps_loop_running(seeded, config, tmp_path):
    add_request(seeded, 9001)
    add_closure(seeded, 3001, 9001)
    Path(config.bills.output_dir).write_text("not a directory")
    output = run(seeded, config, "bill", "3001", "help", "11")
    assert "Unable to write bill 3001" in output
    assert "Commands" in output
    assert "Goodbye." in output
