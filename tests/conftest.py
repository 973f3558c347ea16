"""Shared fixtures: an in-memory store, an isolated config, seed data."""

import pytest

from core import config as config_module
from core.config import ShopConfig, reset_config
from core.record_store import RecordStore
from shop.ownership import OwnershipResolver
from shop.registrar import EntityRegistrar

VIN = "1HGCM82633A004352"


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """No SHOP_* variable from the outer environment leaks into a test."""
    monkeypatch.delenv("SHOP_CONFIG", raising=False)
    for env_var, _, _ in config_module._ENV_OVERRIDES:
        monkeypatch.delenv(env_var, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def store():
    s = RecordStore(db_path=":memory:")
    yield s
    s.close()


@pytest.fixture
def config(tmp_path):
    path = tmp_path / "settings.toml"
    path.write_text(
        "[database]\n"
        'path = ":memory:"\n'
        "\n"
        "[bills]\n"
        f'output_dir = "{(tmp_path / "bills").as_posix()}"\n'
        'shop_name = "Test Garage"\n'
    )
    return ShopConfig(path)


@pytest.fixture
def registrar(store):
    return EntityRegistrar(store)


@pytest.fixture
def seeded(store, registrar):
    """Customer 501 Ana Ruiz owning a 2001 Honda Civic, and mechanic 7."""
    registrar.register_customer(501, "Ana", "Ruiz", "555-0100", "12 Oak St")
    registrar.register_car(VIN, "Honda", "Civic", "2001")
    registrar.register_mechanic(7, "Lee", "Park", 12)
    OwnershipResolver(store).link_ownership(501, VIN)
    return store


def add_request(store, rid, customer_id=501, vin=VIN, odometer=42000,
                date="2024-01-15 00:00", complaint="brake noise"):
    store.execute_update(
        "INSERT INTO service_request VALUES (?, ?, ?, ?, ?, ?)",
        (rid, customer_id, vin, date, odometer, complaint),
    )


def add_closure(store, wid, rid, mid=7, bill=100, comment="done", date="2024-02-01"):
    store.execute_update(
        "INSERT INTO closed_request VALUES (?, ?, ?, ?, ?, ?)",
        (wid, rid, mid, date, comment, bill),
    )
