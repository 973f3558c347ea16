import pytest

from shop.errors import ValidationError
from shop.models import Car, Customer, Mechanic
from shop.registrar import EntityKind


def test_register_new_customer(store, registrar):
    reg = registrar.register_customer("501", " Ana ", "Ruiz", "555-0100", "12 Oak St")
    assert reg.existed is False
    assert reg.record == Customer(501, "Ana", "Ruiz", "555-0100", "12 Oak St")
    assert store.table_counts()["customer"] == 1


def test_existing_key_is_reused_without_insert(store, registrar):
    registrar.register_customer(501, "Ana", "Ruiz", "555-0100", "12 Oak St")
    reg = registrar.register_customer(501, "Someone", "Else", "555-0199", "9 Elm")
    assert reg.existed is True
    assert reg.record.fname == "Ana"
    assert store.table_counts()["customer"] == 1


def test_existing_key_skips_field_validation(registrar):
    registrar.register_mechanic(7, "Lee", "Park", 12)
    reg = registrar.register_mechanic(7, "x" * 40, "", -3)
    assert reg.existed is True
    assert reg.record == Mechanic(7, "Lee", "Park", 12)


def test_over_length_field_rejected_before_write(store, registrar):
    with pytest.raises(ValidationError) as excinfo:
        registrar.register_customer(502, "x" * 33, "Ruiz", "555-0100", "12 Oak St")
    assert excinfo.value.field == "fname"
    assert store.table_counts()["customer"] == 0


def test_bad_key_rejected(registrar):
    with pytest.raises(ValidationError) as excinfo:
        registrar.register_customer("abc", "Ana", "Ruiz", "555-0100", "12 Oak St")
    assert excinfo.value.field == "id"
    with pytest.raises(ValidationError) as excinfo:
        registrar.register_car("V" * 18, "Honda", "Civic", "2001")
    assert excinfo.value.field == "vin"


def test_car_year_rule(store, registrar):
    reg = registrar.register_car("VIN1995", "Ford", "Escort", "1995")
    assert reg.record == Car("VIN1995", "Ford", "Escort", "1995")
    for year in ("95", "19950"):
        with pytest.raises(ValidationError):
            registrar.register_car(f"VIN{year}", "Ford", "Escort", year)
    assert store.table_counts()["car"] == 1


def test_mechanic_negative_experience_rejected(store, registrar):
    with pytest.raises(ValidationError):
        registrar.register_mechanic(8, "Max", "Kim", -1)
    assert store.table_counts()["mechanic"] == 0


def test_exists_and_lookup(registrar):
    registrar.register_car("1HGCM82633A004352", "Honda", "Civic", "2001")
    assert registrar.exists(EntityKind.CAR, "1HGCM82633A004352")
    assert registrar.exists("car", " 1HGCM82633A004352 ")
    assert not registrar.exists(EntityKind.CAR, "NOPE")
    assert registrar.lookup(EntityKind.CAR, "1HGCM82633A004352").make == "Honda"
    assert registrar.lookup(EntityKind.CUSTOMER, 1) is None


def test_find_customers_by_last_name(registrar):
    registrar.register_customer(12, "Bo", "Ruiz", "1", "a")
    registrar.register_customer(3, "Ana", "Ruiz", "2", "b")
    registrar.register_customer(5, "Cy", "Diaz", "3", "c")
    matches = registrar.find_customers_by_last_name("Ruiz")
    assert [c.id for c in matches] == [3, 12]
    assert registrar.find_customers_by_last_name("Nobody") == []
    with pytest.raises(ValidationError):
        registrar.find_customers_by_last_name("")


def test_full_length_vin_accepted(store, registrar):
    reg = registrar.register_car("1HGCM82633A004352", "Honda", "Civic", "2001")
    assert reg.record.vin == "1HGCM82633A004352"
    assert store.table_counts()["car"] == 1
