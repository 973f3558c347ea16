import pytest

from core.config import ShopConfig, get_config, reset_config


def test_defaults_when_file_missing(tmp_path):
    config = ShopConfig(tmp_path / "missing.toml")
    assert config.database.path == "data/mechanic_shop.db"
    assert config.database.foreign_keys is True
    assert config.reports.bill_threshold == 100
    assert config.reports.min_cars == 20
    assert config.reports.year_before == 1995
    assert config.reports.odometer_under == 50000
    assert config.terminal.prompt == "shop> "


def test_file_merges_over_defaults(tmp_path):
    path = tmp_path / "settings.toml"
    path.write_text("[reports]\nmin_cars = 5\n")
    config = ShopConfig(path)
    assert config.reports.min_cars == 5
    assert config.reports.bill_threshold == 100


def test_broken_file_falls_back_to_defaults(tmp_path):
    path = tmp_path / "settings.toml"
    path.write_text("[reports\nmin_cars = ")
    config = ShopConfig(path)
    assert config.reports.min_cars == 20


def test_env_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("SHOP_DB_PATH", "/tmp/other.db")
    monkeypatch.setenv("SHOP_DB_FOREIGN_KEYS", "false")
    monkeypatch.setenv("SHOP_DB_TIMEOUT", "2.5")
    monkeypatch.setenv("SHOP_SHOP_NAME", "Corner Garage")
    config = ShopConfig(tmp_path / "missing.toml")
    assert config.database.path == "/tmp/other.db"
    assert config.database.foreign_keys is False
    assert config.database.timeout == 2.5
    assert config.bills.shop_name == "Corner Garage"


def test_invalid_env_override_is_ignored(tmp_path, monkeypatch):
    monkeypatch.setenv("SHOP_DB_TIMEOUT", "soon")
    config = ShopConfig(tmp_path / "missing.toml")
    assert config.database.timeout == 5.0


def test_config_path_from_env(tmp_path, monkeypatch):
    path = tmp_path / "alt.toml"
    path.write_text('[terminal]\nprompt = "garage> "\n')
    monkeypatch.setenv("SHOP_CONFIG", str(path))
    config = ShopConfig()
    assert config.path == path
    assert config.terminal.prompt == "garage> "


def test_reload_returns_changes(tmp_path):
    path = tmp_path / "settings.toml"
    path.write_text("[reports]\nmin_cars = 5\n")
    config = ShopConfig(path)
    path.write_text("[reports]\nmin_cars = 8\n")
    assert config.reload() == {"reports.min_cars": {"old": 5, "new": 8}}
    assert config.reports.min_cars == 8
    assert config.reload() == {}


def test_set_and_to_dict(tmp_path):
    config = ShopConfig(tmp_path / "missing.toml")
    config.set("database.path", ":memory:")
    assert config.database.path == ":memory:"
    data = config.to_dict()
    data["database"]["path"] = "changed"
    assert config.database.path == ":memory:"


def test_section_get_and_missing_keys(tmp_path):
    config = ShopConfig(tmp_path / "missing.toml")
    assert config.reports.get("min_cars", 1) == 20
    assert config.reports.get("nope", 1) == 1
    with pytest.raises(AttributeError):
        config.reports.nope
    with pytest.raises(AttributeError):
        config.nope


def test_singleton(tmp_path):
    first = get_config(tmp_path / "missing.toml")
    assert get_config() is first
    reset_config()
    assert get_config(tmp_path / "missing.toml") is not first


def test_set_survives_reload(tmp_path):
    path = tmp_path / "settings.toml"
    path.write_text('[database]\npath = "data/shop.db"\n\n[reports]\nmin_cars = 5\n')
    config = ShopConfig(path)
    config.set("database.path", "/srv/garage.db")
    path.write_text('[database]\npath = "data/shop.db"\n\n[reports]\nmin_cars = 8\n')

    assert config.reload() == {"reports.min_cars": {"old": 5, "new": 8}}
    assert config.database.path == "/srv/garage.db"
