from pathlib import Path

import pytest

from shop.bills import BillPrinter, _pdf_safe
from shop.errors import BillError
from shop.ownership import OwnershipResolver

from conftest import add_closure, add_request


def test_generate_bill(seeded, tmp_path):
    add_request(seeded, 9001)
    add_closure(seeded, 3001, 9001, bill=180, comment="pads replaced — and rotors")
    printer = BillPrinter(seeded, output_dir=str(tmp_path / "bills"), shop_name="Test Garage")

    path = printer.generate(3001)

    assert path == str(tmp_path / "bills" / "bill_3001.pdf")
    data = Path(path).read_bytes()
    assert data.startswith(b"%PDF")


def test_unknown_wid(seeded, tmp_path):
    printer = BillPrinter(seeded, output_dir=str(tmp_path))
    assert printer.generate("424242") is None
    assert list(tmp_path.iterdir()) == []


def test_pdf_safe():
    assert _pdf_safe("“pads” — rotors…") == '"pads" - rotors...'
    assert _pdf_safe("naïve") == "naïve"
    assert _pdf_safe("日本") == "??"


def test_non_latin_vin_is_printable(seeded, registrar, tmp_path):
    registrar.register_car("車台番号123", "Toyota", "Corolla", "2018")
    OwnershipResolver(seeded).link_ownership(501, "車台番号123")
    add_request(seeded, 9002, vin="車台番号123", complaint="ブレーキ")
    add_closure(seeded, 3002, 9002, bill=90)

    path = BillPrinter(seeded, output_dir=str(tmp_path)).generate(3002)

    assert Path(path).read_bytes().startswith(b"%PDF")


def test_unwritable_output_dir(seeded, tmp_path):
    add_request(seeded, 9001)
    add_closure(seeded, 3001, 9001)
    blocker = tmp_path / "bills"
    blocker.write_text("not a directory")

    with pytest.raises(BillError, match="Unable to write bill 3001"):
        BillPrinter(seeded, output_dir=str(blocker)).generate(3001)
