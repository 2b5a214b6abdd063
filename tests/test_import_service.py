"""Tests for the EDI import orchestration service."""

import io
import json
from pathlib import Path

import pytest
from sqlalchemy import text

from edimport.classifier import FileKind
from edimport.diagnostics import DiagnosticsLog
from edimport.exceptions import UnknownSupplier
from edimport.import_service import EdiImportService

from conftest import BUYER_ID, SELLER_ID, SELLER_NAME


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def service(importer_config, repository, log_stream) -> EdiImportService:
    importer_config.create_data_dirs()
    return EdiImportService(importer_config, DiagnosticsLog(log_stream), repository)


def _rows(engine, sql: str):
    with engine.connect() as conn:
        return [dict(row._mapping) for row in conn.execute(text(sql))]


def _seller_home(service: EdiImportService) -> Path:
    return service.root / "sellers" / SELLER_ID


def _snapshot(path: Path):
    return json.loads(path.read_text(encoding="utf-8"))


def test_product_import_fans_out_per_language(
    service, repository, log_stream, write_edi, product_line
):
    service.config.lang_codes = "fin,swe"
    path = write_edi(
        "products.txt",
        [
            product_line(identifier="A1", language="fin", name="Kupariputki"),
            product_line(identifier="A1", language="swe", name="Kopparrör"),
        ],
    )

    outcome = service.import_file(path, "abc-products.txt")

    assert outcome.kind is FileKind.PRODUCT
    assert outcome.imported is True
    assert outcome.archived_to == _seller_home(service) / "edi" / "abc-products.txt"
    assert outcome.archived_to.is_file()
    assert not path.exists()
    assert outcome.warning_count == 2
    log = log_stream.getvalue()
    assert "Product read: line 4: Language filter set to 'fin' and product lang is 'swe'" in log
    assert "Product read: line 3: Language filter set to 'swe' and product lang is 'fin'" in log

    products = _seller_home(service) / "products"
    assert _snapshot(products / "lv.fin.json")["A1"]["name"] == "Kupariputki"
    assert _snapshot(products / "lv.swe.json")["A1"]["name"] == "Kopparrör"

    translations = _rows(repository.sellers, "SELECT id, name FROM product_lv_t ORDER BY id")
    assert translations == [
        {"id": f"{SELLER_ID}A11", "name": "Kupariputki"},
        {"id": f"{SELLER_ID}A12", "name": "Kopparrör"},
    ]
    assert len(_rows(repository.sellers, "SELECT id FROM products_lv")) == 1
    assert _rows(repository.sellers, "SELECT * FROM sellers") == [
        {"id": SELLER_ID, "name": SELLER_NAME}
    ]


def test_optional_zero_values_are_absent(service, repository, write_edi, product_line):
    path = write_edi(
        "products.txt",
        [product_line(identifier="A1", unit_weight="0000000", typical_packaging="000000000")],
    )

    service.import_file(path, "p.txt")

    entry = _snapshot(_seller_home(service) / "products" / "lv.fin.json")["A1"]
    assert "weight" not in entry
    assert "pkg" not in entry
    row = _rows(repository.sellers, "SELECT unit_weight, typical_packaging FROM products_lv")[0]
    assert row == {"unit_weight": None, "typical_packaging": None}


def test_identical_redelivery_is_skipped(service, write_edi, product_line):
    lines = [product_line(identifier="A1")]
    service.import_file(write_edi("products.txt", lines), "first.txt")

    again = write_edi("products.txt", lines)
    outcome = service.import_file(again, "second.txt")

    assert outcome.imported is False
    assert not again.exists()
    assert not (_seller_home(service) / "edi" / "second.txt").exists()


def test_later_delivery_merges_into_snapshot(service, repository, write_edi, product_line):
    service.import_file(
        write_edi(
            "products.txt",
            [product_line(identifier="A1", name="Old"), product_line(identifier="B1")],
        ),
        "first.txt",
    )
    service.import_file(
        write_edi("products.txt", [product_line(identifier="A1", name="New")]),
        "second.txt",
    )

    snapshot = _snapshot(_seller_home(service) / "products" / "lv.fin.json")
    assert set(snapshot) == {"A1", "B1"}
    assert snapshot["A1"]["name"] == "New"
    assert len(_rows(repository.sellers, "SELECT id FROM products_lv")) == 2


def test_repeated_identifier_in_one_file_keeps_last(service, write_edi, product_line):
    path = write_edi(
        "products.txt",
        [product_line(identifier="A1", name="First"), product_line(identifier="A1", name="Last")],
    )

    service.import_file(path, "p.txt")

    snapshot = _snapshot(_seller_home(service) / "products" / "lv.fin.json")
    assert snapshot["A1"]["name"] == "Last"


def test_same_identifier_in_two_categories_keeps_both(
    service, repository, write_edi, product_line
):
    path = write_edi(
        "products.txt",
        [
            product_line(identifier="A1", category="L", name="Pipe"),
            product_line(identifier="A1", category="S", name="Cable"),
        ],
    )

    service.import_file(path, "p.txt")

    products = _seller_home(service) / "products"
    assert _snapshot(products / "lv.fin.json")["A1"]["name"] == "Pipe"
    assert _snapshot(products / "sa.fin.json")["A1"]["name"] == "Cable"
    assert _rows(repository.sellers, "SELECT name FROM product_lv_t") == [{"name": "Pipe"}]
    assert _rows(repository.sellers, "SELECT name FROM product_sa_t") == [{"name": "Cable"}]
    assert len(_rows(repository.sellers, "SELECT id FROM products_lv")) == 1
    assert len(_rows(repository.sellers, "SELECT id FROM products_sa")) == 1


def test_price_identifier_in_two_categories_keeps_both(
    service, repository, write_edi, price_line
):
    path = write_edi(
        "prices.txt",
        [
            price_line(identifier="A1", category="L", price="000001000"),
            price_line(identifier="A1", category="K", price="000002000"),
        ],
    )

    service.import_file(path, "prices.txt")

    prices = _seller_home(service) / "prices"
    assert _snapshot(prices / "lv.json")["A1"]["price"] == 10.0
    assert _snapshot(prices / "ky.json")["A1"]["price"] == 20.0
    assert _rows(repository.sellers, "SELECT price FROM prices_lv") == [{"price": 10.0}]
    assert _rows(repository.sellers, "SELECT price FROM prices_ky") == [{"price": 20.0}]


def test_unknown_seller_is_imported_with_warning(
    service, repository, log_stream, write_edi, product_line
):
    path = write_edi("products.txt", [product_line()], seller="SELLER0002")

    outcome = service.import_file(path, "p.txt")

    assert outcome.imported is True
    assert outcome.warning_count == 1
    assert (
        "Warning: Unable to find config for seller ID SELLER0002, skipping seller..."
        in log_stream.getvalue()
    )
    assert _rows(repository.sellers, "SELECT id FROM sellers") == []
    assert (service.root / "sellers" / "SELLER0002" / "products" / "lv.fin.json").is_file()


def test_bad_entry_becomes_warning(service, log_stream, write_edi, product_line):
    path = write_edi(
        "products.txt",
        [product_line(identifier="A1"), product_line(identifier="A2", name="")],
    )

    outcome = service.import_file(path, "p.txt")

    assert outcome.warning_count == 1
    assert "Product read: line 4:" in log_stream.getvalue()
    snapshot = _snapshot(_seller_home(service) / "products" / "lv.fin.json")
    assert set(snapshot) == {"A1"}


def test_price_import(service, repository, write_edi, price_line):
    path = write_edi(
        "prices.txt",
        [price_line(identifier="A1", price="000015099"), price_line(identifier="B1", category="K")],
    )

    outcome = service.import_file(path, "prices.txt")

    assert outcome.kind is FileKind.PRICE
    assert outcome.imported is True
    prices = _seller_home(service) / "prices"
    assert _snapshot(prices / "lv.json")["A1"]["price"] == 150.99
    assert set(_snapshot(prices / "ky.json")) == {"B1"}
    assert repository.price_groups() == {"01"}


def test_discount_import_filters_unknown_groups(
    service, repository, log_stream, write_edi, price_line, discount_line
):
    service.import_file(write_edi("prices.txt", [price_line()]), "prices.txt")
    path = write_edi(
        "discounts.txt",
        [
            discount_line(discount_group="DG01", price_group="01"),
            discount_line(discount_group="DG99", price_group="01"),
            discount_line(discount_group="DG01", price_group="77"),
        ],
    )

    outcome = service.import_file(path, "d.txt")

    assert outcome.kind is FileKind.DISCOUNT
    assert outcome.warning_count == 2
    log = log_stream.getvalue()
    assert "[DG99]: Ignoring as discount group was not found" in log
    assert "[DG01]: Ignoring as price group '77' was not found" in log

    buyer_home = _seller_home(service) / "buyers" / BUYER_ID
    assert outcome.archived_to == buyer_home / "edi" / "discounts.txt"
    stored = _snapshot(buyer_home / "discounts" / f"{SELLER_ID}.json")
    assert [entry["disc"] for entry in stored] == ["DG01"]

    buyers = _rows(repository.buyers, "SELECT id, vat_percent FROM buyers")
    assert buyers == [{"id": f"{BUYER_ID}{SELLER_ID}", "vat_percent": 24.0}]
    assert len(_rows(repository.buyers, "SELECT id FROM discounts")) == 1


def test_discounts_without_sqlite_are_not_filtered(
    importer_config, log_stream, write_edi, discount_line
):
    importer_config.import_sqlite = False
    importer_config.create_data_dirs()
    (importer_config.data_dir / "sellers" / SELLER_ID).mkdir(parents=True)
    service = EdiImportService(importer_config, DiagnosticsLog(log_stream))

    service.import_file(
        write_edi("discounts.txt", [discount_line(discount_group="DG99")]), "d.txt"
    )

    stored = _snapshot(
        importer_config.data_dir
        / "sellers"
        / SELLER_ID
        / "buyers"
        / BUYER_ID
        / "discounts"
        / f"{SELLER_ID}.json"
    )
    assert [entry["disc"] for entry in stored] == ["DG99"]


def test_discounts_for_unknown_supplier_fail(service, write_edi, discount_line):
    path = write_edi("discounts.txt", [discount_line()], seller="NOBODY")

    with pytest.raises(UnknownSupplier, match="Unknown supplier NOBODY"):
        service.import_file(path, "d.txt")

    assert path.exists()


def test_run_imports_staged_uploads(service, write_edi, product_line):
    uploads = service.root / "uploads"
    write_edi(
        "latin.txt",
        ["", product_line(identifier="A1", name="Jäähdytin"), ""],
        directory=uploads,
        encoding="latin-1",
    )
    write_edi("junk.txt", ["nothing to see here"], directory=uploads)
    (uploads / "bundle.zip").write_bytes(b"PK\x03\x04")
    (uploads / "notes.txt").write_text("not an edi file\n")

    outcomes = service.run()

    by_kind = {outcome.kind: outcome for outcome in outcomes}
    assert len(outcomes) == 2
    assert by_kind[FileKind.PRODUCT].imported is True
    assert by_kind[FileKind.UNRECOGNIZED].imported is False
    snapshot = _snapshot(_seller_home(service) / "products" / "lv.fin.json")
    assert snapshot["A1"]["name"] == "Jäähdytin"
    assert sorted(p.name for p in uploads.iterdir()) == ["bundle.zip"]
    assert list((service.root / "edi").iterdir()) == []


def test_run_aborts_on_failed_file(service, write_edi, discount_line, product_line):
    downloads = service.root / "downloads"
    write_edi("discounts.txt", [discount_line()], seller="NOBODY", directory=downloads)
    write_edi("products.txt", [product_line()], directory=service.root / "uploads")

    with pytest.raises(UnknownSupplier, match="Unknown supplier NOBODY"):
        service.run()

    staged = list((service.root / "edi").iterdir())
    assert len(staged) == 1
    assert staged[0].name.endswith("-discounts.txt")
    assert list((service.root / "uploads").iterdir()) != []
    assert not (_seller_home(service) / "products").exists()
