"""Shared test fixtures."""

import io
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient

from edimport.api import create_app, limiter
from edimport.config import ImporterConfig, SellerConfig, reload_config
from edimport.decoders.discounts import DISCOUNT_LAYOUT
from edimport.decoders.fields import FieldKind, RecordLayout
from edimport.decoders.prices import PRICE_LAYOUT
from edimport.decoders.products import PRODUCT_LAYOUT
from edimport.diagnostics import DiagnosticsLog
from edimport.repositories.sql import SqlCatalogRepository

SELLER_ID = "SELLER0001"
SELLER_NAME = "Acme Wholesale"
BUYER_ID = "BUYER0042"
TEST_API_KEY = "test-api-key"

_TEXT_DEFAULTS = {
    FieldKind.CATEGORY: "L",
    FieldKind.OPERATION: "1",
    FieldKind.LANGUAGE: "fin",
    FieldKind.DATE: "20240131",
    FieldKind.REQUIRED_TEXT: "X",
    FieldKind.STOCK_FLAG: "K",
}


def build_line(layout: RecordLayout, **values: Any) -> str:
    """Lay out field values at their fixed widths.

    Unset fields get a value that decodes cleanly: required decimals and
    counts become 1, optional ones stay blank.
    """
    unknown = set(values) - {spec.name for spec in layout.fields}
    assert not unknown, f"unknown fields {unknown}"

    parts = []
    for spec in layout.fields:
        if spec.name in values:
            raw = str(values[spec.name])
        elif spec.kind is FieldKind.MARKER:
            raw = spec.sentinel
        elif spec.kind is FieldKind.DECIMAL:
            raw = "1".zfill(spec.int_digits) + "0" * (spec.width - spec.int_digits)
        elif spec.kind is FieldKind.COUNT:
            raw = "1".zfill(spec.width)
        else:
            raw = _TEXT_DEFAULTS.get(spec.kind, "")
        assert len(raw) <= spec.width, f"{spec.name} value '{raw}' too wide"
        parts.append(raw.ljust(spec.width))
    return "".join(parts)


def build_header(ownership: str, party_id: str, code: str = "") -> str:
    return f"O{ownership}{party_id.ljust(17)}{code.ljust(3)}"


@pytest.fixture
def product_line() -> Callable[..., str]:
    def _build(**values: Any) -> str:
        values.setdefault("name", "Copper pipe 15mm")
        values.setdefault("description", "Soft annealed")
        values.setdefault("unit", "M")
        values.setdefault("usables_in_unit", "000010000")
        return build_line(PRODUCT_LAYOUT, **values)

    return _build


@pytest.fixture
def price_line() -> Callable[..., str]:
    def _build(**values: Any) -> str:
        values.setdefault("price_group", "01")
        values.setdefault("discount_group", "DG01")
        values.setdefault("unit", "M")
        values.setdefault("delivery_in_weeks", "00")
        return build_line(PRICE_LAYOUT, **values)

    return _build


@pytest.fixture
def discount_line() -> Callable[..., str]:
    def _build(**values: Any) -> str:
        values.setdefault("discount_group", "DG01")
        values.setdefault("price_group", "01")
        return build_line(DISCOUNT_LAYOUT, **values)

    return _build


@pytest.fixture
def write_edi(tmp_path: Path) -> Callable[..., Path]:
    """Write an EDI file with buyer and seller headers followed by entries."""

    def _write(
        name: str,
        entries: list[str],
        *,
        seller: str = SELLER_ID,
        buyer: str = BUYER_ID,
        directory: Optional[Path] = None,
        encoding: str = "utf-8",
    ) -> Path:
        target_dir = directory or tmp_path / "incoming"
        target_dir.mkdir(parents=True, exist_ok=True)
        lines = [build_header("BY", buyer, "001"), build_header("SE", seller, "002")]
        path = target_dir / name
        path.write_bytes(("\n".join(lines + entries) + "\n").encode(encoding))
        return path

    return _write


@pytest.fixture
def importer_config(tmp_path: Path) -> ImporterConfig:
    """Provide a test-owned config rooted in a temporary data directory."""
    return ImporterConfig(
        _env_file=None,
        data_dir=tmp_path / "data",
        lang_codes="fin",
        vat_percent=24.0,
        sellers=[SellerConfig(id=SELLER_ID, name=SELLER_NAME)],
        sellers_database_url=f"sqlite:///{tmp_path / 'sellers.db'}",
        buyers_database_url=f"sqlite:///{tmp_path / 'buyers.db'}",
        api_keys=TEST_API_KEY,
        max_upload_size_mb=1,
    )


@pytest.fixture
def repository(
    importer_config: ImporterConfig,
) -> Generator[SqlCatalogRepository, None, None]:
    repo = SqlCatalogRepository(importer_config.sellers_dsn(), importer_config.buyers_dsn())
    repo.create_schema()
    try:
        yield repo
    finally:
        repo.dispose()


@pytest.fixture
def diagnostics() -> DiagnosticsLog:
    return DiagnosticsLog(io.StringIO())


@pytest.fixture
def api_test_app(
    monkeypatch: pytest.MonkeyPatch, importer_config: ImporterConfig
) -> Generator[Any, None, None]:
    """Create a fresh FastAPI app bound to the test config."""
    monkeypatch.setenv("ALLOWED_ORIGINS", "http://localhost:5173")
    limiter.reset()
    app = create_app(importer_config)
    try:
        yield app
    finally:
        app.dependency_overrides.clear()
        limiter.reset()


@pytest.fixture
def api_test_client(api_test_app: Any) -> Generator[TestClient, None, None]:
    """Create a TestClient for the test app."""
    with TestClient(api_test_app) as client:
        yield client


@pytest.fixture
def fresh_global_config() -> Generator[None, None, None]:
    """Reset the global config singleton around a test."""
    reload_config()
    yield
    reload_config()
