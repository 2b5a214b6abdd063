"""Per-category JSON snapshots of imported records.

Products: `sellers/{id}/products/{category}.{language}.json`
Prices: `sellers/{id}/prices/{category}.json`
Discounts: `sellers/{id}/buyers/{buyer}/discounts/{seller}.json`

Product and price snapshots are objects keyed by product identifier; the
identifier, category and language are carried by the key and the file name and
left out of the stored entries. Discount snapshots are plain lists.
"""

import json
import logging
from pathlib import Path
from typing import Any, Mapping, Sequence, Union

from pydantic import ValidationError

from edimport.codes import Category, Language
from edimport.exceptions import StorageWriteFailed
from edimport.models import DiscountRecord, PriceRecord, ProductRecord

logger = logging.getLogger(__name__)

PRODUCTS_DIR_NAME = "products"
PRICES_DIR_NAME = "prices"
DISCOUNTS_DIR_NAME = "discounts"

SnapshotRecord = Union[ProductRecord, PriceRecord]


def product_snapshot_path(seller_home: Path, category: Category, language: Language) -> Path:
    return seller_home / PRODUCTS_DIR_NAME / f"{category.value}.{language.value}.json"


def price_snapshot_path(seller_home: Path, category: Category) -> Path:
    return seller_home / PRICES_DIR_NAME / f"{category.value}.json"


def discount_snapshot_path(buyer_home: Path, seller_id: str) -> Path:
    return buyer_home / DISCOUNTS_DIR_NAME / f"{seller_id}.json"


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise StorageWriteFailed(
            f"Unable to read snapshot {path}: {exc}", details={"path": str(path)}
        ) from exc


def load_product_snapshot(
    seller_home: Path, category: Category, language: Language
) -> dict[str, ProductRecord]:
    """Load existing products of one category and language, empty if none."""
    path = product_snapshot_path(seller_home, category, language)
    if not path.is_file():
        return {}

    raw = _read_json(path)
    try:
        return {
            identifier: ProductRecord.model_validate(
                {
                    **payload,
                    "identifier": identifier,
                    "category": category,
                    "language": language,
                }
            )
            for identifier, payload in raw.items()
        }
    except ValidationError as exc:
        raise StorageWriteFailed(
            f"Invalid product snapshot {path}", details={"path": str(path)}
        ) from exc


def load_price_snapshot(seller_home: Path, category: Category) -> dict[str, PriceRecord]:
    """Load existing prices of one category, empty if none."""
    path = price_snapshot_path(seller_home, category)
    if not path.is_file():
        return {}

    raw = _read_json(path)
    try:
        return {
            identifier: PriceRecord.model_validate(
                {**payload, "identifier": identifier, "category": category}
            )
            for identifier, payload in raw.items()
        }
    except ValidationError as exc:
        raise StorageWriteFailed(
            f"Invalid price snapshot {path}", details={"path": str(path)}
        ) from exc


def _write_json(path: Path, payload: Any) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
    except OSError as exc:
        raise StorageWriteFailed(
            f"Failed to write snapshot {path}: {exc}", details={"path": str(path)}
        ) from exc
    logger.debug("Snapshot written to %s", path)


def write_record_snapshot(path: Path, records: Mapping[str, SnapshotRecord]) -> None:
    """Write a whole keyed snapshot, replacing the file."""
    _write_json(
        path,
        {identifier: record.snapshot_payload() for identifier, record in records.items()},
    )


def write_discount_snapshot(path: Path, discounts: Sequence[DiscountRecord]) -> None:
    _write_json(path, [discount.snapshot_payload() for discount in discounts])


def merge_records(
    existing: Mapping[str, SnapshotRecord], incoming: Sequence[SnapshotRecord]
) -> dict[str, SnapshotRecord]:
    """Overlay incoming records on a snapshot by identifier, later wins."""
    merged = dict(existing)
    for record in incoming:
        merged[record.identifier] = record
    return merged
