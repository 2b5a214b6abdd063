"""EDI file import orchestration service."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence, TypeVar

from edimport.classifier import FileKind, classify
from edimport.codes import Category, Language, Ownership
from edimport.config import ImporterConfig
from edimport.decoders.discounts import DISCOUNT_LAYOUT, decode_discount
from edimport.decoders.header import open_party
from edimport.decoders.lines import DecodedDocument, decode_document
from edimport.decoders.prices import PRICE_LAYOUT, decode_price
from edimport.decoders.products import PRODUCT_LAYOUT, decode_product
from edimport.diagnostics import DiagnosticsLog
from edimport.exceptions import EdiError, InvalidOwnership, UnknownSupplier
from edimport.import_gate import ARCHIVE_DIR_NAME, already_imported
from edimport.models import DiscountRecord, PartyIdentity, PriceRecord, ProductRecord
from edimport.repositories.base import CatalogRepository
from edimport.services.staging import (
    DOWNLOADS_DIR_NAME,
    UPLOADS_DIR_NAME,
    archive_file,
    collect_incoming,
)
from edimport.snapshots import (
    discount_snapshot_path,
    load_price_snapshot,
    load_product_snapshot,
    merge_records,
    price_snapshot_path,
    product_snapshot_path,
    write_discount_snapshot,
    write_record_snapshot,
)

logger = logging.getLogger(__name__)

DISCOUNTS_ARCHIVE_NAME = "discounts.txt"

RecordT = TypeVar("RecordT", ProductRecord, PriceRecord)


@dataclass(frozen=True)
class ImportOutcome:
    """Result of processing one staged file."""

    name: str
    kind: FileKind
    imported: bool
    archived_to: Optional[Path] = None
    warning_count: int = 0


def group_by_category(records: Iterable[RecordT]) -> dict[Category, list[RecordT]]:
    grouped: dict[Category, list[RecordT]] = defaultdict(list)
    for record in records:
        grouped[record.category].append(record)
    return dict(grouped)


def latest_by_category(records: Iterable[RecordT]) -> dict[Category, list[RecordT]]:
    """Group by category; within a category the last record per identifier wins."""
    return {
        category: list(merge_records({}, batch).values())
        for category, batch in group_by_category(records).items()
    }


class EdiImportService:
    """Coordinates classification, duplicate checks, decoding and persistence.

    Files are processed one at a time. The service is the only writer of
    snapshots and of the relational store.
    """

    def __init__(
        self,
        config: ImporterConfig,
        diagnostics: DiagnosticsLog,
        repository: Optional[CatalogRepository] = None,
    ) -> None:
        self.config = config
        self.diagnostics = diagnostics
        self.repository = repository

    @property
    def root(self) -> Path:
        return self.config.data_dir

    @property
    def _sqlite_enabled(self) -> bool:
        return self.config.import_sqlite and self.repository is not None

    def run(self) -> list[ImportOutcome]:
        """Import everything waiting in downloads, then in uploads.

        Any file-fatal error aborts the run; the failing file stays in
        staging for inspection.
        """
        outcomes: list[ImportOutcome] = []
        for dir_name in (DOWNLOADS_DIR_NAME, UPLOADS_DIR_NAME):
            for path, name in collect_incoming(self.root, dir_name):
                try:
                    outcomes.append(self.import_file(path, name))
                except EdiError as exc:
                    logger.error(
                        "Failed to process EDI file '%s' %s: %s", name, path, exc.message
                    )
                    raise
        return outcomes

    def import_file(self, path: Path, name: str) -> ImportOutcome:
        """Import one staged file and archive it under its owning party."""
        self.diagnostics.started(name)

        kind = classify(path)
        if kind is FileKind.PRODUCT:
            return self._import_products(path, name)
        if kind is FileKind.PRICE:
            return self._import_prices(path, name)
        if kind is FileKind.DISCOUNT:
            return self._import_discounts(path, name)

        logger.error(
            "Deleted unrecognized file %s. File was not recognized as product, "
            "price nor discount EDI file",
            path,
        )
        return ImportOutcome(name=name, kind=kind, imported=False)

    def _decode(
        self,
        path: Path,
        required_length: int,
        decode_entry: Callable,
        label: str,
    ) -> DecodedDocument:
        with path.open("r", encoding="utf-8") as handle:
            return decode_document(handle, required_length, decode_entry, label=label)

    def _open_seller(
        self, document: DecodedDocument, path: Path
    ) -> tuple[PartyIdentity, Path]:
        if document.seller is None:
            raise UnknownSupplier(f"File {path} has no seller header")
        return open_party(self.root, document.seller_line)

    def _register_seller(self, seller: PartyIdentity) -> list[str]:
        seller_config = self.config.find_seller(seller.id)
        if seller_config is None:
            return [f"Unable to find config for seller ID {seller.id}, skipping seller..."]
        if self._sqlite_enabled:
            self.repository.register_seller(seller.id, seller_config.name)
        return []

    def _import_products(self, path: Path, name: str) -> ImportOutcome:
        if already_imported(self.root, Ownership.SELLER, path):
            logger.info("Skipping rewriting for up to date product source file %s", path)
            return ImportOutcome(name=name, kind=FileKind.PRODUCT, imported=False)

        logger.info("Running product update from source file %s", path)
        seller_home: Optional[Path] = None
        warning_count = 0

        for language in self.config.get_languages():
            logger.debug("Adding products with language code: %s", language.value)
            document = self._decode(
                path,
                PRODUCT_LAYOUT.total_width,
                partial(decode_product, language_filter=language),
                "Product",
            )
            seller, seller_home = self._open_seller(document, path)
            warnings = document.warnings + self._register_seller(seller)
            warning_count += self.diagnostics.record(path, warnings)
            self.store_products(seller.id, seller_home, language, document.records)

        if seller_home is None:
            raise UnknownSupplier(f"File {path} was not decoded in any language")

        archived = archive_file(path, seller_home / ARCHIVE_DIR_NAME, name)
        return ImportOutcome(
            name=name,
            kind=FileKind.PRODUCT,
            imported=True,
            archived_to=archived,
            warning_count=warning_count,
        )

    def store_products(
        self,
        seller_id: str,
        seller_home: Path,
        language: Language,
        products: Sequence[ProductRecord],
    ) -> None:
        """Merge one language pass into the stores, category by category."""
        batches = latest_by_category(products)

        if self._sqlite_enabled and batches:
            self.repository.save_products(
                seller_id, language, [p for batch in batches.values() for p in batch]
            )

        if self.config.import_json:
            for category, batch in batches.items():
                existing = load_product_snapshot(seller_home, category, language)
                write_record_snapshot(
                    product_snapshot_path(seller_home, category, language),
                    merge_records(existing, batch),
                )

    def _import_prices(self, path: Path, name: str) -> ImportOutcome:
        if already_imported(self.root, Ownership.SELLER, path):
            logger.info("Skipping rewriting for up to date price source file %s", path)
            return ImportOutcome(name=name, kind=FileKind.PRICE, imported=False)

        document = self._decode(path, PRICE_LAYOUT.total_width, decode_price, "Price")
        seller, seller_home = self._open_seller(document, path)
        warnings = document.warnings + self._register_seller(seller)
        warning_count = self.diagnostics.record(path, warnings)
        self.store_prices(seller.id, seller_home, document.records)

        archived = archive_file(path, seller_home / ARCHIVE_DIR_NAME, name)
        return ImportOutcome(
            name=name,
            kind=FileKind.PRICE,
            imported=True,
            archived_to=archived,
            warning_count=warning_count,
        )

    def store_prices(
        self, seller_id: str, seller_home: Path, prices: Sequence[PriceRecord]
    ) -> None:
        batches = latest_by_category(prices)

        if self._sqlite_enabled and batches:
            self.repository.save_prices(
                seller_id, [p for batch in batches.values() for p in batch]
            )

        if self.config.import_json:
            for category, batch in batches.items():
                existing = load_price_snapshot(seller_home, category)
                write_record_snapshot(
                    price_snapshot_path(seller_home, category),
                    merge_records(existing, batch),
                )

    def filter_discounts(
        self, discounts: Sequence[DiscountRecord]
    ) -> tuple[list[DiscountRecord], list[str]]:
        """Keep discounts whose discount and price groups the seller store knows."""
        if not self._sqlite_enabled:
            return list(discounts), []

        discount_groups = self.repository.discount_groups()
        price_groups = self.repository.price_groups()
        kept: list[DiscountRecord] = []
        warnings: list[str] = []

        for discount in discounts:
            group = discount.discount_group
            if group not in discount_groups:
                warnings.append(f"[{group}]: Ignoring as discount group was not found")
                continue
            if discount.price_group not in price_groups:
                warnings.append(
                    f"[{group}]: Ignoring as price group '{discount.price_group}' "
                    "was not found"
                )
                continue
            kept.append(discount)

        return kept, warnings

    def _import_discounts(self, path: Path, name: str) -> ImportOutcome:
        if already_imported(self.root, Ownership.BUYER, path):
            logger.info("Skipping rewriting for up to date discount source file %s", path)
            return ImportOutcome(name=name, kind=FileKind.DISCOUNT, imported=False)

        logger.debug("Opening discounts file %s...", path)
        document = self._decode(
            path, DISCOUNT_LAYOUT.total_width, decode_discount, "Discount"
        )
        if document.seller is None:
            raise UnknownSupplier(f"File {path} has no seller header")
        if document.buyer is None:
            raise InvalidOwnership(f"Discount file {path} has no buyer header")

        seller, buyer = document.seller, document.buyer
        discounts, filter_warnings = self.filter_discounts(document.records)
        warning_count = self.diagnostics.record(path, document.warnings + filter_warnings)

        seller_home = seller.party_dir(self.root)
        if not seller_home.is_dir():
            raise UnknownSupplier(
                f"Unknown supplier {seller.id}", details={"seller_id": seller.id}
            )

        if self._sqlite_enabled:
            self.repository.save_discounts(
                buyer.id, seller.id, self.config.vat_percent, discounts
            )

        buyer_home = seller_home / Ownership.BUYER.dir_name / buyer.id
        if self.config.import_json:
            write_discount_snapshot(discount_snapshot_path(buyer_home, seller.id), discounts)

        archived = archive_file(
            path, buyer_home / ARCHIVE_DIR_NAME, DISCOUNTS_ARCHIVE_NAME
        )
        return ImportOutcome(
            name=name,
            kind=FileKind.DISCOUNT,
            imported=True,
            archived_to=archived,
            warning_count=warning_count,
        )
