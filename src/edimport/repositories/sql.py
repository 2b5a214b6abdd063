"""Relational catalog store on SQLAlchemy Core."""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from typing import Any, Iterable, Sequence

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from edimport.codes import Category, Language
from edimport.exceptions import StorageWriteFailed
from edimport.models import DiscountRecord, PriceRecord, ProductRecord

logger = logging.getLogger(__name__)

_SELLERS_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS sellers (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL UNIQUE
    )
    """,
    "CREATE TABLE IF NOT EXISTS units (id TEXT PRIMARY KEY)",
    """
    CREATE TABLE IF NOT EXISTS languages (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL UNIQUE
    )
    """,
    "CREATE TABLE IF NOT EXISTS discount_groups (id TEXT PRIMARY KEY)",
    "CREATE TABLE IF NOT EXISTS price_groups (id TEXT PRIMARY KEY)",
    """
    CREATE TABLE IF NOT EXISTS products (
        id TEXT PRIMARY KEY,
        category TEXT NOT NULL,
        tax_class TEXT NULL
    )
    """,
)

_CATEGORY_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS product_{cat}_t (
        id TEXT PRIMARY KEY,
        lang INTEGER NOT NULL,
        name TEXT NOT NULL,
        description TEXT NOT NULL,
        tags TEXT NULL,
        code TEXT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS products_{cat} (
        id TEXT PRIMARY KEY,
        product_id TEXT NOT NULL,
        seller_id TEXT NOT NULL,
        operation TEXT NOT NULL,
        date TEXT NOT NULL,
        discount_group TEXT NOT NULL,
        unit TEXT NOT NULL,
        unit_weight REAL NULL,
        unit_volume REAL NULL,
        typical_packaging INTEGER NULL,
        packaging_1 REAL NULL,
        packaging_1_discount REAL NULL,
        packaging_2 REAL NULL,
        packaging_2_discount REAL NULL,
        packaging_3 REAL NULL,
        packaging_3_discount REAL NULL,
        delivery_in_weeks INTEGER NULL,
        stock_item INTEGER NOT NULL,
        ean_code TEXT NULL,
        usage_unit TEXT NULL,
        usables_in_unit REAL NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS prices_{cat} (
        id TEXT PRIMARY KEY,
        product_id TEXT NOT NULL,
        price_group TEXT NOT NULL,
        price REAL NOT NULL,
        date TEXT NOT NULL,
        discount_group TEXT NOT NULL,
        unit TEXT NOT NULL,
        units_incl INTEGER NOT NULL,
        packaging_1 REAL NULL,
        packaging_1_discount REAL NULL,
        packaging_2 REAL NULL,
        packaging_2_discount REAL NULL,
        packaging_3 REAL NULL,
        packaging_3_discount REAL NULL,
        usage_unit TEXT NULL,
        usables_in_unit REAL NOT NULL,
        stock_item INTEGER NOT NULL,
        delivery_in_weeks INTEGER NULL
    )
    """,
)

_BUYERS_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS buyers (
        id TEXT PRIMARY KEY,
        uuid TEXT NOT NULL UNIQUE,
        buyer_id TEXT NOT NULL,
        vat_percent REAL NOT NULL,
        name TEXT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS discounts (
        id TEXT PRIMARY KEY,
        buyer_id TEXT NOT NULL,
        seller_id TEXT NOT NULL,
        discount_group TEXT NOT NULL,
        price_group TEXT NOT NULL,
        percent_1 REAL NOT NULL,
        percent_2 REAL NOT NULL
    )
    """,
)

_PACKAGING_COLUMNS = (
    "packaging_1",
    "packaging_1_discount",
    "packaging_2",
    "packaging_2_discount",
    "packaging_3",
    "packaging_3_discount",
)

_PRODUCT_COLUMNS = (
    "id",
    "product_id",
    "seller_id",
    "operation",
    "date",
    "discount_group",
    "unit",
    "unit_weight",
    "unit_volume",
    "typical_packaging",
    *_PACKAGING_COLUMNS,
    "delivery_in_weeks",
    "stock_item",
    "ean_code",
    "usage_unit",
    "usables_in_unit",
)

_PRICE_COLUMNS = (
    "id",
    "product_id",
    "price_group",
    "price",
    "date",
    "discount_group",
    "unit",
    "units_incl",
    *_PACKAGING_COLUMNS,
    "usage_unit",
    "usables_in_unit",
    "stock_item",
    "delivery_in_weeks",
)


def _upsert_sql(table: str, columns: Sequence[str], key: str = "id") -> str:
    """Build an insert that updates every non-key column on key conflict."""
    names = ", ".join(columns)
    params = ", ".join(f":{column}" for column in columns)
    updates = ", ".join(
        f"{column} = excluded.{column}" for column in columns if column != key
    )
    return (
        f"INSERT INTO {table} ({names}) VALUES ({params}) "
        f"ON CONFLICT ({key}) DO UPDATE SET {updates}"
    )


def _insert_missing(conn: Connection, table: str, values: Iterable[str]) -> None:
    rows = [{"id": value} for value in sorted(set(values)) if value]
    if rows:
        conn.execute(
            text(f"INSERT INTO {table} (id) VALUES (:id) ON CONFLICT DO NOTHING"),
            rows,
        )


def _by_category(records: Iterable[Any]) -> dict[Category, list[Any]]:
    grouped: dict[Category, list[Any]] = defaultdict(list)
    for record in records:
        grouped[record.category].append(record)
    return grouped


def _packaging(record: ProductRecord | PriceRecord) -> dict[str, Any]:
    return {column: getattr(record, column) for column in _PACKAGING_COLUMNS}


class SqlCatalogRepository:
    """Catalog repository backed by a sellers and a buyers database."""

    def __init__(self, sellers_dsn: str, buyers_dsn: str) -> None:
        self.sellers: Engine = create_engine(sellers_dsn, future=True, pool_pre_ping=True)
        self.buyers: Engine = create_engine(buyers_dsn, future=True, pool_pre_ping=True)

    def dispose(self) -> None:
        self.sellers.dispose()
        self.buyers.dispose()

    def create_schema(self) -> None:
        statements = list(_SELLERS_SCHEMA)
        for category in Category.partitions():
            statements.extend(
                statement.format(cat=category.value) for statement in _CATEGORY_SCHEMA
            )

        try:
            with self.sellers.begin() as conn:
                for statement in statements:
                    conn.execute(text(statement))
            with self.buyers.begin() as conn:
                for statement in _BUYERS_SCHEMA:
                    conn.execute(text(statement))
        except SQLAlchemyError as exc:
            raise StorageWriteFailed(f"Schema creation failed: {exc}") from exc

    def register_seller(self, seller_id: str, name: str) -> None:
        try:
            with self.sellers.begin() as conn:
                conn.execute(
                    text(
                        "INSERT INTO sellers (id, name) VALUES (:id, :name) "
                        "ON CONFLICT DO NOTHING"
                    ),
                    {"id": seller_id, "name": name},
                )
        except SQLAlchemyError as exc:
            raise StorageWriteFailed(
                f"Seller {seller_id} write to DB failed: {exc}",
                details={"seller_id": seller_id},
            ) from exc

    def save_products(
        self, seller_id: str, language: Language, products: Sequence[ProductRecord]
    ) -> None:
        for category, batch in _by_category(products).items():
            try:
                with self.sellers.begin() as conn:
                    self._write_products(conn, seller_id, language, category, batch)
            except SQLAlchemyError as exc:
                raise StorageWriteFailed(
                    f"Product write to DB failed for category {category.value}: {exc}",
                    details={"seller_id": seller_id, "category": category.value},
                ) from exc
            logger.info(
                "Stored %d %s products of seller %s in %s",
                len(batch),
                language.value,
                seller_id,
                category.value,
            )

    def _write_products(
        self,
        conn: Connection,
        seller_id: str,
        language: Language,
        category: Category,
        products: Sequence[ProductRecord],
    ) -> None:
        _insert_missing(conn, "units", (p.unit for p in products))
        _insert_missing(
            conn, "discount_groups", (p.discount_group for p in products if p.discount_group)
        )
        for found in {p.language for p in products}:
            conn.execute(
                text(
                    "INSERT INTO languages (id, name) VALUES (:id, :name) "
                    "ON CONFLICT DO NOTHING"
                ),
                {"id": found.db_index, "name": found.value},
            )

        conn.execute(
            text(
                "INSERT INTO products (id, category, tax_class) "
                "VALUES (:id, :category, :tax_class) "
                "ON CONFLICT (id) DO UPDATE SET tax_class = excluded.tax_class"
            ),
            [
                {"id": p.identifier, "category": category.value, "tax_class": p.tax_class}
                for p in products
            ],
        )

        translations = []
        rows = []
        for product in products:
            entry_id = f"{seller_id}{product.identifier}"
            translations.append(
                {
                    "id": f"{entry_id}{language.db_index}",
                    "lang": product.language.db_index,
                    "name": product.name,
                    "description": product.description,
                    "tags": product.search_tags,
                    "code": product.search_code,
                }
            )
            rows.append(
                {
                    "id": entry_id,
                    "product_id": product.identifier,
                    "seller_id": seller_id,
                    "operation": product.operation.value,
                    "date": product.date.as_timestamp(),
                    "discount_group": product.discount_group or "",
                    "unit": product.unit,
                    "unit_weight": product.unit_weight,
                    "unit_volume": product.unit_volume,
                    "typical_packaging": product.typical_packaging,
                    **_packaging(product),
                    "delivery_in_weeks": product.delivery_in_weeks,
                    "stock_item": int(product.stock_item),
                    "ean_code": product.ean_code,
                    "usage_unit": product.usage_unit,
                    "usables_in_unit": product.usables_in_unit,
                }
            )

        conn.execute(
            text(
                _upsert_sql(
                    f"product_{category.value}_t",
                    ("id", "lang", "name", "description", "tags", "code"),
                )
            ),
            translations,
        )
        conn.execute(
            text(_upsert_sql(f"products_{category.value}", _PRODUCT_COLUMNS)), rows
        )

    def save_prices(self, seller_id: str, prices: Sequence[PriceRecord]) -> None:
        for category, batch in _by_category(prices).items():
            try:
                with self.sellers.begin() as conn:
                    self._write_prices(conn, seller_id, category, batch)
            except SQLAlchemyError as exc:
                raise StorageWriteFailed(
                    f"Price write to DB failed for category {category.value}: {exc}",
                    details={"seller_id": seller_id, "category": category.value},
                ) from exc
            logger.info(
                "Stored %d prices of seller %s in %s", len(batch), seller_id, category.value
            )

    def _write_prices(
        self,
        conn: Connection,
        seller_id: str,
        category: Category,
        prices: Sequence[PriceRecord],
    ) -> None:
        _insert_missing(conn, "units", (p.unit for p in prices))
        _insert_missing(conn, "discount_groups", (p.discount_group for p in prices))
        _insert_missing(conn, "price_groups", (p.price_group for p in prices))

        rows = [
            {
                "id": f"{seller_id}{price.identifier}",
                "product_id": price.identifier,
                "price_group": price.price_group,
                "price": price.price,
                "date": price.date.as_timestamp(),
                "discount_group": price.discount_group,
                "unit": price.unit,
                "units_incl": price.units_incl,
                **_packaging(price),
                "usage_unit": price.usage_unit,
                "usables_in_unit": price.usables_in_unit,
                "stock_item": int(price.stock_item),
                "delivery_in_weeks": price.delivery_in_weeks,
            }
            for price in prices
        ]
        conn.execute(text(_upsert_sql(f"prices_{category.value}", _PRICE_COLUMNS)), rows)

    def save_discounts(
        self,
        buyer_id: str,
        seller_id: str,
        vat_percent: float,
        discounts: Sequence[DiscountRecord],
    ) -> str:
        # Buyer ids come from the seller and may collide across sellers.
        buyer_key = f"{buyer_id}{seller_id}"
        try:
            with self.buyers.begin() as conn:
                conn.execute(
                    text(
                        "INSERT INTO buyers (id, uuid, buyer_id, vat_percent) "
                        "VALUES (:id, :uuid, :buyer_id, :vat_percent) "
                        "ON CONFLICT DO NOTHING"
                    ),
                    {
                        "id": buyer_key,
                        "uuid": uuid.uuid4().hex,
                        "buyer_id": buyer_id,
                        "vat_percent": vat_percent,
                    },
                )
                if discounts:
                    conn.execute(
                        text(
                            _upsert_sql(
                                "discounts",
                                (
                                    "id",
                                    "buyer_id",
                                    "seller_id",
                                    "discount_group",
                                    "price_group",
                                    "percent_1",
                                    "percent_2",
                                ),
                            )
                        ),
                        [
                            {
                                "id": f"{buyer_key}{discount.discount_group}",
                                "buyer_id": buyer_key,
                                "seller_id": seller_id,
                                "discount_group": discount.discount_group,
                                "price_group": discount.price_group,
                                "percent_1": discount.percent_1,
                                "percent_2": discount.percent_2,
                            }
                            for discount in discounts
                        ],
                    )
        except SQLAlchemyError as exc:
            raise StorageWriteFailed(
                f"Discount write to DB failed for buyer {buyer_id}: {exc}",
                details={"buyer_id": buyer_id, "seller_id": seller_id},
            ) from exc

        logger.info(
            "Stored %d discounts of buyer %s from seller %s",
            len(discounts),
            buyer_id,
            seller_id,
        )
        return buyer_key

    def discount_groups(self) -> set[str]:
        return self._ids("discount_groups")

    def price_groups(self) -> set[str]:
        return self._ids("price_groups")

    def _ids(self, table: str) -> set[str]:
        try:
            with self.sellers.connect() as conn:
                return {row[0] for row in conn.execute(text(f"SELECT id FROM {table}"))}
        except SQLAlchemyError as exc:
            raise StorageWriteFailed(f"Failed to query {table}: {exc}") from exc
