"""Product catalog entry decoder."""

from typing import Optional

from edimport.codes import Language
from edimport.decoders.fields import FieldKind, FieldSpec, RecordLayout, decode_fields
from edimport.models import ProductRecord

PRODUCT_LAYOUT = RecordLayout(
    name="product",
    total_width=232,
    fields=(
        FieldSpec("marker", FieldKind.MARKER, 1, sentinel="R"),
        FieldSpec("category", FieldKind.CATEGORY, 1),
        FieldSpec("identifier", FieldKind.REQUIRED_TEXT, 9, label="Product identifier"),
        FieldSpec("operation", FieldKind.OPERATION, 1),
        FieldSpec("language", FieldKind.LANGUAGE, 3),
        FieldSpec("date", FieldKind.DATE, 8),
        FieldSpec("name", FieldKind.REQUIRED_TEXT, 35, label="Product name"),
        FieldSpec(
            "description", FieldKind.TOLERANT_TEXT, 35, label="Product description"
        ),
        FieldSpec("search_tags", FieldKind.OPTIONAL_TEXT, 20),
        FieldSpec("search_code", FieldKind.OPTIONAL_TEXT, 7),
        FieldSpec("discount_group", FieldKind.OPTIONAL_TEXT, 6),
        FieldSpec("unit", FieldKind.REQUIRED_TEXT, 3, label="Product unit"),
        # Weight in kg and volume in litres, three decimals.
        FieldSpec("unit_weight", FieldKind.OPTIONAL_DECIMAL, 7, int_digits=4),
        FieldSpec("unit_volume", FieldKind.OPTIONAL_DECIMAL, 7, int_digits=4),
        FieldSpec("typical_packaging", FieldKind.OPTIONAL_COUNT, 9),
        FieldSpec("packaging_1", FieldKind.OPTIONAL_DECIMAL, 9, int_digits=7),
        FieldSpec("packaging_1_discount", FieldKind.OPTIONAL_DECIMAL, 5, int_digits=3),
        FieldSpec("packaging_2", FieldKind.OPTIONAL_DECIMAL, 9, int_digits=7),
        FieldSpec("packaging_2_discount", FieldKind.OPTIONAL_DECIMAL, 5, int_digits=3),
        FieldSpec("packaging_3", FieldKind.OPTIONAL_DECIMAL, 9, int_digits=7),
        FieldSpec("packaging_3_discount", FieldKind.OPTIONAL_DECIMAL, 5, int_digits=3),
        FieldSpec("tax_class", FieldKind.OPTIONAL_TEXT, 3),
        FieldSpec("delivery_in_weeks", FieldKind.OPTIONAL_COUNT, 2),
        FieldSpec("stock_item", FieldKind.STOCK_FLAG, 1, sentinel="E"),
        FieldSpec("ean_code", FieldKind.OPTIONAL_TEXT, 20),
        FieldSpec("usage_unit", FieldKind.OPTIONAL_TEXT, 3),
        # Default 000010000, i.e. one usage unit per unit.
        FieldSpec("usables_in_unit", FieldKind.DECIMAL, 9, int_digits=5),
    ),
)


def decode_product(
    line: str, language_filter: Optional[Language] = None
) -> tuple[ProductRecord, list[str]]:
    """Decode a product entry line.

    With `language_filter` set, entries in any other language raise
    `LanguageMismatch` so one file can be decoded once per language.
    """
    values, warnings = decode_fields(
        line, PRODUCT_LAYOUT, language_filter=language_filter
    )
    return ProductRecord(**values), warnings
