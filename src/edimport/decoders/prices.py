"""Price list entry decoder."""

from edimport.decoders.fields import FieldKind, FieldSpec, RecordLayout, decode_fields
from edimport.models import PriceRecord

PRICE_LAYOUT = RecordLayout(
    name="price",
    total_width=100,
    fields=(
        FieldSpec("marker", FieldKind.MARKER, 1, sentinel="R"),
        FieldSpec("category", FieldKind.CATEGORY, 1),
        FieldSpec(
            "identifier",
            FieldKind.REQUIRED_TEXT,
            9,
            label="Product identifier in price",
        ),
        FieldSpec("price_group", FieldKind.REQUIRED_TEXT, 2, label="Price group"),
        FieldSpec("price", FieldKind.DECIMAL, 9, int_digits=7),
        FieldSpec("date", FieldKind.DATE, 8),
        FieldSpec(
            "discount_group",
            FieldKind.REQUIRED_TEXT,
            6,
            label="Product discount group in price",
        ),
        FieldSpec("unit", FieldKind.REQUIRED_TEXT, 3, label="Price unit"),
        FieldSpec("units_incl", FieldKind.COUNT, 4),
        FieldSpec("packaging_1", FieldKind.OPTIONAL_DECIMAL, 9, int_digits=7),
        FieldSpec("packaging_1_discount", FieldKind.OPTIONAL_DECIMAL, 5, int_digits=3),
        FieldSpec("packaging_2", FieldKind.OPTIONAL_DECIMAL, 9, int_digits=7),
        FieldSpec("packaging_2_discount", FieldKind.OPTIONAL_DECIMAL, 5, int_digits=3),
        FieldSpec("packaging_3", FieldKind.OPTIONAL_DECIMAL, 9, int_digits=7),
        FieldSpec("packaging_3_discount", FieldKind.OPTIONAL_DECIMAL, 5, int_digits=3),
        FieldSpec("usage_unit", FieldKind.OPTIONAL_TEXT, 3),
        FieldSpec("usables_in_unit", FieldKind.DECIMAL, 9, int_digits=5),
        FieldSpec("stock_item", FieldKind.STOCK_FLAG, 1, sentinel="E"),
        # Some suppliers leave this column out entirely; "00" means empty.
        FieldSpec(
            "delivery_in_weeks",
            FieldKind.OPTIONAL_COUNT,
            2,
            trailing=True,
            trailing_warning=(
                "Optional last value in price catalog ignored. "
                "Should be '00' for empty."
            ),
        ),
    ),
)


def decode_price(line: str) -> tuple[PriceRecord, list[str]]:
    values, warnings = decode_fields(line, PRICE_LAYOUT)
    return PriceRecord(**values), warnings
