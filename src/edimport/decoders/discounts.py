"""Buyer discount entry decoder."""

from edimport.decoders.fields import FieldKind, FieldSpec, RecordLayout, decode_fields
from edimport.models import DiscountRecord

DISCOUNT_LAYOUT = RecordLayout(
    name="discount",
    total_width=92,
    fields=(
        FieldSpec("marker", FieldKind.MARKER, 1, sentinel="R"),
        FieldSpec("discount_group", FieldKind.TEXT, 6),
        FieldSpec("identifier", FieldKind.TEXT, 25),
        FieldSpec("name", FieldKind.TEXT, 40),
        # 01 discount, 02 cumulative packaging discount, 03 non-cumulative
        FieldSpec("price_group", FieldKind.TEXT, 2),
        FieldSpec("percent_1", FieldKind.DECIMAL, 9, int_digits=7),
        FieldSpec("percent_2", FieldKind.DECIMAL, 9, int_digits=7),
    ),
)


def decode_discount(line: str) -> tuple[DiscountRecord, list[str]]:
    values, warnings = decode_fields(line, DISCOUNT_LAYOUT)
    return DiscountRecord(**values), warnings
