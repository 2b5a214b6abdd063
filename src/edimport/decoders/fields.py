"""Positional field extraction and packed value reconstruction.

Every record kind is described by a `RecordLayout`: an ordered table of
`FieldSpec` entries whose widths add up to the documented line length. A
single driver, `decode_fields`, walks the table with `decode_field`, the only
function that touches raw character offsets.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from edimport.codes import Category, Language, Operation, Ownership
from edimport.exceptions import (
    EmptyRequiredField,
    InvalidRowMarker,
    LanguageMismatch,
    MalformedDate,
    MalformedNumber,
    SchemaSelfCheckFailed,
    TruncatedRecord,
)
from edimport.models import EdiDate

DATE_LENGTH = 8


class FieldKind(Enum):
    MARKER = "marker"
    CATEGORY = "category"
    OPERATION = "operation"
    LANGUAGE = "language"
    OWNERSHIP = "ownership"
    DATE = "date"
    TEXT = "text"
    REQUIRED_TEXT = "required_text"
    TOLERANT_TEXT = "tolerant_text"
    OPTIONAL_TEXT = "optional_text"
    DECIMAL = "decimal"
    OPTIONAL_DECIMAL = "optional_decimal"
    COUNT = "count"
    OPTIONAL_COUNT = "optional_count"
    STOCK_FLAG = "stock_flag"


@dataclass(frozen=True)
class FieldSpec:
    """One fixed-width column of a record layout."""

    name: str
    kind: FieldKind
    width: int
    label: str = ""
    int_digits: int = 0
    sentinel: str = ""
    trailing: bool = False
    trailing_warning: str = ""


@dataclass(frozen=True)
class RecordLayout:
    """Ordered field table of one record kind.

    Building a layout whose widths do not sum to `total_width` raises
    `SchemaSelfCheckFailed`, so a drifted table fails at import time before
    any file is read.
    """

    name: str
    total_width: int
    fields: tuple[FieldSpec, ...]

    def __post_init__(self) -> None:
        total = sum(spec.width for spec in self.fields)
        if total != self.total_width:
            raise SchemaSelfCheckFailed(
                f"{self.name} layout widths sum to {total}, expected {self.total_width}",
                details={"layout": self.name, "total": total},
            )


def decode_field(line: str, cursor: int, width: int) -> tuple[str, int]:
    """Extract `width` characters at `cursor`, trimmed, and the advanced cursor."""
    end = cursor + width
    if len(line) < end:
        raise TruncatedRecord(
            f"Failed to extract [{cursor}-{width}] from line '{line}'",
            details={"cursor": cursor, "width": width, "length": len(line)},
        )
    return line[cursor:end].strip(), end


def _is_digits(value: str) -> bool:
    # str.isdigit() also accepts superscripts and other non-ASCII digits.
    return value.isascii() and value.isdigit()


def reconstruct_decimal(value: str, int_digits: int) -> float:
    """Rebuild a packed decimal: `int_digits` integer digits, the rest fraction."""
    if len(value) <= int_digits:
        raise MalformedNumber(f"Unable to split decimals from '{value}' string")

    integer_part = value[:int_digits]
    fraction_part = value[int_digits:]
    if not _is_digits(integer_part):
        raise MalformedNumber(
            f"Failed to read integers ({integer_part}) from string '{value}' as number"
        )
    if not _is_digits(fraction_part):
        raise MalformedNumber(
            f"Failed to read decimals ({fraction_part}) from string '{value}' as number"
        )
    return float(Decimal(f"{int(integer_part)}.{fraction_part}"))


def parse_date(value: str) -> EdiDate:
    if len(value) != DATE_LENGTH:
        raise MalformedDate(
            f"Date value '{value}' should be in format 'yyyymmdd'. "
            f"String {DATE_LENGTH} chars long that is."
        )
    return EdiDate(year=value[:4], month=value[4:6], day=value[6:])


def parse_count(value: str) -> int:
    if not value.isascii():
        raise MalformedNumber(f"Failed to read '{value}' as number")
    try:
        return int(value)
    except ValueError as exc:
        raise MalformedNumber(f"Failed to read '{value}' as number") from exc


def _optional_decimal(value: str, int_digits: int) -> Optional[float]:
    if len(value) <= int_digits:
        return None
    number = reconstruct_decimal(value, int_digits)
    # Zero means "not set" for optional amounts.
    if number == 0.0:
        return None
    return number


def decode_fields(
    line: str,
    layout: RecordLayout,
    *,
    language_filter: Optional[Language] = None,
) -> tuple[dict[str, Any], list[str]]:
    """Decode one line into field values according to `layout`.

    Returns the values keyed by field name and the warnings raised on the way.
    """
    values: dict[str, Any] = {}
    warnings: list[str] = []
    cursor = 0

    for spec in layout.fields:
        try:
            raw, cursor = decode_field(line, cursor, spec.width)
        except TruncatedRecord:
            if spec.trailing:
                warnings.append(spec.trailing_warning)
                break
            raise

        kind = spec.kind
        if kind is FieldKind.MARKER:
            if raw != spec.sentinel:
                raise InvalidRowMarker(
                    f"Row identifier is fixed '{spec.sentinel}', found '{raw}'"
                )
            continue

        if kind is FieldKind.CATEGORY:
            value: Any = Category.from_edi_code(raw)
        elif kind is FieldKind.OPERATION:
            value = Operation.from_edi_code(raw)
        elif kind is FieldKind.LANGUAGE:
            value = Language.from_name(raw)
            if language_filter is not None and value is not language_filter:
                raise LanguageMismatch(
                    f"Language filter set to '{language_filter.value}' "
                    f"and product lang is '{value.value}'"
                )
        elif kind is FieldKind.OWNERSHIP:
            value = Ownership.from_token(raw)
        elif kind is FieldKind.DATE:
            value = parse_date(raw)
        elif kind is FieldKind.TEXT:
            value = raw
        elif kind is FieldKind.REQUIRED_TEXT:
            if not raw:
                raise EmptyRequiredField(f"{spec.label} is an empty string")
            value = raw
        elif kind is FieldKind.TOLERANT_TEXT:
            if not raw:
                warnings.append(
                    f"[{values.get('identifier', '')}]: {spec.label} is an empty string"
                )
            value = raw
        elif kind is FieldKind.OPTIONAL_TEXT:
            value = raw or None
        elif kind is FieldKind.DECIMAL:
            value = reconstruct_decimal(raw, spec.int_digits)
        elif kind is FieldKind.OPTIONAL_DECIMAL:
            value = _optional_decimal(raw, spec.int_digits)
        elif kind is FieldKind.COUNT:
            count = parse_count(raw)
            value = count if count > 0 else 0
        elif kind is FieldKind.OPTIONAL_COUNT:
            count = parse_count(raw) if raw else 0
            value = count if count > 0 else None
        elif kind is FieldKind.STOCK_FLAG:
            value = raw != spec.sentinel
        else:
            raise SchemaSelfCheckFailed(f"Unhandled field kind {kind} in {layout.name}")

        values[spec.name] = value

    return values, warnings
