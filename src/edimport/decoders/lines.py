"""Line classification and whole-document decoding.

Works on any iterable of text lines (an open file or an in-memory buffer) and
has no side effects.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Generic, Iterable, Iterator, Optional, TypeVar

from edimport.decoders.header import decode_party
from edimport.exceptions import EdiError
from edimport.models import PartyIdentity

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT")
EntryDecoder = Callable[[str], tuple[RecordT, list[str]]]


class LineKind(Enum):
    BUYER = "buyer"
    SELLER = "seller"
    ENTRY = "entry"


@dataclass(frozen=True)
class EdiLine:
    kind: LineKind
    text: str
    number: int


@dataclass
class DecodedDocument(Generic[RecordT]):
    """Header parties, decoded entries and warnings of one EDI file."""

    buyer: Optional[PartyIdentity] = None
    seller: Optional[PartyIdentity] = None
    seller_line: str = ""
    records: list[RecordT] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def classify_line(
    raw: str, index: int, required_length: int
) -> tuple[Optional[EdiLine], list[str]]:
    """Classify a physical line by its position and check its length.

    Returns `None` for lines that should not be decoded at all.
    """
    text = raw.rstrip("\r\n")
    number = index + 1

    if not text.strip():
        return None, []

    if index == 0:
        return EdiLine(LineKind.BUYER, text, number), []
    if index == 1:
        return EdiLine(LineKind.SELLER, text, number), []

    length = len(text)
    if length < required_length:
        return EdiLine(LineKind.ENTRY, text, number), [
            f"Line: {number}, length {length} is smaller than the expected length "
            f"{required_length}"
        ]

    if length > required_length:
        trimmed = text.rstrip()
        if len(trimmed) > required_length:
            logger.error("%s", trimmed)
            return None, [
                f"Skipping line {number}, length {len(trimmed)} is greater than "
                f"expected {required_length} ({trimmed})"
            ]
        return EdiLine(LineKind.ENTRY, trimmed, number), []

    return EdiLine(LineKind.ENTRY, text, number), []


def iter_edi_lines(
    lines: Iterable[str], required_length: int
) -> Iterator[tuple[Optional[EdiLine], list[str]]]:
    for index, raw in enumerate(lines):
        yield classify_line(raw, index, required_length)


def decode_document(
    lines: Iterable[str],
    required_length: int,
    decode_entry: EntryDecoder,
    *,
    label: str = "Record",
) -> DecodedDocument:
    """Decode headers and every entry line of a document.

    Header failures propagate and abort the document. Entry failures,
    including entries filtered out by language, become warnings and the line
    is skipped.
    """
    document: DecodedDocument = DecodedDocument()

    for line, warnings in iter_edi_lines(lines, required_length):
        document.warnings.extend(warnings)
        if line is None:
            continue

        if line.kind is LineKind.BUYER:
            document.buyer = decode_party(line.text)
            continue

        if line.kind is LineKind.SELLER:
            document.seller = decode_party(line.text)
            document.seller_line = line.text
            continue

        try:
            record, entry_warnings = decode_entry(line.text)
        except EdiError as exc:
            logger.debug("%s read error '%s', line: %d", label, exc.message, line.number)
            document.warnings.append(f"{label} read: line {line.number}: {exc.message}")
            continue

        document.warnings.extend(entry_warnings)
        document.records.append(record)

    return document
