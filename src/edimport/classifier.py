"""Structural detection of EDI file kinds."""

import logging
from enum import Enum
from itertools import islice
from pathlib import Path
from typing import Callable, Optional

from edimport.decoders.discounts import decode_discount
from edimport.decoders.header import HEADER_LINE_COUNT
from edimport.decoders.prices import decode_price
from edimport.decoders.products import decode_product
from edimport.exceptions import EdiError

logger = logging.getLogger(__name__)


class FileKind(str, Enum):
    PRODUCT = "product"
    PRICE = "price"
    DISCOUNT = "discount"
    UNRECOGNIZED = "unrecognized"


# Probe order matters: a product line is also long enough to pass as a price.
_PROBES: tuple[tuple[FileKind, Callable[[str], object]], ...] = (
    (FileKind.PRODUCT, decode_product),
    (FileKind.PRICE, decode_price),
    (FileKind.DISCOUNT, decode_discount),
)


def _first_business_line(path: Path) -> Optional[str]:
    with path.open("r", encoding="utf-8") as handle:
        for raw in islice(handle, HEADER_LINE_COUNT, None):
            line = raw.rstrip("\r\n")
            if line.strip():
                return line
    return None


def probe_kind(path: Path) -> FileKind:
    """Decide the kind of a file from its first business line.

    The line is offered to each record decoder in turn; the first that decodes
    it without error names the kind.
    """
    line = _first_business_line(path)
    if line is None:
        logger.debug("No business line in %s", path)
        return FileKind.UNRECOGNIZED

    for kind, decoder in _PROBES:
        try:
            decoder(line)
        except EdiError as exc:
            logger.debug("%s probe failed for %s: %s", kind.value, path, exc.message)
            continue
        return kind

    return FileKind.UNRECOGNIZED


def classify(path: Path, *, discard_unrecognized: bool = True) -> FileKind:
    """Classify a file, deleting it when no record decoder accepts it."""
    kind = probe_kind(path)
    if kind is FileKind.UNRECOGNIZED and discard_unrecognized:
        logger.warning("Unrecognized EDI file %s, removing", path)
        path.unlink(missing_ok=True)
    return kind
