"""Buyer/seller header lines that open every EDI file."""

import logging
from dataclasses import dataclass
from itertools import islice
from pathlib import Path
from typing import Optional

from edimport.codes import Ownership
from edimport.decoders.fields import FieldKind, FieldSpec, RecordLayout, decode_fields
from edimport.models import PartyIdentity

logger = logging.getLogger(__name__)

HEADER_LINE_COUNT = 2

HEADER_LAYOUT = RecordLayout(
    name="header",
    total_width=23,
    fields=(
        FieldSpec("marker", FieldKind.MARKER, 1, sentinel="O"),
        FieldSpec("ownership", FieldKind.OWNERSHIP, 2),
        FieldSpec("id", FieldKind.TEXT, 17),
        FieldSpec("code", FieldKind.TEXT, 3),
    ),
)


@dataclass(frozen=True)
class EdiHeader:
    """Parties named in the two header lines of a file."""

    buyer: Optional[PartyIdentity]
    seller: Optional[PartyIdentity]

    def party(self, ownership: Ownership) -> Optional[PartyIdentity]:
        if ownership is Ownership.SELLER:
            return self.seller
        if ownership is Ownership.BUYER:
            return self.buyer
        return None


def decode_party(line: str) -> PartyIdentity:
    """Decode one header line into a party identity."""
    values, _ = decode_fields(line, HEADER_LAYOUT)
    return PartyIdentity(**values)


def open_party(root: Path, line: str) -> tuple[PartyIdentity, Path]:
    """Decode a header line and resolve the party's home directory.

    Seller homes are created on the way. Buyer homes are not: a buyer only
    gets a directory under the seller it trades with.
    """
    party = decode_party(line)
    home = party.party_dir(root)
    if party.ownership is Ownership.SELLER:
        home.mkdir(parents=True, exist_ok=True)
        logger.debug("Seller home ready at %s", home)
    return party, home


def read_header(path: Path) -> EdiHeader:
    """Read the two header lines of an EDI file."""
    buyer: Optional[PartyIdentity] = None
    seller: Optional[PartyIdentity] = None

    with path.open("r", encoding="utf-8") as handle:
        for raw in islice(handle, HEADER_LINE_COUNT):
            party = decode_party(raw.rstrip("\r\n"))
            if party.ownership is Ownership.BUYER:
                buyer = party
            else:
                seller = party

    return EdiHeader(buyer=buyer, seller=seller)
