"""Duplicate detection against already archived files."""

import filecmp
import logging
from pathlib import Path
from typing import Optional

from edimport.codes import Ownership
from edimport.decoders.header import EdiHeader, read_header
from edimport.exceptions import EdiError, InvalidOwnership
from edimport.models import PartyIdentity

logger = logging.getLogger(__name__)

ARCHIVE_DIR_NAME = "edi"


def archive_dir(root: Path, header: EdiHeader, ownership: Ownership) -> Optional[Path]:
    """Archive directory of the party owning a file with `header`.

    Returns `None` when the header lacks a party needed to build the path.
    """
    seller = header.seller
    if seller is None:
        return None

    seller_home = seller.party_dir(root)
    if ownership is Ownership.SELLER:
        return seller_home / ARCHIVE_DIR_NAME
    if ownership is Ownership.BUYER:
        if header.buyer is None:
            return None
        return seller_home / Ownership.BUYER.dir_name / header.buyer.id / ARCHIVE_DIR_NAME
    raise InvalidOwnership("Can't resolve paths to shared ownership.")


def _same_party(candidate: Path, ownership: Ownership, party: PartyIdentity) -> bool:
    try:
        header = read_header(candidate)
    except (EdiError, OSError, UnicodeDecodeError) as exc:
        logger.debug("Skipping archived file %s: %s", candidate, exc)
        return False
    return header.party(ownership) == party


def already_imported(root: Path, ownership: Ownership, path: Path) -> bool:
    """Check whether `path` duplicates a file already archived for its party.

    Candidates are archived files whose header names the same party in the
    same role. Sizes are compared first, then contents byte for byte. When a
    duplicate is found the incoming file is deleted.
    """
    header = read_header(path)
    party = header.party(ownership)
    directory = archive_dir(root, header, ownership)
    if party is None or directory is None or not directory.is_dir():
        return False

    size = path.stat().st_size
    for candidate in sorted(directory.iterdir()):
        if not candidate.is_file() or candidate.resolve() == path.resolve():
            continue
        if not _same_party(candidate, ownership, party):
            continue
        if candidate.stat().st_size != size:
            continue
        if filecmp.cmp(candidate, path, shallow=False):
            logger.info("%s already imported as %s, removing", path, candidate)
            path.unlink()
            return True

    return False
