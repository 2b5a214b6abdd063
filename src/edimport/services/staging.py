"""Staging of incoming EDI files into the working directory."""

import logging
import uuid
from pathlib import Path

from edimport.decoders.header import read_header
from edimport.exceptions import EdiError

logger = logging.getLogger(__name__)

DOWNLOADS_DIR_NAME = "downloads"
UPLOADS_DIR_NAME = "uploads"
STAGING_DIR_NAME = "edi"
ARCHIVE_SUFFIXES = (".zip",)


def decode_text(raw: bytes) -> str:
    """Decode file bytes as strict UTF-8, falling back to Latin-1."""
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        logger.debug("Content is not UTF-8, reading as Latin-1")
        return raw.decode("latin-1")


def normalize_to_utf8(source: Path, target: Path) -> Path:
    """Move `source` to `target` as UTF-8 text without blank lines.

    The header of the result is validated; an invalid header removes the
    staged copy and raises.
    """
    text = decode_text(source.read_bytes())
    lines = [line for line in text.splitlines() if line.strip()]

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
    source.unlink()

    try:
        read_header(target)
    except EdiError:
        target.unlink(missing_ok=True)
        raise

    return target


def staged_name(name: str) -> str:
    """Prefix a file name so repeated deliveries never collide in staging."""
    return f"{uuid.uuid4().hex[:10]}-{name}"


def collect_incoming(root: Path, dir_name: str) -> list[tuple[Path, str]]:
    """Stage every file of `root/dir_name` for import.

    Returns `(staged_path, staged_name)` pairs in name order. Files whose
    content cannot be staged are deleted.
    """
    incoming_dir = root / dir_name
    incoming_dir.mkdir(parents=True, exist_ok=True)
    staging_dir = root / STAGING_DIR_NAME

    staged: list[tuple[Path, str]] = []
    for path in sorted(incoming_dir.iterdir()):
        if path.is_dir():
            logger.warning("%s dir has unexpected subdirectory '%s'", dir_name, path.name)
            continue

        if path.name.lower().endswith(ARCHIVE_SUFFIXES):
            logger.warning("Archive %s must be extracted before import, skipping", path)
            continue

        name = staged_name(path.name)
        try:
            staged.append((normalize_to_utf8(path, staging_dir / name), name))
        except EdiError as exc:
            logger.warning(
                "Failed to stage source file '%s' (%s): %s", path.name, path, exc.message
            )
            path.unlink(missing_ok=True)

    return staged


def archive_file(path: Path, target_dir: Path, name: str) -> Path:
    """Move an imported file into a party archive directory."""
    target_dir.mkdir(parents=True, exist_ok=True)
    destination = target_dir / name
    path.replace(destination)
    logger.debug("Archived %s to %s", path, destination)
    return destination
