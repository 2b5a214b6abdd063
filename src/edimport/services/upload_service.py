"""Upload-related service helpers."""

import hashlib
from pathlib import Path
from typing import BinaryIO

from fastapi import HTTPException, status

from edimport.services.staging import UPLOADS_DIR_NAME, staged_name

UPLOAD_CHUNK_SIZE = 1024 * 1024  # 1 MB


def save_upload_with_limit(
    source: BinaryIO, destination: Path, max_file_size: int
) -> tuple[int, str]:
    """Stream upload to disk while enforcing max file size.

    A rejected upload leaves no partial file behind.
    """
    source.seek(0)
    total_bytes = 0
    digest = hashlib.sha256()

    try:
        with destination.open("wb") as output_file:
            while True:
                chunk = source.read(UPLOAD_CHUNK_SIZE)
                if not chunk:
                    break

                total_bytes += len(chunk)
                if total_bytes > max_file_size:
                    raise HTTPException(
                        status_code=status.HTTP_413_CONTENT_TOO_LARGE,
                        detail=(
                            f"File too large: {total_bytes:,} bytes "
                            f"(max {max_file_size:,} bytes)"
                        ),
                    )

                output_file.write(chunk)
                digest.update(chunk)
    except HTTPException:
        destination.unlink(missing_ok=True)
        raise

    return total_bytes, digest.hexdigest()


def store_upload(
    source: BinaryIO, filename: str, data_dir: Path, max_file_size: int
) -> tuple[Path, int, str]:
    """Store an uploaded EDI file in the uploads directory for the next run."""
    uploads_dir = data_dir / UPLOADS_DIR_NAME
    uploads_dir.mkdir(parents=True, exist_ok=True)
    destination = uploads_dir / staged_name(Path(filename).name)
    total_bytes, digest = save_upload_with_limit(source, destination, max_file_size)
    return destination, total_bytes, digest
