"""Operator-facing import log."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, TextIO

logger = logging.getLogger(__name__)


class DiagnosticsLog:
    """Append-only per-run log of import starts and decoder warnings.

    Passed explicitly to whatever imports files; it owns no file handle of its
    own so tests can hand it a `StringIO`.
    """

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self.warning_count = 0

    @classmethod
    def open(cls, path: Path) -> "DiagnosticsLog":
        path.parent.mkdir(parents=True, exist_ok=True)
        return cls(path.open("w", encoding="utf-8"))

    def close(self) -> None:
        self._stream.close()

    def started(self, name: str, when: Optional[datetime] = None) -> None:
        moment = when or datetime.now()
        self._write(f"{name} import started on: {moment:%d.%m.%y %H:%M:%S}")

    def record(self, path: Path, warnings: Iterable[str]) -> int:
        """Write the unique warnings of one decoding pass, sorted.

        Returns how many were written.
        """
        unique = sorted(set(warnings))
        if unique:
            self._write(f"File {path} produced {len(unique)} warnings:")
            logger.warning(
                "File %s produced %d warnings. All warnings are logged.",
                path,
                len(unique),
            )
        for warning in unique:
            self._write(f"Warning: {warning}")

        self.warning_count += len(unique)
        return len(unique)

    def _write(self, line: str) -> None:
        self._stream.write(line + "\n")
        self._stream.flush()
