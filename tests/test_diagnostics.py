"""Tests for the operator diagnostics log."""

import io
from datetime import datetime
from pathlib import Path

from edimport.diagnostics import DiagnosticsLog


def test_started_line_format():
    stream = io.StringIO()
    log = DiagnosticsLog(stream)

    log.started("abc123-products.txt", when=datetime(2024, 3, 7, 9, 5, 1))

    assert stream.getvalue() == "abc123-products.txt import started on: 07.03.24 09:05:01\n"


def test_record_sorts_and_deduplicates():
    stream = io.StringIO()
    log = DiagnosticsLog(stream)

    count = log.record(Path("edi/p.txt"), ["b warning", "a warning", "b warning"])

    assert count == 2
    assert log.warning_count == 2
    assert stream.getvalue().splitlines() == [
        "File edi/p.txt produced 2 warnings:",
        "Warning: a warning",
        "Warning: b warning",
    ]


def test_record_without_warnings_writes_nothing():
    stream = io.StringIO()
    log = DiagnosticsLog(stream)

    assert log.record(Path("edi/p.txt"), []) == 0
    assert stream.getvalue() == ""


def test_open_truncates_previous_run(tmp_path: Path):
    path = tmp_path / "logs" / "import.log"
    path.parent.mkdir()
    path.write_text("old run\n")

    log = DiagnosticsLog.open(path)
    log.started("p.txt")
    log.close()

    content = path.read_text()
    assert "old run" not in content
    assert content.startswith("p.txt import started on: ")
