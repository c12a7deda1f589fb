from __future__ import annotations

from pathlib import Path

from people_import.ingest.summary import ImportOutcome
from people_import.parsing.tokenizer import format_row


REJECTS_HEADER = ("row", "kind", "message")


def write_rejects(path: Path, outcome: ImportOutcome) -> int:
    """
    Write every error and warning of `outcome` as CSV, ordered by row.
    Returns the number of data lines written (the header is always written).
    """
    lines = [(e.row, "error", e.message) for e in outcome.errors]
    lines += [(w.row, "warning", w.message) for w in outcome.warnings]
    lines.sort(key=lambda t: (t[0], t[1]))

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as f:
        f.write(format_row(REJECTS_HEADER) + "\r\n")
        for row, kind, message in lines:
            f.write(format_row((str(row), kind, message)) + "\r\n")
    return len(lines)
