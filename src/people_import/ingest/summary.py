from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from people_import.parsing.types import CandidateRecord


RowClass = Literal["success", "error", "skipped"]


@dataclass(frozen=True)
class RowError:
    """A row that was not imported. `row` is 0 for run-level failures."""
    row: int
    message: str
    record: CandidateRecord | None = None


@dataclass(frozen=True)
class RowWarning:
    """A row that was skipped or imported in degraded form."""
    row: int
    message: str


@dataclass(frozen=True)
class ImportOutcome:
    """Schema for everything reported back about one import run."""
    success: bool
    success_count: int
    error_count: int
    skipped_count: int
    errors: tuple[RowError, ...]
    warnings: tuple[RowWarning, ...]
    summary: str

    def render_one_line(self) -> str:
        """How the outcome is formatted for the terminal."""
        return (
            f"people: success={self.success_count} errors={self.error_count} "
            f"skipped={self.skipped_count} warnings={len(self.warnings)} ok={str(self.success).lower()}"
        )


def render_summary(success_count: int, error_count: int, warning_count: int, skipped_count: int) -> str:
    """Human readable summary sentence for a completed run."""
    if error_count > 0:
        tail = f" and {warning_count} warnings" if warning_count else ""
        return f"Imported {success_count} people with {error_count} errors{tail}"
    tail = f" ({skipped_count} skipped as duplicates)" if skipped_count else ""
    return f"Successfully imported {success_count} people{tail}"


class OutcomeBuilder:
    """
    Mutable accumulator owned by one run; `build()` freezes it into an `ImportOutcome`.

    Each data row is classified exactly once as success, error or skipped.
    Several messages for the same row are merged into one entry per list.
    """

    def __init__(self) -> None:
        self._errors: dict[int, RowError] = {}
        self._warnings: dict[int, RowWarning] = {}
        self._classes: dict[int, RowClass] = {}

    ## -- per-row classification

    def add_success(self, row: int) -> None:
        self._classify(row, "success")

    def add_skipped(self, row: int, message: str) -> None:
        self._classify(row, "skipped")
        self.add_warning(row, message)

    def add_error(self, row: int, message: str, record: CandidateRecord | None = None) -> None:
        self._classify(row, "error")
        prev = self._errors.get(row)
        if prev is not None:
            message = f"{prev.message}; {message}"
            record = record or prev.record
        self._errors[row] = RowError(row=row, message=message, record=record)

    def add_warning(self, row: int, message: str) -> None:
        prev = self._warnings.get(row)
        if prev is not None:
            message = f"{prev.message}; {message}"
        self._warnings[row] = RowWarning(row=row, message=message)

    def _classify(self, row: int, cls: RowClass) -> None:
        current = self._classes.get(row)
        if current is not None and current != cls:
            raise ValueError(f"row {row} already classified as {current}, not {cls}")
        self._classes[row] = cls

    ## -- run-level failures

    @staticmethod
    def fatal(message: str, summary: str) -> ImportOutcome:
        """A run that stopped before any row was classified."""
        return ImportOutcome(
            success=False,
            success_count=0,
            error_count=1,
            skipped_count=0,
            errors=(RowError(row=0, message=message),),
            warnings=(),
            summary=summary,
        )

    def build_failed(self, message: str) -> ImportOutcome:
        """Freeze the rows handled so far plus one row-0 error for what aborted the run."""
        done = self.build()
        return ImportOutcome(
            success=False,
            success_count=done.success_count,
            error_count=done.error_count + 1,
            skipped_count=done.skipped_count,
            errors=(RowError(row=0, message=message), *done.errors),
            warnings=done.warnings,
            summary=f"Import failed: {message}",
        )

    ## -- final

    def count(self, cls: RowClass) -> int:
        return sum(1 for c in self._classes.values() if c == cls)

    def build(self) -> ImportOutcome:
        success_count = self.count("success")
        skipped_count = self.count("skipped")
        errors = tuple(self._errors[r] for r in sorted(self._errors))
        warnings = tuple(self._warnings[r] for r in sorted(self._warnings))
        error_count = len(errors)
        return ImportOutcome(
            success=error_count == 0 and success_count > 0,
            success_count=success_count,
            error_count=error_count,
            skipped_count=skipped_count,
            errors=errors,
            warnings=warnings,
            summary=render_summary(success_count, error_count, len(warnings), skipped_count),
        )
