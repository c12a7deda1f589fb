from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping


RawRow = tuple[str, ...]        # positional with the header, straight from the tokenizer

# every imported lead starts here; later states belong to the enrichment worker
DEFAULT_ENRICHMENT_STATUS = "pending"


@dataclass(frozen=True, slots=True)
class ParsedFile:
    """Tokenized file: trimmed header names and every non-blank data row."""
    header: tuple[str, ...]
    rows: list[RawRow]


@dataclass(slots=True)
class CandidateRecord:
    """
    A `leads` row being built up by the pipeline.

    Filled by the mapper, then `company_id` is set by the company resolver
    and `user_id` right before commit. Every field except `source_row` is optional.
    """
    source_row: int                         # 1-based, header not counted
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    job_title: str | None = None
    address: str | None = None
    company: str | None = None
    company_website: str | None = None      # hint only, stored on the company
    show_name: str | None = None
    linkedin_url: str | None = None
    status: str | None = None
    quality_rank: str | None = None
    score: float | None = None
    company_id: str | None = None
    user_id: str | None = None
    enrichment_status: str | None = DEFAULT_ENRICHMENT_STATUS

    @property
    def display_name(self) -> str | None:
        """`first last`, or `None` when neither part is set."""
        full = " ".join(p for p in (self.first_name, self.last_name) if p)
        return full or None

    def get(self, name: str) -> Any:
        return getattr(self, name)

    def set(self, name: str, value: Any) -> None:
        if name == "source_row" or name not in LEAD_FIELDS:
            raise KeyError(f"unknown lead field: {name}")
        setattr(self, name, value)

    def to_mapping(self) -> Mapping[str, Any]:
        """
        Values ready for the `leads` insert. Matches `LEAD_COLUMNS`
        (`company_website` is not a lead column, it only feeds the company).
        """
        return {c: getattr(self, c) for c in LEAD_COLUMNS}


# every settable record field (excludes `source_row`)
LEAD_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(CandidateRecord) if f.name != "source_row")

# columns written to the `leads` table
LEAD_COLUMNS: tuple[str, ...] = tuple(f for f in LEAD_FIELDS if f != "company_website")
