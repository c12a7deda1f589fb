from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence

from .primitives import (
    DEFAULT_STATUS,
    IssueCode,
    ParseError,
    SoftIssue,
    normalize_cell,
    normalize_status,
    parse_email,
    parse_quality_rank,
    parse_score,
    parse_text,
    split_full_name,
)
from .types import CandidateRecord, RawRow

# Typing:
# Parser turns a trimmed, non-empty cell into a value (or raises).
# Assigner writes that value onto the record.
Parser = Callable[[str], Any]
Assigner = Callable[[CandidateRecord, Any], None]


@dataclass(frozen=True, slots=True)
class FieldMapping:
    """One `source column -> target field` rule of a mapping table."""
    source_column: str          # CSV header name, matched after trimming
    target_field: str           # key of `TARGET_FIELDS`
    required: bool = False      # empty value is a hard row error


MappingTable = Sequence[FieldMapping]


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """How a target field's value is parsed and written."""
    target: str
    parser: Parser
    assign: Assigner


@dataclass(frozen=True, slots=True)
class MapResult:
    """
    Outcome of mapping one row.
    `record` is `None` whenever `errors` is non-empty.
    """
    record: CandidateRecord | None
    errors: tuple[ParseError, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def error_messages(self) -> list[str]:
        return [e.detail for e in self.errors]



## -- target fields

def _setter(name: str) -> Assigner:
    def assign(record: CandidateRecord, value: Any) -> None:
        record.set(name, value)
    return assign


def _assign_full_name(record: CandidateRecord, value: tuple[str, str | None]) -> None:
    """A combined `Name` column never overwrites explicit first/last name columns."""
    if record.first_name is None and record.last_name is None:
        record.first_name, record.last_name = value


def _text(name: str) -> FieldSpec:
    return FieldSpec(target=name, parser=parse_text, assign=_setter(name))


TARGET_FIELDS: dict[str, FieldSpec] = {
    spec.target: spec
    for spec in (
        _text("first_name"),
        _text("last_name"),
        FieldSpec(target="name", parser=split_full_name, assign=_assign_full_name),
        FieldSpec(target="email", parser=parse_email, assign=_setter("email")),
        _text("phone"),
        _text("job_title"),
        _text("address"),
        _text("company"),
        _text("company_website"),
        _text("show_name"),
        _text("linkedin_url"),
        FieldSpec(target="status", parser=normalize_status, assign=_setter("status")),
        FieldSpec(target="quality_rank", parser=parse_quality_rank, assign=_setter("quality_rank")),
        FieldSpec(target="score", parser=parse_score, assign=_setter("score")),
    )
}


# Common header spellings. Callers can replace the whole table.
DEFAULT_MAPPING_TABLE: tuple[FieldMapping, ...] = (
    FieldMapping("First Name", "first_name"),
    FieldMapping("Last Name", "last_name"),
    FieldMapping("Name", "name"),
    FieldMapping("Email", "email"),
    FieldMapping("Email Address", "email"),
    FieldMapping("Phone", "phone"),
    FieldMapping("Job Title", "job_title"),
    FieldMapping("Role", "job_title"),
    FieldMapping("Address", "address"),
    FieldMapping("Street Address", "address"),
    FieldMapping("Company", "company"),
    FieldMapping("Company Name", "company"),
    FieldMapping("Company Website", "company_website"),
    FieldMapping("Website", "company_website"),
    FieldMapping("Show name", "show_name"),
    FieldMapping("Show Name", "show_name"),
    FieldMapping("Show", "show_name"),
    FieldMapping("LinkedIn", "linkedin_url"),
    FieldMapping("LinkedIn URL", "linkedin_url"),
    FieldMapping("Status", "status"),
    FieldMapping("Stage", "status"),
    FieldMapping("Quality Rank", "quality_rank"),
    FieldMapping("Score", "score"),
    FieldMapping("Lead Score", "score"),
)


def check_mapping_table(table: MappingTable) -> None:
    """Raise `ValueError` if any rule targets a field this schema does not have."""
    unknown = sorted({m.target_field for m in table} - TARGET_FIELDS.keys())
    if unknown:
        raise ValueError(f"unknown target fields in mapping table: {unknown}")


def build_header_index(header: Sequence[str]) -> dict[str, int]:
    """Column name -> position. The first occurrence of a repeated name wins."""
    index: dict[str, int] = {}
    for i, name in enumerate(header):
        index.setdefault(name.strip(), i)
    return index



## -- row mapping

def map_row(
    row: RawRow,
    header_index: Mapping[str, int],
    table: MappingTable,
    *,
    source_row: int,
) -> MapResult:
    """
    Build a `CandidateRecord` from one raw row.

    Rules are applied in table order:
    - a target already filled by an earlier rule is not touched again,
    - a `required` rule with an empty value is an error (checked first),
    - optional empty values leave the field absent,
    - parser `ParseError`s are errors and leave the field absent,
    - parser `SoftIssue`s are warnings, the fallback (if any) is written.

    Company fields are carried as raw text; resolving them is a later step.
    """
    record = CandidateRecord(source_row=source_row)
    errors: list[ParseError] = []
    warnings: list[str] = []
    filled: set[str] = set()

    for rule in table:
        spec = TARGET_FIELDS[rule.target_field]
        if spec.target in filled:
            continue

        idx = header_index.get(rule.source_column.strip())
        raw_v = row[idx] if idx is not None and idx < len(row) else None
        value = normalize_cell(raw_v)

        if value is None:
            if rule.required:
                errors.append(
                    ParseError(IssueCode.missing_required, f'Required field "{rule.source_column}" is missing')
                )
            continue

        # a non-empty value claims the target, even when it then fails validation
        filled.add(spec.target)
        try:
            spec.assign(record, spec.parser(value))
        except ParseError as e:
            errors.append(e)
        except SoftIssue as e:
            warnings.append(e.detail)
            if e.fallback is not None:
                spec.assign(record, e.fallback)

    if record.first_name is None and record.last_name is None:
        errors.append(ParseError(IssueCode.missing_name, "First name or last name is required"))

    if errors:
        return MapResult(record=None, errors=tuple(errors), warnings=tuple(warnings))

    if record.status is None:
        record.status = DEFAULT_STATUS
    return MapResult(record=record, errors=(), warnings=tuple(warnings))
