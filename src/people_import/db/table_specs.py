from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from people_import.parsing.types import LEAD_COLUMNS


LEADS_TABLE = "leads"
COMPANIES_TABLE = "companies"


@dataclass(frozen=True)
class TableSpec:
    """Whitelisted table contract used for safe SQL generation.

    Notes:
    - `columns` excludes `id`, `created_at` and `updated_at` (all DB defaults).
    - only names listed here are ever interpolated into SQL, as identifiers.
    """
    table_name: str
    columns: tuple[str, ...]
    id_column: str = "id"



TABLE_SPECS: dict[str, TableSpec] = {
    LEADS_TABLE: TableSpec(
        table_name=LEADS_TABLE,
        columns=LEAD_COLUMNS,
    ),
    COMPANIES_TABLE: TableSpec(
        table_name=COMPANIES_TABLE,
        columns=("name", "website", "user_id"),
    ),
}


def get_table_spec(table_name: str) -> TableSpec:
    """Look up a whitelisted table. Raise on anything else."""
    try:
        return TABLE_SPECS[table_name]
    except KeyError:
        raise ValueError(f"Unknown table_name: {table_name}") from None


def check_columns(spec: TableSpec, names: Iterable[str]) -> list[str]:
    """Return `names` as a list, raising if any is not a column of `spec`."""
    cols = [str(n) for n in names]
    unknown = sorted(set(cols) - set(spec.columns) - {spec.id_column})
    if unknown:
        raise ValueError(f"{spec.table_name}: unknown columns {unknown}")
    return cols
