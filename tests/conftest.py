from __future__ import annotations

import itertools
from pathlib import Path
from typing import Any, Callable, Iterator, Mapping, Sequence

import pytest

from people_import.db.store import DuplicateKeyError, StoreError
from people_import.db.table_specs import COMPANIES_TABLE, LEADS_TABLE, check_columns, get_table_spec
from people_import.log import reset_logging


def _find_repo_root(start: Path) -> Path:
    marker = "pyproject.toml"
    cur = start.resolve()
    for p in (cur, *cur.parents):
        if (p / marker).exists():
            return p
    raise RuntimeError(f"Could not find repo root from: {start}")


@pytest.fixture(scope="session")
def repo_root() -> Path:
    """The absolute path to the repo root (finds by walking up to `pyproject.toml`)."""
    return _find_repo_root(Path(__file__))



class InMemoryStore:
    """
    `RecordStore` fake holding rows in dicts.

    Mirrors the Postgres schema where it matters for the pipeline:
    - ids are generated strings,
    - company names are unique ignoring case (raises `DuplicateKeyError`),
    - `insert_many` is all-or-nothing.

    Failure injection:
    - `fail_insert(table, n)` makes the n-th (1-based) insert into `table` raise `StoreError`,
    - `fail_all(table)` makes every insert into `table` raise,
    - `blind_finds` > 0 makes that many `find_match` calls miss (simulates a concurrent creator).
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {LEADS_TABLE: [], COMPANIES_TABLE: []}
        self.insert_calls: list[tuple[str, int]] = []
        self.find_calls: list[tuple[str, dict[str, Any]]] = []
        self.blind_finds = 0
        self._ids = itertools.count(1)
        self._insert_counts: dict[str, int] = {}
        self._fail_on: set[tuple[str, int]] = set()
        self._fail_tables: set[str] = set()

    ## -- failure injection

    def fail_insert(self, table: str, call_no: int) -> None:
        self._fail_on.add((table, call_no))

    def fail_all(self, table: str) -> None:
        self._fail_tables.add(table)

    ## -- RecordStore

    def insert_many(self, table: str, rows: Sequence[Mapping[str, Any]]) -> list[Any]:
        spec = get_table_spec(table)
        for r in rows:
            check_columns(spec, r.keys())

        n = self._insert_counts.get(table, 0) + 1
        self._insert_counts[table] = n
        self.insert_calls.append((table, len(rows)))
        if table in self._fail_tables or (table, n) in self._fail_on:
            raise StoreError(f"injected failure on {table} insert #{n}")

        if table == COMPANIES_TABLE:
            taken = {c["name"].lower() for c in self.tables[table]}
            for r in rows:
                key = r["name"].lower()
                if key in taken:
                    raise DuplicateKeyError('duplicate key value violates unique constraint "companies_name_lower_uq"')
                taken.add(key)

        ids: list[Any] = []
        staged: list[dict[str, Any]] = []
        for r in rows:
            new_id = f"{table}-{next(self._ids)}"
            staged.append({"id": new_id, **{c: r.get(c) for c in spec.columns}})
            ids.append(new_id)
        self.tables[table].extend(staged)
        return ids

    def find_one(self, table: str, criteria: Mapping[str, Any]) -> Mapping[str, Any] | None:
        get_table_spec(table)
        self.find_calls.append((table, dict(criteria)))
        for row in self.tables[table]:
            if all(row.get(k) == v for k, v in criteria.items()):
                return dict(row)
        return None

    def find_match(self, table: str, criteria: Mapping[str, Any]) -> Mapping[str, Any] | None:
        get_table_spec(table)
        self.find_calls.append((table, dict(criteria)))
        if self.blind_finds > 0:
            self.blind_finds -= 1
            return None
        for row in self.tables[table]:
            if all(_same_ci(row.get(k), v) for k, v in criteria.items()):
                return dict(row)
        return None

    ## -- helpers for assertions

    def rows(self, table: str) -> list[dict[str, Any]]:
        return list(self.tables[table])

    def add_company(self, name: str, website: str | None = None) -> str:
        (new_id,) = self.insert_many(COMPANIES_TABLE, [{"name": name, "website": website}])
        return new_id

    def add_lead(self, **values: Any) -> str:
        (new_id,) = self.insert_many(LEADS_TABLE, [values])
        return new_id


def _same_ci(a: Any, b: Any) -> bool:
    if a is None or b is None:
        return a is b
    return str(a).lower() == str(b).lower()



@pytest.fixture()
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture()
def write_csv(tmp_path: Path) -> Callable[..., Path]:
    """Write `text` to a file under `tmp_path` and return its path."""

    def _write(text: str, name: str = "people.csv", *, encoding: str = "utf-8") -> Path:
        p = tmp_path / name
        p.write_bytes(text.encode(encoding))
        return p

    return _write


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """`setup_logging` stops propagation; undo it so `caplog` keeps working."""
    yield
    reset_logging()
