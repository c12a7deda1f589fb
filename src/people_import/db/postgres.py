from __future__ import annotations

from typing import Any, Mapping, Sequence

import psycopg
from psycopg import Connection, sql
from psycopg.rows import dict_row

from people_import.db.store import DuplicateKeyError, StoreError
from people_import.db.table_specs import TableSpec, check_columns, get_table_spec


class PostgresStore:
    """
    `RecordStore` backed by a psycopg connection.

    The connection should be in autocommit mode: every `insert_many` opens its own
    `conn.transaction()` block, so one batch commits or rolls back on its own.
    Table and column identifiers are derived ONLY from the whitelisted `TABLE_SPECS`.
    """

    def __init__(self, conn: Connection) -> None:
        self._conn = conn

    def insert_many(self, table: str, rows: Sequence[Mapping[str, Any]]) -> list[Any]:
        spec = get_table_spec(table)
        if not rows:
            return []
        for r in rows:
            check_columns(spec, r.keys())

        cols = spec.columns
        query = sql.SQL("INSERT INTO {tbl} ({cols}) VALUES ({vals}) RETURNING {pk}").format(
            tbl=sql.Identifier(spec.table_name),
            cols=sql.SQL(", ").join(sql.Identifier(c) for c in cols),
            vals=sql.SQL(", ").join(sql.Placeholder() for _ in cols),
            pk=sql.Identifier(spec.id_column),
        )
        params = [tuple(r.get(c) for c in cols) for r in rows]

        ids: list[Any] = []
        try:
            with self._conn.transaction():
                with self._conn.cursor() as cur:
                    cur.executemany(query, params, returning=True)
                    # one result set per inserted row
                    while True:
                        row = cur.fetchone()
                        if row is not None:
                            ids.append(row[0])
                        if not cur.nextset():
                            break
        except psycopg.errors.UniqueViolation as e:
            raise DuplicateKeyError(str(e)) from e
        except psycopg.Error as e:
            raise StoreError(str(e)) from e
        return ids

    def find_one(self, table: str, criteria: Mapping[str, Any]) -> Mapping[str, Any] | None:
        spec = get_table_spec(table)
        conds = [
            sql.SQL("{col} IS NOT DISTINCT FROM {val}").format(col=sql.Identifier(c), val=sql.Placeholder())
            for c in check_columns(spec, criteria.keys())
        ]
        return self._select_one(spec, conds, list(criteria.values()))

    def find_match(self, table: str, criteria: Mapping[str, Any]) -> Mapping[str, Any] | None:
        spec = get_table_spec(table)
        conds: list[sql.Composable] = []
        params: list[Any] = []
        for c in check_columns(spec, criteria.keys()):
            v = criteria[c]
            if v is None:
                conds.append(sql.SQL("{col} IS NULL").format(col=sql.Identifier(c)))
                continue
            conds.append(sql.SQL("lower({col}::text) = lower({val})").format(col=sql.Identifier(c), val=sql.Placeholder()))
            params.append(str(v))
        return self._select_one(spec, conds, params)

    def _select_one(
        self, spec: TableSpec, conds: list[sql.Composable], params: list[Any]
    ) -> Mapping[str, Any] | None:
        where = sql.SQL(" AND ").join(conds) if conds else sql.SQL("TRUE")
        query = sql.SQL("SELECT * FROM {tbl} WHERE {where} ORDER BY {pk} LIMIT 1").format(
            tbl=sql.Identifier(spec.table_name),
            where=where,
            pk=sql.Identifier(spec.id_column),
        )
        try:
            with self._conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query, params)
                return cur.fetchone()
        except psycopg.Error as e:
            raise StoreError(str(e)) from e
