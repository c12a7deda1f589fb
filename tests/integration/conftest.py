from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator

import psycopg
import pytest

from people_import.db.initialize import db_init
from people_import.db.postgres import PostgresStore


# rows only, schema stays
TRUNCATE_ALL = """
TRUNCATE TABLE
  leads,
  companies
RESTART IDENTITY CASCADE;
"""

DROP_ALL = """
DROP TABLE IF EXISTS
  leads,
  companies
CASCADE;
"""


@pytest.fixture(scope="session")
def dsn() -> str:
    """Test database from `PEOPLE_IMPORT_TEST_DSN`. Integration tests skip without it."""
    url = os.getenv("PEOPLE_IMPORT_TEST_DSN")
    if not url:
        pytest.skip("PEOPLE_IMPORT_TEST_DSN not set")
    return url


@pytest.fixture(scope="session")
def schema(dsn: str, repo_root: Path) -> str:
    """Fresh schema once per session. Skips when the database is unreachable."""
    try:
        with psycopg.connect(dsn, autocommit=True, connect_timeout=5) as c:
            c.execute(DROP_ALL)
    except psycopg.OperationalError as e:
        pytest.skip(f"test database not reachable: {e}")
    db_init(sql_path=repo_root / "sql", database_url=dsn)
    return dsn


@pytest.fixture()
def conn(schema: str) -> Iterator[psycopg.Connection]:
    """Autocommit connection with empty tables, the way the CLI connects."""
    with psycopg.connect(schema, autocommit=True) as c:
        c.execute(TRUNCATE_ALL)
        yield c


@pytest.fixture()
def pg_store(conn: psycopg.Connection) -> PostgresStore:
    return PostgresStore(conn)
