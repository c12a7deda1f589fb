from __future__ import annotations

from typing import Any, Mapping, Protocol, Sequence


class StoreError(Exception):
    """A record store call failed (connection, constraint, bad data...)."""


class DuplicateKeyError(StoreError):
    """An insert hit a unique constraint."""


class RecordStore(Protocol):
    """
    What the import pipeline needs from storage.

    Each call is atomic on its own. Nothing here assumes a transaction spans
    several calls.
    """

    def insert_many(self, table: str, rows: Sequence[Mapping[str, Any]]) -> list[Any]:
        """Insert every row or none of them. Returns the new ids in input order."""
        ...

    def find_one(self, table: str, criteria: Mapping[str, Any]) -> Mapping[str, Any] | None:
        """First row whose columns equal `criteria` exactly (`None` matches NULL)."""
        ...

    def find_match(self, table: str, criteria: Mapping[str, Any]) -> Mapping[str, Any] | None:
        """First row whose text columns equal `criteria` ignoring case."""
        ...
