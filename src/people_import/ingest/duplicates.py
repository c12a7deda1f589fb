from __future__ import annotations

from typing import Any

from people_import.db.store import RecordStore
from people_import.db.table_specs import LEADS_TABLE
from people_import.parsing.types import CandidateRecord


def identity_criteria(record: CandidateRecord) -> list[dict[str, Any]]:
    """
    Lookups that identify `record` as an existing lead, strongest first.

    - email, when present (exact match),
    - first/last name together with the resolved `company_id`, when both exist.

    An empty list means the record carries no identity and is never a duplicate.
    """
    out: list[dict[str, Any]] = []
    if record.email:
        out.append({"email": record.email})
    if record.display_name and record.company_id:
        out.append(
            {
                "first_name": record.first_name,
                "last_name": record.last_name,
                "company_id": record.company_id,
            }
        )
    return out


class DuplicateFilter:
    """
    Two-tier duplicate check against persisted leads, plus the leads already
    accepted earlier in the same run ("first seen wins").

    An in-run claim is tied to the row that made it. If that row never reaches
    the store (its batch is refused) the claim is dropped with `forget()`.
    Store errors are not caught here, they fail the row they happened on.
    """

    def __init__(self, store: RecordStore, *, table: str = LEADS_TABLE) -> None:
        self._store = store
        self._table = table
        self._seen: dict[tuple[tuple[str, Any], ...], int] = {}     # identity -> claiming source_row

    def is_duplicate(self, record: CandidateRecord) -> bool:
        return self.claimed_by(record) is not None or self.exists_in_store(record)

    def claimed_by(self, record: CandidateRecord) -> int | None:
        """Source row of an earlier record in this run with the same identity, if any."""
        for criteria in identity_criteria(record):
            row = self._seen.get(_key(criteria))
            if row is not None:
                return row
        return None

    def exists_in_store(self, record: CandidateRecord) -> bool:
        """Strongest tier first; the name+company tier is only asked when email found nothing."""
        for criteria in identity_criteria(record):
            if self._store.find_one(self._table, criteria) is not None:
                return True
        return False

    def remember(self, record: CandidateRecord) -> None:
        """Claim `record`'s identity so later rows with the same identity are duplicates."""
        for criteria in identity_criteria(record):
            self._seen.setdefault(_key(criteria), record.source_row)

    def forget(self, record: CandidateRecord) -> None:
        """Release the claims `record` made. Claims held by other rows stay."""
        for criteria in identity_criteria(record):
            k = _key(criteria)
            if self._seen.get(k) == record.source_row:
                del self._seen[k]


def _key(criteria: dict[str, Any]) -> tuple[tuple[str, Any], ...]:
    return tuple(sorted(criteria.items()))
