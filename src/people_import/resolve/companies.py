from __future__ import annotations

import logging
from typing import Any

from people_import.db.store import DuplicateKeyError, RecordStore, StoreError
from people_import.db.table_specs import COMPANIES_TABLE

logger = logging.getLogger(__name__)


class ReferenceResolutionError(Exception):
    """The company store could not be reached or refused the lookup/create."""


def company_key(name: str) -> str:
    """Normalized cache key: casefolded, inner whitespace collapsed."""
    return " ".join(name.split()).casefold()


class CompanyResolver:
    """
    Find-or-create for company references, one instance per import run.

    - existing companies match by name ignoring case,
    - new companies are created with the website hint and the run's actor as owner,
    - results are memoized per normalized name, so a name new to the store is
      created once per run even when many rows reference it.

    Memoization is per run only. Two runs racing on the same new name rely on the
    store's unique index: the loser gets `DuplicateKeyError` and re-reads the winner.
    """

    def __init__(self, store: RecordStore, *, actor_id: str | None = None) -> None:
        self._store = store
        self._actor_id = actor_id
        self._cache: dict[str, str] = {}
        self.created = 0        # companies inserted by this run
        self.reused = 0         # lookups answered by an existing company

    def resolve(self, name: str | None, hint: str | None = None) -> str | None:
        """
        Return the company id for `name`, creating the company if needed.

        Blank names resolve to `None`. Store failures raise `ReferenceResolutionError`.
        """
        if name is None or not name.strip():
            return None
        clean = " ".join(name.split())
        key = company_key(clean)

        cached = self._cache.get(key)
        if cached is not None:
            return cached

        try:
            company_id = self._find(clean)
            if company_id is not None:
                self.reused += 1
            else:
                company_id = self._create(clean, hint)
        except StoreError as e:
            raise ReferenceResolutionError(str(e)) from e

        self._cache[key] = company_id
        return company_id

    def _find(self, name: str) -> str | None:
        found = self._store.find_match(COMPANIES_TABLE, {"name": name})
        if found is None:
            return None
        return _as_id(found["id"])

    def _create(self, name: str, hint: str | None) -> str:
        row: dict[str, Any] = {"name": name, "website": (hint or "").strip() or None}
        if self._actor_id is not None:
            row["user_id"] = self._actor_id
        try:
            (new_id,) = self._store.insert_many(COMPANIES_TABLE, [row])
        except DuplicateKeyError:
            # created concurrently by someone else, use theirs
            existing = self._find(name)
            if existing is None:
                raise
            logger.debug("company %r created concurrently, reusing %s", name, existing)
            self.reused += 1
            return existing

        self.created += 1
        logger.debug("created company %r -> %s", name, new_id)
        return _as_id(new_id)


def _as_id(v: Any) -> str:
    # uuid/int keys from the store become plain strings on the record
    return str(v)
