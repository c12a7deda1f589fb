from __future__ import annotations

import pytest

from people_import.db.table_specs import COMPANIES_TABLE
from people_import.resolve.companies import CompanyResolver, ReferenceResolutionError, company_key


def test_company_key_normalizes() -> None:
    assert company_key("  Acme   Inc ") == company_key("acme inc") == "acme inc"


@pytest.mark.parametrize("name", [None, "", "   "])
def test_blank_name_resolves_to_none(store, name) -> None:
    assert CompanyResolver(store).resolve(name) is None
    assert store.find_calls == []


def test_existing_company_matched_ignoring_case(store) -> None:
    existing = store.add_company("Acme, Inc.")
    resolver = CompanyResolver(store)

    assert resolver.resolve("ACME, INC.") == existing
    assert resolver.reused == 1
    assert resolver.created == 0
    assert len(store.rows(COMPANIES_TABLE)) == 1


def test_new_company_created_with_hint_and_owner(store) -> None:
    resolver = CompanyResolver(store, actor_id="user-7")
    company_id = resolver.resolve("Globex", hint=" globex.example ")

    (row,) = store.rows(COMPANIES_TABLE)
    assert row["id"] == company_id
    assert row["name"] == "Globex"
    assert row["website"] == "globex.example"
    assert row["user_id"] == "user-7"
    assert resolver.created == 1


def test_new_company_without_owner(store) -> None:
    CompanyResolver(store).resolve("Globex")
    (row,) = store.rows(COMPANIES_TABLE)
    assert row["user_id"] is None
    assert row["website"] is None


def test_new_company_created_once_per_run(store) -> None:
    """Every later reference to the same name, in any casing or spacing, hits the cache."""
    resolver = CompanyResolver(store)
    first = resolver.resolve("Globex")
    assert resolver.resolve("globex") == first
    assert resolver.resolve("  GLOBEX ") == first

    assert len(store.rows(COMPANIES_TABLE)) == 1
    assert len([c for c in store.insert_calls if c[0] == COMPANIES_TABLE]) == 1
    assert len(store.find_calls) == 1


def test_concurrent_create_reuses_the_winner(store) -> None:
    """A unique violation on create means someone else won: look up once more."""
    winner = store.add_company("Globex")
    store.blind_finds = 1       # first lookup misses the concurrently created row

    resolver = CompanyResolver(store)
    assert resolver.resolve("Globex") == winner
    assert resolver.created == 0
    assert resolver.reused == 1
    assert len(store.rows(COMPANIES_TABLE)) == 1


def test_store_failure_raises_resolution_error(store) -> None:
    store.fail_all(COMPANIES_TABLE)
    resolver = CompanyResolver(store)

    with pytest.raises(ReferenceResolutionError, match="injected failure"):
        resolver.resolve("Initech")

    # failures are not cached
    assert resolver._cache == {}
