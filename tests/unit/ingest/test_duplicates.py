from __future__ import annotations

from people_import.db.table_specs import LEADS_TABLE
from people_import.ingest.duplicates import DuplicateFilter, identity_criteria
from people_import.parsing.types import CandidateRecord


def _rec(**kw) -> CandidateRecord:
    return CandidateRecord(source_row=kw.pop("source_row", 1), **kw)


def test_identity_criteria_tiers() -> None:
    assert identity_criteria(_rec(first_name="Ada")) == []
    assert identity_criteria(_rec(first_name="Ada", email="a@x.com")) == [{"email": "a@x.com"}]
    assert identity_criteria(_rec(first_name="Ada", last_name="L", company_id="c1")) == [
        {"first_name": "Ada", "last_name": "L", "company_id": "c1"}
    ]


def test_duplicate_by_email(store) -> None:
    store.add_lead(first_name="Ada", email="a@x.com")
    dupes = DuplicateFilter(store)
    assert dupes.is_duplicate(_rec(first_name="Someone", email="a@x.com"))
    assert not dupes.is_duplicate(_rec(first_name="Ada", email="b@x.com"))


def test_duplicate_by_name_and_company(store) -> None:
    store.add_lead(first_name="Ada", last_name="Lovelace", company_id="c1")
    dupes = DuplicateFilter(store)
    assert dupes.is_duplicate(_rec(first_name="Ada", last_name="Lovelace", company_id="c1"))
    assert not dupes.is_duplicate(_rec(first_name="Ada", last_name="Lovelace", company_id="c2"))
    # no company id, so the name alone says nothing
    assert not dupes.is_duplicate(_rec(first_name="Ada", last_name="Lovelace"))


def test_name_tier_matches_missing_last_name(store) -> None:
    store.add_lead(first_name="Cher", company_id="c1")
    dupes = DuplicateFilter(store)
    assert dupes.is_duplicate(_rec(first_name="Cher", company_id="c1"))
    assert not dupes.is_duplicate(_rec(first_name="Cher", last_name="X", company_id="c1"))


def test_email_miss_falls_through_to_name_tier(store) -> None:
    store.add_lead(first_name="Ada", last_name="L", company_id="c1", email="old@x.com")
    dupes = DuplicateFilter(store)
    assert dupes.is_duplicate(_rec(first_name="Ada", last_name="L", company_id="c1", email="new@x.com"))


def test_no_identity_is_never_a_duplicate(store) -> None:
    store.add_lead(first_name="Ada")
    dupes = DuplicateFilter(store)
    assert not dupes.is_duplicate(_rec(first_name="Ada"))
    assert store.find_calls == []


def test_remembered_records_are_duplicates(store) -> None:
    """First seen wins inside one run, before anything is committed."""
    dupes = DuplicateFilter(store)
    first = _rec(source_row=1, first_name="Ada", email="a@x.com")
    assert not dupes.is_duplicate(first)
    dupes.remember(first)

    assert dupes.is_duplicate(_rec(source_row=2, first_name="Ada", email="a@x.com"))
    assert store.rows(LEADS_TABLE) == []


def test_claim_belongs_to_first_row(store) -> None:
    dupes = DuplicateFilter(store)
    dupes.remember(_rec(source_row=3, first_name="Ada", email="a@x.com"))
    dupes.remember(_rec(source_row=7, first_name="Ada", email="a@x.com"))
    assert dupes.claimed_by(_rec(source_row=9, first_name="Ada", email="a@x.com")) == 3
    assert dupes.claimed_by(_rec(source_row=9, first_name="Ada", email="b@x.com")) is None


def test_forget_releases_only_own_claims(store) -> None:
    """A row whose batch was refused gives its identity back."""
    dupes = DuplicateFilter(store)
    first = _rec(source_row=1, first_name="Ada", email="a@x.com")
    other = _rec(source_row=2, first_name="Ada", email="a@x.com")
    dupes.remember(first)

    dupes.forget(other)
    assert dupes.claimed_by(other) == 1

    dupes.forget(first)
    assert dupes.claimed_by(other) is None
    assert not dupes.is_duplicate(other)
