from __future__ import annotations

import pytest

from people_import.db.table_specs import LEADS_TABLE
from people_import.ingest.committer import BatchCommitter, iter_batches
from people_import.parsing.types import CandidateRecord


def _records(n: int) -> list[CandidateRecord]:
    return [CandidateRecord(source_row=i, first_name=f"P{i}", status="active") for i in range(1, n + 1)]


def test_iter_batches_sizes() -> None:
    sizes = [len(b) for b in iter_batches(_records(7), 3)]
    assert sizes == [3, 3, 1]
    assert list(iter_batches([], 3)) == []
    with pytest.raises(ValueError):
        list(iter_batches(_records(1), 0))


def test_commit_batch_inserts_lead_columns(store) -> None:
    rec = CandidateRecord(source_row=1, first_name="Ada", company="Acme", company_website="acme.example")
    res = BatchCommitter(store).commit_batch([rec])

    assert res.ok
    (row,) = store.rows(LEADS_TABLE)
    assert row["first_name"] == "Ada"
    assert row["company"] == "Acme"
    assert "company_website" not in row
    assert row["enrichment_status"] == "pending"
    assert res.ids == (row["id"],)


def test_commit_empty_batch_is_a_noop(store) -> None:
    res = BatchCommitter(store).commit_batch([])
    assert res.ok and res.records == ()
    assert store.insert_calls == []


def test_commit_all_one_call_per_batch(store) -> None:
    committer = BatchCommitter(store, batch_size=50)
    results = committer.commit_all(_records(120))
    assert [len(r.records) for r in results] == [50, 50, 20]
    assert store.insert_calls == [(LEADS_TABLE, 50), (LEADS_TABLE, 50), (LEADS_TABLE, 20)]
    assert committer.batches_written == 3


def test_failed_batch_is_isolated(store) -> None:
    """Only the failing batch reports an error; the others land."""
    store.fail_insert(LEADS_TABLE, 2)
    committer = BatchCommitter(store, batch_size=2)
    results = committer.commit_all(_records(5))

    assert [r.ok for r in results] == [True, False, True]
    assert [r.source_row for r in results[1].records] == [3, 4]
    assert "injected failure" in (results[1].error or "")
    assert sorted(r["first_name"] for r in store.rows(LEADS_TABLE)) == ["P1", "P2", "P5"]
    assert committer.batches_written == 2


def test_batch_size_must_be_positive(store) -> None:
    with pytest.raises(ValueError):
        BatchCommitter(store, batch_size=0)


def test_unexpected_exception_fails_only_its_batch(store, monkeypatch: pytest.MonkeyPatch) -> None:
    real_insert_many = store.insert_many
    calls: list[int] = []

    def broken_first(table, rows):
        calls.append(len(rows))
        if len(calls) == 1:
            raise RuntimeError("driver bug")
        return real_insert_many(table, rows)

    monkeypatch.setattr(store, "insert_many", broken_first)
    committer = BatchCommitter(store, batch_size=2)
    results = committer.commit_all(_records(4))

    assert [r.ok for r in results] == [False, True]
    assert results[0].error == "Unexpected error: driver bug"
    assert results[0].ids == ()
    assert sorted(r["first_name"] for r in store.rows(LEADS_TABLE)) == ["P3", "P4"]
    assert committer.batches_written == 1
