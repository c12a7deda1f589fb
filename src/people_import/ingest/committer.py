from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Sequence

from people_import.db.store import RecordStore, StoreError
from people_import.db.table_specs import LEADS_TABLE
from people_import.parsing.types import CandidateRecord

logger = logging.getLogger(__name__)


DEFAULT_BATCH_SIZE = 50


@dataclass(frozen=True)
class BatchResult:
    """What happened to one batch write."""
    records: tuple[CandidateRecord, ...]
    ids: tuple[Any, ...] = ()           # new lead ids, same order as `records`
    error: str | None = None            # store message when the whole batch was refused
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


def iter_batches(records: Iterable[CandidateRecord], size: int) -> Iterator[list[CandidateRecord]]:
    """Consecutive chunks of at most `size` records, in input order."""
    if size < 1:
        raise ValueError(f"batch size must be >= 1, got {size}")
    batch: list[CandidateRecord] = []
    for r in records:
        batch.append(r)
        if len(batch) >= size:
            yield batch
            batch = []
    if batch:
        yield batch


class BatchCommitter:
    """
    Writes accepted records with one `insert_many` call per batch.

    A refused batch is reported back, never retried, and does not stop
    later batches. Failure granularity is the batch: every record in it fails.
    """

    def __init__(self, store: RecordStore, *, table: str = LEADS_TABLE, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        if batch_size < 1:
            raise ValueError(f"batch size must be >= 1, got {batch_size}")
        self._store = store
        self._table = table
        self.batch_size = batch_size
        self.batches_written = 0

    def commit_batch(self, batch: Sequence[CandidateRecord]) -> BatchResult:
        records = tuple(batch)
        if not records:
            return BatchResult(records=())

        start = time.perf_counter()
        try:
            ids = self._store.insert_many(self._table, [r.to_mapping() for r in records])
        except StoreError as e:
            elapsed = time.perf_counter() - start
            logger.warning(
                "batch of %d rows (%d..%d) refused by store: %s",
                len(records), records[0].source_row, records[-1].source_row, e,
            )
            return BatchResult(records=records, error=str(e), elapsed_seconds=elapsed)
        except Exception as e:
            # a broken store fails this batch only, later batches still run
            elapsed = time.perf_counter() - start
            logger.exception(
                "batch of %d rows (%d..%d) failed unexpectedly",
                len(records), records[0].source_row, records[-1].source_row,
            )
            return BatchResult(records=records, error=f"Unexpected error: {e}", elapsed_seconds=elapsed)

        elapsed = time.perf_counter() - start
        self.batches_written += 1
        logger.debug("committed batch of %d rows in %.3fs", len(records), elapsed)
        return BatchResult(records=records, ids=tuple(ids), elapsed_seconds=elapsed)

    def commit_all(self, records: Iterable[CandidateRecord]) -> list[BatchResult]:
        """Partition `records` into `batch_size` chunks and commit each one."""
        return [self.commit_batch(b) for b in iter_batches(records, self.batch_size)]
