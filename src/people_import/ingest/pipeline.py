from __future__ import annotations

import logging
from itertools import zip_longest
from typing import Any, Callable, NamedTuple, Sequence

from people_import.config import Settings
from people_import.db.store import RecordStore
from people_import.identity import IdentityProvider, StaticIdentity
from people_import.ingest.committer import BatchCommitter
from people_import.ingest.duplicates import DuplicateFilter
from people_import.ingest.readers import FileRejectedError, Source, read_source, source_name
from people_import.ingest.summary import ImportOutcome, OutcomeBuilder
from people_import.parsing.mapping import (
    DEFAULT_MAPPING_TABLE,
    MappingTable,
    build_header_index,
    check_mapping_table,
    map_row,
)
from people_import.parsing.tokenizer import MalformedInputError, parse
from people_import.parsing.types import CandidateRecord, ParsedFile, RawRow
from people_import.resolve.companies import CompanyResolver, ReferenceResolutionError

logger = logging.getLogger(__name__)


DUPLICATE_MESSAGE = "Duplicate record skipped"


class ImportProgress(NamedTuple):
    processed: int
    total: int


ProgressCallback = Callable[[ImportProgress], None]


class CreatedLead(NamedTuple):
    """A lead written by this run, as handed to the post-commit hook."""
    lead_id: Any
    record: CandidateRecord


CommitCallback = Callable[[Sequence[CreatedLead]], None]


class ImportPipeline:
    """
    End-to-end import orchestrator for one store:
      - admit and read the file (size ceiling, `.csv` only),
      - tokenize it,
      - per row, strictly in this order:
            - map + validate -> hard errors reject the row,
            - resolve the company (failures only warn),
            - duplicate check -> duplicates are skipped with a warning,
            - queue for commit,
      - flush the queue every `batch_size` rows and once at the end,
      - hand the created leads to `on_committed` (enrichment trigger),
      - freeze the accumulated outcome.

    Never raises for bad input or an unreadable file: those come back as an
    `ImportOutcome` with `success=False` and a row-0 error.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        identity: IdentityProvider | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._store = store
        self._settings = settings or Settings()
        self._identity = identity or StaticIdentity(self._settings.actor_id)

    def run(
        self,
        source: Source,
        *,
        mapping_table: MappingTable = DEFAULT_MAPPING_TABLE,
        skip_duplicates: bool = True,
        on_progress: ProgressCallback | None = None,
        on_committed: CommitCallback | None = None,
    ) -> ImportOutcome:
        name = source_name(source)

        ## -- admission, read and tokenize. Nothing is written before this passes.
        try:
            content = read_source(source, max_bytes=self._settings.max_file_bytes)
        except FileRejectedError as e:
            logger.warning("%s rejected: %s", name, e)
            return OutcomeBuilder.fatal(str(e), e.reason)
        except OSError as e:
            logger.error("%s could not be read: %s", name, e)
            return OutcomeBuilder.fatal(f"Could not read file: {e}", f"Import failed: {e}")

        try:
            check_mapping_table(mapping_table)
        except ValueError as e:
            return OutcomeBuilder.fatal(str(e), "Invalid mapping table")

        try:
            parsed = parse(content)
        except MalformedInputError as e:
            logger.warning("%s has no data: %s", name, e)
            return OutcomeBuilder.fatal(str(e), "No data to import")

        logger.info("importing %s: %d data rows", name, len(parsed.rows))

        builder = OutcomeBuilder()
        try:
            created = self._process(parsed, builder, mapping_table, skip_duplicates, on_progress)
        except Exception as e:
            # anything escaping the row boundary aborts the run, committed batches stay committed
            logger.exception("import of %s aborted", name)
            return builder.build_failed(str(e))

        if on_committed is not None and created:
            _hand_off(on_committed, created)

        outcome = builder.build()
        logger.info("%s: %s", name, outcome.summary)
        return outcome

    def _process(
        self,
        parsed: ParsedFile,
        builder: OutcomeBuilder,
        table: MappingTable,
        skip_duplicates: bool,
        on_progress: ProgressCallback | None,
    ) -> list[CreatedLead]:
        actor_id = self._identity.current_actor_id()
        if actor_id is None:
            logger.info("no current actor, imported records will have no owner")
        run = _Run(
            header_index=build_header_index(parsed.header),
            table=table,
            builder=builder,
            resolver=CompanyResolver(self._store, actor_id=actor_id),
            duplicates=DuplicateFilter(self._store) if skip_duplicates else None,
            actor_id=actor_id,
        )
        committer = BatchCommitter(self._store, batch_size=self._settings.batch_size)
        pending: list[CandidateRecord] = []
        total = len(parsed.rows)

        for source_row, raw in enumerate(parsed.rows, start=1):
            try:
                record = run.process_row(raw, source_row)
            except Exception as e:
                logger.debug("row %d failed unexpectedly", source_row, exc_info=True)
                builder.add_error(source_row, f"Unexpected error: {e}")
                record = None

            if record is not None:
                pending.append(record)
            if len(pending) >= committer.batch_size:
                pending = run.flush(committer, pending)

            if on_progress is not None:
                try:
                    on_progress(ImportProgress(processed=source_row, total=total))
                except Exception:
                    logger.exception("progress callback failed, progress reporting disabled")
                    on_progress = None

        while pending:
            pending = run.flush(committer, pending)

        logger.debug(
            "companies created=%d reused=%d, batches written=%d",
            run.resolver.created, run.resolver.reused, committer.batches_written,
        )
        return run.created


class _Run:
    """Per-run row state: nothing here outlives a single `ImportPipeline.run`."""

    def __init__(
        self,
        *,
        header_index: dict[str, int],
        table: MappingTable,
        builder: OutcomeBuilder,
        resolver: CompanyResolver,
        duplicates: DuplicateFilter | None,
        actor_id: str | None,
    ) -> None:
        self.header_index = header_index
        self.table = table
        self.builder = builder
        self.resolver = resolver
        self.duplicates = duplicates
        self.actor_id = actor_id
        self.in_flight: set[int] = set()                        # queued, batch not written yet
        self.waiting: dict[int, list[CandidateRecord]] = {}     # in-flight row -> its held-back twins
        self.created: list[CreatedLead] = []

    def process_row(self, raw: RawRow, source_row: int) -> CandidateRecord | None:
        """Classify one row. Returns the record to queue, or `None` if the row is settled or held."""
        result = map_row(raw, self.header_index, self.table, source_row=source_row)
        if result.record is None:
            self.builder.add_error(source_row, "; ".join(result.error_messages))
            return None

        record = result.record
        for w in result.warnings:
            self.builder.add_warning(source_row, w)

        if record.company:
            try:
                record.company_id = self.resolver.resolve(record.company, record.company_website)
            except ReferenceResolutionError as e:
                self.builder.add_warning(source_row, f'Could not resolve company "{record.company}": {e}')

        record.user_id = self.actor_id
        return self.admit(record)

    def admit(self, record: CandidateRecord) -> CandidateRecord | None:
        """
        Duplicate gate.

        A twin of a row that is still waiting for its batch is held back: it is
        skipped once that batch lands, and checked again if the batch is refused.
        """
        if self.duplicates is None:
            return record

        owner = self.duplicates.claimed_by(record)
        if owner is not None and owner in self.in_flight:
            self.waiting.setdefault(owner, []).append(record)
            return None
        if owner is not None or self.duplicates.exists_in_store(record):
            self.builder.add_skipped(record.source_row, DUPLICATE_MESSAGE)
            return None

        self.duplicates.remember(record)
        self.in_flight.add(record.source_row)
        return record

    def flush(self, committer: BatchCommitter, pending: list[CandidateRecord]) -> list[CandidateRecord]:
        """Commit `pending`, classify its rows, and return held-back twins that must be queued again."""
        result = committer.commit_batch(pending)
        retry: list[CandidateRecord] = []
        for r, lead_id in zip_longest(result.records, result.ids):
            self.in_flight.discard(r.source_row)
            twins = self.waiting.pop(r.source_row, [])
            if result.ok:
                self.builder.add_success(r.source_row)
                self.created.append(CreatedLead(lead_id=lead_id, record=r))
                for t in twins:
                    self.builder.add_skipped(t.source_row, DUPLICATE_MESSAGE)
                continue

            self.builder.add_error(r.source_row, result.error or "batch insert failed", record=r)
            if self.duplicates is not None:
                self.duplicates.forget(r)
            retry.extend(twins)

        requeued: list[CandidateRecord] = []
        for t in sorted(retry, key=lambda t: t.source_row):
            try:
                admitted = self.admit(t)
            except Exception as e:
                self.builder.add_error(t.source_row, f"Unexpected error: {e}")
                continue
            if admitted is not None:
                requeued.append(admitted)
        return requeued


def _hand_off(on_committed: CommitCallback, created: list[CreatedLead]) -> None:
    """Fire-and-forget: a failing hook never changes the outcome of rows already stored."""
    try:
        on_committed(list(created))
    except Exception:
        logger.exception("post-commit hook failed for %d created leads", len(created))


def import_people(
    source: Source,
    store: RecordStore,
    *,
    mapping_table: MappingTable = DEFAULT_MAPPING_TABLE,
    skip_duplicates: bool = True,
    on_progress: ProgressCallback | None = None,
    on_committed: CommitCallback | None = None,
    identity: IdentityProvider | None = None,
    settings: Settings | None = None,
) -> ImportOutcome:
    """Run one import of `source` into `store`. See `ImportPipeline`."""
    pipeline = ImportPipeline(store, identity=identity, settings=settings)
    return pipeline.run(
        source,
        mapping_table=mapping_table,
        skip_duplicates=skip_duplicates,
        on_progress=on_progress,
        on_committed=on_committed,
    )
