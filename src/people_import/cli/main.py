from __future__ import annotations

import argparse
import logging
from pathlib import Path

from people_import.cli.progress import RowProgressBar
from people_import.config import ConfigError, Settings, load_mapping_table
from people_import.db.connect import connect
from people_import.db.initialize import db_init
from people_import.db.postgres import PostgresStore
from people_import.ingest.pipeline import import_people
from people_import.ingest.rejects import write_rejects
from people_import.log import log_summary, setup_logging
from people_import.parsing.mapping import DEFAULT_MAPPING_TABLE

logger = logging.getLogger(__name__)


EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_PARTIAL = 2


def main(argv: list[str] | None = None) -> int:
    """
    A CLI for importing people from CSV into Postgres.

    The `cmd` options are:
    ## load:
    Imports a CSV of people (leads), creating referenced companies as needed.
    - `--input` path to the `.csv` file,
    - `--mapping` optional YAML mapping table, replaces the built-in column synonyms,
    - `--allow-duplicates` import rows even when a matching lead already exists,
    - `--batch-size` rows per insert (else `PEOPLE_IMPORT_BATCH_SIZE`, else 50),
    - `--rejects` write every error/warning row to this CSV.

    A results summary will print in the terminal upon completion of a load.
    Exit code is 0 for a fully successful import, 2 otherwise.

    ### Example load usage:
    - `people-import load --input data/leads.csv --rejects out/rejects.csv`

    ## db:
    Database controlling commands.
    - `init` runs the schema SQL,
    - `--sql` is a schema file or a dir of `.sql` files.
    """
    p = argparse.ArgumentParser(prog="people-import")
    sub = p.add_subparsers(dest="cmd", required=True)

    # load cmd
    load = sub.add_parser("load", help="Import a CSV file of people.")
    load.add_argument("--input", required=True, help="Path to the .csv file.")
    load.add_argument("--mapping", default=None, help="YAML mapping table.")
    load.add_argument("--allow-duplicates", action="store_true", help="Do not skip rows matching existing leads.")
    load.add_argument("--batch-size", type=int, default=None, help="Rows per insert batch.")
    load.add_argument("--rejects", default=None, help="Write error and warning rows to this CSV.")
    load.add_argument("--debug", action="store_true", help="Verbose logging.")

    # db cmd
    db = sub.add_parser("db", help="Database utilities.")
    db_sub = db.add_subparsers(dest="db_cmd", required=True)

    db_init_p = db_sub.add_parser("init", help="Initialize DB schema from SQL file(s).")
    db_init_p.add_argument("--sql", default="sql", help="Path to schema SQL file OR a directory of `.sql` files.")

    args = p.parse_args(argv)
    setup_logging(debug=getattr(args, "debug", False))

    if args.cmd == "load":
        try:
            settings = _load_settings(args.batch_size)
            table = load_mapping_table(Path(args.mapping)) if args.mapping else DEFAULT_MAPPING_TABLE
        except ConfigError as e:
            logger.error("%s", e)
            return EXIT_CONFIG

        with connect(autocommit=True) as conn, RowProgressBar() as bar:
            outcome = import_people(
                Path(args.input),
                PostgresStore(conn),
                mapping_table=table,
                skip_duplicates=not args.allow_duplicates,
                on_progress=bar,
                settings=settings,
            )

        for err in outcome.errors:
            logger.error("row %d: %s", err.row, err.message)
        for warn in outcome.warnings:
            logger.warning("row %d: %s", warn.row, warn.message)

        if args.rejects:
            n = write_rejects(Path(args.rejects), outcome)
            logger.info("wrote %d reject lines to %s", n, args.rejects)

        log_summary(outcome.summary)
        print(outcome.render_one_line())
        return EXIT_OK if outcome.success else EXIT_PARTIAL

    if args.cmd == "db" and args.db_cmd == "init":
        files = db_init(sql_path=Path(args.sql))
        print(f"Initialized schema from {len(files)} file(s) in {args.sql}")
        return EXIT_OK

    return EXIT_PARTIAL


def _load_settings(batch_size: int | None) -> Settings:
    """Environment settings, with `--batch-size` taking precedence."""
    env = Settings.from_env()
    if batch_size is None:
        return env
    return Settings(batch_size=batch_size, max_file_bytes=env.max_file_bytes, actor_id=env.actor_id)
