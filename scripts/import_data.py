"""CLI entry point for file import.

Usage:
    python -m scripts.import_data --db-url sqlite:///data.db --file data.csv --format csv \
        --table people [--create-table] [--batch-size 1000] [--mapping mapping.json] \
        [--rules rules.json] [--continue-on-error] [--stream]

The database URL falls back to the DBTRANSFER_DB_URL environment variable.
"""

import argparse
import json
import logging
import os
import sys

from dbtransfer import (
    DataFormat,
    DataImporter,
    ImportOptions,
    ProgressInfo,
    StreamImporter,
    TableMapping,
    ValidationRule,
    create_service,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

DB_URL_ENV = "DBTRANSFER_DB_URL"


def _load_json(path: str | None):
    if path is None:
        return None
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def _log_progress(progress: ProgressInfo) -> None:
    logger.info(
        "%s: %d/%d rows (%d%%)",
        progress.status.value,
        progress.processed_rows,
        progress.total_rows,
        progress.percentage,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Import a data file into the database")
    parser.add_argument(
        "--db-url",
        default=os.environ.get(DB_URL_ENV),
        help=f"Database URL (sqlite:/// or postgresql://), defaults to ${DB_URL_ENV}",
    )
    parser.add_argument("--file", required=True, help="Path to the input file")
    parser.add_argument(
        "--format", required=True, choices=[f.value for f in DataFormat], help="Input format"
    )
    parser.add_argument("--table", help="Destination table")
    parser.add_argument("--batch-size", type=int, default=1000, help="Rows per transaction")
    parser.add_argument("--skip-rows", type=int, default=0, help="Data rows to skip")
    parser.add_argument("--delimiter", default=",", help="CSV delimiter")
    parser.add_argument("--encoding", default="utf-8", help="Input encoding")
    parser.add_argument("--sheet", help="Spreadsheet sheet name")
    parser.add_argument("--create-table", action="store_true", help="Drop and recreate the table")
    parser.add_argument("--mapping", help="JSON file with the table mapping")
    parser.add_argument("--rules", help="JSON file with a list of validation rules")
    parser.add_argument(
        "--continue-on-error", action="store_true", help="Skip failing rows instead of aborting"
    )
    parser.add_argument("--stream", action="store_true", help="Stream a large CSV file")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    if not args.db_url:
        logger.error("No database URL. Pass --db-url or set %s.", DB_URL_ENV)
        sys.exit(1)

    mapping = _load_json(args.mapping)
    rules = _load_json(args.rules) or []
    options = ImportOptions(
        format=args.format,
        table_name=args.table,
        batch_size=args.batch_size,
        skip_rows=args.skip_rows,
        delimiter=args.delimiter,
        encoding=args.encoding,
        sheet_name=args.sheet,
        create_table=args.create_table,
        mapping=TableMapping.from_dict(mapping) if mapping else None,
        validation=[ValidationRule.from_dict(r) for r in rules],
        continue_on_error=args.continue_on_error,
        on_progress=_log_progress,
    )

    service = create_service(args.db_url)
    service.connect()
    try:
        if args.stream:
            with open(args.file, "rb") as stream:
                result = StreamImporter(service, stream, options).import_stream()
        else:
            result = DataImporter(service, options).import_file(args.file)
    finally:
        service.close()

    for warning in result.warnings:
        logger.warning(warning)
    for error in result.errors:
        logger.error(error)
    if not result.success:
        logger.error("Import failed: %s", result.message)
        sys.exit(1)
    logger.info("Done. %s", result.message)


if __name__ == "__main__":
    main()
