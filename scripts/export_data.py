"""CLI entry point for table/query export.

Usage:
    python -m scripts.export_data --db-url sqlite:///data.db --format csv \
        (--table people | --query "SELECT ...") --output people.csv [--pretty] [--include-schema]
    python -m scripts.export_data --db-url sqlite:///data.db --format json --all --output out/

The database URL falls back to the DBTRANSFER_DB_URL environment variable.
"""

import argparse
import logging
import os
import sys

from dbtransfer import DataExporter, DataFormat, ExportOptions, create_service, export_all_tables

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

DB_URL_ENV = "DBTRANSFER_DB_URL"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Export database data to a file")
    parser.add_argument(
        "--db-url",
        default=os.environ.get(DB_URL_ENV),
        help=f"Database URL (sqlite:/// or postgresql://), defaults to ${DB_URL_ENV}",
    )
    parser.add_argument(
        "--format", required=True, choices=[f.value for f in DataFormat], help="Output format"
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--table", help="Table to export")
    source.add_argument("--query", help="Read query to export")
    source.add_argument("--all", action="store_true", help="Export every table")
    parser.add_argument("--output", required=True, help="Output file (directory with --all)")
    parser.add_argument("--delimiter", default=",", help="CSV delimiter")
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON")
    parser.add_argument("--include-schema", action="store_true", help="Add DDL to SQL dumps")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    if not args.db_url:
        logger.error("No database URL. Pass --db-url or set %s.", DB_URL_ENV)
        sys.exit(1)

    overrides = {
        "delimiter": args.delimiter,
        "pretty": args.pretty,
        "include_schema": args.include_schema,
    }
    service = create_service(args.db_url)
    service.connect()
    try:
        if args.all:
            os.makedirs(args.output, exist_ok=True)
            results = export_all_tables(service, args.output, args.format, **overrides)
        else:
            options = ExportOptions(
                format=args.format, table_name=args.table, query=args.query, **overrides
            )
            results = [DataExporter(service, options).export_to_file(args.output)]
    finally:
        service.close()

    failed = [r for r in results if not r.success]
    for result in results:
        log = logger.info if result.success else logger.error
        log("%s (%d rows)", result.message, result.rows_exported)
    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
