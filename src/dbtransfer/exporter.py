"""Export a table or query result into one of the supported formats."""

import dataclasses
import logging
from pathlib import Path
from typing import Any

from dbtransfer.encoders import encode_csv, encode_excel, encode_json, encode_sql
from dbtransfer.errors import InputError, SchemaError, TransferError
from dbtransfer.mapping import apply_mapping
from dbtransfer.models import DataFormat, ExportOptions, ExportResult, TableStats
from dbtransfer.parsers import normalize_value
from dbtransfer.progress import ProgressReporter
from dbtransfer.service import DatabaseService
from dbtransfer.types import Record

logger = logging.getLogger(__name__)

DEFAULT_SHEET = "Data"
DEFAULT_DUMP_TABLE = "data"


class DataExporter:
    """Run one export against ``service``.

    The source is ``options.query``, else ``options.table_name``, else
    ``mapping.source_table``. The exported row count comes from a second
    query: COUNT(*) for a table, a second fetch for a custom query.
    """

    def __init__(self, service: DatabaseService, options: ExportOptions):
        self.service = service
        self.options = options
        self.reporter = ProgressReporter(options.on_progress)
        mapping = options.mapping
        self.table = options.table_name or (mapping.source_table if mapping else None)

    def _source_sql(self) -> str:
        if self.options.query:
            return self.options.query
        if self.table:
            return f"SELECT * FROM {self.service.quote_identifier(self.table)}"
        raise SchemaError("Either query or table_name must be specified")

    def _fetch(self) -> list[Record]:
        sql = self._source_sql()
        try:
            with self.service.transaction():
                rows = self.service.execute(sql)
        except Exception as e:
            raise SchemaError(f"Cannot read export source: {e}") from e
        records = [{k: normalize_value(v) for k, v in row.items()} for row in rows]
        if self.options.mapping is not None:
            records = [apply_mapping(r, self.options.mapping) for r in records]
        return records

    def _count(self) -> int:
        if self.options.query:
            return len(self._fetch())
        sql = f"SELECT COUNT(*) AS count FROM {self.service.quote_identifier(self.table)}"
        try:
            with self.service.transaction():
                rows = self.service.execute(sql)
        except Exception as e:
            raise SchemaError(f"Cannot count rows of '{self.table}': {e}") from e
        return int(rows[0]["count"])

    def _schema(self) -> str:
        if self.table and not self.options.query:
            ddl = self.service.table_schema(self.table)
            return f"-- Table Schema\n{ddl};" if ddl else ""
        statements = [self.service.table_schema(t) for t in self.service.list_tables()]
        return "\n".join(["-- Table Schemas"] + [f"{s};" for s in statements if s])

    def _encode(self, records: list[Record]) -> str | bytes:
        opts = self.options
        if opts.format is DataFormat.CSV:
            return encode_csv(records, opts.delimiter)
        if opts.format is DataFormat.JSON:
            return encode_json(records, opts.pretty)
        if opts.format is DataFormat.SQL:
            schema = self._schema() if opts.include_schema else None
            return encode_sql(records, self.table or DEFAULT_DUMP_TABLE, schema)
        return encode_excel(records, self.table or DEFAULT_SHEET)

    def export(self) -> ExportResult:
        """Encode the source and return the body in ``ExportResult.content``."""
        try:
            records = self._fetch()
            self.reporter.total = len(records)
            content = self._encode(records)
            rows = self._count()
        except TransferError as e:
            return self._failure(e)
        except Exception as e:
            logger.exception("Unexpected error during export")
            return self._failure(TransferError(f"{type(e).__name__}: {e}"))

        self.reporter.complete()
        logger.info("Exported %d rows as %s", rows, self.options.format.value)
        return ExportResult(
            success=True,
            message=f"Successfully exported {rows} rows",
            rows_exported=rows,
            content=content,
        )

    def export_to_file(self, file_path: str | Path) -> ExportResult:
        result = self.export()
        if not result.success:
            return result

        path = Path(file_path)
        try:
            if isinstance(result.content, bytes):
                path.write_bytes(result.content)
            else:
                path.write_text(result.content, encoding="utf-8")
        except OSError as e:
            error = InputError(f"Cannot write {path}: {e}")
            logger.error("Export failed: %s", error.message)
            return ExportResult(success=False, message=error.message, rows_exported=0)

        return dataclasses.replace(
            result, message=f"Successfully exported data to {path}", file_path=str(path)
        )

    def _failure(self, error: TransferError) -> ExportResult:
        if not self.reporter.finished:
            try:
                self.reporter.fail(error.message)
            except Exception:
                logger.exception("Progress sink raised while reporting a failed export")
        logger.error("Export failed: %s", error.message)
        return ExportResult(success=False, message=error.message, rows_exported=0)


def export_all_tables(
    service: DatabaseService,
    output_dir: str | Path,
    fmt: DataFormat | str,
    **overrides: Any,
) -> list[ExportResult]:
    """Export every table to ``<output_dir>/<table>.<extension>``."""
    fmt = DataFormat(fmt)
    results = []
    for table in service.list_tables():
        options = ExportOptions(format=fmt, table_name=table, **overrides)
        path = Path(output_dir) / f"{table}.{fmt.extension}"
        results.append(DataExporter(service, options).export_to_file(path))
    return results


def get_table_stats(service: DatabaseService, table: str) -> TableStats:
    if not service.table_exists(table):
        raise SchemaError(f"Table '{table}' does not exist")
    columns = service.table_columns(table)
    with service.transaction():
        rows = service.execute(f"SELECT COUNT(*) AS count FROM {service.quote_identifier(table)}")
    row_count = int(rows[0]["count"])
    return TableStats(
        row_count=row_count,
        column_count=len(columns),
        table_size=row_count * len(columns),
    )
