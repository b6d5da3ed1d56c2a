"""Import payloads into a table: parse, map, validate, provision, write."""

import logging
from pathlib import Path
from typing import Any, Iterable

from dbtransfer.batch import BatchWriter
from dbtransfer.errors import InputError, TransferError, ValidationError, WriteError
from dbtransfer.mapping import apply_mapping, resolve_table_name
from dbtransfer.models import DataFormat, ImportOptions, ImportResult
from dbtransfer.parsers import decode_payload, parse_records
from dbtransfer.progress import ProgressReporter
from dbtransfer.schema import check_destination, provision_table
from dbtransfer.service import DatabaseService
from dbtransfer.types import Record
from dbtransfer.validation import Validator

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "imported_data"


def read_input(file_path: str | Path) -> bytes:
    try:
        return Path(file_path).read_bytes()
    except FileNotFoundError as e:
        raise InputError(f"File not found: {file_path}") from e
    except OSError as e:
        raise InputError(f"Cannot read {file_path}: {e}") from e


class DataImporter:
    """Run one import against ``service``.

    Steps run in a fixed order: parse, map, validate, transform, provision,
    then the batch loop. Every public entry point returns an ImportResult; a
    TransferError raised by any step becomes a failed result and an ``error``
    progress snapshot.
    """

    def __init__(self, service: DatabaseService, options: ImportOptions):
        self.service = service
        self.options = options
        default_table = DEFAULT_TABLE
        if options.format is DataFormat.EXCEL and options.sheet_name:
            default_table = options.sheet_name
        self.table = resolve_table_name(options.table_name, options.mapping, default_table)
        self.reporter = ProgressReporter(options.on_progress)
        self.writer: BatchWriter | None = None
        self.warnings: list[str] = []
        self.table_created = False

    def import_file(self, file_path: str | Path) -> ImportResult:
        try:
            payload = read_input(file_path)
        except InputError as e:
            return self._failure(e)
        return self.import_bytes(payload)

    def import_bytes(self, payload: bytes) -> ImportResult:
        try:
            if self.options.format is DataFormat.SQL:
                return self._import_statements(decode_payload(payload, self.options.encoding))
            records = parse_records(payload, self.options)
            return self._import(records)
        except TransferError as e:
            return self._failure(e)
        except Exception as e:
            return self._unexpected(e)

    def import_records(self, records: Iterable[Record]) -> ImportResult:
        """Import records that were decoded by the caller."""
        try:
            return self._import(list(records))
        except TransferError as e:
            return self._failure(e)
        except Exception as e:
            return self._unexpected(e)

    def rollback(self) -> None:
        """Drop the destination table if this import provisioned it."""
        if self.options.provisions_table:
            self.service.drop_table(self.table)
            logger.info("Rolled back import by dropping %s", self.table)

    def _import_statements(self, script: str) -> ImportResult:
        self.reporter.total = 1
        try:
            self.service.execute_script(script)
        except Exception as e:
            raise WriteError(f"SQL script failed: {e}") from e
        self.reporter.complete()
        logger.info("Executed SQL script (%d bytes)", len(script))
        return ImportResult(
            success=True,
            message="Successfully executed SQL statements",
            rows_imported=0,
        )

    def _prepare(self, records: list[Record]) -> list[Record]:
        opts = self.options
        records = [apply_mapping(r, opts.mapping) for r in records]

        if opts.validation:
            passing, messages = Validator(opts.validation).partition(records)
            if messages and not opts.continue_on_error:
                failed = len(records) - len(passing)
                raise ValidationError(f"{failed} record(s) failed validation", messages)
            self.warnings = messages
            records = passing

        if opts.transform is not None:
            records = [self._transform(r, n) for n, r in enumerate(records, start=1)]
        return records

    def _transform(self, record: Record, row_number: int) -> Record:
        try:
            return self.options.transform(record)
        except Exception as e:
            raise ValidationError(f"Transform failed on row {row_number}: {e}") from e

    def _open_writer(self, sample: list[Record]) -> BatchWriter:
        """Provision or check the destination, then bind a writer to the first record's columns."""
        opts = self.options
        columns = list(sample[0])
        if opts.provisions_table:
            provision_table(self.service, self.table, sample, columns, opts.mapping)
            self.table_created = True
        else:
            check_destination(self.service, self.table, columns)

        self.writer = BatchWriter(
            self.service,
            self.table,
            batch_size=opts.batch_size,
            continue_on_error=opts.continue_on_error,
            reporter=self.reporter,
            cancel_token=opts.cancel_token,
        )
        self.writer.bind_columns(columns)
        return self.writer

    def _import(self, records: list[Record]) -> ImportResult:
        records = self._prepare(records)

        if not records:
            self.reporter.complete()
            return ImportResult(
                success=True,
                message=f"No records left to import into table '{self.table}'",
                rows_imported=0,
                table_created=False,
                warnings=self.warnings,
            )

        self.reporter.total = len(records)
        rows = self._open_writer(records).write_all(records)
        self.reporter.complete()

        logger.info("Import complete: %d of %d rows into %s", rows, len(records), self.table)
        return ImportResult(
            success=True,
            message=f"Successfully imported {rows} rows into table '{self.table}'",
            rows_imported=rows,
            table_created=self.table_created,
            errors=list(self.writer.errors),
            warnings=self.warnings,
        )

    def _failure(self, error: TransferError) -> ImportResult:
        if not self.reporter.finished:
            try:
                self.reporter.fail(error.message)
            except Exception:
                logger.exception("Progress sink raised while reporting a failed import")
        logger.error("Import into %s failed: %s", self.table, error.message)

        errors = list(self.writer.errors) if self.writer is not None else []
        if isinstance(error, ValidationError):
            errors.extend(error.messages)
        else:
            errors.append(error.message)
        return ImportResult(
            success=False,
            message=error.message,
            rows_imported=self.writer.rows_written if self.writer is not None else 0,
            table_created=self.table_created,
            errors=errors,
            warnings=self.warnings,
        )

    def _unexpected(self, error: Exception) -> ImportResult:
        logger.exception("Unexpected error while importing into %s", self.table)
        return self._failure(TransferError(f"{type(error).__name__}: {error}"))


def import_multiple_files(
    service: DatabaseService,
    files: Iterable[tuple[str | Path, DataFormat | str, str | None]],
    **overrides: Any,
) -> list[ImportResult]:
    """Import ``(path, format, table_name)`` entries in order.

    Stops after the first failed import unless ``continue_on_error`` is set.
    """
    results = []
    for file_path, fmt, table_name in files:
        options = ImportOptions(format=fmt, table_name=table_name, **overrides)
        result = DataImporter(service, options).import_file(file_path)
        results.append(result)
        if not result.success and not options.continue_on_error:
            break
    return results
