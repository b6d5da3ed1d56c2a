"""Incremental CSV import from a byte stream."""

import codecs
import dataclasses
import io
import logging
from typing import BinaryIO

from dbtransfer.errors import FormatError, InputError, TransferError, ValidationError
from dbtransfer.importer import DataImporter
from dbtransfer.mapping import apply_mapping
from dbtransfer.models import DataFormat, ImportOptions, ImportResult
from dbtransfer.parsers import iter_csv
from dbtransfer.service import DatabaseService
from dbtransfer.types import Record
from dbtransfer.validation import Validator

logger = logging.getLogger(__name__)


class StreamImporter(DataImporter):
    """Import CSV from ``stream`` holding at most one batch of records in memory.

    Rows are decoded, mapped, validated and transformed one at a time. The
    first batch doubles as the type-inference sample when the table is
    provisioned. Progress totals grow as rows are read, since the row count of
    a stream is unknown up front. The caller keeps ownership of ``stream``.
    """

    def __init__(self, service: DatabaseService, stream: BinaryIO, options: ImportOptions):
        if options.format is not DataFormat.CSV:
            options = dataclasses.replace(options, format=DataFormat.CSV)
        super().__init__(service, options)
        self.stream = stream
        self.rows_read = 0
        self.rows_accepted = 0

    def import_stream(self) -> ImportResult:
        try:
            text = io.TextIOWrapper(self.stream, encoding=self._text_encoding(), newline="")
        except LookupError:
            return self._failure(InputError(f"Unknown encoding: {self.options.encoding}"))
        try:
            return self._import_lines(text)
        except UnicodeDecodeError as e:
            return self._failure(InputError(f"Cannot decode stream as {self.options.encoding}: {e}"))
        except TransferError as e:
            return self._failure(e)
        except Exception as e:
            return self._unexpected(e)
        finally:
            text.detach()

    def _text_encoding(self) -> str:
        # utf-8-sig drops a leading byte order mark, as decode_payload does for buffers.
        encoding = self.options.encoding
        if codecs.lookup(encoding).name == "utf-8":
            return "utf-8-sig"
        return encoding

    def _import_lines(self, text: io.TextIOWrapper) -> ImportResult:
        opts = self.options
        validator = Validator(opts.validation) if opts.validation else None
        seen: dict[int, set] = {}
        _, records = iter_csv(text, opts.delimiter)

        batch: list[Record] = []
        for record in records:
            self.rows_read += 1
            if self.rows_read <= opts.skip_rows:
                continue
            record = apply_mapping(record, opts.mapping)

            if validator is not None:
                errors = validator.validate(record, seen)
                if errors:
                    messages = [f"Row {self.rows_read}: {m}" for m in errors]
                    if not opts.continue_on_error:
                        raise ValidationError(f"Row {self.rows_read} failed validation", messages)
                    logger.warning("Dropping row %d: %s", self.rows_read, "; ".join(errors))
                    self.warnings.extend(messages)
                    continue

            if opts.transform is not None:
                record = self._transform(record, self.rows_read)
            batch.append(record)
            self.rows_accepted += 1
            if len(batch) >= opts.batch_size:
                self._flush(batch)
                batch = []

        if batch:
            self._flush(batch)
        if self.rows_read <= opts.skip_rows:
            raise FormatError("No data found in CSV stream")

        rows = self.writer.rows_written if self.writer is not None else 0
        self.reporter.complete()
        logger.info("Stream import complete: %d rows into %s", rows, self.table)
        return ImportResult(
            success=True,
            message=f"Successfully imported {rows} rows into table '{self.table}'",
            rows_imported=rows,
            table_created=self.table_created,
            errors=list(self.writer.errors) if self.writer is not None else [],
            warnings=self.warnings,
        )

    def _flush(self, batch: list[Record]) -> None:
        writer = self.writer or self._open_writer(batch)
        writer.write_batch(batch, total=self.rows_accepted)
