"""Transactional batch writes."""

import logging
from typing import Any, Callable, Iterable, Iterator, TypeVar

from dbtransfer.errors import CancelledError, WriteError
from dbtransfer.progress import CancellationToken, ProgressReporter
from dbtransfer.service import DatabaseService
from dbtransfer.types import Record

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000
ROW_SAVEPOINT = "dbtransfer_row"

T = TypeVar("T")
R = TypeVar("R")


def with_transaction(service: DatabaseService, batch: T, fn: Callable[[T], R]) -> R:
    """Run ``fn(batch)`` inside one transaction: commit on return, roll back on error."""
    with service.transaction():
        return fn(batch)


def chunked(items: Iterable[T], size: int) -> Iterator[list[T]]:
    """Yield lists of at most ``size`` items without materialising ``items``."""
    chunk: list[T] = []
    for item in items:
        chunk.append(item)
        if len(chunk) >= size:
            yield chunk
            chunk = []
    if chunk:
        yield chunk


class BatchWriter:
    """Insert records into ``table``, one transaction per batch.

    The insert column list is fixed by the first record written (or by
    ``bind_columns``); later records bind None for columns they lack.

    Strict mode writes each batch with one executemany and raises WriteError
    when it fails, after the batch has been rolled back. Batches committed
    before it stay committed. With ``continue_on_error`` every row runs in its
    own savepoint, so a failing row is rolled back alone and recorded in
    ``errors``.
    """

    def __init__(
        self,
        service: DatabaseService,
        table: str,
        batch_size: int = DEFAULT_BATCH_SIZE,
        continue_on_error: bool = False,
        reporter: ProgressReporter | None = None,
        cancel_token: CancellationToken | None = None,
    ):
        self.service = service
        self.table = table
        self.batch_size = batch_size
        self.continue_on_error = continue_on_error
        self.reporter = reporter or ProgressReporter()
        self.cancel_token = cancel_token
        self.columns: list[str] | None = None
        self.rows_written = 0
        self.rows_processed = 0
        self.transactions = 0
        self.errors: list[str] = []

    def bind_columns(self, columns: list[str]) -> None:
        if self.columns is None:
            self.columns = list(columns)

    def _params(self, record: Record) -> tuple:
        return tuple(record.get(col) for col in self.columns)

    def _insert_rows(self, rows: list[tuple]) -> int:
        if not self.continue_on_error:
            self.service.batch_insert(self.table, self.columns, rows)
            return len(rows)

        sql = self.service.build_insert(self.table, self.columns)
        written = 0
        for offset, row in enumerate(rows):
            try:
                with self.service.savepoint(ROW_SAVEPOINT):
                    self.service.execute(sql, row)
            except Exception as e:
                row_number = self.rows_processed + offset + 1
                self.errors.append(f"Row {row_number}: {e}")
                logger.warning("Skipping row %d of %s: %s", row_number, self.table, e)
                continue
            written += 1
        return written

    def write_batch(self, batch: list[Record], total: int | None = None) -> int:
        """Write one batch atomically and report progress; return rows written."""
        if self.cancel_token is not None and self.cancel_token.cancelled:
            raise CancelledError(rows_committed=self.rows_written)
        if not batch:
            return 0
        self.bind_columns(list(batch[0]))

        rows = [self._params(record) for record in batch]
        try:
            written = with_transaction(self.service, rows, self._insert_rows)
        except Exception as e:
            raise WriteError(
                f"Batch {self.transactions + 1} failed and was rolled back: {e}",
                rows_committed=self.rows_written,
            ) from e

        self.transactions += 1
        self.rows_written += written
        self.rows_processed += len(batch)
        logger.info(
            "Batch %d: inserted %d rows into %s (total: %d)",
            self.transactions,
            written,
            self.table,
            self.rows_written,
        )
        self.reporter.advance(len(batch), total)
        return written

    def write_all(self, records: list[Record]) -> int:
        total = len(records)
        for batch in chunked(records, self.batch_size):
            self.write_batch(batch, total)
        return self.rows_written


def batch_update(
    service: DatabaseService,
    table: str,
    updates: list[Record],
    key_column: str,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> int:
    """Update rows matched on ``key_column``, one transaction per batch."""
    if not updates:
        return 0
    q = service.quote_identifier
    columns = [c for c in updates[0] if c != key_column]
    set_clause = ", ".join(f"{q(c)} = {service.placeholder}" for c in columns)
    sql = f"UPDATE {q(table)} SET {set_clause} WHERE {q(key_column)} = {service.placeholder}"

    def run(batch: list[Record]) -> int:
        params = [tuple(row.get(c) for c in columns) + (row[key_column],) for row in batch]
        service.execute_many(sql, params)
        return len(batch)

    return sum(with_transaction(service, batch, run) for batch in chunked(updates, batch_size))


def batch_delete(
    service: DatabaseService,
    table: str,
    ids: list[Any],
    id_column: str = "id",
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> int:
    """Delete rows whose ``id_column`` is in ``ids``, one transaction per batch."""
    if not ids:
        return 0
    q = service.quote_identifier
    sql = f"DELETE FROM {q(table)} WHERE {q(id_column)} = {service.placeholder}"

    def run(batch: list[Any]) -> int:
        service.execute_many(sql, [(i,) for i in batch])
        return len(batch)

    return sum(with_transaction(service, batch, run) for batch in chunked(ids, batch_size))
