"""Abstract DatabaseService interface."""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator

from dbtransfer.models import ColumnType
from dbtransfer.types import Params, ParamsList


class DatabaseService(ABC):
    """Database-agnostic interface for everything the transfer engine needs.

    Design principles:
    - Stateless: no mutable state beyond the connection pool
    - Thread-safe: each transaction() acquires its own connection
    - DB-agnostic: callers program against this ABC, never a concrete backend

    Statement methods (execute, execute_many, savepoint, batch_insert) must
    run inside a ``with service.transaction():`` block. Script and catalog
    methods acquire their own connection.
    """

    placeholder: str = "?"
    column_types: dict[ColumnType, str] = {t: t.value for t in ColumnType}

    @abstractmethod
    def connect(self) -> None:
        """Initialize the connection pool."""

    @abstractmethod
    def close(self) -> None:
        """Close all connections and release resources."""

    @abstractmethod
    def execute(self, sql: str, params: Params | None = None) -> list[dict[str, Any]]:
        """Execute a single SQL statement and return rows as dicts."""

    @abstractmethod
    def execute_many(self, sql: str, params_list: ParamsList) -> None:
        """Execute a SQL statement for each parameter set."""

    @abstractmethod
    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Context manager: acquires a connection, commits on success, rolls back on error."""

    @abstractmethod
    def execute_script(self, sql: str) -> None:
        """Execute a script of statements verbatim and commit it."""

    @abstractmethod
    def table_exists(self, table: str) -> bool:
        """Return True if the table exists."""

    @abstractmethod
    def table_columns(self, table: str) -> list[str]:
        """Return the table's column names in declaration order."""

    @abstractmethod
    def table_schema(self, table: str) -> str | None:
        """Return a CREATE TABLE statement for the table, or None if absent."""

    @abstractmethod
    def list_tables(self) -> list[str]:
        """Return the names of all user tables."""

    def quote_identifier(self, name: str) -> str:
        return '"' + name.replace('"', '""') + '"'

    def build_insert(self, table: str, columns: list[str]) -> str:
        cols = ", ".join(self.quote_identifier(c) for c in columns)
        placeholders = ", ".join(self.placeholder for _ in columns)
        return f"INSERT INTO {self.quote_identifier(table)} ({cols}) VALUES ({placeholders})"

    def batch_insert(self, table: str, columns: list[str], rows: list[tuple]) -> None:
        """Insert multiple rows into a table."""
        if not rows:
            return
        self.execute_many(self.build_insert(table, columns), rows)

    def drop_table(self, table: str) -> None:
        self.execute_script(f"DROP TABLE IF EXISTS {self.quote_identifier(table)}")

    @contextmanager
    def savepoint(self, name: str) -> Iterator[None]:
        """Nested context inside a transaction: releases on success, rolls back to it on error."""
        self.execute(f"SAVEPOINT {name}")
        try:
            yield
        except Exception:
            self.execute(f"ROLLBACK TO SAVEPOINT {name}")
            self.execute(f"RELEASE SAVEPOINT {name}")
            raise
        self.execute(f"RELEASE SAVEPOINT {name}")
