"""Column type inference and destination table provisioning."""

import logging
import math
from typing import Iterable

from dbtransfer.errors import SchemaError
from dbtransfer.models import ColumnType, TableMapping
from dbtransfer.service import DatabaseService
from dbtransfer.types import Record, Value

logger = logging.getLogger(__name__)

SAMPLE_SIZE = 100
BOOLEAN_LITERALS = {"true", "false", "0", "1"}


def _as_number(value: Value) -> float | None:
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _is_boolean_like(value: Value) -> bool:
    if isinstance(value, (int, float)):
        return value in (0, 1)
    return isinstance(value, str) and value.strip().lower() in BOOLEAN_LITERALS


def infer_column_type(values: Iterable[Value]) -> ColumnType:
    """Infer a column type from up to SAMPLE_SIZE non-null values.

    ``None`` and ``""`` count as null; an all-null column is TEXT.
    """
    sample = []
    for value in values:
        if value is None or value == "":
            continue
        sample.append(value)
        if len(sample) >= SAMPLE_SIZE:
            break

    if not sample:
        return ColumnType.TEXT
    if all(isinstance(v, bytes) for v in sample):
        return ColumnType.BLOB

    numbers = [_as_number(v) for v in sample]
    if all(n is not None for n in numbers):
        if all(n.is_integer() for n in numbers):
            return ColumnType.INTEGER
        return ColumnType.REAL
    if all(_is_boolean_like(v) for v in sample):
        return ColumnType.INTEGER
    return ColumnType.TEXT


def infer_schema(records: list[Record], columns: list[str]) -> dict[str, ColumnType]:
    return {col: infer_column_type(r.get(col) for r in records) for col in columns}


def build_create_table(
    service: DatabaseService,
    table: str,
    schema: dict[str, ColumnType],
    mapping: TableMapping | None = None,
) -> str:
    q = service.quote_identifier
    parts = [f"{q(col)} {service.column_types[col_type]}" for col, col_type in schema.items()]

    if mapping is not None:
        pk = [col for col in mapping.primary_key if col in schema]
        if pk:
            parts.append(f"PRIMARY KEY ({', '.join(q(c) for c in pk)})")
        for col, ref in mapping.foreign_keys.items():
            if col in schema:
                parts.append(f"FOREIGN KEY ({q(col)}) REFERENCES {q(ref.table)}({q(ref.column)})")

    return f"CREATE TABLE {q(table)} ({', '.join(parts)})"


def provision_table(
    service: DatabaseService,
    table: str,
    records: list[Record],
    columns: list[str],
    mapping: TableMapping | None = None,
) -> dict[str, ColumnType]:
    """Drop ``table`` if it exists and recreate it from types inferred from ``records``.

    Provisioning replaces the table and its contents, it never merges.
    """
    schema = infer_schema(records, columns)
    ddl = build_create_table(service, table, schema, mapping)
    try:
        service.drop_table(table)
        service.execute_script(ddl)
    except Exception as e:
        raise SchemaError(f"Cannot provision table '{table}': {e}") from e
    logger.info(
        "Provisioned table %s (%s)",
        table,
        ", ".join(f"{c} {t.value}" for c, t in schema.items()),
    )
    return schema


def check_destination(service: DatabaseService, table: str, columns: list[str]) -> None:
    """Fail before any write when ``table`` or one of ``columns`` does not exist."""
    if not service.table_exists(table):
        raise SchemaError(
            f"Table '{table}' does not exist. Enable create_table to provision it."
        )
    known = set(service.table_columns(table))
    unknown = [c for c in columns if c not in known]
    if unknown:
        raise SchemaError(f"Table '{table}' has no column(s): {', '.join(unknown)}")
