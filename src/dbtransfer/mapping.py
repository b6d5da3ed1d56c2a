"""Column renaming between source records and the destination table."""

from dbtransfer.models import TableMapping
from dbtransfer.types import Record


def apply_mapping(record: Record, mapping: TableMapping | None) -> Record:
    """Rename ``record`` per ``mapping.column_mapping``.

    Only mapped columns are kept; a source column missing from the record maps
    to None. Without a column mapping the record is returned as a copy.
    """
    if mapping is None or not mapping.column_mapping:
        return dict(record)
    return {target: record.get(source) for source, target in mapping.column_mapping.items()}


def resolve_table_name(
    table_name: str | None, mapping: TableMapping | None, default: str
) -> str:
    if table_name:
        return table_name
    if mapping is not None and mapping.target_table:
        return mapping.target_table
    return default
