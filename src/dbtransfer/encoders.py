"""Encode records into export payloads."""

import io
import json
from datetime import datetime, timezone

from dbtransfer.types import Record, Value


def _cell_text(value: Value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.hex()
    return str(value)


def _quote_csv(text: str, delimiter: str) -> str:
    if delimiter in text or '"' in text or "\n" in text or "\r" in text:
        return '"' + text.replace('"', '""') + '"'
    return text


def encode_csv(records: list[Record], delimiter: str = ",") -> str:
    """Header from the first record's keys, one line per record; no records gives ``""``."""
    if not records:
        return ""
    headers = list(records[0])
    lines = [delimiter.join(_quote_csv(h, delimiter) for h in headers)]
    for record in records:
        lines.append(
            delimiter.join(_quote_csv(_cell_text(record.get(h)), delimiter) for h in headers)
        )
    return "\n".join(lines)


def _json_default(value):
    if isinstance(value, bytes):
        return value.hex()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_json(records: list[Record], pretty: bool = False) -> str:
    return json.dumps(records, indent=2 if pretty else None, default=_json_default)


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def sql_literal(value: Value) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, bytes):
        return f"X'{value.hex()}'"
    return "'" + str(value).replace("'", "''") + "'"


def encode_sql(records: list[Record], table: str, schema: str | None = None) -> str:
    """A statement dump: comment header, optional schema, one INSERT per record."""
    lines = [
        "-- Database Dump",
        f"-- Generated: {datetime.now(timezone.utc).isoformat()}",
        "--",
        "",
    ]
    if schema:
        lines.append(schema)
        lines.append("")

    if records:
        columns = list(records[0])
        column_list = ", ".join(quote_identifier(c) for c in columns)
        for record in records:
            values = ", ".join(sql_literal(record.get(c)) for c in columns)
            lines.append(
                f"INSERT INTO {quote_identifier(table)} ({column_list}) VALUES ({values});"
            )
    return "\n".join(lines)


def encode_excel(records: list[Record], sheet_name: str = "Data") -> bytes:
    """One worksheet: a header row from the first record's keys, then the values."""
    from openpyxl import Workbook

    workbook = Workbook()
    sheet = workbook.active
    # Excel caps sheet titles at 31 characters.
    sheet.title = sheet_name[:31]
    if records:
        headers = list(records[0])
        sheet.append(headers)
        for record in records:
            sheet.append(
                [v.hex() if isinstance(v, bytes) else v for v in (record.get(h) for h in headers)]
            )

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
