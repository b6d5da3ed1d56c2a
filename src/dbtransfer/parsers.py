"""Decode payloads into records.

CSV tokenising goes through the stdlib ``csv`` reader, so quoted fields may
hold the delimiter, doubled quotes and line breaks. Header names and values
are whitespace-trimmed, blank lines are skipped, missing trailing values
become ``""`` and surplus values are dropped.
"""

import csv
import io
import json
import logging
import zipfile
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Iterable, Iterator

from dbtransfer.errors import FormatError, InputError
from dbtransfer.models import DataFormat, ImportOptions
from dbtransfer.types import Record, Value

logger = logging.getLogger(__name__)

JSON_DATA_KEY = "data"


def normalize_value(value: Any) -> Value:
    """Coerce a decoded value to one of None, int, float, str or bytes."""
    if value is None or isinstance(value, (str, float)):
        return value
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def decode_payload(payload: bytes, encoding: str) -> str:
    try:
        text = payload.decode(encoding)
    except (UnicodeDecodeError, LookupError) as e:
        raise InputError(f"Cannot decode payload as {encoding}: {e}") from e
    return text.lstrip("\ufeff")


def _is_blank(row: list[str]) -> bool:
    return all(cell.strip() == "" for cell in row)


def _clean_header(row: list[str]) -> list[str]:
    header = [name.strip().strip('"').strip() for name in row]
    if not header:
        raise FormatError("Missing header row")
    for position, name in enumerate(header, start=1):
        if not name:
            raise FormatError(f"Empty column name in header at position {position}")
    return header


def iter_csv(lines: Iterable[str], delimiter: str = ",") -> tuple[list[str], Iterator[Record]]:
    """Read the header from ``lines`` and return it with a lazy record iterator."""
    reader = csv.reader(lines, delimiter=delimiter, skipinitialspace=True)
    try:
        raw_header = next((row for row in reader if row and not _is_blank(row)), None)
    except csv.Error as e:
        raise FormatError(f"Malformed CSV header: {e}") from e
    if raw_header is None:
        raise FormatError("No header row found in CSV payload")
    header = _clean_header(raw_header)

    def records() -> Iterator[Record]:
        width = len(header)
        try:
            for row in reader:
                if not row or _is_blank(row):
                    continue
                values = [cell.strip() for cell in row[:width]]
                values.extend("" for _ in range(width - len(values)))
                yield dict(zip(header, values))
        except csv.Error as e:
            raise FormatError(f"Malformed CSV at line {reader.line_num}: {e}") from e

    return header, records()


def parse_csv(text: str, delimiter: str = ",") -> list[Record]:
    _, records = iter_csv(io.StringIO(text, newline=""), delimiter)
    return list(records)


def parse_json(text: str) -> list[Record]:
    """Accept a list of objects, ``{"data": [...]}`` or one bare object."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise FormatError(f"Invalid JSON format: {e}") from e

    if isinstance(data, list):
        items = data
    elif isinstance(data, dict) and isinstance(data.get(JSON_DATA_KEY), list):
        items = data[JSON_DATA_KEY]
    elif isinstance(data, dict):
        items = [data]
    else:
        raise FormatError("JSON must be an array or object with data array")

    records: list[Record] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise FormatError(f"JSON item {index} is not an object")
        records.append({str(k): normalize_value(v) for k, v in item.items()})
    return records


def parse_excel(payload: bytes, sheet_name: str | None = None) -> list[Record]:
    """Read one sheet of an .xlsx workbook, using its first row as the header."""
    from openpyxl import load_workbook
    from openpyxl.utils.exceptions import InvalidFileException

    try:
        workbook = load_workbook(io.BytesIO(payload), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        raise FormatError(f"Invalid Excel workbook: {e}") from e

    try:
        name = sheet_name or workbook.sheetnames[0]
        if name not in workbook.sheetnames:
            raise FormatError(f"Sheet '{name}' not found in Excel file")
        rows = workbook[name].iter_rows(values_only=True)

        raw_header = list(next(rows, None) or ())
        while raw_header and raw_header[-1] in (None, ""):
            raw_header.pop()
        header = _clean_header(["" if h is None else str(h) for h in raw_header])

        records: list[Record] = []
        for row in rows:
            values = [normalize_value(v) for v in (row or ())[: len(header)]]
            if all(v in (None, "") for v in values):
                continue
            values.extend(None for _ in range(len(header) - len(values)))
            records.append(dict(zip(header, values)))
        return records
    finally:
        workbook.close()


def parse_records(payload: bytes, options: ImportOptions) -> list[Record]:
    """Decode ``payload`` per ``options.format`` and apply ``skip_rows``."""
    fmt = options.format
    if fmt is DataFormat.CSV:
        records = parse_csv(decode_payload(payload, options.encoding), options.delimiter)
    elif fmt is DataFormat.JSON:
        records = parse_json(decode_payload(payload, options.encoding))
    elif fmt is DataFormat.EXCEL:
        records = parse_excel(payload, options.sheet_name)
    else:
        raise FormatError(f"Format '{fmt.value}' carries statements, not records")

    if options.skip_rows:
        records = records[options.skip_rows :]
    if not records:
        raise FormatError(f"No data found in {fmt.value.upper()} payload")
    logger.debug("Parsed %d %s records", len(records), fmt.value)
    return records
