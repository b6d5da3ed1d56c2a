"""Options, mappings, rules and results exchanged with callers."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from dbtransfer.types import Transform


class DataFormat(str, Enum):
    """Supported payload formats."""

    CSV = "csv"
    JSON = "json"
    SQL = "sql"
    EXCEL = "excel"

    @property
    def extension(self) -> str:
        return "xlsx" if self is DataFormat.EXCEL else self.value


class ColumnType(str, Enum):
    TEXT = "TEXT"
    INTEGER = "INTEGER"
    REAL = "REAL"
    BLOB = "BLOB"


class RuleKind(str, Enum):
    REQUIRED = "required"
    UNIQUE = "unique"
    PATTERN = "pattern"
    RANGE = "range"
    ENUM = "enum"


class ProgressStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True)
class ForeignKey:
    table: str
    column: str


@dataclass(frozen=True)
class TableMapping:
    """Rename source columns and declare keys for the destination table.

    When ``column_mapping`` is set, only the mapped columns survive, in the
    order the mapping lists them. Otherwise records pass through unchanged.
    """

    target_table: str
    source_table: Optional[str] = None
    column_mapping: dict[str, str] = field(default_factory=dict)
    primary_key: tuple[str, ...] = ()
    foreign_keys: dict[str, ForeignKey] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "primary_key", tuple(self.primary_key))
        fks = {
            col: ref if isinstance(ref, ForeignKey) else ForeignKey(**ref)
            for col, ref in self.foreign_keys.items()
        }
        object.__setattr__(self, "foreign_keys", fks)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TableMapping":
        return cls(
            target_table=data["target_table"],
            source_table=data.get("source_table"),
            column_mapping=dict(data.get("column_mapping") or {}),
            primary_key=tuple(data.get("primary_key") or ()),
            foreign_keys=dict(data.get("foreign_keys") or {}),
        )


@dataclass(frozen=True)
class ValidationRule:
    column: str
    kind: RuleKind
    pattern: Optional[re.Pattern] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    values: tuple = ()
    message: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", RuleKind(self.kind))
        if isinstance(self.pattern, str):
            object.__setattr__(self, "pattern", re.compile(self.pattern))
        object.__setattr__(self, "values", tuple(self.values))
        if self.kind is RuleKind.PATTERN and self.pattern is None:
            raise ValueError(f"Pattern rule for '{self.column}' needs a pattern")
        if self.kind is RuleKind.ENUM and not self.values:
            raise ValueError(f"Enum rule for '{self.column}' needs allowed values")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ValidationRule":
        return cls(
            column=data["column"],
            kind=data["kind"],
            pattern=data.get("pattern"),
            min_value=data.get("min"),
            max_value=data.get("max"),
            values=tuple(data.get("values") or ()),
            message=data.get("message"),
        )


@dataclass(frozen=True)
class ProgressInfo:
    total_rows: int
    processed_rows: int
    percentage: int
    status: ProgressStatus
    error: Optional[str] = None


ProgressSink = Callable[[ProgressInfo], None]


def _check_common(fmt: DataFormat | str, delimiter: str) -> DataFormat:
    try:
        fmt = DataFormat(fmt)
    except ValueError:
        raise ValueError(f"Unsupported format: {fmt}") from None
    if len(delimiter) != 1:
        raise ValueError(f"Delimiter must be a single character, got {delimiter!r}")
    return fmt


@dataclass(frozen=True)
class ImportOptions:
    format: DataFormat
    table_name: Optional[str] = None
    batch_size: int = 1000
    skip_rows: int = 0
    delimiter: str = ","
    encoding: str = "utf-8"
    create_table: bool = False
    drop_table: bool = False
    mapping: Optional[TableMapping] = None
    validation: tuple[ValidationRule, ...] = ()
    continue_on_error: bool = False
    transform: Optional[Transform] = None
    on_progress: Optional[ProgressSink] = None
    sheet_name: Optional[str] = None
    cancel_token: Any = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "format", _check_common(self.format, self.delimiter))
        object.__setattr__(self, "validation", tuple(self.validation))
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.skip_rows < 0:
            raise ValueError(f"skip_rows must not be negative, got {self.skip_rows}")

    @property
    def provisions_table(self) -> bool:
        return self.create_table or self.drop_table


@dataclass(frozen=True)
class ExportOptions:
    format: DataFormat
    table_name: Optional[str] = None
    query: Optional[str] = None
    delimiter: str = ","
    pretty: bool = False
    include_schema: bool = False
    mapping: Optional[TableMapping] = None
    on_progress: Optional[ProgressSink] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "format", _check_common(self.format, self.delimiter))


@dataclass(frozen=True)
class ImportResult:
    success: bool
    message: str
    rows_imported: int
    table_created: Optional[bool] = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ExportResult:
    success: bool
    message: str
    rows_exported: int
    file_path: Optional[str] = None
    content: str | bytes | None = None


@dataclass(frozen=True)
class TableStats:
    row_count: int
    column_count: int
    table_size: int
