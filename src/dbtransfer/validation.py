"""Declarative per-column validation of candidate records."""

import logging
from typing import Iterable

from dbtransfer.models import RuleKind, ValidationRule
from dbtransfer.types import Record, Value

logger = logging.getLogger(__name__)


def _is_empty(value: Value) -> bool:
    return value is None or value == ""


def _to_number(value: Value) -> float | None:
    """Numeric coercion for range checks; blank text counts as 0, other text as no number."""
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            return float(text)
        except ValueError:
            return None
    return None


class Validator:
    """Evaluate a list of ValidationRule against records.

    ``unique`` rules compare values across the records of one
    ``validate_batch``/``partition`` call: the first occurrence passes and
    every later duplicate fails.
    """

    def __init__(self, rules: Iterable[ValidationRule] = ()):
        self._rules = list(rules)

    @property
    def rules(self) -> list[ValidationRule]:
        return list(self._rules)

    def add_rule(self, rule: ValidationRule) -> None:
        self._rules.append(rule)

    def remove_rule(self, column: str) -> None:
        self._rules = [r for r in self._rules if r.column != column]

    def clear_rules(self) -> None:
        self._rules = []

    def validate(self, record: Record, seen: dict[int, set] | None = None) -> list[str]:
        """Return the failure messages for ``record``; empty means valid.

        Pass the same ``seen`` dict for every record of a run to enforce
        ``unique`` rules; without it they are not evaluated.
        """
        errors: list[str] = []
        for index, rule in enumerate(self._rules):
            message = self._check(rule, record.get(rule.column), index, seen)
            if message:
                errors.append(rule.message or message)
        return errors

    def _check(
        self, rule: ValidationRule, value: Value, index: int, seen: dict[int, set] | None
    ) -> str | None:
        col = rule.column
        if rule.kind is RuleKind.REQUIRED:
            if _is_empty(value):
                return f"Column '{col}' is required"
        elif rule.kind is RuleKind.PATTERN:
            if not _is_empty(value) and not rule.pattern.search(str(value)):
                return f"Column '{col}' does not match pattern"
        elif rule.kind is RuleKind.RANGE:
            number = _to_number(value)
            if number is None:
                return None
            if rule.min_value is not None and number < rule.min_value:
                return f"Column '{col}' must be >= {rule.min_value}"
            if rule.max_value is not None and number > rule.max_value:
                return f"Column '{col}' must be <= {rule.max_value}"
        elif rule.kind is RuleKind.ENUM:
            if value is not None and value not in rule.values:
                allowed = ", ".join(str(v) for v in rule.values)
                return f"Column '{col}' must be one of: {allowed}"
        elif rule.kind is RuleKind.UNIQUE:
            if seen is None or _is_empty(value):
                return None
            values = seen.setdefault(index, set())
            if value in values:
                return f"Column '{col}' must be unique, duplicate value {value!r}"
            values.add(value)
        return None

    def validate_batch(self, records: list[Record]) -> dict[int, list[str]]:
        """Map the index of every failing record to its messages."""
        seen: dict[int, set] = {}
        failures = {}
        for i, record in enumerate(records):
            errors = self.validate(record, seen)
            if errors:
                failures[i] = errors
        return failures

    def partition(self, records: list[Record]) -> tuple[list[Record], list[str]]:
        """Split ``records`` into the passing ones and row-prefixed failure messages."""
        failures = self.validate_batch(records)
        passing = [r for i, r in enumerate(records) if i not in failures]
        messages = [
            f"Row {i + 1}: {message}" for i, errors in failures.items() for message in errors
        ]
        if failures:
            logger.warning("%d of %d records failed validation", len(failures), len(records))
        return passing, messages
