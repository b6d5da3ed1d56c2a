"""Tests for the record validator."""

import pytest

from dbtransfer import RuleKind, ValidationRule
from dbtransfer.validation import Validator


class TestRules:
    def test_required(self):
        validator = Validator([ValidationRule("name", RuleKind.REQUIRED)])
        assert validator.validate({"name": "Ann"}) == []
        assert validator.validate({"name": ""}) == ["Column 'name' is required"]
        assert validator.validate({}) == ["Column 'name' is required"]

    def test_pattern(self):
        validator = Validator([ValidationRule("email", "pattern", pattern=r"^[^@]+@[^@]+$")])
        assert validator.validate({"email": "a@b.c"}) == []
        assert validator.validate({"email": None}) == []
        assert validator.validate({"email": "nope"}) == ["Column 'email' does not match pattern"]

    def test_range(self):
        validator = Validator([ValidationRule("age", "range", min_value=0, max_value=150)])
        assert validator.validate({"age": "30"}) == []
        assert validator.validate({"age": 150}) == []
        assert validator.validate({"age": "-1"}) == ["Column 'age' must be >= 0"]
        assert validator.validate({"age": 200}) == ["Column 'age' must be <= 150"]
        assert validator.validate({"age": None}) == []

    def test_range_coercion(self):
        validator = Validator([ValidationRule("age", "range", min_value=1, max_value=150)])
        assert validator.validate({"age": "abc"}) == []
        assert validator.validate({"age": b"\x01"}) == []
        assert validator.validate({"age": ""}) == ["Column 'age' must be >= 1"]
        assert validator.validate({"age": "  "}) == ["Column 'age' must be >= 1"]

    def test_enum(self):
        validator = Validator([ValidationRule("status", "enum", values=["open", "closed"])])
        assert validator.validate({"status": "open"}) == []
        assert validator.validate({"status": "lost"}) == [
            "Column 'status' must be one of: open, closed"
        ]

    def test_custom_message(self):
        validator = Validator([ValidationRule("age", "range", min_value=0, message="bad age")])
        assert validator.validate({"age": -5}) == ["bad age"]

    def test_unique_needs_shared_state(self):
        validator = Validator([ValidationRule("id", RuleKind.UNIQUE)])
        assert validator.validate({"id": 1}) == []
        assert validator.validate({"id": 1}) == []

        seen = {}
        assert validator.validate({"id": 1}, seen) == []
        assert validator.validate({"id": 1}, seen) == [
            "Column 'id' must be unique, duplicate value 1"
        ]

    def test_rule_parameters_are_checked(self):
        with pytest.raises(ValueError, match="needs a pattern"):
            ValidationRule("x", "pattern")
        with pytest.raises(ValueError, match="needs allowed values"):
            ValidationRule("x", "enum")
        with pytest.raises(ValueError):
            ValidationRule("x", "sometimes")

    def test_from_dict(self):
        rule = ValidationRule.from_dict({"column": "age", "kind": "range", "min": 0, "max": 9})
        assert rule.kind is RuleKind.RANGE
        assert (rule.min_value, rule.max_value) == (0, 9)


class TestBatch:
    def test_validate_batch(self):
        validator = Validator(
            [ValidationRule("id", "unique"), ValidationRule("name", "required")]
        )
        records = [{"id": 1, "name": "a"}, {"id": 1, "name": ""}, {"id": 2, "name": "b"}]
        assert validator.validate_batch(records) == {
            1: ["Column 'id' must be unique, duplicate value 1", "Column 'name' is required"]
        }

    def test_partition(self):
        validator = Validator([ValidationRule("age", "range", min_value=0, max_value=150)])
        records = [{"age": "10"}, {"age": "999"}, {"age": "20"}]
        passing, messages = validator.partition(records)
        assert passing == [{"age": "10"}, {"age": "20"}]
        assert messages == ["Row 2: Column 'age' must be <= 150"]

    def test_rule_management(self):
        validator = Validator()
        validator.add_rule(ValidationRule("a", "required"))
        validator.add_rule(ValidationRule("b", "required"))
        validator.remove_rule("a")
        assert [r.column for r in validator.rules] == ["b"]
        validator.clear_rules()
        assert validator.rules == []
        assert validator.validate({}) == []
