"""Tests for type inference and table provisioning."""

import pytest

from dbtransfer import ColumnType, ForeignKey, SchemaError, TableMapping
from dbtransfer.schema import (
    build_create_table,
    check_destination,
    infer_column_type,
    infer_schema,
    provision_table,
)


class TestInferColumnType:
    @pytest.mark.parametrize(
        "values, expected",
        [
            (["1", "2", "-3"], ColumnType.INTEGER),
            ([1, 2.0, "3"], ColumnType.INTEGER),
            (["1.5", "2"], ColumnType.REAL),
            (["true", "false", "1"], ColumnType.INTEGER),
            (["abc", "1"], ColumnType.TEXT),
            (["inf"], ColumnType.TEXT),
            ([b"\x00", b"\x01"], ColumnType.BLOB),
            ([None, "", None], ColumnType.TEXT),
            ([], ColumnType.TEXT),
        ],
    )
    def test_types(self, values, expected):
        assert infer_column_type(values) is expected

    def test_nulls_are_ignored(self):
        assert infer_column_type([None, "", "4", None]) is ColumnType.INTEGER

    def test_only_first_hundred_values_are_sampled(self):
        values = ["1"] * 100 + ["not a number"]
        assert infer_column_type(values) is ColumnType.INTEGER

    def test_infer_schema_keeps_column_order(self):
        records = [{"b": "x", "a": "1"}, {"b": "y", "a": "2.5"}]
        schema = infer_schema(records, ["b", "a"])
        assert list(schema) == ["b", "a"]
        assert schema == {"b": ColumnType.TEXT, "a": ColumnType.REAL}


class TestBuildCreateTable:
    def test_plain(self, db_service):
        ddl = build_create_table(
            db_service, "t", {"id": ColumnType.INTEGER, "name": ColumnType.TEXT}
        )
        assert ddl == 'CREATE TABLE "t" ("id" INTEGER, "name" TEXT)'

    def test_keys_only_for_known_columns(self, db_service):
        mapping = TableMapping(
            target_table="orders",
            primary_key=("id", "missing"),
            foreign_keys={
                "customer_id": ForeignKey("customers", "id"),
                "ghost": ForeignKey("ghosts", "id"),
            },
        )
        schema = {"id": ColumnType.INTEGER, "customer_id": ColumnType.INTEGER}
        ddl = build_create_table(db_service, "orders", schema, mapping)
        assert ddl == (
            'CREATE TABLE "orders" ("id" INTEGER, "customer_id" INTEGER, '
            'PRIMARY KEY ("id"), '
            'FOREIGN KEY ("customer_id") REFERENCES "customers"("id"))'
        )


class TestProvisionTable:
    def test_replaces_existing_table(self, db_service, select):
        db_service.execute_script("CREATE TABLE people (old TEXT); INSERT INTO people VALUES ('x');")
        records = [{"id": "1", "score": "2.5"}]
        schema = provision_table(db_service, "people", records, ["id", "score"])

        assert schema == {"id": ColumnType.INTEGER, "score": ColumnType.REAL}
        assert db_service.table_columns("people") == ["id", "score"]
        assert select("SELECT * FROM people") == []

    def test_composite_primary_key(self, db_service):
        mapping = TableMapping(target_table="t", primary_key=("a", "b"))
        provision_table(db_service, "t", [{"a": "1", "b": "2"}], ["a", "b"], mapping)
        assert 'PRIMARY KEY ("a", "b")' in db_service.table_schema("t")

    def test_store_error_becomes_schema_error(self, db_service):
        mapping = TableMapping(target_table="t", primary_key=("a",))
        with pytest.raises(SchemaError, match="Cannot provision table"):
            # An empty column list produces invalid DDL.
            provision_table(db_service, "t", [{}], [], mapping)


class TestCheckDestination:
    def test_missing_table(self, db_service):
        with pytest.raises(SchemaError, match="does not exist"):
            check_destination(db_service, "nope", ["id"])

    def test_unknown_column(self, db_service):
        db_service.execute_script("CREATE TABLE t (id INTEGER)")
        with pytest.raises(SchemaError, match="no column"):
            check_destination(db_service, "t", ["id", "extra"])

    def test_ok(self, db_service):
        db_service.execute_script("CREATE TABLE t (id INTEGER, name TEXT)")
        check_destination(db_service, "t", ["name"])
