"""Tests for the import and export command line entry points."""

import json

import pytest

from dbtransfer import create_service
from scripts import export_data, import_data


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'cli.db'}"


@pytest.fixture
def people_csv(tmp_path):
    path = tmp_path / "people.csv"
    path.write_text("id,name,age\n1,Alice,30\n2,Bob,150\n3,Carol,41\n", encoding="utf-8")
    return path


def count_rows(db_url, table):
    service = create_service(db_url)
    service.connect()
    try:
        with service.transaction():
            rows = service.execute(f'SELECT COUNT(*) AS n FROM "{table}"')
    finally:
        service.close()
    return rows[0]["n"]


class TestImportCommand:
    def test_imports_file(self, db_url, people_csv):
        import_data.main(
            ["--db-url", db_url, "--file", str(people_csv), "--format", "csv",
             "--table", "people", "--create-table"]
        )
        assert count_rows(db_url, "people") == 3

    def test_stream_with_rules(self, db_url, people_csv, tmp_path):
        rules = tmp_path / "rules.json"
        rules.write_text(json.dumps([{"column": "age", "kind": "range", "max": 120}]))
        import_data.main(
            ["--db-url", db_url, "--file", str(people_csv), "--format", "csv",
             "--table", "people", "--create-table", "--stream", "--rules", str(rules),
             "--continue-on-error"]
        )
        assert count_rows(db_url, "people") == 2

    def test_mapping_file(self, db_url, people_csv, tmp_path):
        mapping = tmp_path / "mapping.json"
        mapping.write_text(
            json.dumps({"target_table": "staff", "column_mapping": {"name": "label"}})
        )
        import_data.main(
            ["--db-url", db_url, "--file", str(people_csv), "--format", "csv",
             "--create-table", "--mapping", str(mapping)]
        )
        assert count_rows(db_url, "staff") == 3

    def test_failure_exits_nonzero(self, db_url, people_csv):
        with pytest.raises(SystemExit) as exc_info:
            import_data.main(
                ["--db-url", db_url, "--file", str(people_csv), "--format", "csv",
                 "--table", "people"]
            )
        assert exc_info.value.code == 1

    def test_missing_db_url(self, people_csv, monkeypatch):
        monkeypatch.delenv(import_data.DB_URL_ENV, raising=False)
        with pytest.raises(SystemExit) as exc_info:
            import_data.main(["--file", str(people_csv), "--format", "csv"])
        assert exc_info.value.code == 1

    def test_db_url_from_environment(self, db_url, people_csv, monkeypatch):
        monkeypatch.setenv(import_data.DB_URL_ENV, db_url)
        import_data.main(
            ["--file", str(people_csv), "--format", "csv", "--table", "people", "--create-table"]
        )
        assert count_rows(db_url, "people") == 3


class TestExportCommand:
    @pytest.fixture
    def loaded(self, db_url, people_csv):
        import_data.main(
            ["--db-url", db_url, "--file", str(people_csv), "--format", "csv",
             "--table", "people", "--create-table"]
        )
        return db_url

    def test_exports_table(self, loaded, tmp_path):
        output = tmp_path / "people.json"
        export_data.main(
            ["--db-url", loaded, "--format", "json", "--table", "people", "--output", str(output)]
        )
        records = json.loads(output.read_text(encoding="utf-8"))
        assert [r["name"] for r in records] == ["Alice", "Bob", "Carol"]

    def test_exports_query(self, loaded, tmp_path):
        output = tmp_path / "adults.csv"
        export_data.main(
            ["--db-url", loaded, "--format", "csv", "--query",
             "SELECT name FROM people WHERE age > 35", "--output", str(output)]
        )
        assert output.read_text(encoding="utf-8") == "name\nBob\nCarol"

    def test_exports_all_tables(self, loaded, tmp_path):
        out_dir = tmp_path / "dump"
        export_data.main(
            ["--db-url", loaded, "--format", "sql", "--all", "--include-schema",
             "--output", str(out_dir)]
        )
        assert "CREATE TABLE" in (out_dir / "people.sql").read_text(encoding="utf-8")

    def test_failure_exits_nonzero(self, loaded, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            export_data.main(
                ["--db-url", loaded, "--format", "csv", "--table", "ghost",
                 "--output", str(tmp_path / "ghost.csv")]
            )
        assert exc_info.value.code == 1
