"""Shared test fixtures."""

import pytest

from dbtransfer import create_service


@pytest.fixture
def db_service(tmp_path):
    """Provide a fresh SQLite DatabaseService for each test."""
    db_path = tmp_path / "test.db"
    service = create_service(f"sqlite:///{db_path}")
    service.connect()
    yield service
    service.close()


@pytest.fixture
def select(db_service):
    """Run a read query in its own transaction and return the rows."""

    def run(sql, params=None):
        with db_service.transaction():
            return db_service.execute(sql, params)

    return run
