"""Shared test fixtures."""

import pytest

from tableload import BulkTableLoader, create_service

ITEMS_DDL = """
CREATE TABLE items (
    a           INTEGER CHECK (typeof(a) = 'integer'),
    b           TEXT,
    created_at  TEXT DEFAULT 'auto'
);
"""


@pytest.fixture
def db_service(tmp_path):
    """Provide a fresh SQLite DatabaseService for each test."""
    db_path = tmp_path / "test.db"
    service = create_service(f"sqlite:///{db_path}", pool_size=4, acquire_timeout=0.2)
    service.connect()
    yield service
    service.close()


@pytest.fixture
def items_table(db_service):
    db_service.execute_ddl(ITEMS_DDL)
    return "items"


@pytest.fixture
def loader(db_service):
    return BulkTableLoader(db_service)
