"""
Pytest configuration and fixtures for import engine tests.

Every test gets a fresh in-memory SQLite database with all tables created,
so no external database is needed.
"""

import os

# App startup must not try to reach the configured database.
os.environ["SKIP_DB_INIT"] = "1"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from import_engine.db.session import init_db
from import_engine.domain.imports.mapping import FieldMapping
from import_engine.domain.imports.reconciliation import ExecuteOptions, ImportContext, ImportSummary
from import_engine.domain.imports.record_store import RecordStore
from import_engine.integrations.storage import LocalBlobStore


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def record_store(db_session):
    return RecordStore(db_session)


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(str(tmp_path / "blobs"), namespace="tests")


@pytest.fixture
def make_context(record_store):
    """Build an ImportContext for a mapping given as {field: column}."""

    def _make(fields, ignored_columns=(), **options):
        return ImportContext(
            import_id="test-import",
            store=record_store,
            mapping=FieldMapping(fields=dict(fields), ignored_columns=list(ignored_columns)),
            options=ExecuteOptions(**options),
        )

    return _make


@pytest.fixture
def summary():
    return ImportSummary(import_id="test-import")
