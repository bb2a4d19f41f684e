import pytest
from alembic.autogenerate import compare_metadata
from alembic.migration import MigrationContext
from sqlalchemy import create_engine, inspect

from app.dvr.models import Base
from scripts import init_db, release


@pytest.fixture()
def db_url(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path/'release.db'}"
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("DATABASE_URL", url)
    monkeypatch.setenv("AUTHORITY_IDENTITY", "ST1PQHQKV0RJXZFY1DGX8MNSNYVE3VGZJSRTPGZGM")
    return url


def _tables(url):
    engine = create_engine(url)
    try:
        return set(inspect(engine).get_table_names())
    finally:
        engine.dispose()


def test_init_db_creates_tables(db_url):
    tables = init_db.create_schema(database_url=db_url)
    assert {"designs", "design_approvals", "audit_events"} <= set(tables)

    # idempotent
    init_db.create_schema(database_url=db_url)


def test_release_runs_migrations(db_url):
    release.run_release()
    assert {"designs", "design_approvals", "audit_events", "alembic_version"} <= _tables(db_url)


def test_release_requires_authority(db_url, monkeypatch):
    monkeypatch.delenv("AUTHORITY_IDENTITY")
    with pytest.raises(RuntimeError, match="AUTHORITY_IDENTITY"):
        release.run_release()


def test_release_refuses_sqlite_in_production(db_url, monkeypatch):
    monkeypatch.setenv("ENV", "production")
    with pytest.raises(RuntimeError, match="sqlite"):
        release.run_release()


def test_migrations_match_models(db_url):
    release.run_release()
    engine = create_engine(db_url)
    try:
        with engine.connect() as conn:
            diff = compare_metadata(MigrationContext.configure(conn), Base.metadata)
    finally:
        engine.dispose()
    assert diff == []
