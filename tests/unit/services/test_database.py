"""Tests for database setup and transaction scoping."""

import pytest
from sqlalchemy import inspect

from cordage_tracker.models import Zone
from cordage_tracker.services import database
from cordage_tracker.services.database import (
    close_connections,
    create_database_engine,
    init_database,
    initialize_app_database,
    reset_database,
    session_scope,
    verify_database,
)


@pytest.fixture
def memory_database(monkeypatch):
    """Point the global engine at a fresh in-memory database."""
    monkeypatch.setenv("CORDAGE_DATABASE_URL", "sqlite:///:memory:")
    close_connections()
    yield
    close_connections()


# =============================================================================
# Engine and schema
# =============================================================================


class TestCreateDatabaseEngine:
    def test_memory_engine_enforces_foreign_keys(self):
        engine = create_database_engine("sqlite:///:memory:")
        with engine.connect() as conn:
            assert conn.exec_driver_sql("PRAGMA foreign_keys").scalar() == 1
        engine.dispose()

    def test_init_database_creates_core_tables(self):
        engine = create_database_engine("sqlite:///:memory:")
        init_database(engine)

        tables = inspect(engine).get_table_names()
        for table in ("zones", "material_stock_entries", "product_stock_entries", "orders",
                      "deliveries", "customer_product_prices", "payments"):
            assert table in tables
        engine.dispose()


class TestInitializeAppDatabase:
    def test_initializes_and_verifies(self, memory_database):
        initialize_app_database()
        assert verify_database() is True

    def test_reset_requires_confirm(self, memory_database):
        with pytest.raises(ValueError):
            reset_database()

    def test_reset_recreates_tables(self, memory_database):
        initialize_app_database()
        reset_database(confirm=True)
        assert verify_database() is True

    def test_close_connections_drops_globals(self, memory_database):
        initialize_app_database()
        close_connections()
        assert database._engine is None
        assert database._SessionFactory is None


# =============================================================================
# session_scope
# =============================================================================


class TestSessionScope:
    def test_commits_on_success(self, test_db):
        with session_scope() as session:
            session.add(Zone(name="RECEPCION_1", kind="RECEPTION"))

        assert test_db().query(Zone).count() == 1

    def test_rolls_back_on_error(self, test_db):
        with pytest.raises(RuntimeError):
            with session_scope() as session:
                session.add(Zone(name="RECEPCION_1", kind="RECEPTION"))
                session.flush()
                raise RuntimeError("boom")

        assert test_db().query(Zone).count() == 0
