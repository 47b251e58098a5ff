"""Tests for database adapters and the read-only execution gateway."""

import sqlite3

import pytest

from matchsql.adapters import (
    DatabaseConnectionError,
    DatabaseType,
    ExecutionGateway,
    QueryExecutionError,
    SQLiteAdapter,
    UnsupportedStatement,
    check_read_only,
    create_adapter,
    dialect_for,
)
from matchsql.catalog import SCHEMA_METADATA, SqlDialect, create_table_ddl


# =============================================================================
# READ-ONLY GUARD
# =============================================================================

class TestReadOnlyGuard:

    def test_plain_select(self):
        assert check_read_only("SELECT p.profile_id FROM profiles p;") == "SELECT p.profile_id FROM profiles p"

    def test_with_clause(self):
        sql = "WITH f AS (SELECT profile_id FROM profiles) SELECT * FROM f"
        assert check_read_only(sql) == sql

    def test_comments_stripped(self):
        assert check_read_only("-- list\nSELECT 1 AS one") == "SELECT 1 AS one"

    @pytest.mark.parametrize("sql", [
        "DELETE FROM profiles",
        "UPDATE profiles SET gender = 'x'",
        "DROP TABLE profiles",
        "INSERT INTO profiles (profile_id) VALUES (99)",
        "PRAGMA table_info(profiles)",
    ])
    def test_non_select_rejected(self, sql):
        with pytest.raises(UnsupportedStatement):
            check_read_only(sql)

    def test_multiple_statements_rejected(self):
        with pytest.raises(UnsupportedStatement, match="Exactly one statement"):
            check_read_only("SELECT 1; SELECT 2")

    def test_forbidden_keyword_in_cte_rejected(self):
        with pytest.raises(UnsupportedStatement):
            check_read_only("WITH d AS (DELETE FROM profiles RETURNING *) SELECT * FROM d")

    def test_keyword_inside_literal_allowed(self):
        sql = "SELECT p.profile_id FROM profiles p WHERE p.last_name = 'Drop Update'"
        assert check_read_only(sql) == sql

    @pytest.mark.parametrize("sql", ["", "   ", ";"])
    def test_empty_rejected(self, sql):
        with pytest.raises(UnsupportedStatement):
            check_read_only(sql)


# =============================================================================
# GATEWAY
# =============================================================================

class TestExecutionGateway:

    def test_fixture_has_every_catalog_table(self, gateway):
        assert gateway.missing_catalog_tables() == []

    def test_missing_catalog_tables(self, tmp_path):
        path = tmp_path / "partial.db"
        conn = sqlite3.connect(path)
        conn.execute(create_table_ddl(SCHEMA_METADATA[0]))
        conn.commit()
        conn.close()

        missing = ExecutionGateway(lambda: SQLiteAdapter(str(path))).missing_catalog_tables()
        assert missing == [t.table_name for t in SCHEMA_METADATA[1:]]

    def test_rows_as_dicts(self, gateway):
        rows = gateway.run("SELECT p.profile_id, p.first_name FROM profiles p WHERE p.profile_id = 1")
        assert rows == [{"profile_id": 1, "first_name": "Neha"}]

    def test_execute_success_outcome(self, gateway):
        outcome = gateway.execute("SELECT p.profile_id FROM profiles p")
        assert outcome.succeeded
        assert outcome.error is None
        assert outcome.row_count == 10

    def test_execute_error_outcome(self, gateway):
        outcome = gateway.execute("SELECT p.nope FROM profiles p")
        assert not outcome.succeeded
        assert outcome.rows is None
        assert "no such column: p.nope" in outcome.error

    def test_execute_rejected_outcome(self, gateway):
        outcome = gateway.execute("DELETE FROM profiles")
        assert outcome.error.startswith("UnsupportedStatement")

    def test_run_raises(self, gateway):
        with pytest.raises(QueryExecutionError):
            gateway.run("SELECT x.y FROM profiles p")
        with pytest.raises(UnsupportedStatement):
            gateway.run("DROP TABLE profiles")

    def test_max_rows(self, fixture_db_path):
        gateway = ExecutionGateway(
            lambda: create_adapter(DatabaseType.SQLITE, file_path=str(fixture_db_path)), max_rows=3
        )
        assert len(gateway.run("SELECT p.profile_id FROM profiles p")) == 3

    def test_dialect_and_ping(self, gateway):
        assert gateway.dialect == SqlDialect.SQLITE
        assert gateway.db_type == "sqlite"
        assert gateway.ping()

    def test_ping_missing_file(self, tmp_path):
        gateway = ExecutionGateway(lambda: SQLiteAdapter(str(tmp_path / "missing.db")))
        assert not gateway.ping()
        outcome = gateway.execute("SELECT 1 AS one")
        assert "Database file not found" in outcome.error


# =============================================================================
# ADAPTERS
# =============================================================================

class TestAdapters:

    def test_sqlite_connection_is_read_only(self, fixture_db_path):
        with SQLiteAdapter(str(fixture_db_path)) as adapter:
            with pytest.raises(QueryExecutionError):
                adapter.execute("DELETE FROM profiles")

    def test_list_tables(self, fixture_db_path):
        with SQLiteAdapter(str(fixture_db_path)) as adapter:
            tables = adapter.list_tables()
        assert "profiles" in tables
        assert "career_details" in tables

    def test_missing_file(self, tmp_path):
        with pytest.raises(DatabaseConnectionError):
            SQLiteAdapter(str(tmp_path / "missing.db")).connect()

    def test_factory_requires_parameters(self):
        with pytest.raises(ValueError):
            create_adapter(DatabaseType.SQLITE)
        with pytest.raises(ValueError):
            create_adapter(DatabaseType.POSTGRES)

    def test_postgres_adapter_is_lazy(self):
        adapter = create_adapter(DatabaseType.POSTGRES, connection_string="postgresql://ro@localhost:1/none")
        assert adapter.db_type == DatabaseType.POSTGRES
        assert not adapter.is_connected

    def test_dialect_for(self):
        assert dialect_for(DatabaseType.POSTGRES) == SqlDialect.POSTGRESQL
        assert dialect_for(DatabaseType.SQLITE) == SqlDialect.SQLITE
