"""
Database Adapter Factory.

Creates the appropriate database adapter based on configuration.
"""

from typing import Optional

from configs import DATABASE_PATH, DATABASE_TYPE, DATABASE_URL
from matchsql.catalog.attribute_mappings import SqlDialect
from .database_adapter import DatabaseAdapter, DatabaseType
from .postgres_adapter import PostgresAdapter
from .sqlite_adapter import SQLiteAdapter


def create_adapter(
    db_type: DatabaseType,
    file_path: Optional[str] = None,
    connection_string: Optional[str] = None,
    read_only: bool = True,
) -> DatabaseAdapter:
    """
    Create an (unconnected) database adapter of the specified type.

    Raises:
        ValueError: required parameter missing or unsupported type

    Examples:
        adapter = create_adapter(DatabaseType.SQLITE, file_path="./data/matrimony.db")
        adapter = create_adapter(DatabaseType.POSTGRES, connection_string="postgresql://ro@host/db")
    """
    if db_type == DatabaseType.SQLITE:
        if not file_path:
            raise ValueError("file_path is required for SQLite adapter")
        return SQLiteAdapter(file_path, read_only=read_only)

    elif db_type == DatabaseType.POSTGRES:
        if not connection_string:
            raise ValueError("connection_string is required for Postgres adapter")
        return PostgresAdapter(connection_string, read_only=read_only)

    else:
        raise ValueError(f"Unsupported database type: {db_type}")


def create_adapter_from_settings() -> DatabaseAdapter:
    """Adapter for DATABASE_URL (PostgreSQL) or DATABASE_PATH (SQLite)."""
    db_type = DatabaseType(DATABASE_TYPE)
    if db_type == DatabaseType.POSTGRES:
        return create_adapter(db_type, connection_string=DATABASE_URL)
    return create_adapter(db_type, file_path=DATABASE_PATH)


def dialect_for(db_type: DatabaseType) -> SqlDialect:
    """SQL dialect the query builder should emit for a backend."""
    return SqlDialect.POSTGRESQL if db_type == DatabaseType.POSTGRES else SqlDialect.SQLITE
