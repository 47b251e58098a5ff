"""
Adapters module for MatchSQL.

Database adapters (SQLite, PostgreSQL) and the read-only execution gateway.
"""

from .database_adapter import (
    DatabaseAdapter,
    DatabaseType,
    ConnectionConfig,
    DatabaseError,
    DatabaseConnectionError,
    QueryExecutionError,
)
from .sqlite_adapter import SQLiteAdapter
from .postgres_adapter import PostgresAdapter
from .factory import create_adapter, create_adapter_from_settings, dialect_for
from .execution_gateway import ExecutionGateway, UnsupportedStatement, check_read_only

__all__ = [
    "DatabaseAdapter",
    "DatabaseType",
    "ConnectionConfig",
    "DatabaseError",
    "DatabaseConnectionError",
    "QueryExecutionError",
    "SQLiteAdapter",
    "PostgresAdapter",
    "create_adapter",
    "create_adapter_from_settings",
    "dialect_for",
    "ExecutionGateway",
    "UnsupportedStatement",
    "check_read_only",
]
