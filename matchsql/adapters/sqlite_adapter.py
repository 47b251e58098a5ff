"""
SQLite Database Adapter.

Opens the database file through a `mode=ro` URI so writes fail inside
SQLite itself, not only in the gateway's pre-check.
"""

import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional

from .database_adapter import (
    ConnectionConfig,
    DatabaseAdapter,
    DatabaseConnectionError,
    DatabaseType,
    QueryExecutionError,
)


class SQLiteAdapter(DatabaseAdapter):
    """
    SQLite implementation of DatabaseAdapter.

    Features:
    - File-based database (no server required)
    - Read-only URI connection by default
    - Rows returned as plain dicts
    """

    def __init__(self, file_path: str, read_only: bool = True):
        config = ConnectionConfig(
            db_type=DatabaseType.SQLITE,
            file_path=file_path,
            read_only=read_only,
        )
        super().__init__(config)
        self._connection: Optional[sqlite3.Connection] = None

    def connect(self) -> None:
        file_path = self.config.file_path

        if not file_path:
            raise DatabaseConnectionError("No file path specified for SQLite database")

        path = Path(file_path)
        if not path.exists():
            raise DatabaseConnectionError(f"Database file not found: {file_path}")

        try:
            if self.config.read_only:
                self._connection = sqlite3.connect(
                    f"{path.resolve().as_uri()}?mode=ro", uri=True, check_same_thread=False
                )
            else:
                self._connection = sqlite3.connect(str(path), check_same_thread=False)
            self._connection.row_factory = sqlite3.Row
            self._connected = True
        except sqlite3.Error as e:
            raise DatabaseConnectionError(f"Failed to connect to SQLite: {e}")

    def disconnect(self) -> None:
        if self._connection:
            self._connection.close()
            self._connection = None
        self._connected = False

    def execute(self, sql: str, params: Optional[tuple] = None) -> List[Dict[str, Any]]:
        if not self._connection:
            self.connect()

        try:
            cursor = self._connection.cursor()
            if params:
                cursor.execute(sql, params)
            else:
                cursor.execute(sql)

            if cursor.description:
                columns = [col[0] for col in cursor.description]
                return [dict(zip(columns, row)) for row in cursor.fetchall()]
            return []

        except sqlite3.Error as e:
            raise QueryExecutionError(f"SQLite query failed: {e}")

    def list_tables(self) -> List[str]:
        rows = self.execute(
            "SELECT name FROM sqlite_master "
            "WHERE type='table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        return [row["name"] for row in rows]
