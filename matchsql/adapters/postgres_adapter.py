"""
PostgreSQL Database Adapter.

Connects with psycopg2 and a RealDictCursor, and marks every session
read-only. Pair it with the role from scripts/init_readonly_role.sql so
the credential itself cannot write.
"""

from typing import Any, Dict, List, Optional

import psycopg2
from psycopg2.extras import RealDictCursor

from .database_adapter import (
    ConnectionConfig,
    DatabaseAdapter,
    DatabaseConnectionError,
    DatabaseType,
    QueryExecutionError,
)


class PostgresAdapter(DatabaseAdapter):
    """
    PostgreSQL implementation of DatabaseAdapter.

    Requirements:
    - psycopg2-binary
    - DATABASE_URL pointing at a read-only role
    """

    def __init__(self, connection_string: str, read_only: bool = True):
        config = ConnectionConfig(
            db_type=DatabaseType.POSTGRES,
            connection_string=connection_string,
            read_only=read_only,
        )
        super().__init__(config)
        self._connection = None

    def connect(self) -> None:
        try:
            self._connection = psycopg2.connect(
                self.config.connection_string,
                cursor_factory=RealDictCursor,
            )
            if self.config.read_only:
                self._connection.set_session(readonly=True, autocommit=True)
            self._connected = True
        except psycopg2.Error as e:
            raise DatabaseConnectionError(f"Failed to connect to PostgreSQL: {e}")

    def disconnect(self) -> None:
        if self._connection:
            self._connection.close()
            self._connection = None
        self._connected = False

    def execute(self, sql: str, params: Optional[tuple] = None) -> List[Dict[str, Any]]:
        if not self._connection:
            self.connect()

        try:
            with self._connection.cursor() as cursor:
                cursor.execute(sql, params)
                if cursor.description:
                    return [dict(row) for row in cursor.fetchall()]
                return []
        except psycopg2.Error as e:
            if not self._connection.autocommit:
                self._connection.rollback()
            raise QueryExecutionError(f"PostgreSQL query failed: {e}")

    def list_tables(self) -> List[str]:
        rows = self.execute(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = 'public' AND table_type = 'BASE TABLE' ORDER BY table_name"
        )
        return [row["table_name"] for row in rows]
