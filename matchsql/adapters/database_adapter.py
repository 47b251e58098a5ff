"""
Database Adapter Layer for MatchSQL.

A unified, read-only interface over the two supported backends
(SQLite for local demos and tests, PostgreSQL for deployments).

Design Principles:
- The pipeline NEVER touches sqlite3/psycopg2 directly
- Every statement goes through the ExecutionGateway, then an adapter
- Connections are opened read-only at the driver level
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional


class DatabaseType(str, Enum):
    """Supported database types."""
    SQLITE = "sqlite"
    POSTGRES = "postgresql"


@dataclass
class ConnectionConfig:
    """Database connection configuration."""
    db_type: DatabaseType
    # SQLite
    file_path: Optional[str] = None
    # Postgres
    connection_string: Optional[str] = None
    read_only: bool = True


class DatabaseError(Exception):
    """Base exception for database operations."""
    pass


class DatabaseConnectionError(DatabaseError):
    """Failed to connect to the database."""
    pass


class QueryExecutionError(DatabaseError):
    """The database rejected or failed a statement."""
    pass


class DatabaseAdapter(ABC):
    """
    Abstract base class for database adapters.

    Adapters are used as context managers: one connection per `with`
    block, closed on exit.
    """

    def __init__(self, config: ConnectionConfig):
        self.config = config
        self._connected = False

    @abstractmethod
    def connect(self) -> None:
        """Establish a read-only connection."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Close the connection."""
        pass

    @abstractmethod
    def execute(self, sql: str, params: Optional[tuple] = None) -> List[Dict[str, Any]]:
        """
        Execute a statement and return rows as dictionaries.

        Raises:
            QueryExecutionError: the database reported an error
        """
        pass

    @abstractmethod
    def list_tables(self) -> List[str]:
        """Names of the user tables in the database."""
        pass

    def ping(self) -> bool:
        """True when a trivial query succeeds."""
        try:
            with self:
                self.execute("SELECT 1 AS ok")
            return True
        except DatabaseError:
            return False

    @property
    def db_type(self) -> DatabaseType:
        return self.config.db_type

    @property
    def is_connected(self) -> bool:
        return self._connected

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
