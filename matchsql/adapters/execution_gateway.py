"""
Execution Gateway.

The single boundary through which SQL reaches the database. Every
statement passes a syntactic read-only guard first:

- comments stripped, exactly one statement (sqlparse.split)
- statement starts with SELECT or WITH and sqlparse types it as SELECT
- no forbidden keyword outside string literals

The adapter connection is itself read-only, so the guard is a second
line, not the only one.
"""

import logging
import re
from typing import Any, Callable, Dict, List

import sqlparse

from configs import FORBIDDEN_KEYWORDS, MAX_RESULT_ROWS
from matchsql.catalog.attribute_mappings import SqlDialect
from matchsql.catalog.schema_metadata import SCHEMA_METADATA
from matchsql.models import ExecutionOutcome
from .database_adapter import DatabaseAdapter, DatabaseError
from .factory import dialect_for

logger = logging.getLogger(__name__)

_STRING_LITERAL = re.compile(r"'(?:[^']|'')*'")
_LEADING_VERB = re.compile(r"^\s*(SELECT|WITH)\b", re.IGNORECASE)


class UnsupportedStatement(Exception):
    """A statement that is not a single read-only SELECT."""
    pass


def check_read_only(sql: str) -> str:
    """
    Return the single SELECT statement, without comments or terminator.

    Raises:
        UnsupportedStatement: empty, multiple statements, non-SELECT, or
            a forbidden keyword outside string literals
    """
    formatted = sqlparse.format(sql or "", strip_comments=True).strip()
    statements = [s.strip() for s in sqlparse.split(formatted) if s.strip().strip(";")]

    if not statements:
        raise UnsupportedStatement("Empty statement")
    if len(statements) > 1:
        raise UnsupportedStatement(f"Exactly one statement is allowed, got {len(statements)}")

    statement = statements[0].rstrip(";").strip()
    if not _LEADING_VERB.match(statement):
        raise UnsupportedStatement("Only SELECT queries are allowed")

    parsed = sqlparse.parse(statement)[0]
    if parsed.get_type() != "SELECT":
        raise UnsupportedStatement(f"Only SELECT queries are allowed, got {parsed.get_type()}")

    masked = _STRING_LITERAL.sub("''", statement)
    for keyword in FORBIDDEN_KEYWORDS:
        if re.search(rf"\b{keyword}\b", masked, re.IGNORECASE):
            raise UnsupportedStatement(f"Forbidden keyword: {keyword}")

    return statement


class ExecutionGateway:
    """
    Runs guarded statements through a fresh adapter connection.

    Usage:
        gateway = ExecutionGateway(create_adapter_from_settings)
        outcome = gateway.execute("SELECT ...")
    """

    def __init__(self, adapter_factory: Callable[[], DatabaseAdapter], max_rows: int = MAX_RESULT_ROWS):
        self.adapter_factory = adapter_factory
        self.max_rows = max_rows
        self._template_adapter = adapter_factory()

    @property
    def dialect(self) -> SqlDialect:
        return dialect_for(self._template_adapter.db_type)

    @property
    def db_type(self) -> str:
        return self._template_adapter.db_type.value

    def run(self, sql: str) -> List[Dict[str, Any]]:
        """
        Guard and execute, raising on failure (raw-query endpoint).

        Raises:
            UnsupportedStatement: statement failed the read-only guard
            DatabaseError: connection or execution failure
        """
        statement = check_read_only(sql)
        with self.adapter_factory() as adapter:
            rows = adapter.execute(statement)
        if len(rows) > self.max_rows:
            logger.info("Truncating %d rows to %d", len(rows), self.max_rows)
            rows = rows[:self.max_rows]
        return rows

    def execute(self, sql: str) -> ExecutionOutcome:
        """Rows or an error string, never both; never raises for query errors."""
        try:
            rows = self.run(sql)
        except UnsupportedStatement as e:
            logger.warning("Rejected non-read statement: %s", e)
            return ExecutionOutcome(error=f"UnsupportedStatement: {e}")
        except DatabaseError as e:
            logger.warning("Execution failed: %s", e)
            return ExecutionOutcome(error=str(e))
        return ExecutionOutcome(rows=rows)

    def ping(self) -> bool:
        return self.adapter_factory().ping()

    def missing_catalog_tables(self) -> List[str]:
        """
        Catalog tables the database does not have.

        Raises:
            DatabaseError: connection or listing failure
        """
        with self.adapter_factory() as adapter:
            present = {name.lower() for name in adapter.list_tables()}
        return [t.table_name for t in SCHEMA_METADATA if t.table_name not in present]
