"""
Schema Context Provider.

Selects the top-K catalog tables relevant to a question by embedding
similarity. An empty or degenerate result falls back to the first K
catalog tables; any failure while indexing or searching is fatal for
the request (SchemaContextUnavailable), except a provider rate limit,
which propagates so callers can back off.
"""

import logging
import threading
from typing import List, Optional

from configs import SCHEMA_CONTEXT_TOP_K
from matchsql.catalog.schema_metadata import (
    ROOT_TABLE,
    SCHEMA_METADATA,
    TableMeta,
    default_context_tables,
    embedding_text,
    get_table,
    render_table_context,
)
from matchsql.orchestrator.llm_client import RateLimitError
from matchsql.utils.vector_search import SchemaVectorStore

logger = logging.getLogger(__name__)


class SchemaContextUnavailable(Exception):
    """Schema retrieval failed; no meaningful query can be built."""
    pass


class SchemaContextProvider:
    """get_context(question) -> top-K TableMeta entries."""

    def __init__(
        self,
        store: SchemaVectorStore,
        top_k: int = SCHEMA_CONTEXT_TOP_K,
        cache_path: Optional[str] = None,
    ):
        self.store = store
        self.top_k = top_k
        self.cache_path = cache_path
        self._indexed = False
        self._lock = threading.Lock()

    def ensure_index(self) -> None:
        """Load the embeddings cache, then embed any catalog table still missing."""
        with self._lock:
            if self._indexed:
                return
            if self.cache_path:
                self.store.load(self.cache_path)
            missing = [t for t in SCHEMA_METADATA if t.table_name not in self.store]
            for table in missing:
                self.store.add_table(table.table_name, embedding_text(table))
            if missing:
                logger.info("Embedded %d catalog tables", len(missing))
            self._indexed = True

    def get_context(self, question: str) -> List[TableMeta]:
        """
        Raises:
            SchemaContextUnavailable: indexing or search failed
            RateLimitError: the embedding provider refused the request
        """
        try:
            self.ensure_index()
            hits = self.store.search(question, k=self.top_k)
        except RateLimitError as e:
            logger.warning("Schema context retrieval rate limited: %s", e)
            raise
        except Exception as e:
            logger.error("Schema context retrieval failed: %s", e)
            raise SchemaContextUnavailable(f"Schema context retrieval failed: {e}") from e

        tables = [get_table(name) for name, _ in hits]
        tables = [t for t in tables if t is not None]
        if not tables:
            logger.warning("No relevant tables found, using first %d catalog tables", self.top_k)
            return default_context_tables(self.top_k)

        logger.debug("Schema context: %s", [t.table_name for t in tables])
        return tables


def render_context(tables: List[TableMeta]) -> str:
    """Prompt text for a set of tables; the root entity is always described first."""
    ordered = list(tables)
    if all(t.table_name != ROOT_TABLE for t in ordered):
        ordered.insert(0, get_table(ROOT_TABLE))
    return "\n\n".join(render_table_context(t) for t in ordered)
