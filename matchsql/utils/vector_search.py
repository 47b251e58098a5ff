"""
In-memory vector store for schema-catalog table embeddings.

Embeddings come from an injected embedder callable: the text-generation
capability's embed() by default, or a local sentence-transformers model
(optional `local-embeddings` extra). Vectors can be precomputed into a
JSON cache by scripts/seed_metadata_embeddings.py.
"""

import json
import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from configs import ConfigurationError

logger = logging.getLogger(__name__)

Embedder = Callable[[str], Sequence[float]]

# Lazy-load sentence-transformers to avoid importing PyTorch at startup
_model = None
_model_name = "all-MiniLM-L6-v2"


def _get_model():
    """Load the SentenceTransformer model on first use."""
    global _model
    if _model is None:
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as e:
            raise ConfigurationError(
                "EMBEDDING_BACKEND=local needs sentence-transformers. "
                "Install with: pip install 'matchsql[local-embeddings]'"
            ) from e
        logger.info("Loading embedding model: %s", _model_name)
        _model = SentenceTransformer(_model_name)
        logger.info("Embedding model loaded successfully.")
    return _model


class LocalEmbedder:
    """Embedder backed by a local sentence-transformers model."""

    name = f"sentence-transformers/{_model_name}"

    def __call__(self, text: str) -> List[float]:
        return [float(v) for v in _get_model().encode(text)]


class SchemaVectorStore:
    """
    Table name -> embedding, searched by cosine similarity.
    """

    def __init__(self, embedder: Embedder, model_name: Optional[str] = None):
        self.embedder = embedder
        self.model_name = model_name
        self.table_embeddings: Dict[str, np.ndarray] = {}

    def __len__(self) -> int:
        return len(self.table_embeddings)

    def __contains__(self, table_name: str) -> bool:
        return table_name in self.table_embeddings

    def add_embedding(self, table_name: str, vector: Sequence[float]) -> None:
        self.table_embeddings[table_name] = np.asarray(vector, dtype=float)

    def add_table(self, table_name: str, schema_text: str) -> None:
        """Embed schema_text and index it under table_name."""
        self.add_embedding(table_name, self.embedder(schema_text))

    def search(self, query: str, k: int = 5) -> List[Tuple[str, float]]:
        """
        Top-k (table_name, score) pairs, best first.

        Embedding failures propagate; an empty index or a zero query
        vector yields [].
        """
        if not self.table_embeddings:
            return []

        query_embedding = np.asarray(self.embedder(query), dtype=float)
        if query_embedding.size == 0 or not np.any(query_embedding):
            return []

        scored = []
        for table_name, table_embedding in self.table_embeddings.items():
            if table_embedding.shape != query_embedding.shape:
                continue
            scored.append((table_name, self._cosine_similarity(query_embedding, table_embedding)))

        scored.sort(key=lambda x: x[1], reverse=True)
        return scored[:k]

    @staticmethod
    def _cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
        norm_a = np.linalg.norm(a)
        norm_b = np.linalg.norm(b)
        if norm_a == 0 or norm_b == 0:
            return 0.0
        return float(np.dot(a, b) / (norm_a * norm_b))

    # --------------------------------------------------------
    # Persistence
    # --------------------------------------------------------

    def save(self, path: str) -> None:
        payload = {
            "model": self.model_name,
            "tables": {name: vec.tolist() for name, vec in self.table_embeddings.items()},
        }
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(payload), encoding="utf-8")
        logger.info("Saved %d table embeddings to %s", len(self.table_embeddings), path)

    def load(self, path: str) -> int:
        """
        Load cached embeddings; returns how many were loaded.

        A cache written with a different embedding model is ignored.
        """
        source = Path(path)
        if not source.exists():
            return 0

        payload = json.loads(source.read_text(encoding="utf-8"))
        cached_model = payload.get("model")
        if self.model_name and cached_model and cached_model != self.model_name:
            logger.warning(
                "Ignoring embeddings cache %s (model %s, expected %s)", path, cached_model, self.model_name
            )
            return 0

        for name, vector in payload.get("tables", {}).items():
            self.add_embedding(name, vector)
        logger.info("Loaded %d cached table embeddings from %s", len(payload.get("tables", {})), path)
        return len(payload.get("tables", {}))
