"""Utility modules."""
from .vector_search import SchemaVectorStore, LocalEmbedder

__all__ = ["SchemaVectorStore", "LocalEmbedder"]
