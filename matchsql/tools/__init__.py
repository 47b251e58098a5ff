"""Schema context retrieval."""
from .schema_context import SchemaContextProvider, SchemaContextUnavailable, render_context

__all__ = ["SchemaContextProvider", "SchemaContextUnavailable", "render_context"]
