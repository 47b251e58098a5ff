"""Schema catalog and attribute mappings."""
from .schema_metadata import (
    ColumnMeta,
    TableMeta,
    ROOT_TABLE,
    ROOT_ALIAS,
    ROOT_KEY,
    SCHEMA_METADATA,
    get_table,
    get_table_by_alias,
    default_context_tables,
    embedding_text,
    render_table_context,
    create_table_ddl,
)
from .attribute_mappings import (
    ValueTransform,
    SqlDialect,
    JoinSpec,
    AttributeMapping,
    ATTRIBUTE_MAPPINGS,
    ATTRIBUTE_ALIASES,
    normalize_attribute,
    get_mapping,
    render_predicate,
)

__all__ = [
    "ColumnMeta",
    "TableMeta",
    "ROOT_TABLE",
    "ROOT_ALIAS",
    "ROOT_KEY",
    "SCHEMA_METADATA",
    "get_table",
    "get_table_by_alias",
    "default_context_tables",
    "embedding_text",
    "render_table_context",
    "create_table_ddl",
    "ValueTransform",
    "SqlDialect",
    "JoinSpec",
    "AttributeMapping",
    "ATTRIBUTE_MAPPINGS",
    "ATTRIBUTE_ALIASES",
    "normalize_attribute",
    "get_mapping",
    "render_predicate",
]
