"""Config module initialization."""
from .settings import (
    # Paths and database
    BASE_DIR,
    DATA_DIR,
    DATABASE_PATH,
    DATABASE_URL,
    DATABASE_TYPE,
    get_db_type,
    # LLM configuration
    LLM_PROVIDER,
    OLLAMA_BASE_URL,
    LLM_TEMPERATURE,
    MAX_LLM_TOKENS,
    LLM_REQUESTS_PER_MINUTE,
    EMBEDDING_BACKEND,
    EMBEDDINGS_CACHE_PATH,
    ProviderConfig,
    load_provider_config,
    # Pipeline settings
    MAX_ATTEMPTS,
    RESULT_ROW_LIMIT,
    SCHEMA_CONTEXT_TOP_K,
    QUERY_TIMEOUT_SECONDS,
    VERBOSE,
    # Safety
    FORBIDDEN_KEYWORDS,
    MAX_RESULT_ROWS,
    # Validation
    ConfigurationError,
    MissingGenerativeCredential,
    validate_configuration,
)

__all__ = [
    # Paths and database
    "BASE_DIR",
    "DATA_DIR",
    "DATABASE_PATH",
    "DATABASE_URL",
    "DATABASE_TYPE",
    "get_db_type",
    # LLM configuration
    "LLM_PROVIDER",
    "OLLAMA_BASE_URL",
    "LLM_TEMPERATURE",
    "MAX_LLM_TOKENS",
    "LLM_REQUESTS_PER_MINUTE",
    "EMBEDDING_BACKEND",
    "EMBEDDINGS_CACHE_PATH",
    "ProviderConfig",
    "load_provider_config",
    # Pipeline settings
    "MAX_ATTEMPTS",
    "RESULT_ROW_LIMIT",
    "SCHEMA_CONTEXT_TOP_K",
    "QUERY_TIMEOUT_SECONDS",
    "VERBOSE",
    # Safety
    "FORBIDDEN_KEYWORDS",
    "MAX_RESULT_ROWS",
    # Validation
    "ConfigurationError",
    "MissingGenerativeCredential",
    "validate_configuration",
]
