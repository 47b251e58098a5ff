"""Orchestrator module initialization."""
from .pipeline import (
    CorrectionOrchestrator,
    PipelineState,
    ExecutionFailed,
    PipelineTimeout,
    create_orchestrator,
)
from .intent_extractor import (
    IntentExtractor,
    IntentExtractionResult,
    detect_query_shape,
    fallback_extract_intent,
)
from .query_builder import DeterministicQueryBuilder, InsufficientCoverage, QueryIR
from .sql_validator import (
    SqlValidator,
    AutoFixCounter,
    ValidationRejected,
    JoinIncomplete,
)
from .synthesizer import QuerySynthesizer, clean_generated_sql
from .llm_client import (
    TextGenerator,
    LLMResponse,
    LLMError,
    RateLimitError,
    create_llm_client,
)
from .json_utils import (
    safe_parse_llm_json,
    safe_parse_llm_json_array,
    extract_first_json_block,
    JSONExtractionError,
)

# Default export
Orchestrator = CorrectionOrchestrator

__all__ = [
    "CorrectionOrchestrator",
    "Orchestrator",
    "PipelineState",
    "ExecutionFailed",
    "PipelineTimeout",
    "create_orchestrator",
    "IntentExtractor",
    "IntentExtractionResult",
    "detect_query_shape",
    "fallback_extract_intent",
    "DeterministicQueryBuilder",
    "InsufficientCoverage",
    "QueryIR",
    "SqlValidator",
    "AutoFixCounter",
    "ValidationRejected",
    "JoinIncomplete",
    "QuerySynthesizer",
    "clean_generated_sql",
    "TextGenerator",
    "LLMResponse",
    "LLMError",
    "RateLimitError",
    "create_llm_client",
    "safe_parse_llm_json",
    "safe_parse_llm_json_array",
    "extract_first_json_block",
    "JSONExtractionError",
]
