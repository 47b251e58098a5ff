"""Models module initialization."""
from .schemas import (
    # Enums
    QueryShape,
    Provenance,
    ErrorKind,
    # Intent models
    IntentItem,
    ExtractedIntent,
    TokenUsage,
    # Query models
    CandidateQuery,
    ValidationResult,
    ExecutionOutcome,
    Attempt,
    # Result
    PipelineResult,
)

__all__ = [
    "QueryShape",
    "Provenance",
    "ErrorKind",
    "IntentItem",
    "ExtractedIntent",
    "TokenUsage",
    "CandidateQuery",
    "ValidationResult",
    "ExecutionOutcome",
    "Attempt",
    "PipelineResult",
]
