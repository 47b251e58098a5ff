"""
Pydantic models for the data passed between pipeline stages.
These models keep the stage contracts explicit and serializable.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


class QueryShape(str, Enum):
    """Whether the question lists profiles or counts them."""
    LIST = "list"
    COUNT = "count"


class Provenance(str, Enum):
    """Where a candidate query came from."""
    BUILT_DETERMINISTICALLY = "built_deterministically"
    GENERATED = "generated"
    CORRECTED = "corrected"


class ErrorKind(str, Enum):
    """Validator rule that rejected a query."""
    EMPTY_QUERY = "empty_query"
    MISSING_BASE_ENTITY = "missing_base_entity"
    UNRESOLVED_PLACEHOLDER = "unresolved_placeholder"
    JOIN_INCOMPLETE = "join_incomplete"


# ============================================================
# Intent Models
# ============================================================

class IntentItem(BaseModel):
    """One explicit (attribute, value) criterion from the question."""
    attribute: str = Field(description="Normalized attribute name")
    value: str = Field(description="Value exactly as stated by the user")

    model_config = {"frozen": True}


class ExtractedIntent(BaseModel):
    """
    Ordered (attribute, value) pairs for one question.

    Produced once per question and read-only afterwards. Duplicate
    attributes are tolerated; consumers use the first occurrence.
    """
    items: List[IntentItem] = Field(default_factory=list)

    model_config = {"frozen": True}

    @classmethod
    def from_pairs(cls, pairs) -> "ExtractedIntent":
        return cls(items=[IntentItem(attribute=a, value=v) for a, v in pairs])

    @property
    def is_empty(self) -> bool:
        return not self.items

    def attributes(self) -> List[str]:
        """Distinct attributes in first-seen order."""
        seen: List[str] = []
        for item in self.items:
            if item.attribute not in seen:
                seen.append(item.attribute)
        return seen

    def first(self, attribute: str) -> Optional[IntentItem]:
        for item in self.items:
            if item.attribute == attribute:
                return item
        return None

    def values(self) -> List[str]:
        return [item.value for item in self.items]

    def as_list(self) -> List[Dict[str, str]]:
        return [item.model_dump() for item in self.items]


class TokenUsage(BaseModel):
    """Token accounting reported by the text-generation provider."""
    input: int = 0
    output: int = 0
    total: int = 0

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            input=self.input + other.input,
            output=self.output + other.output,
            total=self.total + other.total,
        )


# ============================================================
# Query Models
# ============================================================

@dataclass
class CandidateQuery:
    """A query string plus where it came from and which attempt made it."""
    sql: str
    provenance: Provenance
    attempt: int = 1


class ValidationResult(BaseModel):
    """Outcome of the validator/auto-fixer."""
    valid: bool = Field(description="Whether the query may be executed")
    query: str = Field(description="Query after any auto-fixes")
    error: Optional[ErrorKind] = Field(default=None, description="Rule that rejected the query")
    fixed: bool = Field(default=False, description="True only if the query text changed")
    message: Optional[str] = Field(default=None, description="Human-readable rejection reason")
    fixes: List[str] = Field(default_factory=list, description="Auto-fix rules that fired")


class ExecutionOutcome(BaseModel):
    """Rows from the execution engine or its error, never both."""
    rows: Optional[List[Dict[str, Any]]] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def _rows_xor_error(self):
        if (self.rows is None) == (self.error is None):
            raise ValueError("ExecutionOutcome needs exactly one of rows or error")
        return self

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def row_count(self) -> int:
        return len(self.rows) if self.rows is not None else 0


class Attempt(BaseModel):
    """One synthesize-or-reuse / validate / execute pass."""
    number: int
    provenance: Provenance
    query: str
    fixed: bool = False
    fixes: List[str] = Field(default_factory=list)
    validation_error: Optional[str] = None
    execution_error: Optional[str] = None
    row_count: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.validation_error is None and self.execution_error is None


# ============================================================
# Pipeline Result
# ============================================================

class PipelineResult(BaseModel):
    """Final outcome of one question through the correction loop."""
    success: bool
    question: str
    generated_sql: Optional[str] = None
    data: List[Dict[str, Any]] = Field(default_factory=list)
    row_count: int = 0
    extracted_intent: ExtractedIntent = Field(default_factory=ExtractedIntent)
    shape: QueryShape = QueryShape.LIST
    token_usage: Optional[TokenUsage] = None
    error: Optional[str] = None
    error_type: Optional[str] = Field(default=None, description="Error taxonomy name")
    attempts: List[Attempt] = Field(default_factory=list)
    schema_tables: List[str] = Field(default_factory=list)
    intent_degraded: bool = False
    elapsed_ms: float = 0

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    @property
    def provenance(self) -> Optional[Provenance]:
        return self.attempts[-1].provenance if self.attempts else None

    @property
    def rate_limited(self) -> bool:
        return self.error_type == "RateLimited"
