"""
Pydantic schemas for the MatchSQL API.

These models define the request/response structure for all API endpoints.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from matchsql.models import Attempt, PipelineResult, Provenance, TokenUsage


# ============================================================
# REQUEST MODELS
# ============================================================

class AskRequest(BaseModel):
    """Request body for POST /api/ask."""
    question: str = Field(..., description="Natural language question", min_length=1, max_length=1000)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"question": "Show me doctors in Pune"},
                {"question": "How many women between 25 and 30 speak Marathi?"},
            ]
        }
    }


class ExecuteRequest(BaseModel):
    """Request body for POST /api/execute."""
    sql: str = Field(..., description="Read-only SQL statement", min_length=1)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"sql": "SELECT p.profile_id, p.first_name FROM profiles p LIMIT 10"},
            ]
        }
    }


# ============================================================
# RESPONSE MODELS
# ============================================================

class Telemetry(BaseModel):
    """Per-question pipeline telemetry."""
    attempt_count: int = 0
    provenance: Optional[Provenance] = Field(None, description="Origin of the final query")
    attempts: List[Attempt] = Field(default_factory=list)
    intent_degraded: bool = False
    schema_tables: List[str] = Field(default_factory=list)
    elapsed_ms: float = 0


class AskResponse(BaseModel):
    """Response body for POST /api/ask."""
    success: bool = Field(..., description="Whether a query executed successfully")
    question: str
    generated_sql: Optional[str] = Field(None, description="Executed SQL, or the last attempted SQL on failure")
    data: List[Dict[str, Any]] = Field(default_factory=list)
    row_count: int = 0
    extracted_intent: List[Dict[str, str]] = Field(default_factory=list)
    token_usage: Optional[TokenUsage] = None
    telemetry: Telemetry = Field(default_factory=Telemetry)
    error: Optional[str] = None
    error_type: Optional[str] = Field(None, description="Error taxonomy name")

    @classmethod
    def from_result(cls, result: PipelineResult) -> "AskResponse":
        return cls(
            success=result.success,
            question=result.question,
            generated_sql=result.generated_sql,
            data=result.data,
            row_count=result.row_count,
            extracted_intent=result.extracted_intent.as_list(),
            token_usage=result.token_usage,
            telemetry=Telemetry(
                attempt_count=result.attempt_count,
                provenance=result.provenance,
                attempts=result.attempts,
                intent_degraded=result.intent_degraded,
                schema_tables=result.schema_tables,
                elapsed_ms=result.elapsed_ms,
            ),
            error=result.error,
            error_type=result.error_type,
        )


class ExecuteResponse(BaseModel):
    """Response body for POST /api/execute."""
    success: bool
    executed_sql: str
    data: List[Dict[str, Any]] = Field(default_factory=list)
    row_count: int = 0


class ErrorResponse(BaseModel):
    """Body for 4xx/5xx responses that are not pipeline results."""
    error_type: str
    detail: str


class HealthResponse(BaseModel):
    """Response for GET /health."""
    status: str = "healthy"
    version: str = "1.0.0"
    llm_provider: Optional[str] = None
    database_connected: bool = False
    db_type: Optional[str] = None
    missing_tables: List[str] = Field(default_factory=list)


class StatsResponse(BaseModel):
    """Response for GET /api/stats."""
    validator: Dict[str, Dict[str, int]] = Field(default_factory=dict)
    llm: Optional[Dict[str, Any]] = None
    dialect: Optional[str] = None
