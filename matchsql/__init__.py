"""
MatchSQL Package

Natural-language search over a matrimonial profile database:
- catalog: schema metadata and the attribute -> column mapping table
- orchestrator: intent extraction, deterministic builder, synthesis,
  validation/auto-fix and the correction loop
- adapters: read-only database access and the execution gateway
- tools: schema context retrieval
- models: data passed between pipeline stages
"""

__version__ = "1.0.0"

from matchsql.orchestrator import CorrectionOrchestrator
from matchsql.models import ExtractedIntent, PipelineResult, Provenance, QueryShape

__all__ = [
    "__version__",
    "CorrectionOrchestrator",
    "ExtractedIntent",
    "PipelineResult",
    "Provenance",
    "QueryShape",
]
