"""
Correction Orchestrator.

PIPELINE:
=========
question
  -> intent extraction || schema context      (concurrent, joined)
  -> Attempt 1: deterministic build when intent is non-empty and fully
                mapped, generative synthesis otherwise
  -> validate/auto-fix -> execute
  -> on failure: Attempt n+1 = corrective synthesis from the prior
     failing query and its error only
  -> Done, or Failed after MAX_ATTEMPTS

Attempts are strictly sequential. The deadline is checked between
attempts, never mid-call. Provider, validation and execution failures
become a PipelineResult; only configuration errors propagate.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

from configs import (
    EMBEDDING_BACKEND,
    EMBEDDINGS_CACHE_PATH,
    MAX_ATTEMPTS,
    QUERY_TIMEOUT_SECONDS,
    RESULT_ROW_LIMIT,
    SCHEMA_CONTEXT_TOP_K,
    ProviderConfig,
    load_provider_config,
)
from matchsql.adapters import ExecutionGateway, create_adapter_from_settings
from matchsql.catalog.attribute_mappings import SqlDialect
from matchsql.catalog.schema_metadata import TableMeta
from matchsql.models import (
    Attempt,
    CandidateQuery,
    ExtractedIntent,
    PipelineResult,
    Provenance,
    QueryShape,
    TokenUsage,
)
from matchsql.tools.schema_context import SchemaContextProvider, SchemaContextUnavailable, render_context
from matchsql.utils.vector_search import LocalEmbedder, SchemaVectorStore
from .intent_extractor import IntentExtractor, detect_query_shape
from .llm_client import LLMError, RateLimitError, TextGenerator, create_llm_client
from .query_builder import DeterministicQueryBuilder, InsufficientCoverage
from .sql_validator import AutoFixCounter, SqlValidator, ValidationRejected, rejection_for
from .synthesizer import QuerySynthesizer, SynthesisOutput

logger = logging.getLogger(__name__)

RATE_LIMITED = "RateLimited"


class ExecutionFailed(Exception):
    """The last execution error after the correction loop is exhausted."""
    pass


class PipelineTimeout(Exception):
    """The deadline passed before another attempt could start."""
    pass


# ============================================================
# PIPELINE STATE
# ============================================================

@dataclass
class PipelineState:
    """Mutable state for one question; never shared between questions."""
    question: str
    shape: QueryShape = QueryShape.LIST
    intent: ExtractedIntent = field(default_factory=ExtractedIntent)
    intent_degraded: bool = False
    tables: List[TableMeta] = field(default_factory=list)
    context_text: str = ""
    usage: Optional[TokenUsage] = None
    attempts: List[Attempt] = field(default_factory=list)
    # Sole context carried into the next attempt
    last_sql: Optional[str] = None
    last_error: Optional[str] = None
    last_exception: Optional[Exception] = None
    started: float = field(default_factory=time.monotonic)

    def add_usage(self, usage: Optional[TokenUsage]) -> None:
        if usage is None:
            return
        self.usage = usage if self.usage is None else self.usage + usage

    def record_failure(self, sql: Optional[str], error: str, exception: Exception) -> None:
        # A failed generation has no query; keep the prior query's error for correction
        if sql is not None or self.last_sql is None:
            self.last_error = error
        self.last_sql = sql or self.last_sql
        self.last_exception = exception

    @property
    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.started) * 1000


# ============================================================
# ORCHESTRATOR
# ============================================================

class CorrectionOrchestrator:
    """
    Runs questions through build/synthesize -> validate -> execute with
    a bounded correction loop.

    Usage:
        orchestrator = CorrectionOrchestrator(llm, gateway, schema_provider)
        result = await orchestrator.process_question("doctors in Pune")
    """

    def __init__(
        self,
        llm: Optional[TextGenerator],
        gateway: ExecutionGateway,
        schema_provider: SchemaContextProvider,
        dialect: Optional[SqlDialect] = None,
        timeout_seconds: float = QUERY_TIMEOUT_SECONDS,
        row_limit: int = RESULT_ROW_LIMIT,
        counter: Optional[AutoFixCounter] = None,
    ):
        self.llm = llm
        self.gateway = gateway
        self.schema_provider = schema_provider
        self.dialect = dialect or gateway.dialect
        self.timeout_seconds = timeout_seconds
        self.counter = counter or AutoFixCounter()

        self.intent_extractor = IntentExtractor(llm)
        self.builder = DeterministicQueryBuilder(self.dialect, row_limit)
        self.validator = SqlValidator(self.dialect, self.counter)
        self.synthesizer = QuerySynthesizer(llm, self.dialect, row_limit) if llm is not None else None

    # --------------------------------------------------------
    # Entry points
    # --------------------------------------------------------

    async def process_question(self, question: str, timeout_seconds: Optional[float] = None) -> PipelineResult:
        state = PipelineState(question=question, shape=detect_query_shape(question))
        deadline = state.started + (timeout_seconds if timeout_seconds is not None else self.timeout_seconds)

        logger.info("=" * 60)
        logger.info("QUESTION: %s (shape=%s)", question, state.shape.value)

        try:
            await self._prepare(state)
            return await self._correction_loop(state, deadline)
        except SchemaContextUnavailable as e:
            return self._failure(state, str(e), SchemaContextUnavailable.__name__)
        except PipelineTimeout as e:
            return self._failure(state, str(e), PipelineTimeout.__name__)
        except RateLimitError as e:
            return self._failure(state, str(e), RATE_LIMITED)
        except (ValidationRejected, ExecutionFailed) as e:
            return self._failure(state, str(e), type(e).__name__)

    def process_question_sync(self, question: str) -> PipelineResult:
        """Blocking wrapper for the CLI."""
        return asyncio.run(self.process_question(question))

    def get_stats(self) -> dict:
        return {
            "validator": self.counter.snapshot(),
            "llm": self.llm.get_stats() if self.llm is not None else None,
            "dialect": self.dialect.value,
        }

    # --------------------------------------------------------
    # Steps
    # --------------------------------------------------------

    async def _prepare(self, state: PipelineState) -> None:
        """Intent extraction and schema context, concurrently."""
        extraction, tables = await asyncio.gather(
            asyncio.to_thread(self.intent_extractor.extract, state.question),
            asyncio.to_thread(self.schema_provider.get_context, state.question),
        )
        state.intent = extraction.intent
        state.intent_degraded = extraction.degraded
        state.add_usage(extraction.usage)
        state.tables = tables
        state.context_text = render_context(tables)

        logger.info("Intent (%s): %s", extraction.source, state.intent.as_list())
        logger.info("Schema context: %s", [t.table_name for t in tables])

    async def _correction_loop(self, state: PipelineState, deadline: float) -> PipelineResult:
        for number in range(1, MAX_ATTEMPTS + 1):
            if time.monotonic() > deadline:
                raise PipelineTimeout(
                    f"Timed out after {state.elapsed_ms / 1000:.1f}s before attempt {number}"
                )

            logger.info("→ Attempt %d/%d", number, MAX_ATTEMPTS)
            try:
                candidate = await self._candidate(state, number)
            except RateLimitError:
                raise
            except LLMError as e:
                logger.warning("Attempt %d: generation failed: %s", number, e)
                error = f"generation failed: {e}"
                state.attempts.append(Attempt(
                    number=number,
                    provenance=Provenance.CORRECTED if state.last_sql else Provenance.GENERATED,
                    query=state.last_sql or "",
                    execution_error=error,
                ))
                state.record_failure(None, error, ExecutionFailed(error))
                continue

            validation = self.validator.validate(candidate.sql, state.intent)
            attempt = Attempt(
                number=number,
                provenance=candidate.provenance,
                query=validation.query,
                fixed=validation.fixed,
                fixes=validation.fixes,
            )
            state.attempts.append(attempt)

            if not validation.valid:
                rejection = rejection_for(validation)
                attempt.validation_error = str(rejection)
                logger.warning("Attempt %d: validation failed: %s", number, rejection)
                state.record_failure(validation.query, str(rejection), rejection)
                continue

            outcome = await asyncio.to_thread(self.gateway.execute, validation.query)
            if outcome.succeeded:
                attempt.row_count = outcome.row_count
                logger.info("Attempt %d: success, %d rows", number, outcome.row_count)
                return self._success(state, validation.query, outcome.rows)

            attempt.execution_error = outcome.error
            logger.warning("Attempt %d: execution failed: %s", number, outcome.error)
            state.record_failure(validation.query, outcome.error, ExecutionFailed(outcome.error))

        logger.error("Correction loop exhausted after %d attempts", MAX_ATTEMPTS)
        raise state.last_exception or ExecutionFailed("No attempt succeeded")

    async def _candidate(self, state: PipelineState, number: int) -> CandidateQuery:
        if number == 1 and self.builder.covers(state.intent):
            try:
                sql = self.builder.build_sql(state.intent, state.shape)
                logger.info("Built deterministically: %s", sql)
                return CandidateQuery(sql=sql, provenance=Provenance.BUILT_DETERMINISTICALLY, attempt=number)
            except InsufficientCoverage as e:
                logger.info("Falling back to generative synthesis: %s", e)

        if self.synthesizer is None:
            raise LLMError("no text generator configured for generative synthesis")

        if state.last_sql and state.last_error:
            output: SynthesisOutput = await asyncio.to_thread(
                self.synthesizer.correct,
                state.question, state.context_text, state.intent, state.shape,
                state.last_sql, state.last_error,
            )
            provenance = Provenance.CORRECTED
        else:
            output = await asyncio.to_thread(
                self.synthesizer.generate,
                state.question, state.context_text, state.intent, state.shape,
            )
            provenance = Provenance.GENERATED

        state.add_usage(output.usage)
        return CandidateQuery(sql=output.sql, provenance=provenance, attempt=number)

    # --------------------------------------------------------
    # Results
    # --------------------------------------------------------

    def _base_result(self, state: PipelineState) -> dict:
        return dict(
            question=state.question,
            extracted_intent=state.intent,
            shape=state.shape,
            token_usage=state.usage,
            attempts=state.attempts,
            schema_tables=[t.table_name for t in state.tables],
            intent_degraded=state.intent_degraded,
            elapsed_ms=state.elapsed_ms,
        )

    def _success(self, state: PipelineState, sql: str, rows: list) -> PipelineResult:
        return PipelineResult(
            success=True,
            generated_sql=sql,
            data=rows,
            row_count=len(rows),
            **self._base_result(state),
        )

    def _failure(self, state: PipelineState, error: str, error_type: str) -> PipelineResult:
        logger.error("Pipeline failed (%s): %s", error_type, error)
        return PipelineResult(
            success=False,
            generated_sql=state.last_sql,
            error=error,
            error_type=error_type,
            **self._base_result(state),
        )


# ============================================================
# FACTORY
# ============================================================

def create_orchestrator(
    config: Optional[ProviderConfig] = None,
    gateway: Optional[ExecutionGateway] = None,
) -> CorrectionOrchestrator:
    """
    Wire the orchestrator from settings.

    Raises:
        ConfigurationError: provider misconfigured or credential missing
    """
    config = config or load_provider_config()
    llm = create_llm_client(config)

    if EMBEDDING_BACKEND == "local":
        store = SchemaVectorStore(LocalEmbedder(), LocalEmbedder.name)
    else:
        store = SchemaVectorStore(llm.embed, config.embedding_model)
    schema_provider = SchemaContextProvider(store, SCHEMA_CONTEXT_TOP_K, EMBEDDINGS_CACHE_PATH)

    gateway = gateway or ExecutionGateway(create_adapter_from_settings)
    logger.info(
        "Orchestrator ready: provider=%s model=%s db=%s embeddings=%s",
        config.provider, config.model, gateway.db_type, EMBEDDING_BACKEND,
    )
    return CorrectionOrchestrator(llm, gateway, schema_provider)
