"""
Generative Query Synthesizer.

Used only when the deterministic builder cannot cover the intent, and
for corrective re-synthesis inside the correction loop. Output is one
SQL string with markdown fences and trailing commentary removed; it is
not trusted until the validator has seen it.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from configs import RESULT_ROW_LIMIT
from matchsql.catalog.attribute_mappings import SqlDialect
from matchsql.models import ExtractedIntent, QueryShape, TokenUsage
from .llm_client import TextGenerator
from .prompts import build_correction_prompt, build_synthesis_prompt
from .repair_rules import matching_rule_names, repair_instructions_for

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:sql)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
_STATEMENT_START = re.compile(r"\b(SELECT|WITH)\b", re.IGNORECASE)


@dataclass
class SynthesisOutput:
    sql: str
    usage: Optional[TokenUsage] = None
    # Repair rules whose instructions went into a corrective prompt
    repair_rules: List[str] = field(default_factory=list)


def clean_generated_sql(text: str) -> str:
    """Strip fences and any prose before the first SELECT/WITH."""
    text = (text or "").strip()
    fence = _FENCE.search(text)
    if fence:
        text = fence.group(1).strip()
    start = _STATEMENT_START.search(text)
    if start and start.start() > 0:
        text = text[start.start():]
    return text.strip()


class QuerySynthesizer:
    """Builds prompts and asks the text-generation capability for SQL."""

    def __init__(
        self,
        llm: TextGenerator,
        dialect: SqlDialect = SqlDialect.POSTGRESQL,
        row_limit: int = RESULT_ROW_LIMIT,
    ):
        self.llm = llm
        self.dialect = dialect
        self.row_limit = row_limit

    def generate(
        self,
        question: str,
        schema_context: str,
        intent: ExtractedIntent,
        shape: QueryShape,
    ) -> SynthesisOutput:
        """
        First-attempt synthesis.

        Raises:
            LLMError / RateLimitError: provider failure
        """
        prompt = build_synthesis_prompt(question, schema_context, intent, shape, self.dialect, self.row_limit)
        response = self.llm.generate(prompt)
        sql = clean_generated_sql(response.text)
        logger.info("Generated SQL: %s", sql)
        return SynthesisOutput(sql=sql, usage=response.usage)

    def correct(
        self,
        question: str,
        schema_context: str,
        intent: ExtractedIntent,
        shape: QueryShape,
        failed_sql: str,
        error: str,
    ) -> SynthesisOutput:
        """
        Corrective synthesis from the prior failing query and its error only.

        Raises:
            LLMError / RateLimitError: provider failure
        """
        instructions = repair_instructions_for(error)
        rules = matching_rule_names(error)
        prompt = build_correction_prompt(
            question, schema_context, intent, failed_sql, error, instructions,
            shape, self.dialect, self.row_limit,
        )
        response = self.llm.generate(prompt)
        sql = clean_generated_sql(response.text)
        logger.info("Corrected SQL (repair rules: %s): %s", ", ".join(rules) or "general", sql)
        return SynthesisOutput(sql=sql, usage=response.usage, repair_rules=rules)
