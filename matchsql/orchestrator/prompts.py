"""
Prompt construction for the generative steps.

Three prompts, all built from catalog data rather than hand-written
mapping prose:
- intent extraction: vocabulary from ATTRIBUTE_MAPPINGS descriptions
- synthesis: schema context + intent hints rendered by render_predicate
- correction: the failing query, its error and the repair-table instructions
"""

from typing import List

from matchsql.catalog.attribute_mappings import (
    ATTRIBUTE_MAPPINGS,
    SqlDialect,
    get_mapping,
    render_predicate,
)
from matchsql.catalog.schema_metadata import ROOT_ALIAS, ROOT_TABLE
from matchsql.models import ExtractedIntent, QueryShape

_VOCABULARY_GROUPS = (
    ("Identity and name", ("first_name", "last_name")),
    ("Demographics", ("gender", "marital_status", "age")),
    ("Location (current residence)", ("city", "state", "country")),
    ("Location (origin and work)", ("native_place", "work_location")),
    ("Language", ("mother_tongue", "language_spoken")),
    ("Religion and caste", ("religion", "caste")),
    ("Career", ("profession", "income", "company")),
    ("Education", ("degree_type", "college")),
    ("Lifestyle", ("diet", "smoking", "drinking", "hobby")),
    ("Physical and family", ("height", "weight", "body_type", "complexion", "family_type")),
    ("Other", ("manglik", "rashi", "verified")),
)

_DIALECT_NAMES = {
    SqlDialect.POSTGRESQL: "PostgreSQL",
    SqlDialect.SQLITE: "SQLite",
}


def vocabulary_block() -> str:
    """Attribute definitions grouped for the intent prompt."""
    lines = []
    for title, attributes in _VOCABULARY_GROUPS:
        defs = "; ".join(
            f"{name}: {ATTRIBUTE_MAPPINGS[name].description}"
            for name in attributes if name in ATTRIBUTE_MAPPINGS
        )
        lines.append(f"{title}: {defs}.")
    return "\n".join(lines)


def build_intent_prompt(question: str) -> str:
    return f"""
You extract search criteria from a user's question about matrimonial profiles.
Output a JSON array of objects, each with keys "attribute" (lowercase string) and "value" (string).

ATTRIBUTE DEFINITIONS:
{vocabulary_block()}

CRITICAL - DO NOT INFER: include an attribute only if its value is explicitly present in the question.
Never add defaults such as "any" or "not specified". "originally from / hails from / native of X" is
native_place, never city. "in / lives in X" is city. Use simple attribute names ("city", not "location.city").

EXAMPLES:
"show me Neha's profile" -> [{{"attribute": "first_name", "value": "Neha"}}]
"profiles between 25 and 30" -> [{{"attribute": "age", "value": "25-30"}}]
"lawyers in Pune" -> [{{"attribute": "profession", "value": "lawyer"}}, {{"attribute": "city", "value": "Pune"}}]
"Hindu Brahmins who speak Marathi" -> religion, caste, mother_tongue
"engineers earning more than 15 LPA originally from Nagpur" -> profession, income ("15 LPA"), native_place

User question: "{question}"

Output only the JSON array, no markdown and no explanation. If nothing is a search criterion, output [].
""".strip()


def intent_block(intent: ExtractedIntent, dialect: SqlDialect) -> str:
    """EXTRACTED INTENT section with the required predicate for every mapped attribute."""
    if intent.is_empty:
        return "EXTRACTED INTENT: none. Do not add any WHERE condition the question does not state."

    lines = ["EXTRACTED INTENT (one WHERE condition per attribute, combined with AND):"]
    for item in intent.items:
        mapping = get_mapping(item.attribute)
        if mapping is None:
            lines.append(f"- {item.attribute} = {item.value!r} (no fixed mapping; use the matching CONTEXT column)")
            continue
        try:
            predicate = render_predicate(mapping, item.value, dialect)
        except ValueError:
            predicate = f"filter on {mapping.column_expression}"
        join = f"; requires {mapping.join_requirement.render()}" if mapping.join_requirement else ""
        lines.append(f"- {item.attribute} = {item.value!r} -> {predicate}{join}")
    return "\n".join(lines)


def shape_instruction(shape: QueryShape, row_limit: int) -> str:
    if shape == QueryShape.COUNT:
        return (
            f"The question asks HOW MANY: return SELECT COUNT(DISTINCT {ROOT_ALIAS}.profile_id) AS total "
            f"with no LIMIT and no other selected columns."
        )
    return (
        f"The question asks for a LIST: select {ROOT_ALIAS}.profile_id, {ROOT_ALIAS}.first_name, "
        f"{ROOT_ALIAS}.last_name plus the columns being filtered, then end with LIMIT {row_limit}."
    )


def _common_rules(dialect: SqlDialect) -> str:
    return f"""
RULES:
- Write one {_DIALECT_NAMES[dialect]} SELECT statement. Read-only: no INSERT, UPDATE, DELETE or DDL.
- Base table is always FROM {ROOT_TABLE} {ROOT_ALIAS}. Reach other tables with LEFT JOIN <table> <alias> ON the key pair shown in CONTEXT.
- One attribute per WHERE condition; combine attributes with AND only. OR is allowed only inside one attribute's own condition.
- Join only tables whose columns are selected or filtered. Use the canonical alias of each table.
- Put every filter in WHERE; SELECT lists plain columns only.
- Use the actual intent values; never leave placeholders such as '%value%' or <value>.
""".strip()


def build_synthesis_prompt(
    question: str,
    schema_context: str,
    intent: ExtractedIntent,
    shape: QueryShape,
    dialect: SqlDialect,
    row_limit: int,
) -> str:
    return f"""
You are a SQL generator for a matrimonial profile database.

CONTEXT (relevant tables and columns; use only these):
{schema_context}

{intent_block(intent, dialect)}

{_common_rules(dialect)}
- {shape_instruction(shape, row_limit)}

USER QUESTION: "{question}"

Output only the SQL statement. No backticks, no commentary.
""".strip()


def build_correction_prompt(
    question: str,
    schema_context: str,
    intent: ExtractedIntent,
    failed_sql: str,
    error: str,
    repair_instructions: List[str],
    shape: QueryShape,
    dialect: SqlDialect,
    row_limit: int,
) -> str:
    fixes = "\n".join(f"- {line}" for line in repair_instructions)
    return f"""
The SQL below failed. Produce a corrected query for the same question.

CONTEXT (relevant tables and columns; use only these):
{schema_context}

{intent_block(intent, dialect)}

USER QUESTION: "{question}"

FAILED SQL:
{failed_sql}

ERROR:
{error}

REPAIR INSTRUCTIONS (apply these first):
{fixes}

{_common_rules(dialect)}
- {shape_instruction(shape, row_limit)}

Output only the corrected SQL statement. No backticks, no commentary.
""".strip()
