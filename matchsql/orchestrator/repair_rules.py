"""
Error-to-repair table for corrective synthesis.

Each RepairRule pairs an error pattern (PostgreSQL, SQLite or validator
wording) with an explicit repair instruction. Rules that capture a table
alias or column are rendered against the schema catalog, so the
instruction names the exact join or the table that owns the column.

The correction prompt receives every matching instruction, in table
order; when nothing matches, GENERAL_REPAIR_INSTRUCTIONS are used.
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Match, Optional, Pattern

from matchsql.catalog.schema_metadata import (
    ROOT_ALIAS,
    ROOT_TABLE,
    SCHEMA_METADATA,
    get_table_by_alias,
)


@dataclass(frozen=True)
class RepairRule:
    """One error pattern and the instruction that repairs it."""
    name: str
    pattern: Pattern
    instruction: str
    render: Optional[Callable[[Match], str]] = None

    def apply(self, error: str) -> Optional[str]:
        match = self.pattern.search(error)
        if not match:
            return None
        if self.render is not None:
            return self.render(match)
        return self.instruction


# ============================================================
# CATALOG-AWARE RENDERERS
# ============================================================

def _join_text(alias: str) -> Optional[str]:
    table = get_table_by_alias(alias)
    if table is None or table.join_on is None:
        return None
    return f"LEFT JOIN {table.table_name} {table.alias} ON {table.join_on[0]} = {table.join_on[1]}"


def _known_aliases() -> str:
    return ", ".join(f"{t.alias} ({t.table_name})" for t in SCHEMA_METADATA if t.join_on or t.alias == ROOT_ALIAS)


def _owners_of(column: str) -> List[str]:
    return [f"{t.alias}.{column} ({t.table_name})" for t in SCHEMA_METADATA if t.has_column(column)]


def _render_missing_alias(match: Match) -> str:
    alias = match.group("alias").lower()
    if alias == ROOT_ALIAS:
        return _BASE_INSTRUCTION
    join = _join_text(alias)
    if join is None:
        return (
            f"Alias '{alias}' is not a catalog alias. Use one alias per table from: "
            f"{_known_aliases()}, and join each one ON its key pair."
        )
    return (
        f"Alias {alias} is used without its join. Add {join}. "
        f"Every alias in SELECT/WHERE must have exactly one matching JOIN."
    )


def _render_unknown_column(match: Match) -> str:
    alias = match.group("alias").lower()
    column = match.group("column").lower()
    table = get_table_by_alias(alias)

    if table is None:
        return _render_missing_alias(match)

    if table.has_column(column):
        join = _join_text(alias)
        if join:
            return f"{alias}.{column} exists but {table.table_name} is not joined. Add {join}."
        return f"{alias}.{column} exists; make sure the query uses FROM {ROOT_TABLE} {ROOT_ALIAS} as its base."

    owners = _owners_of(column)
    where = f" Use {' or '.join(owners)} instead, with its JOIN." if owners else ""
    return (
        f"{table.table_name} ({alias}) has no column {column}; its columns are "
        f"{', '.join(table.column_names)}.{where}"
    )


def _render_unknown_bare_column(match: Match) -> str:
    column = (match.group("column") or match.group("bare")).lower()
    if column == "id":
        return f"There is no id column. Use {ROOT_ALIAS}.profile_id; every join is ON p.profile_id = <alias>.profile_id."
    owners = _owners_of(column)
    if owners:
        return f"Qualify {column} with the alias of the table that owns it: {', '.join(owners)}."
    return f"Column {column} does not exist. Use only columns listed in CONTEXT, qualified with their alias."


_BASE_INSTRUCTION = (
    f"The base table must be FROM {ROOT_TABLE} {ROOT_ALIAS}. Never start with FROM career_details c "
    f"or FROM profile_locations pl; reach every other table with "
    f"LEFT JOIN <table> <alias> ON {ROOT_ALIAS}.profile_id = <alias>.profile_id."
)


# ============================================================
# REPAIR TABLE
# ============================================================

def _rule(name: str, pattern: str, instruction: str = "", render=None) -> RepairRule:
    return RepairRule(name=name, pattern=re.compile(pattern, re.IGNORECASE), instruction=instruction, render=render)


ERROR_REPAIR_TABLE: List[RepairRule] = [
    _rule(
        "missing_base_entity",
        r"missing_base_entity|missing base (?:table|entity)",
        _BASE_INSTRUCTION,
    ),
    _rule(
        "join_incomplete",
        r"alias '(?P<alias>\w+)' is referenced without",
        render=_render_missing_alias,
    ),
    _rule(
        "missing_from_entry",
        r'missing FROM-clause entry for table "?(?P<alias>\w+)"?',
        render=_render_missing_alias,
    ),
    _rule(
        "unknown_column_postgres",
        r'column "?(?P<alias>\w+)\.(?P<column>\w+)"? does not exist',
        render=_render_unknown_column,
    ),
    _rule(
        "unknown_column_sqlite",
        r"no such column: (?P<alias>\w+)\.(?P<column>\w+)",
        render=_render_unknown_column,
    ),
    _rule(
        "unknown_column_generic",
        r"unknown column '?(?P<alias>\w+)\.(?P<column>\w+)",
        render=_render_unknown_column,
    ),
    _rule(
        "unknown_bare_column",
        r'(?:column "(?P<column>\w+)" does not exist|no such column: (?P<bare>\w+)\b(?!\.))',
        render=_render_unknown_bare_column,
    ),
    _rule(
        "unknown_table",
        r'no such table|relation "?\w+"? does not exist',
        "Use only tables listed in CONTEXT with their canonical aliases: " + _known_aliases() + ".",
    ),
    _rule(
        "ambiguous_reference",
        r"ambiguous",
        "Qualify every column with its table alias. Use one alias per table and join each table once, "
        "ON p.profile_id = <alias>.profile_id.",
    ),
    _rule(
        "unresolved_placeholder",
        r"unresolved_placeholder|placeholder",
        "Replace placeholder tokens such as '%value%', 'value', <value> or {value} with the actual "
        "values from EXTRACTED INTENT (e.g. LOWER(pl.city) LIKE LOWER('%pune%')).",
    ),
    _rule(
        "malformed_limit",
        r'near "LIMIT"|malformed .*limit',
        "Remove any extra ) or ; before LIMIT so the WHERE clause ends with its last condition, "
        "then LIMIT 50. A ) before LIMIT is allowed only when it closes an open (.",
    ),
    _rule(
        "like_with_two_strings",
        r"near \"'[^\"]*%'\"",
        "LIKE accepts one string. For two values write "
        "(LOWER(col) LIKE LOWER('%a%') OR LOWER(col) LIKE LOWER('%b%')).",
    ),
    _rule(
        "aggregate_in_list",
        r"must appear in the GROUP BY clause|misuse of aggregate",
        "For list queries do not use COUNT(...) or GROUP BY. Select plain columns with WHERE only. "
        "For counting questions use SELECT COUNT(DISTINCT p.profile_id) AS total with no LIMIT.",
    ),
    _rule(
        "type_mismatch",
        r"operator does not exist|datatype mismatch|function lower\(",
        "Joins must be ON p.profile_id = <alias>.profile_id only. Never use LOWER() on numeric columns "
        "(annual_income, height_cm, weight_kg); compare numbers with >=, <=, = or BETWEEN.",
    ),
    _rule(
        "bad_join_condition",
        r'near "ON"',
        "Every JOIN must be ON p.profile_id = <alias>.profile_id. Never put filter expressions "
        "or value columns in ON.",
    ),
    _rule(
        "read_only_violation",
        r"read-only|readonly|attempt to write|only SELECT|forbidden keyword",
        "Return a single read-only SELECT statement. No INSERT, UPDATE, DELETE or DDL.",
    ),
    _rule(
        "empty_query",
        r"empty_query|empty query|empty response",
        "Output exactly one SELECT statement starting with SELECT and using FROM profiles p.",
    ),
    _rule(
        "syntax_error",
        r"syntax error",
        "Fix parentheses, commas, quotes and AND/OR. Do not use AS with a dot (AS pl.city). "
        "Use only standard SQL functions.",
    ),
]

GENERAL_REPAIR_INSTRUCTIONS: List[str] = [
    "WHERE must match EXTRACTED INTENT only: one condition per attribute, combined with AND.",
    "Remove joins to tables whose columns are neither selected nor filtered.",
    "Use one alias per table and join every table ON p.profile_id = <alias>.profile_id.",
]


def repair_instructions_for(error: str) -> List[str]:
    """
    Collect repair instructions for an error message.

    Returns:
        Matching instructions in table order (deduplicated), or the
        general instructions when no rule matches
    """
    instructions: List[str] = []
    for rule in ERROR_REPAIR_TABLE:
        instruction = rule.apply(error or "")
        if instruction and instruction not in instructions:
            instructions.append(instruction)
    return instructions or list(GENERAL_REPAIR_INSTRUCTIONS)


def matching_rule_names(error: str) -> List[str]:
    return [rule.name for rule in ERROR_REPAIR_TABLE if rule.pattern.search(error or "")]
