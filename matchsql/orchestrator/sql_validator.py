"""
Query Validator / Auto-Fixer.

PURPOSE:
========
Normalizes and checks every candidate query (built or generated) before
it reaches the execution gateway. Mechanical defects are repaired in
place; defects that need re-interpretation are rejected with a typed
error so the correction loop can re-synthesize.

RULES (applied in order, none undoing a prior rule):
====================================================
1. Root normalization    base must be FROM profiles p; a catalog table
                         used as the base becomes a LEFT JOIN
2. Placeholder fill      '%value%', 'value', <value>, {value} take intent
                         values in order; no intent values = hard fail
3. Syntax repair         one surplus ')' before LIMIT; ';' before LIMIT
4. Base presence         FROM profiles p must exist
5. Placeholder residue   a placeholder left with non-empty intent fails
6. Name conformance      name intent without a name filter -> inject
7. Age conformance       age intent without an age filter -> inject
8. Join completeness     every referenced alias needs its JOIN with the
                         catalog key pair; never auto-fixed

The validator is idempotent: validating its own output reports
fixed=False. It performs no I/O.

STRUCTURE:
==========
SqlAnatomy is the light structured view the rules work on (base table
and alias, declared joins with key pairs, WHERE text, referenced
aliases). The WHERE clause is located with sqlparse.
"""

import logging
import re
import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

import sqlparse
from sqlparse.sql import Where

from matchsql.catalog.attribute_mappings import (
    AGE_ATTRIBUTE,
    NAME_ATTRIBUTES,
    SqlDialect,
    get_mapping,
    render_predicate,
)
from matchsql.catalog.schema_metadata import ROOT_ALIAS, ROOT_TABLE, get_table, get_table_by_alias
from matchsql.models import ErrorKind, ExtractedIntent, ValidationResult

logger = logging.getLogger(__name__)


# ============================================================
# ERRORS
# ============================================================

class ValidationRejected(Exception):
    """A query that cannot be safely normalized; names the failing rule."""

    def __init__(self, kind: ErrorKind, query: str, message: str):
        self.kind = kind
        self.query = query
        self.message = message
        super().__init__(f"{kind.value}: {message}")


class JoinIncomplete(ValidationRejected):
    """An alias is referenced without its join, or joined on the wrong keys."""

    def __init__(self, alias: str, query: str, message: str):
        self.alias = alias
        super().__init__(ErrorKind.JOIN_INCOMPLETE, query, message)


def rejection_for(result: ValidationResult) -> ValidationRejected:
    """Rebuild the typed exception for an invalid ValidationResult."""
    if result.error == ErrorKind.JOIN_INCOMPLETE:
        match = re.search(r"alias '(\w+)'", result.message or "")
        return JoinIncomplete(match.group(1) if match else "", result.query, result.message or "")
    return ValidationRejected(result.error or ErrorKind.EMPTY_QUERY, result.query, result.message or "")


# ============================================================
# AUTO-FIX INSTRUMENTATION
# ============================================================

class AutoFixCounter:
    """
    Counts validator mutations per rule and intent-driven injections per
    attribute, so a synthesizer that keeps dropping a filter class shows up.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.fixes: Counter = Counter()
        self.injections: Counter = Counter()
        self.rejections: Counter = Counter()

    def record_fix(self, rule: str) -> None:
        with self._lock:
            self.fixes[rule] += 1

    def record_injection(self, attribute: str) -> None:
        with self._lock:
            self.injections[attribute] += 1
        logger.info("Auto-injected %s filter (total for %s: %d)", attribute, attribute, self.injections[attribute])

    def record_rejection(self, kind: ErrorKind) -> None:
        with self._lock:
            self.rejections[kind.value] += 1

    def snapshot(self) -> Dict[str, Dict[str, int]]:
        with self._lock:
            return {
                "fixes_by_rule": dict(self.fixes),
                "injections_by_attribute": dict(self.injections),
                "rejections_by_kind": dict(self.rejections),
            }


# ============================================================
# SQL ANATOMY
# ============================================================

_IDENT = r"[A-Za-z_][\w]*"
_CLAUSE_WORDS = (
    "WHERE|LEFT|RIGHT|INNER|OUTER|FULL|CROSS|JOIN|GROUP|ORDER|LIMIT|HAVING|ON|USING|UNION|OFFSET"
)
_FROM_AT = re.compile(
    rf"FROM\s+({_IDENT}(?:\.{_IDENT})?)(?:\s+(?:AS\s+)?(?!(?:{_CLAUSE_WORDS})\b)({_IDENT}))?",
    re.IGNORECASE,
)
_FROM_WORD = re.compile(r"\bFROM\b", re.IGNORECASE)
_JOIN_DECL = re.compile(
    rf"\bJOIN\s+({_IDENT}(?:\.{_IDENT})?)(?:\s+(?:AS\s+)?(?!(?:{_CLAUSE_WORDS})\b)({_IDENT}))?",
    re.IGNORECASE,
)
_JOIN_ON_PAIR = re.compile(
    rf"\s+ON\s+\(?\s*({_IDENT}\.{_IDENT})\s*=\s*({_IDENT}\.{_IDENT})\s*\)?"
    rf"(?=\s*(?:$|;|\)|\b(?:{_CLAUSE_WORDS})\b))",
    re.IGNORECASE,
)
_ALIAS_REF = re.compile(rf"\b({_IDENT})\s*\.\s*(?:\*|{_IDENT})")
_STRING_LITERAL = re.compile(r"'(?:[^']|'')*'")
_TAIL_BOUNDARY = re.compile(r"\b(?:GROUP\s+BY|ORDER\s+BY|HAVING|LIMIT)\b", re.IGNORECASE)

_SCHEMA_QUALIFIERS = {"public", "main", "pg_catalog", "information_schema"}

_PLACEHOLDER = re.compile(r"%value%|<value>|\{value\}|(?<=')value(?=')", re.IGNORECASE)


def mask_literals(sql: str) -> str:
    """Blank out string literal contents, keeping every character position."""
    return _STRING_LITERAL.sub(lambda m: "'" + " " * (len(m.group(0)) - 2) + "'", sql)


@dataclass
class JoinClause:
    table: str
    alias: str
    on: Optional[Tuple[str, str]]
    start: int
    end: int
    nested: bool = False


@dataclass
class SqlAnatomy:
    """Structured view of a single SELECT statement."""
    base_table: Optional[str] = None
    base_alias: Optional[str] = None
    base_span: Optional[Tuple[int, int]] = None
    joins: List[JoinClause] = field(default_factory=list)
    where: Optional[str] = None
    referenced_aliases: Set[str] = field(default_factory=set)
    # Catalog tables declared by FROM inside IN / EXISTS subqueries
    subquery_aliases: Set[str] = field(default_factory=set)

    @property
    def declared_aliases(self) -> Set[str]:
        declared = {j.alias.lower() for j in self.joins} | self.subquery_aliases
        if self.base_alias:
            declared.add(self.base_alias.lower())
        elif self.base_table:
            declared.add(self.base_table.lower())
        return declared


def _depth(masked: str, pos: int) -> int:
    prefix = masked[:pos]
    return prefix.count("(") - prefix.count(")")


def _top_level_from(masked: str) -> Optional[int]:
    for match in _FROM_WORD.finditer(masked):
        if _depth(masked, match.start()) == 0:
            return match.start()
    return None


def where_clause(sql: str) -> Optional[str]:
    """Text of the top-level WHERE condition (without the keyword), via sqlparse."""
    parsed = sqlparse.parse(sql)
    if not parsed:
        return None
    for token in parsed[0].tokens:
        if isinstance(token, Where):
            return str(token).strip()[len("WHERE"):].strip()
    return None


def dissect(sql: str) -> SqlAnatomy:
    masked = mask_literals(sql)
    anatomy = SqlAnatomy()

    pos = _top_level_from(masked)
    if pos is not None:
        match = _FROM_AT.match(masked, pos)
        if match:
            anatomy.base_table = match.group(1)
            anatomy.base_alias = match.group(2)
            anatomy.base_span = (match.start(), match.end())

    for match in _JOIN_DECL.finditer(masked):
        table = match.group(1)
        alias = match.group(2) or table
        on_match = _JOIN_ON_PAIR.match(masked, match.end())
        on = (on_match.group(1), on_match.group(2)) if on_match else None
        end = on_match.end() if on_match else match.end()
        anatomy.joins.append(JoinClause(
            table=table, alias=alias, on=on, start=match.start(), end=end,
            nested=_depth(masked, match.start()) > 0,
        ))

    for match in _FROM_WORD.finditer(masked):
        if match.start() == pos:
            continue
        decl = _FROM_AT.match(masked, match.start())
        if decl and get_table(decl.group(1).split(".")[-1]) is not None:
            anatomy.subquery_aliases.add((decl.group(2) or decl.group(1)).lower())

    anatomy.where = where_clause(sql)
    anatomy.referenced_aliases = {
        m.group(1).lower() for m in _ALIAS_REF.finditer(masked)
    } - _SCHEMA_QUALIFIERS
    return anatomy


def inject_condition(sql: str, condition: str) -> str:
    """
    AND a condition into the top-level WHERE, or add a WHERE before
    GROUP BY / ORDER BY / HAVING / LIMIT (or at the end).
    """
    parsed = sqlparse.parse(sql)
    if parsed:
        tokens = parsed[0].tokens
        for token in tokens:
            if isinstance(token, Where):
                text = str(token)
                body = text.strip()[len("WHERE"):].strip()
                trailing = text[len(text.rstrip()):]
                terminator = ""
                if body.endswith(";"):
                    body, terminator = body[:-1].rstrip(), ";"
                replacement = f"WHERE {condition} AND ({body}){terminator}{trailing}"
                return "".join(replacement if t is token else str(t) for t in tokens)

    masked = mask_literals(sql)
    from_pos = _top_level_from(masked) or 0
    boundary = _TAIL_BOUNDARY.search(masked, from_pos)
    if boundary:
        return f"{sql[:boundary.start()].rstrip()} WHERE {condition} {sql[boundary.start():]}"

    body = sql.rstrip()
    terminator = ""
    if body.endswith(";"):
        body, terminator = body[:-1].rstrip(), ";"
    return f"{body} WHERE {condition}{terminator}"


# ============================================================
# VALIDATOR
# ============================================================

class SqlValidator:
    """
    Rule-based normalizer and checker.

    Usage:
        validator = SqlValidator(dialect=SqlDialect.SQLITE)
        result = validator.validate(sql, intent)
        if result.valid:
            execute(result.query)
    """

    def __init__(self, dialect: SqlDialect = SqlDialect.POSTGRESQL, counter: Optional[AutoFixCounter] = None):
        self.dialect = dialect
        self.counter = counter or AutoFixCounter()

    def validate(self, sql: str, intent: Optional[ExtractedIntent] = None) -> ValidationResult:
        """Apply every rule; never raises for query defects."""
        intent = intent or ExtractedIntent()
        original = sql or ""
        fixes: List[str] = []

        try:
            query = self._run_rules(original, intent, fixes)
        except ValidationRejected as e:
            self.counter.record_rejection(e.kind)
            logger.warning("Query rejected (%s): %s", e.kind.value, e.message)
            return ValidationResult(
                valid=False,
                query=e.query,
                error=e.kind,
                fixed=e.query != original,
                message=e.message,
                fixes=fixes,
            )

        for rule in fixes:
            self.counter.record_fix(rule)
        if fixes:
            logger.info("Auto-fixed query with rules: %s", ", ".join(fixes))

        return ValidationResult(valid=True, query=query, fixed=query != original, fixes=fixes)

    # --------------------------------------------------------

    def _run_rules(self, sql: str, intent: ExtractedIntent, fixes: List[str]) -> str:
        if not sql.strip():
            raise ValidationRejected(ErrorKind.EMPTY_QUERY, sql, "empty query")

        def step(rule: str, before: str, after: str) -> str:
            if after != before:
                fixes.append(rule)
            return after

        query = sql
        query = step("root_normalization", query, self._normalize_root(query))
        query = step("placeholder_substitution", query, self._substitute_placeholders(query, intent))
        query = step("syntax_repair", query, self._repair_syntax(query))
        self._check_base(query)
        self._check_placeholder_residue(query, intent)
        query = step("name_injection", query, self._ensure_name_filter(query, intent))
        query = step("age_injection", query, self._ensure_age_filter(query, intent))
        self._check_joins(query)
        return query

    # Rule 1
    def _normalize_root(self, sql: str) -> str:
        anatomy = dissect(sql)
        if anatomy.base_table is None or anatomy.base_span is None:
            return sql

        start, end = anatomy.base_span
        table_name = anatomy.base_table.split(".")[-1].lower()
        alias = anatomy.base_alias

        if table_name == ROOT_TABLE:
            if alias and alias.lower() == ROOT_ALIAS:
                if alias != ROOT_ALIAS:
                    sql = sql[:start] + f"FROM {ROOT_TABLE} {ROOT_ALIAS}" + sql[end:]
                return _requalify(sql, ROOT_TABLE, ROOT_ALIAS)
            sql = sql[:start] + f"FROM {ROOT_TABLE} {ROOT_ALIAS}" + sql[end:]
            sql = _requalify(sql, ROOT_TABLE, ROOT_ALIAS)
            if alias:
                sql = _requalify(sql, alias, ROOT_ALIAS)
            return sql

        catalog = get_table(table_name)
        if catalog is None or catalog.join_on is None:
            return sql

        # Wrong base table: make it a join hanging off the root entity
        used_alias = alias or catalog.table_name
        left, right = catalog.join_on
        right = f"{used_alias}.{right.split('.', 1)[1]}"
        replacement = (
            f"FROM {ROOT_TABLE} {ROOT_ALIAS} LEFT JOIN {catalog.table_name} {used_alias} "
            f"ON {left} = {right}"
        )
        sql = sql[:start] + replacement + sql[end:]
        return _drop_root_join(sql)

    # Rule 2
    def _substitute_placeholders(self, sql: str, intent: ExtractedIntent) -> str:
        if not _PLACEHOLDER.search(sql):
            return sql
        values = intent.values()
        if not values:
            raise ValidationRejected(
                ErrorKind.UNRESOLVED_PLACEHOLDER, sql,
                "unresolved placeholder and no intent values to substitute",
            )

        remaining = list(values)

        def fill(match: re.Match) -> str:
            if not remaining:
                return match.group(0)
            value = remaining.pop(0).replace("'", "''")
            token = match.group(0)
            return f"%{value}%" if token.startswith("%") else value

        return _PLACEHOLDER.sub(fill, sql)

    # Rule 3
    def _repair_syntax(self, sql: str) -> str:
        masked = mask_literals(sql)
        match = re.search(r"\)\s*LIMIT\b", masked, re.IGNORECASE)
        if match and masked.count(")") > masked.count("("):
            sql = sql[:match.start()] + sql[match.start() + 1:]
            masked = mask_literals(sql)

        match = re.search(r";\s*LIMIT\b", masked, re.IGNORECASE)
        if match:
            sql = sql[:match.start()] + sql[match.start() + 1:]
        return sql

    # Rule 4
    def _check_base(self, sql: str) -> None:
        anatomy = dissect(sql)
        if (
            anatomy.base_table is None
            or anatomy.base_table.split(".")[-1].lower() != ROOT_TABLE
            or (anatomy.base_alias or "").lower() != ROOT_ALIAS
        ):
            raise ValidationRejected(
                ErrorKind.MISSING_BASE_ENTITY, sql,
                f"missing base entity: query must select FROM {ROOT_TABLE} {ROOT_ALIAS}",
            )

    # Rule 5
    def _check_placeholder_residue(self, sql: str, intent: ExtractedIntent) -> None:
        if not intent.is_empty and _PLACEHOLDER.search(sql):
            raise ValidationRejected(
                ErrorKind.UNRESOLVED_PLACEHOLDER, sql,
                f"unresolved placeholder '{_PLACEHOLDER.search(sql).group(0)}' remains",
            )

    # Rule 6
    def _ensure_name_filter(self, sql: str, intent: ExtractedIntent) -> str:
        for attribute in NAME_ATTRIBUTES:
            item = intent.first(attribute)
            if item is None:
                continue
            mapping = get_mapping(attribute)
            where = (where_clause(sql) or "").lower()
            if any(col.lower() in where for col in mapping.columns):
                continue
            sql = self._inject(sql, mapping, item.value)
        return sql

    # Rule 7
    def _ensure_age_filter(self, sql: str, intent: ExtractedIntent) -> str:
        item = intent.first(AGE_ATTRIBUTE)
        if item is None:
            return sql
        mapping = get_mapping(AGE_ATTRIBUTE)
        column = mapping.column_expression.split(".", 1)[1]
        if column in (where_clause(sql) or "").lower():
            return sql
        return self._inject(sql, mapping, item.value)

    def _inject(self, sql: str, mapping, value: str) -> str:
        try:
            condition = render_predicate(mapping, value, self.dialect)
        except ValueError as e:
            logger.warning("Cannot inject %s filter for %r: %s", mapping.attribute, value, e)
            return sql
        self.counter.record_injection(mapping.attribute)
        return inject_condition(sql, condition)

    # Rule 8
    def _check_joins(self, sql: str) -> None:
        anatomy = dissect(sql)
        declared = anatomy.declared_aliases

        for alias in sorted(anatomy.referenced_aliases - declared):
            expected = _expected_join_text(alias)
            hint = f" (expected {expected})" if expected else ""
            raise JoinIncomplete(alias, sql, f"alias '{alias}' is referenced without its join{hint}")

        for join in anatomy.joins:
            if join.nested:
                continue
            catalog = get_table(join.table.split(".")[-1])
            if catalog is None or catalog.join_on is None or catalog.table_name == ROOT_TABLE:
                continue
            left, right = catalog.join_on
            right = f"{join.alias}.{right.split('.', 1)[1]}"
            expected = {left.lower(), right.lower()}
            actual = {k.lower() for k in join.on} if join.on else set()
            if actual != expected:
                raise JoinIncomplete(
                    join.alias, sql,
                    f"alias '{join.alias}' is referenced without its join key pair: "
                    f"{catalog.table_name} must join ON {left} = {right}",
                )


# ============================================================
# HELPERS
# ============================================================

def _requalify(sql: str, old: str, new: str) -> str:
    """Rewrite old.column references to new.column outside string literals."""
    if old == new:
        return sql
    pattern = re.compile(rf"\b{re.escape(old)}\s*\.(?=\s*[A-Za-z_*])", re.IGNORECASE)
    masked = mask_literals(sql)
    out, last = [], 0
    for match in pattern.finditer(masked):
        out.append(sql[last:match.start()])
        out.append(f"{new}.")
        last = match.end()
    out.append(sql[last:])
    return "".join(out)


def _drop_root_join(sql: str) -> str:
    """Remove a JOIN that re-declares the root table once it is the base."""
    anatomy = dissect(sql)
    for join in anatomy.joins:
        if not join.nested and join.table.split(".")[-1].lower() == ROOT_TABLE:
            prefix = re.search(r"(?:\b(?:LEFT|RIGHT|INNER|FULL|CROSS)\s+(?:OUTER\s+)?)?$", sql[:join.start], re.IGNORECASE)
            start = prefix.start() if prefix else join.start
            sql = sql[:start].rstrip() + " " + sql[join.end:].lstrip()
            if join.alias.lower() != ROOT_ALIAS:
                sql = _requalify(sql, join.alias, ROOT_ALIAS)
            break
    return sql


def _expected_join_text(alias: str) -> Optional[str]:
    table = get_table_by_alias(alias)
    if table is None or table.join_on is None:
        return None
    return f"LEFT JOIN {table.table_name} {table.alias} ON {table.join_on[0]} = {table.join_on[1]}"
