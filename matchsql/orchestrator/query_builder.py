"""
Deterministic Query Builder.

PURPOSE:
========
Builds SQL straight from extracted intent when every attribute has an
AttributeMapping. No generative call is involved, so the result is
correct by construction: joins come from the catalog, predicates come
from the mapping's value transform, and distinct attributes are combined
with AND only.

ARCHITECTURE:
=============
- QueryIR: structured query (base entity, join set, predicate list,
  column list, limit/count mode). Text is produced only by to_sql().
- DeterministicQueryBuilder.build(): intent -> QueryIR, or raises
  InsufficientCoverage when an attribute is unmapped or unrenderable.

USAGE:
======
    builder = DeterministicQueryBuilder(dialect=SqlDialect.SQLITE)
    ir = builder.build(intent, QueryShape.LIST)
    sql = ir.to_sql()
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from configs import RESULT_ROW_LIMIT
from matchsql.catalog.attribute_mappings import (
    AttributeMapping,
    JoinSpec,
    SqlDialect,
    get_mapping,
    normalize_attribute,
    render_predicate,
)
from matchsql.catalog.schema_metadata import ROOT_ALIAS, ROOT_KEY, ROOT_TABLE
from matchsql.models import ExtractedIntent, QueryShape

logger = logging.getLogger(__name__)

BASE_COLUMNS = (f"{ROOT_ALIAS}.{ROOT_KEY}", f"{ROOT_ALIAS}.first_name", f"{ROOT_ALIAS}.last_name")


class InsufficientCoverage(Exception):
    """Raised when intent cannot be built deterministically."""

    def __init__(self, attributes: List[str], reason: str = "no attribute mapping"):
        self.attributes = attributes
        self.reason = reason
        super().__init__(f"Insufficient coverage for {', '.join(attributes)}: {reason}")


# ============================================================
# INTERMEDIATE REPRESENTATION
# ============================================================

@dataclass
class Predicate:
    """One attribute's filter; rendered only at serialization time."""
    mapping: AttributeMapping
    value: str

    @property
    def attribute(self) -> str:
        return self.mapping.attribute

    def render(self, dialect: SqlDialect) -> str:
        return render_predicate(self.mapping, self.value, dialect)


@dataclass
class QueryIR:
    """Structured query over the root entity."""
    dialect: SqlDialect = SqlDialect.POSTGRESQL
    base_table: str = ROOT_TABLE
    base_alias: str = ROOT_ALIAS
    joins: List[JoinSpec] = field(default_factory=list)
    predicates: List[Predicate] = field(default_factory=list)
    columns: List[str] = field(default_factory=lambda: list(BASE_COLUMNS))
    shape: QueryShape = QueryShape.LIST
    limit: Optional[int] = RESULT_ROW_LIMIT

    def add_join(self, join: JoinSpec) -> None:
        if all(existing.alias != join.alias for existing in self.joins):
            self.joins.append(join)

    def add_column(self, column: str) -> None:
        if column not in self.columns:
            self.columns.append(column)

    def add_predicate(self, predicate: Predicate) -> None:
        self.predicates.append(predicate)
        if predicate.mapping.join_requirement is not None:
            self.add_join(predicate.mapping.join_requirement)
        for column in predicate.mapping.display_columns:
            self.add_column(column)

    @property
    def join_aliases(self) -> List[str]:
        return [j.alias for j in self.joins]

    def where_clause(self) -> str:
        return " AND ".join(p.render(self.dialect) for p in self.predicates)

    def to_sql(self) -> str:
        if self.shape == QueryShape.COUNT:
            select = f"COUNT(DISTINCT {self.base_alias}.{ROOT_KEY}) AS total"
        else:
            select = ", ".join(self.columns)

        parts = [f"SELECT {select}", f"FROM {self.base_table} {self.base_alias}"]
        parts.extend(join.render() for join in self.joins)
        if self.predicates:
            parts.append(f"WHERE {self.where_clause()}")
        if self.shape == QueryShape.LIST and self.limit:
            parts.append(f"LIMIT {self.limit}")
        return " ".join(parts)


# ============================================================
# BUILDER
# ============================================================

class DeterministicQueryBuilder:
    """Intent -> QueryIR using the AttributeMapping table only."""

    def __init__(self, dialect: SqlDialect = SqlDialect.POSTGRESQL, row_limit: int = RESULT_ROW_LIMIT):
        self.dialect = dialect
        self.row_limit = row_limit

    def covers(self, intent: ExtractedIntent) -> bool:
        """True when intent is non-empty and every attribute is mapped."""
        if intent.is_empty:
            return False
        return all(get_mapping(a) is not None for a in intent.attributes())

    def build(self, intent: ExtractedIntent, shape: QueryShape = QueryShape.LIST) -> QueryIR:
        """
        Assemble the structured query for an intent.

        Raises:
            InsufficientCoverage: empty intent, unmapped attribute, or a
                value the mapping's transform cannot parse
        """
        if intent.is_empty:
            raise InsufficientCoverage([], "empty intent")

        unmapped = [a for a in intent.attributes() if get_mapping(a) is None]
        if unmapped:
            raise InsufficientCoverage(unmapped)

        ir = QueryIR(dialect=self.dialect, shape=shape, limit=self.row_limit)
        seen = set()
        for item in intent.items:
            attribute = normalize_attribute(item.attribute)
            if attribute in seen:
                logger.warning("Duplicate intent attribute '%s' ignored (value=%r)", attribute, item.value)
                continue
            seen.add(attribute)

            predicate = Predicate(mapping=get_mapping(attribute), value=item.value)
            try:
                predicate.render(self.dialect)
            except ValueError as e:
                raise InsufficientCoverage([attribute], str(e))
            ir.add_predicate(predicate)

        logger.debug("Built IR: joins=%s predicates=%s", ir.join_aliases, [p.attribute for p in ir.predicates])
        return ir

    def build_sql(self, intent: ExtractedIntent, shape: QueryShape = QueryShape.LIST) -> str:
        return self.build(intent, shape).to_sql()
