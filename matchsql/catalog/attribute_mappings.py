"""
Attribute-to-column rule table.

PURPOSE:
========
Maps every attribute of the intent vocabulary to exactly one table alias,
column expression, join requirement and value transform. The intent
extractor, the deterministic builder, the validator's intent-conformance
rules and the synthesizer prompts all read this table, so mapping
knowledge lives in data rather than in prompt prose.

VALUE TRANSFORMS:
=================
- exact             LOWER(col) = LOWER('v')          (gender, marital status, names)
- substring         LOWER(col) LIKE LOWER('%v%')     (city, profession, religion)
- numeric_ge        col >= N                         (income "15 LPA" -> 1500000)
- numeric_between   col BETWEEN lo AND hi            (weight "55-65")
- date_age_between  <age expression> BETWEEN lo AND hi
- boolean_flag      col = TRUE / FALSE               (verified)

A mapping may carry alternate columns; the per-attribute predicate then
ORs over them (name-or-surname, city-or-state). OR never crosses attributes.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .schema_metadata import ROOT_ALIAS, ROOT_KEY, get_table_by_alias


# ============================================================
# ENUMS
# ============================================================

class ValueTransform(str, Enum):
    """How an intent value becomes a SQL predicate."""
    EXACT = "exact"
    SUBSTRING = "substring"
    NUMERIC_GE = "numeric_ge"
    NUMERIC_BETWEEN = "numeric_between"
    DATE_AGE_BETWEEN = "date_age_between"
    BOOLEAN_FLAG = "boolean_flag"


class SqlDialect(str, Enum):
    """Target dialect for serialized SQL."""
    POSTGRESQL = "postgresql"
    SQLITE = "sqlite"


# ============================================================
# DATA MODELS
# ============================================================

@dataclass(frozen=True)
class JoinSpec:
    """
    A join from the root entity to an auxiliary table.

    The left key is always the root primary key and the right key is
    always the joined table's foreign key; value columns never appear
    in a join condition.
    """
    table: str
    alias: str
    on: Tuple[str, str]

    def __post_init__(self):
        left, right = self.on
        if left != f"{ROOT_ALIAS}.{ROOT_KEY}":
            raise ValueError(f"Join to {self.table} must start from {ROOT_ALIAS}.{ROOT_KEY}, got {left}")
        if not right.startswith(f"{self.alias}."):
            raise ValueError(f"Join to {self.table} must end on a {self.alias}.* key, got {right}")

    def render(self) -> str:
        return f"LEFT JOIN {self.table} {self.alias} ON {self.on[0]} = {self.on[1]}"


@dataclass(frozen=True)
class AttributeMapping:
    """One attribute of the intent vocabulary and how to filter on it."""
    attribute: str
    table_alias: str
    column_expression: str
    value_transform: ValueTransform
    join_requirement: Optional[JoinSpec] = None
    alternate_columns: Tuple[str, ...] = ()
    display_columns: Tuple[str, ...] = ()
    unit: Optional[str] = None
    canonical_values: Tuple[Tuple[str, str], ...] = ()
    description: str = ""

    @property
    def columns(self) -> Tuple[str, ...]:
        """All column expressions this attribute may filter on."""
        return (self.column_expression,) + self.alternate_columns


def join_for(alias: str) -> JoinSpec:
    """Build the catalog join for an auxiliary alias."""
    table = get_table_by_alias(alias)
    if table is None or table.join_on is None:
        raise KeyError(f"No joinable catalog table for alias '{alias}'")
    return JoinSpec(table=table.table_name, alias=table.alias, on=table.join_on)


def _mapping(attribute, column, transform, *, alternates=(), display=None,
             unit=None, canonical=(), description=""):
    alias = column.split(".", 1)[0]
    return AttributeMapping(
        attribute=attribute,
        table_alias=alias,
        column_expression=column,
        value_transform=transform,
        join_requirement=None if alias == ROOT_ALIAS else join_for(alias),
        alternate_columns=tuple(alternates),
        display_columns=(column,) if display is None else tuple(display),
        unit=unit,
        canonical_values=tuple(canonical),
        description=description,
    )


_GENDER_VALUES = (
    ("female", "female"), ("females", "female"), ("woman", "female"), ("women", "female"),
    ("girl", "female"), ("girls", "female"), ("bride", "female"), ("brides", "female"),
    ("male", "male"), ("males", "male"), ("man", "male"), ("men", "male"),
    ("boy", "male"), ("boys", "male"), ("groom", "male"), ("grooms", "male"),
)

_MARITAL_VALUES = (
    ("single", "Never Married"), ("unmarried", "Never Married"), ("never married", "Never Married"),
    ("divorcee", "Divorced"), ("divorcees", "Divorced"), ("divorced", "Divorced"),
    ("widow", "Widowed"), ("widower", "Widowed"), ("widowed", "Widowed"),
    ("separated", "Separated"), ("awaiting divorce", "Awaiting Divorce"),
)

_DIET_VALUES = (
    ("veg", "Vegetarian"), ("vegetarian", "Vegetarian"), ("vegetarians", "Vegetarian"),
    ("pure veg", "Vegetarian"), ("non veg", "Non-Vegetarian"), ("non-veg", "Non-Vegetarian"),
    ("nonveg", "Non-Vegetarian"), ("non vegetarian", "Non-Vegetarian"),
    ("non-vegetarian", "Non-Vegetarian"), ("vegan", "Vegan"), ("vegans", "Vegan"),
    ("eggetarian", "Eggetarian"), ("jain", "Jain"),
)

_HABIT_VALUES = (
    ("no", "No"), ("never", "No"), ("non-smoker", "No"), ("non smoker", "No"),
    ("non-drinker", "No"), ("non drinker", "No"), ("teetotaler", "No"), ("teetotal", "No"),
    ("yes", "Yes"), ("smoker", "Yes"), ("drinker", "Yes"), ("regularly", "Yes"),
    ("occasionally", "Occasionally"), ("socially", "Occasionally"), ("social", "Occasionally"),
)

_MANGLIK_VALUES = (
    ("manglik", "Manglik"), ("yes", "Manglik"),
    ("non manglik", "Non-Manglik"), ("non-manglik", "Non-Manglik"), ("nonmanglik", "Non-Manglik"),
    ("no", "Non-Manglik"), ("anshik", "Anshik"), ("partial", "Anshik"), ("partially manglik", "Anshik"),
)


# ============================================================
# ATTRIBUTE VOCABULARY
# ============================================================
# Grouped as identity, demographics, location (current vs origin),
# language, religion/caste, career, education, lifestyle, physical, meta.

ATTRIBUTE_MAPPINGS: Dict[str, AttributeMapping] = {m.attribute: m for m in (
    # Identity
    _mapping("first_name", "p.first_name", ValueTransform.EXACT, alternates=("p.last_name",), display=(),
             description="a person's name, e.g. \"Neha's profile\", \"profile of Ananya\""),
    _mapping("last_name", "p.last_name", ValueTransform.EXACT, display=(),
             description="an explicit surname or family name"),
    # Demographics
    _mapping("gender", "p.gender", ValueTransform.EXACT, canonical=_GENDER_VALUES,
             description="male/female, men/women, brides/grooms"),
    _mapping("marital_status", "p.marital_status", ValueTransform.EXACT, canonical=_MARITAL_VALUES,
             description="never married, divorced, widowed, separated"),
    _mapping("age", "p.date_of_birth", ValueTransform.DATE_AGE_BETWEEN,
             description="age or age range: \"25-30\", \"40+\", \"under 30\""),
    # Location: current residence
    _mapping("city", "pl.city", ValueTransform.SUBSTRING, alternates=("pl.state",),
             description="current city of residence (\"in Pune\", \"lives in Mumbai\")"),
    _mapping("state", "pl.state", ValueTransform.SUBSTRING, description="current state of residence"),
    _mapping("country", "pl.country", ValueTransform.SUBSTRING, description="current country of residence"),
    # Location: origin
    _mapping("native_place", "f.native_place", ValueTransform.SUBSTRING, alternates=("f.ancestral_origin",),
             description="origin: \"originally from\", \"hails from\", \"native of\""),
    _mapping("work_location", "c.work_location", ValueTransform.SUBSTRING,
             description="where they work (\"working in Dubai\")"),
    # Language
    _mapping("mother_tongue", "p.mother_tongue", ValueTransform.SUBSTRING,
             description="mother tongue or \"speak X\""),
    _mapping("language_spoken", "plang.language_name", ValueTransform.SUBSTRING,
             description="additional languages known (\"fluent in French\")"),
    # Religion and caste
    _mapping("religion", "sb.religion", ValueTransform.SUBSTRING, description="Hindu, Muslim, Christian, Sikh, Jain"),
    _mapping("caste", "sb.caste", ValueTransform.SUBSTRING, alternates=("sb.sub_caste",),
             description="caste or sub-caste, e.g. Brahmin, Maratha"),
    # Career
    _mapping("profession", "c.profession", ValueTransform.SUBSTRING,
             description="job or occupation, exact phrase (\"software engineer\")"),
    _mapping("income", "c.annual_income", ValueTransform.NUMERIC_GE, unit="inr",
             description="minimum annual income, e.g. \"15 LPA\""),
    _mapping("company", "c.company_name", ValueTransform.SUBSTRING, description="employer name"),
    # Education
    _mapping("degree_type", "ed.degree_type", ValueTransform.SUBSTRING, alternates=("ed.specialization",),
             description="degree or qualification (MBA, B.Tech, MBBS)"),
    _mapping("college", "ed.college_university", ValueTransform.SUBSTRING, description="college or university"),
    # Lifestyle
    _mapping("diet", "lh.diet", ValueTransform.EXACT, canonical=_DIET_VALUES,
             description="vegetarian, non-veg, vegan, eggetarian"),
    _mapping("smoking", "lh.smoking", ValueTransform.EXACT, canonical=_HABIT_VALUES,
             description="smoking habit: no, yes, occasionally"),
    _mapping("drinking", "lh.drinking", ValueTransform.EXACT, canonical=_HABIT_VALUES,
             description="drinking habit: no, yes, occasionally"),
    _mapping("hobby", "h.hobby_name", ValueTransform.SUBSTRING, description="a hobby or interest"),
    # Physical
    _mapping("height", "p.height_cm", ValueTransform.NUMERIC_GE, unit="cm",
             description="minimum height or range, cm or feet (\"5'8\", \"170 cm\")"),
    _mapping("weight", "p.weight_kg", ValueTransform.NUMERIC_BETWEEN, unit="kg",
             description="weight or weight range in kg"),
    _mapping("body_type", "pd.body_type", ValueTransform.SUBSTRING, description="slim, athletic, average"),
    _mapping("complexion", "pd.complexion", ValueTransform.SUBSTRING, description="fair, wheatish, dark"),
    _mapping("family_type", "fd.family_type", ValueTransform.SUBSTRING, description="joint or nuclear family"),
    # Meta
    _mapping("manglik", "uh.manglik_status", ValueTransform.EXACT, canonical=_MANGLIK_VALUES,
             description="only when manglik / non-manglik is explicitly mentioned"),
    _mapping("rashi", "uh.rashi", ValueTransform.SUBSTRING, description="moon sign"),
    _mapping("verified", "pc.is_mobile_verified", ValueTransform.BOOLEAN_FLAG,
             description="only when verified / verification is explicitly mentioned"),
)}

# Synonyms produced by generative extraction, normalized before lookup
ATTRIBUTE_ALIASES: Dict[str, str] = {
    "name": "first_name",
    "firstname": "first_name",
    "full_name": "first_name",
    "surname": "last_name",
    "lastname": "last_name",
    "family_name": "last_name",
    "sex": "gender",
    "marital": "marital_status",
    "status": "marital_status",
    "age_range": "age",
    "location": "city",
    "current_city": "city",
    "residence": "city",
    "native": "native_place",
    "hometown": "native_place",
    "origin": "native_place",
    "place_of_origin": "native_place",
    "work_country": "work_location",
    "work_city": "work_location",
    "language": "mother_tongue",
    "first_language": "mother_tongue",
    "languages": "language_spoken",
    "sub_caste": "caste",
    "community": "caste",
    "occupation": "profession",
    "job": "profession",
    "salary": "income",
    "annual_income": "income",
    "employer": "company",
    "company_name": "company",
    "education": "degree_type",
    "degree": "degree_type",
    "qualification": "degree_type",
    "university": "college",
    "food": "diet",
    "smoke": "smoking",
    "drink": "drinking",
    "hobbies": "hobby",
    "height_cm": "height",
    "weight_kg": "weight",
    "manglik_status": "manglik",
    "is_verified": "verified",
}

NAME_ATTRIBUTES = ("first_name", "last_name")
AGE_ATTRIBUTE = "age"


def normalize_attribute(name: str) -> str:
    """
    Case/format-normalize an attribute name before lookup.

    Examples:
        >>> normalize_attribute("location.city")
        'city'
        >>> normalize_attribute("income.value")
        'income'
        >>> normalize_attribute("Mother Tongue")
        'mother_tongue'
    """
    cleaned = re.sub(r"[\s\-]+", "_", (name or "").strip().lower())
    if "." in cleaned:
        parts = [p for p in cleaned.split(".") if p]
        for candidate in reversed(parts):
            resolved = ATTRIBUTE_ALIASES.get(candidate, candidate)
            if resolved in ATTRIBUTE_MAPPINGS:
                return resolved
        cleaned = parts[-1] if parts else cleaned
    return ATTRIBUTE_ALIASES.get(cleaned, cleaned)


def get_mapping(attribute: str) -> Optional[AttributeMapping]:
    """Look up the mapping for a (possibly unnormalized) attribute name."""
    return ATTRIBUTE_MAPPINGS.get(normalize_attribute(attribute))


def vocabulary() -> List[str]:
    return list(ATTRIBUTE_MAPPINGS)


# ============================================================
# VALUE PARSING
# ============================================================

_NUMBER = r"\d+(?:\.\d+)?"
_RANGE_PATTERNS = (
    re.compile(rf"between\s+({_NUMBER})\s*\w*\s+(?:and|to|-)\s+({_NUMBER})", re.I),
    re.compile(rf"({_NUMBER})\s*(?:-|to|–)\s*({_NUMBER})", re.I),
)
_MIN_PATTERN = re.compile(
    rf"(?:({_NUMBER})\s*\w*\s*\+|(?:above|over|more\s+than|greater\s+than|at\s+least|min(?:imum)?|>=?|older\s+than|taller\s+than)\s*({_NUMBER}))",
    re.I,
)
_MAX_PATTERN = re.compile(
    rf"(?:under|below|less\s+than|at\s+most|upto|up\s+to|max(?:imum)?|<=?|younger\s+than|shorter\s+than)\s*({_NUMBER})",
    re.I,
)
_FEET_INCHES = re.compile(r"(\d)\s*(?:'|ft|feet|foot)\s*(\d{1,2})?\s*(?:\"|in|inch|inches)?", re.I)

_MONEY_MULTIPLIERS = (
    (re.compile(r"\b(?:crores?|cr)\b", re.I), 10_000_000),
    (re.compile(r"\b(?:lpa|lakhs?|lacs?|l)\b", re.I), 100_000),
    (re.compile(r"\b(?:k|thousand)\b", re.I), 1_000),
)


def _scale(text: str, unit: Optional[str]) -> float:
    if unit == "inr":
        for pattern, factor in _MONEY_MULTIPLIERS:
            if pattern.search(text):
                return factor
    return 1


def _to_unit(number: float, raw: str, unit: Optional[str]) -> float:
    return number * _scale(raw, unit)


def _feet_to_cm(match) -> int:
    return round(int(match.group(1)) * 30.48 + int(match.group(2) or 0) * 2.54)


def parse_numeric_range(value: str, unit: Optional[str] = None) -> Tuple[str, Optional[float], Optional[float]]:
    """
    Parse a numeric criterion into (kind, low, high).

    kind is one of "range", "min", "max", "single". Money values honour
    LPA / lakh / crore multipliers; heights in feet/inches become cm.

    Raises:
        ValueError: no numeric token in the value
    """
    text = (value or "").strip()

    if unit == "cm":
        feet = list(_FEET_INCHES.finditer(text))
        if feet:
            heights = [_feet_to_cm(m) for m in feet]
            if len(heights) >= 2:
                return "range", float(min(heights)), float(max(heights))
            text = _FEET_INCHES.sub(str(heights[0]), text)

    for pattern in _RANGE_PATTERNS:
        match = pattern.search(text)
        if match:
            low = _to_unit(float(match.group(1)), text, unit)
            high = _to_unit(float(match.group(2)), text, unit)
            return "range", min(low, high), max(low, high)

    match = _MIN_PATTERN.search(text)
    if match:
        number = float(match.group(1) or match.group(2))
        return "min", _to_unit(number, text, unit), None

    match = _MAX_PATTERN.search(text)
    if match:
        return "max", None, _to_unit(float(match.group(1)), text, unit)

    match = re.search(_NUMBER, text)
    if match:
        number = _to_unit(float(match.group(0)), text, unit)
        return "single", number, number

    raise ValueError(f"No numeric value in '{value}'")


_NUMBER_WITH_WORD = re.compile(rf"({_NUMBER})\s*([a-z]+)?", re.I)


def stated_numbers(text: str, unit: Optional[str] = None) -> List[float]:
    """
    Every number written in free text, converted to the column's unit.

    "15 lakhs", "15 LPA" and "1.5 crore" scale the same way as in
    parse_numeric_range; heights in feet/inches become cm. A number
    without a multiplier word is taken as written.

    Examples:
        >>> stated_numbers("earning above 1.5 crore", "inr")
        [15000000.0]
        >>> stated_numbers("taller than 5'6\\"", "cm")
        [168.0]
    """
    text = text or ""
    numbers: List[float] = []
    if unit == "cm":
        numbers.extend(float(_feet_to_cm(m)) for m in _FEET_INCHES.finditer(text))
        text = _FEET_INCHES.sub(" ", text)
    for match in _NUMBER_WITH_WORD.finditer(text):
        numbers.append(_to_unit(float(match.group(1)), match.group(2) or "", unit))
    return numbers


def _fmt(number: float) -> str:
    return str(int(number)) if float(number).is_integer() else str(number)


def quote_literal(value: str) -> str:
    """Render a SQL string literal with single quotes escaped."""
    return "'" + value.replace("'", "''") + "'"


def canonical_value(mapping: AttributeMapping, value: str) -> str:
    """Map a free-text value onto the column's stored vocabulary."""
    cleaned = re.sub(r"\s+", " ", value.strip())
    lookup = dict(mapping.canonical_values)
    return lookup.get(cleaned.lower(), cleaned)


_NEGATIVE_FLAG = re.compile(r"\b(?:no|not|non|un\w*|false|without)\b", re.I)


def age_expression(column: str, dialect: SqlDialect) -> str:
    """Derived age in whole years for a birth-date column."""
    if dialect == SqlDialect.SQLITE:
        return (
            f"(CAST(strftime('%Y', 'now') AS INTEGER) - CAST(strftime('%Y', {column}) AS INTEGER)"
            f" - (strftime('%m-%d', 'now') < strftime('%m-%d', {column})))"
        )
    return f"EXTRACT(YEAR FROM AGE(CURRENT_DATE, {column}))"


def _bounded(expr: str, kind: str, low: Optional[float], high: Optional[float], single_op: str) -> str:
    if kind == "range":
        return f"{expr} BETWEEN {_fmt(low)} AND {_fmt(high)}"
    if kind == "min":
        return f"{expr} >= {_fmt(low)}"
    if kind == "max":
        return f"{expr} <= {_fmt(high)}"
    return f"{expr} {single_op} {_fmt(low)}"


def render_predicate(mapping: AttributeMapping, value: str,
                     dialect: SqlDialect = SqlDialect.POSTGRESQL) -> str:
    """
    Render one attribute's predicate, parenthesized.

    Raises:
        ValueError: the value cannot be rendered through the transform
    """
    if value is None or not str(value).strip():
        raise ValueError(f"Empty value for attribute '{mapping.attribute}'")
    value = str(value)
    transform = mapping.value_transform

    if transform == ValueTransform.EXACT:
        literal = quote_literal(canonical_value(mapping, value))
        parts = [f"LOWER({col}) = LOWER({literal})" for col in mapping.columns]
    elif transform == ValueTransform.SUBSTRING:
        literal = quote_literal(f"%{canonical_value(mapping, value)}%")
        parts = [f"LOWER({col}) LIKE LOWER({literal})" for col in mapping.columns]
    elif transform == ValueTransform.NUMERIC_GE:
        kind, low, high = parse_numeric_range(value, mapping.unit)
        parts = [_bounded(col, kind, low, high, ">=") for col in mapping.columns]
    elif transform == ValueTransform.NUMERIC_BETWEEN:
        kind, low, high = parse_numeric_range(value, mapping.unit)
        parts = [_bounded(col, kind, low, high, "=") for col in mapping.columns]
    elif transform == ValueTransform.DATE_AGE_BETWEEN:
        kind, low, high = parse_numeric_range(value, mapping.unit)
        parts = [_bounded(age_expression(col, dialect), kind, low, high, "=") for col in mapping.columns]
    elif transform == ValueTransform.BOOLEAN_FLAG:
        flag = "FALSE" if _NEGATIVE_FLAG.search(value) else "TRUE"
        parts = [f"{col} = {flag}" for col in mapping.columns]
    else:
        raise ValueError(f"Unsupported transform: {transform}")

    return "(" + " OR ".join(parts) + ")"
