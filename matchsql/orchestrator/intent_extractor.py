"""
Intent Extractor.

PURPOSE:
========
Turns a question into ordered (attribute, value) pairs.

PRIMARY PATH:
  One generative call returning a JSON array of {attribute, value}.
  Pairs are normalized against the attribute vocabulary and dropped when
  their value is not actually stated in the question.

FALLBACK PATH:
  Deterministic pattern matcher used when the generative call fails, the
  response is not a JSON array, or nothing valid survives filtering.
  It never raises; the worst case is an empty intent.
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from configs import ConfigurationError
from matchsql.catalog.attribute_mappings import (
    ValueTransform,
    canonical_value,
    get_mapping,
    normalize_attribute,
    parse_numeric_range,
    stated_numbers,
)
from matchsql.models import ExtractedIntent, IntentItem, QueryShape, TokenUsage
from .json_utils import JSONExtractionError, safe_parse_llm_json_array
from .llm_client import TextGenerator
from .prompts import build_intent_prompt

logger = logging.getLogger(__name__)


class IntentExtractionDegraded(Exception):
    """Generative extraction failed; the rule-based fallback takes over."""

    def __init__(self, reason: str, usage: Optional[TokenUsage] = None):
        self.usage = usage
        super().__init__(reason)


@dataclass
class IntentExtractionResult:
    intent: ExtractedIntent
    usage: Optional[TokenUsage] = None
    degraded: bool = False
    source: str = "llm"
    reason: Optional[str] = None


# ============================================================
# QUERY SHAPE
# ============================================================

_COUNT_PATTERN = re.compile(r"\b(?:how\s+many|count|number\s+of)\b", re.IGNORECASE)


def detect_query_shape(question: str) -> QueryShape:
    """Counting phrasing selects the single-count shape."""
    return QueryShape.COUNT if _COUNT_PATTERN.search(question or "") else QueryShape.LIST


# ============================================================
# RULE-BASED FALLBACK
# ============================================================

_PROFESSION = re.compile(
    r"\b(software\s+engineers?|chartered\s+accountants?|doctors?|engineers?|lawyers?|teachers?|"
    r"accountants?|architects?|nurses?|dentists?|professors?|bankers?|pilots?|designers?)\b",
    re.IGNORECASE,
)
_NATIVE = re.compile(
    r"\b(?:originally\s+from|hails?\s+from|native\s+of)\s+([A-Za-z][A-Za-z ]{0,40}?)"
    r"(?=\s+(?:who|and|with|earning|working|between|aged)\b|[.,?!]|$)",
    re.IGNORECASE,
)
_CITY = re.compile(
    r"\b(?:lives?\s+in|living\s+in|based\s+in|in|from|at)\s+([A-Za-z][A-Za-z ]{1,40}?)"
    r"(?=\s+(?:who|and|with|earning|speak|speaking|working|between|aged|above|over|under|having)\b|[.,?!]|$)",
    re.IGNORECASE,
)
_CITY_STOPWORDS = {"the", "their", "a", "an", "my", "our", "all", "any", "profiles", "profile", "age", "ages"}
_INCOME_UNIT = r"(lpa|lakhs?|lacs?|crores?)\b"
_INCOME = (
    re.compile(rf"(?:earning\s+)?(?:more\s+than|above|over|at\s+least)\s*(\d+(?:\.\d+)?)\s*{_INCOME_UNIT}", re.IGNORECASE),
    re.compile(rf"\b(\d+(?:\.\d+)?)\s*{_INCOME_UNIT}", re.IGNORECASE),
)
_RELIGION = re.compile(r"\b(hindu|islam|muslim|christianity|christian|sikh|jain|buddhist|parsi)s?\b", re.IGNORECASE)
_CASTE = re.compile(r"\b(brahmin|rajput|maratha|kayastha|kayasta|bania|vaishya|kshatriya|jat|reddy|nair)s?\b", re.IGNORECASE)
_LANGUAGE = re.compile(r"\b(?:who\s+speaks?|speaks?|speaking|mother\s+tongue(?:\s+is)?)\s+([A-Za-z]+)", re.IGNORECASE)
# Names are capitalized; only the surrounding words ignore case
_NAME = (
    re.compile(r"\b([A-Z][a-z]+)['’]s\s+(?i:profile)"),
    re.compile(r"\b(?i:profile\s+of)\s+([A-Z][a-z]+)"),
)
_AGE = (
    re.compile(r"\b(?:between|ages?|aged)\s+(\d{1,2})\s+(?:and|to|-)\s+(\d{1,2})\b(?!\s*(?:lpa|lakh|lac|crore|cm|kg))", re.IGNORECASE),
    re.compile(r"\b(\d{2})\s*-\s*(\d{2})\s*(?:years?|yrs)?\b(?!\s*(?:lpa|lakh|lac|crore|cm|kg))", re.IGNORECASE),
)
_GENDER = re.compile(r"\b(female|male|women|men|woman|man|brides?|grooms?|girls?|boys?)\b", re.IGNORECASE)


def _singular(phrase: str) -> str:
    words = phrase.lower().split()
    last = words[-1]
    if last.endswith("s") and not last.endswith("ss"):
        words[-1] = last[:-1]
    return " ".join(words)


def _is_vocabulary_word(word: str) -> bool:
    return bool(_GENDER.fullmatch(word) or _PROFESSION.fullmatch(word))


def fallback_extract_intent(question: str) -> ExtractedIntent:
    """
    Rule-based extraction for obvious criteria.

    Current residence ("in Pune") and origin ("originally from Pune")
    are mutually exclusive; origin wins.
    """
    text = (question or "").strip()
    pairs: List[Tuple[str, str]] = []

    match = _NAME[0].search(text) or _NAME[1].search(text)
    if match and not _is_vocabulary_word(match.group(1)):
        pairs.append(("first_name", match.group(1)))

    match = _GENDER.search(text)
    if match:
        pairs.append(("gender", match.group(1).lower()))

    match = _PROFESSION.search(text)
    if match:
        pairs.append(("profession", _singular(match.group(1))))

    match = _NATIVE.search(text)
    if match:
        pairs.append(("native_place", match.group(1).strip()))
    else:
        for match in _CITY.finditer(text):
            place = match.group(1).strip()
            if place.split()[0].lower() not in _CITY_STOPWORDS and not place[0].isdigit():
                pairs.append(("city", place))
                break

    for pattern in _INCOME:
        match = pattern.search(text)
        if match:
            unit = "crore" if match.group(2).lower().startswith("cr") else "LPA"
            pairs.append(("income", f"{match.group(1)} {unit}"))
            break

    match = _RELIGION.search(text)
    if match:
        pairs.append(("religion", match.group(1).lower()))

    match = _CASTE.search(text)
    if match:
        pairs.append(("caste", match.group(1).lower()))

    match = _LANGUAGE.search(text)
    if match:
        pairs.append(("mother_tongue", match.group(1)))

    for pattern in _AGE:
        match = pattern.search(text)
        if match:
            pairs.append(("age", f"{match.group(1)}-{match.group(2)}"))
            break

    return ExtractedIntent.from_pairs(pairs)


# ============================================================
# STATED-VALUE CHECK
# ============================================================

def _tokens(text: str) -> List[str]:
    return re.findall(r"[a-z0-9]+", text.lower())


_NUMERIC_TRANSFORMS = (
    ValueTransform.NUMERIC_GE,
    ValueTransform.NUMERIC_BETWEEN,
    ValueTransform.DATE_AGE_BETWEEN,
)


def _numbers_stated(value: str, question: str, unit: Optional[str]) -> bool:
    """Every bound of a numeric value equals a number written in the question."""
    try:
        _, low, high = parse_numeric_range(value, unit)
    except ValueError:
        return False
    written = stated_numbers(question, unit)
    bounds = [b for b in (low, high) if b is not None]
    return all(any(math.isclose(b, n, rel_tol=1e-9) for n in written) for b in bounds)


def value_is_stated(attribute: str, value: str, question: str) -> bool:
    """
    True when the value is explicitly present in the question.

    Plural/singular variants and a mapping's canonical synonyms
    ("women" for female) count as present. Numeric values compare by
    magnitude in the column's unit, so "15 LPA" matches "15 lakhs".
    """
    q_lower = question.lower()
    v_lower = value.lower().strip()
    if v_lower and v_lower in q_lower:
        return True

    q_tokens = _tokens(question)
    v_tokens = _tokens(value)
    if not v_tokens:
        return False

    def present(token: str) -> bool:
        return any(
            q == token or (len(q) >= 3 and len(token) >= 3 and (q.startswith(token) or token.startswith(q)))
            for q in q_tokens
        )

    if all(present(t) for t in v_tokens):
        return True

    mapping = get_mapping(attribute)
    if mapping is not None and mapping.value_transform in _NUMERIC_TRANSFORMS:
        return _numbers_stated(value, question, mapping.unit)
    if mapping is not None and mapping.canonical_values:
        target = canonical_value(mapping, value).lower()
        synonyms = [k for k, v in mapping.canonical_values if v.lower() == target]
        return any(re.search(rf"\b{re.escape(s)}\b", q_lower) for s in synonyms)
    return False


# ============================================================
# EXTRACTOR
# ============================================================

class IntentExtractor:
    """Generative extraction with the deterministic fallback."""

    def __init__(self, llm: Optional[TextGenerator] = None):
        self.llm = llm

    def extract(self, question: str) -> IntentExtractionResult:
        """Raises only ConfigurationError; degraded results carry the fallback intent."""
        try:
            return self._extract_with_llm(question)
        except IntentExtractionDegraded as e:
            logger.warning("Intent extraction degraded, using rule-based fallback: %s", e)
            return IntentExtractionResult(
                intent=fallback_extract_intent(question),
                usage=e.usage,
                degraded=True,
                source="fallback",
                reason=str(e),
            )

    def _extract_with_llm(self, question: str) -> IntentExtractionResult:
        if self.llm is None:
            raise IntentExtractionDegraded("no text generator configured")

        try:
            response = self.llm.generate(build_intent_prompt(question))
        except ConfigurationError:
            raise
        except Exception as e:
            raise IntentExtractionDegraded(f"generation failed: {e}") from e

        try:
            raw_items = safe_parse_llm_json_array(response.text)
        except JSONExtractionError as e:
            raise IntentExtractionDegraded(f"response is not a JSON array: {e}", response.usage) from e

        items = self._filter_items(raw_items, question)
        if not items:
            raise IntentExtractionDegraded("no valid stated criteria in response", response.usage)

        intent = ExtractedIntent(items=items)
        logger.info("Extracted intent: %s", intent.as_list())
        return IntentExtractionResult(intent=intent, usage=response.usage)

    def _filter_items(self, raw_items: list, question: str) -> List[IntentItem]:
        items: List[IntentItem] = []
        for raw in raw_items:
            if not isinstance(raw, dict):
                continue
            attribute = raw.get("attribute")
            value = raw.get("value")
            if not isinstance(attribute, str) or not isinstance(value, str):
                continue
            if not attribute.strip() or not value.strip():
                continue

            attribute = normalize_attribute(attribute)
            if not value_is_stated(attribute, value, question):
                logger.info("Dropping inferred criterion %s=%r (not stated in question)", attribute, value)
                continue
            items.append(IntentItem(attribute=attribute, value=value.strip()))
        return items
