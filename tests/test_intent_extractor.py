"""Tests for intent extraction: generative path, stated-value filter and fallback."""

import pytest

from configs import MissingGenerativeCredential
from matchsql.models import QueryShape
from matchsql.orchestrator import (
    IntentExtractor,
    LLMError,
    RateLimitError,
    detect_query_shape,
    fallback_extract_intent,
)
from matchsql.orchestrator.intent_extractor import value_is_stated

from conftest import ScriptedGenerator


def pairs(intent):
    return [(item.attribute, item.value) for item in intent.items]


# =============================================================================
# QUERY SHAPE
# =============================================================================

class TestQueryShape:

    @pytest.mark.parametrize("question", [
        "How many doctors live in Pune?",
        "count of female profiles",
        "number of divorced profiles",
    ])
    def test_count_phrasing(self, question):
        assert detect_query_shape(question) == QueryShape.COUNT

    def test_list_by_default(self):
        assert detect_query_shape("Show me doctors in Pune") == QueryShape.LIST


# =============================================================================
# GENERATIVE PATH
# =============================================================================

class TestGenerativeExtraction:

    def test_parses_json_array(self):
        llm = ScriptedGenerator(intent='[{"attribute": "profession", "value": "doctor"}, '
                                       '{"attribute": "city", "value": "Pune"}]')
        result = IntentExtractor(llm).extract("Show me doctors in Pune")

        assert not result.degraded
        assert result.source == "llm"
        assert pairs(result.intent) == [("profession", "doctor"), ("city", "Pune")]
        assert result.usage.total == 15

    def test_tolerates_prose_and_fences(self):
        llm = ScriptedGenerator(intent='Here you go:\n```json\n[{"attribute": "gender", "value": "female"}]\n```')
        result = IntentExtractor(llm).extract("female profiles")
        assert pairs(result.intent) == [("gender", "female")]

    def test_normalizes_attribute_names(self):
        llm = ScriptedGenerator(intent='[{"attribute": "location.city", "value": "Mumbai"}]')
        result = IntentExtractor(llm).extract("profiles in Mumbai")
        assert pairs(result.intent) == [("city", "Mumbai")]

    def test_drops_inferred_values(self):
        llm = ScriptedGenerator(intent='[{"attribute": "profession", "value": "doctor"}, '
                                       '{"attribute": "gender", "value": "female"}, '
                                       '{"attribute": "marital_status", "value": "any"}]')
        result = IntentExtractor(llm).extract("Show me doctors in Pune")
        assert pairs(result.intent) == [("profession", "doctor")]

    def test_skips_malformed_items(self):
        llm = ScriptedGenerator(intent='[{"attribute": "city"}, "Pune", {"attribute": "city", "value": "Pune"}]')
        result = IntentExtractor(llm).extract("lives in Pune")
        assert pairs(result.intent) == [("city", "Pune")]

    def test_keeps_income_written_in_lakhs(self):
        llm = ScriptedGenerator(intent='[{"attribute": "profession", "value": "engineer"}, '
                                       '{"attribute": "income", "value": "15 LPA"}]')
        result = IntentExtractor(llm).extract("engineers earning more than 15 lakhs")

        assert not result.degraded
        assert pairs(result.intent) == [("profession", "engineer"), ("income", "15 LPA")]

    def test_drops_income_not_in_question(self):
        llm = ScriptedGenerator(intent='[{"attribute": "profession", "value": "engineer"}, '
                                       '{"attribute": "income", "value": "25 LPA"}]')
        result = IntentExtractor(llm).extract("engineers earning more than 15 lakhs")
        assert pairs(result.intent) == [("profession", "engineer")]


# =============================================================================
# DEGRADED PATH
# =============================================================================

class TestDegradedExtraction:
    """Generative failure never fails the question; the fallback takes over."""

    @pytest.mark.parametrize("script", [
        "not json at all",
        '{"attribute": "city", "value": "Pune"}',
        "[]",
        LLMError("gemini API error: boom"),
        RateLimitError("gemini rate limit: 429"),
    ])
    def test_falls_back(self, script):
        result = IntentExtractor(ScriptedGenerator(intent=script)).extract("female doctors in Pune")

        assert result.degraded
        assert result.source == "fallback"
        assert pairs(result.intent) == [("gender", "female"), ("profession", "doctor"), ("city", "Pune")]

    def test_no_generator(self):
        result = IntentExtractor(None).extract("lawyers in Delhi")
        assert result.degraded
        assert pairs(result.intent) == [("profession", "lawyer"), ("city", "Delhi")]

    def test_configuration_error_propagates(self):
        llm = ScriptedGenerator(intent=MissingGenerativeCredential("GEMINI_API_KEY is not configured"))
        with pytest.raises(MissingGenerativeCredential):
            IntentExtractor(llm).extract("doctors in Pune")


# =============================================================================
# RULE-BASED FALLBACK
# =============================================================================

class TestFallbackExtraction:

    def test_name(self):
        assert pairs(fallback_extract_intent("Show me Neha's profile")) == [("first_name", "Neha")]

    @pytest.mark.parametrize("question", [
        "Show all women's profiles in Pune",
        "Show Women's profiles in Pune",
    ])
    def test_plural_possessive_is_not_a_name(self, question):
        intent = fallback_extract_intent(question)
        assert intent.first("first_name") is None
        assert pairs(intent) == [("gender", "women"), ("city", "Pune")]

    def test_origin_excludes_residence(self):
        intent = fallback_extract_intent("engineers earning more than 15 LPA originally from Nagpur")
        assert pairs(intent) == [("profession", "engineer"), ("native_place", "Nagpur"), ("income", "15 LPA")]
        assert intent.first("city") is None

    @pytest.mark.parametrize("question,expected", [
        ("doctors who hail from Kochi", [("profession", "doctor"), ("native_place", "Kochi")]),
        ("a teacher who hails from Indore", [("profession", "teacher"), ("native_place", "Indore")]),
        ("lawyers, native of Nagpur", [("profession", "lawyer"), ("native_place", "Nagpur")]),
    ])
    def test_origin_phrasings(self, question, expected):
        intent = fallback_extract_intent(question)
        assert pairs(intent) == expected
        assert intent.first("city") is None

    @pytest.mark.parametrize("question,income", [
        ("engineers earning more than 15 lakhs", "15 LPA"),
        ("engineers earning above 20 lacs", "20 LPA"),
        ("engineers earning above 1.5 crore", "1.5 crore"),
    ])
    def test_income_units(self, question, income):
        assert pairs(fallback_extract_intent(question)) == [("profession", "engineer"), ("income", income)]

    def test_religion_caste_language(self):
        intent = fallback_extract_intent("Hindu Brahmins who speak Marathi")
        assert pairs(intent) == [("religion", "hindu"), ("caste", "brahmin"), ("mother_tongue", "Marathi")]

    def test_age_range(self):
        assert pairs(fallback_extract_intent("profiles between 25 and 30")) == [("age", "25-30")]

    def test_income_is_not_age(self):
        intent = fallback_extract_intent("profiles earning 10-20 lpa")
        assert intent.first("age") is None

    def test_nothing_recognized(self):
        assert fallback_extract_intent("Show profiles please").is_empty


class TestValueIsStated:

    @pytest.mark.parametrize("attribute,value,question", [
        ("city", "Pune", "doctors in pune"),
        ("profession", "doctor", "Show me doctors"),
        ("age", "25-30", "between 25 and 30"),
        ("gender", "female", "women who speak Marathi"),
        ("profession", "software engineer", "software engineers in Bangalore"),
        ("income", "15 LPA", "engineers earning more than 15 lakhs"),
        ("income", "150 LPA", "earning above 1.5 crore"),
        ("height", "168", "taller than 5'6\""),
    ])
    def test_stated(self, attribute, value, question):
        assert value_is_stated(attribute, value, question)

    @pytest.mark.parametrize("attribute,value,question", [
        ("gender", "female", "doctors in Pune"),
        ("marital_status", "Never Married", "doctors in Pune"),
        ("city", "Mumbai", "doctors in Pune"),
        ("income", "25 LPA", "earning more than 15 lakhs"),
        ("income", "15 LPA", "earning more than 15"),
    ])
    def test_not_stated(self, attribute, value, question):
        assert not value_is_stated(attribute, value, question)
