"""
Test JSON extraction from LLM responses.

Covers the response shapes seen from Gemini and Ollama models:
- bare arrays
- arrays wrapped in prose or markdown fences
- brackets inside string values
"""

import pytest

from matchsql.orchestrator.json_utils import (
    JSONExtractionError,
    extract_first_json_block,
    safe_parse_llm_json,
    safe_parse_llm_json_array,
)


class TestExtractFirstJsonBlock:

    def test_bare_array(self):
        assert extract_first_json_block('[1, 2]', opener="[") == ("[1, 2]", None)

    def test_prose_around_array(self):
        json_str, rest = extract_first_json_block('Result: [1, 2] ok', opener="[")
        assert json_str == "[1, 2]"
        assert rest == "Result: ok"

    def test_brackets_inside_strings(self):
        text = '[{"attribute": "city", "value": "Pune ]["}] trailing'
        json_str, _ = extract_first_json_block(text, opener="[")
        assert json_str == '[{"attribute": "city", "value": "Pune ]["}]'

    def test_fenced(self):
        text = 'Criteria:\n```json\n[{"attribute": "age", "value": "25-30"}]\n```\nDone.'
        json_str, rest = extract_first_json_block(text, opener="[")
        assert json_str == '[{"attribute": "age", "value": "25-30"}]'
        assert rest == "Criteria: Done."

    def test_unbalanced(self):
        with pytest.raises(JSONExtractionError, match="unbalanced"):
            extract_first_json_block('[{"a": 1}', opener="[")

    def test_missing(self):
        with pytest.raises(JSONExtractionError):
            extract_first_json_block("no json here", opener="[")

    def test_empty(self):
        with pytest.raises(JSONExtractionError):
            extract_first_json_block("", opener="[")


class TestSafeParse:

    def test_array(self):
        assert safe_parse_llm_json_array('Here: [{"attribute": "city", "value": "Pune"}]') == [
            {"attribute": "city", "value": "Pune"}
        ]

    def test_empty_array(self):
        assert safe_parse_llm_json_array("[]") == []

    def test_invalid_json(self):
        with pytest.raises(JSONExtractionError, match="not valid JSON"):
            safe_parse_llm_json_array("[city: Pune]")

    def test_object(self):
        assert safe_parse_llm_json('{"sql": "SELECT 1"} thanks') == {"sql": "SELECT 1"}
