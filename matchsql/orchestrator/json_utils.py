"""
JSON extraction utilities for LLM responses.

PROBLEM
-------
Models wrap the JSON we asked for in prose or markdown fences:
    "Here are the filters: [{"attribute": "city", "value": "Pune"}] Done."

json.loads() on the raw text fails, so extract ONLY the first balanced
JSON value (array or object) before parsing.
"""
import json
import re
from typing import Any, List, Optional, Tuple

_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
_CLOSERS = {"[": "]", "{": "}"}


class JSONExtractionError(Exception):
    """Raised when no valid JSON value can be extracted."""
    pass


def _balanced_end(text: str, start_idx: int) -> Optional[int]:
    """Index one past the bracket matching text[start_idx], ignoring brackets in strings."""
    opener = text[start_idx]
    closer = _CLOSERS[opener]
    depth = 0
    in_string = False
    escape_next = False

    for i in range(start_idx, len(text)):
        char = text[i]

        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue

        if not in_string:
            if char == opener:
                depth += 1
            elif char == closer:
                depth -= 1
                if depth == 0:
                    return i + 1
    return None


def extract_first_json_block(text: str, opener: str = "{") -> Tuple[str, Optional[str]]:
    """
    Extract the first JSON value starting with `opener` ('{' or '[').

    Returns:
        Tuple of (json_string, stripped_text); stripped_text is None when
        the response held nothing but the JSON value

    Raises:
        JSONExtractionError: no balanced value found

    Examples:
        >>> extract_first_json_block('Result: [1, 2] ok', opener='[')
        ('[1, 2]', 'Result: ok')
    """
    if not text or not isinstance(text, str):
        raise JSONExtractionError("Input text is empty or not a string")
    if opener not in _CLOSERS:
        raise ValueError(f"Unsupported opener: {opener!r}")

    text = text.strip()

    fence = _FENCE.search(text)
    if fence and opener in fence.group(1):
        before = text[:fence.start()].strip()
        after = text[fence.end():].strip()
        prose = (before + " " + after).strip() or None
        json_str, inner = extract_first_json_block(fence.group(1), opener)
        return json_str, " ".join(p for p in (prose, inner) if p) or None

    start_idx = text.find(opener)
    if start_idx == -1:
        raise JSONExtractionError(f"No JSON value found (no '{opener}')")

    end_idx = _balanced_end(text, start_idx)
    if end_idx is None:
        raise JSONExtractionError(f"No matching '{_CLOSERS[opener]}' found (unbalanced)")

    before = text[:start_idx].strip()
    after = text[end_idx:].strip()
    stripped = (before + " " + after).strip() if (before or after) else None
    return text[start_idx:end_idx].strip(), stripped


def _parse(text: str, opener: str, expected: type) -> Any:
    json_str, _ = extract_first_json_block(text, opener)
    try:
        parsed = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise JSONExtractionError(
            f"Extracted text is not valid JSON: {e}\n"
            f"Extracted: {json_str[:200]}"
        )
    if not isinstance(parsed, expected):
        raise JSONExtractionError(f"Expected JSON {expected.__name__}, got {type(parsed).__name__}")
    return parsed


def safe_parse_llm_json(text: str) -> dict:
    """Parse the first JSON object in an LLM response."""
    return _parse(text, "{", dict)


def safe_parse_llm_json_array(text: str) -> List[Any]:
    """
    Parse the first JSON array in an LLM response.

    Raises:
        JSONExtractionError: no array, or the array is not valid JSON
    """
    return _parse(text, "[", list)
