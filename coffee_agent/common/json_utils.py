"""
JSON Utilities for LLM Response Parsing.

Models reliably produce well-formed JSON keys but unreliably escape newlines
inside long free-text values (email bodies, insight paragraphs). This module
recovers a JSON object from raw model text with a fixed three-tier fallback:

1. Direct json.loads() of the full text (after stripping Markdown fences)
2. json.loads() of the first balanced {...} span
3. Newline repair: escape literal line breaks found inside string literals,
   then parse again

It deliberately does NOT attempt general JSON repair (single quotes,
trailing commas, unquoted keys). Those are left to fail as parse errors.
"""

import json
from typing import Any, Dict, Optional, Tuple

PARSE_DIRECT = "direct"
PARSE_BALANCED_SPAN = "balanced_span"
PARSE_NEWLINE_REPAIR = "newline_repair"


class JSONRecoveryError(ValueError):
    """No JSON object could be recovered from the text."""


def parse_llm_json(text: str) -> Dict[str, Any]:
    """
    Parse a JSON object from an LLM response.

    Args:
        text: Raw LLM response text that may contain JSON

    Returns:
        Parsed dictionary from the JSON

    Raises:
        JSONRecoveryError: If no JSON object can be extracted or repaired

    Example:
        >>> parse_llm_json('```json\\n{"key": "value"}\\n```')
        {'key': 'value'}
        >>> parse_llm_json('{"message": "Line1\\nLine2"}')
        {'message': 'Line1\\nLine2'}
    """
    parsed, _ = parse_llm_json_with_strategy(text)
    return parsed


def parse_llm_json_with_strategy(text: str) -> Tuple[Dict[str, Any], str]:
    """
    Parse a JSON object and report which tier succeeded.

    Returns:
        Tuple of (parsed dict, strategy name)
    """
    if not text or not text.strip():
        raise JSONRecoveryError("Empty input: no JSON content to parse")

    # Step 1: direct parse (fences removed)
    json_str = _strip_markdown_blocks(text.strip())
    parsed = _loads_object(json_str)
    if parsed is not None:
        return parsed, PARSE_DIRECT

    # Step 2: first balanced {...} span
    span = find_balanced_object(json_str)
    if span is not None:
        parsed = _loads_object(span)
        if parsed is not None:
            return parsed, PARSE_BALANCED_SPAN

    # Step 3: escape literal line breaks inside strings and retry
    repaired = escape_newlines_in_strings(span if span is not None else json_str)
    parsed = _loads_object(repaired)
    if parsed is not None:
        return parsed, PARSE_NEWLINE_REPAIR

    raise JSONRecoveryError(
        f"Failed to parse or repair JSON. Original text (first 500 chars): {text[:500]}"
    )


def escape_newlines_in_strings(text: str) -> str:
    """
    Replace literal line breaks inside JSON string literals with "\\n".

    Walks the text once, tracking whether the cursor is inside a string
    literal (quote toggles, respecting backslash escapes). CR, LF and CRLF
    inside a string each become one two-character "\\n" escape; line breaks
    outside strings are left untouched.

    Example:
        >>> escape_newlines_in_strings('{"a": "x\\ny"}')
        '{"a": "x\\\\ny"}'
    """
    result = []
    in_string = False
    escape_next = False
    i = 0
    length = len(text)

    while i < length:
        char = text[i]

        if escape_next:
            result.append(char)
            escape_next = False
        elif char == "\\":
            escape_next = True
            result.append(char)
        elif char == '"':
            in_string = not in_string
            result.append(char)
        elif in_string and char in ("\n", "\r"):
            result.append("\\n")
            if char == "\r" and i + 1 < length and text[i + 1] == "\n":
                i += 1  # CRLF is one line break
        else:
            result.append(char)
        i += 1

    return "".join(result)


def find_balanced_object(text: str) -> Optional[str]:
    """
    Locate the first balanced {...} span in text.

    Braces inside string literals are ignored. Returns None if no opening
    brace exists or the first object never closes.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escape_next = False

    for index in range(start, len(text)):
        char = text[index]
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:index + 1]

    return None


def _loads_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
    return value if isinstance(value, dict) else None


def _strip_markdown_blocks(text: str) -> str:
    """
    Remove markdown code block wrappers from text.

    Handles:
    - ```json ... ```
    - ``` ... ```
    - Leading/trailing whitespace
    """
    result = text

    if result.startswith("```json"):
        result = result[7:]
    elif result.startswith("```"):
        result = result[3:]

    if result.endswith("```"):
        result = result[:-3]

    return result.strip()
