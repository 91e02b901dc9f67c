"""
Unit tests for coffee_agent/common/json_utils.py

Tests the three-tier JSON recovery for LLM outputs:
- Direct parsing (with Markdown fence stripping)
- First balanced {...} span
- Newline repair inside string literals
- Error handling for unrecoverable inputs
"""

import json

import pytest

from coffee_agent.common.json_utils import (
    PARSE_BALANCED_SPAN,
    PARSE_DIRECT,
    PARSE_NEWLINE_REPAIR,
    JSONRecoveryError,
    _strip_markdown_blocks,
    escape_newlines_in_strings,
    find_balanced_object,
    parse_llm_json,
    parse_llm_json_with_strategy,
)


# ===== TESTS: Direct Parsing =====

class TestDirectParsing:
    """Tests for well-formed JSON."""

    def test_parses_simple_json(self):
        """Should parse simple valid JSON."""
        assert parse_llm_json('{"key": "value"}') == {"key": "value"}

    def test_reports_direct_strategy(self):
        _, strategy = parse_llm_json_with_strategy('{"a": 1}')
        assert strategy == PARSE_DIRECT

    def test_strips_json_markdown_block(self):
        """Should strip ```json ... ``` wrapper."""
        result, strategy = parse_llm_json_with_strategy('```json\n{"key": "value"}\n```')
        assert result == {"key": "value"}
        assert strategy == PARSE_DIRECT

    def test_strips_plain_markdown_block(self):
        assert parse_llm_json('```\n{"key": "value"}\n```') == {"key": "value"}

    def test_escaped_newlines_survive(self):
        """Properly escaped newlines need no repair."""
        result = parse_llm_json('{"message": "Line1\\nLine2"}')
        assert result["message"] == "Line1\nLine2"


# ===== TESTS: Balanced Span =====

class TestBalancedSpan:
    """Tests for JSON embedded in surrounding prose."""

    def test_extracts_object_from_prose(self):
        text = 'Here is the result:\n{"name": "Acme", "nested": {"a": 1}}\nHope this helps!'
        result, strategy = parse_llm_json_with_strategy(text)
        assert result == {"name": "Acme", "nested": {"a": 1}}
        assert strategy == PARSE_BALANCED_SPAN

    def test_takes_first_object_only(self):
        text = 'first {"a": 1} second {"b": 2}'
        assert parse_llm_json(text) == {"a": 1}

    def test_braces_inside_strings_are_ignored(self):
        text = 'prefix {"text": "a } tricky { value", "n": 2} suffix'
        assert find_balanced_object(text) == '{"text": "a } tricky { value", "n": 2}'

    def test_unclosed_object_returns_none(self):
        assert find_balanced_object('{"a": {"b": 1}') is None

    def test_no_brace_returns_none(self):
        assert find_balanced_object("no json here") is None


# ===== TESTS: Newline Repair =====

class TestNewlineRepair:
    """Tests for the literal-newline repair pass."""

    def test_repairs_literal_newline_in_value(self):
        text = '{"subject": "Hi", "message": "Line1\nLine2"}'
        result, strategy = parse_llm_json_with_strategy(text)
        assert result["message"] == "Line1\nLine2"
        assert strategy == PARSE_NEWLINE_REPAIR

    def test_repairs_inside_prose_wrapped_object(self):
        text = 'Sure!\n{"message": "Dear Jane,\n\nThanks.\nBest"}\nCheers'
        result = parse_llm_json(text)
        assert result["message"] == "Dear Jane,\n\nThanks.\nBest"

    def test_newlines_between_keys_are_untouched(self):
        text = '{\n  "a": "x\ny",\n  "b": 2\n}'
        repaired = escape_newlines_in_strings(text)
        assert repaired == '{\n  "a": "x\\ny",\n  "b": 2\n}'
        assert json.loads(repaired) == {"a": "x\ny", "b": 2}

    def test_crlf_maps_to_single_escape(self):
        repaired = escape_newlines_in_strings('{"a": "x\r\ny"}')
        assert repaired == '{"a": "x\\ny"}'

    def test_lone_cr_maps_to_escape(self):
        assert escape_newlines_in_strings('{"a": "x\ry"}') == '{"a": "x\\ny"}'

    def test_escaped_quote_does_not_toggle_string(self):
        text = '{"a": "say \\"hi\\"\nnow"}'
        result = json.loads(escape_newlines_in_strings(text))
        assert result["a"] == 'say "hi"\nnow'

    @pytest.mark.parametrize("line_count", [2, 5, 12])
    def test_newlines_map_one_to_one(self, line_count):
        lines = [f"line {i}" for i in range(line_count)]
        text = '{"body": "' + "\n".join(lines) + '"}'
        result = parse_llm_json(text)
        assert result["body"].split("\n") == lines
        assert result["body"].count("\n") == line_count - 1


# ===== TESTS: Unrecoverable Input =====

class TestUnrecoverable:
    """General JSON damage is not repaired."""

    def test_empty_input_raises(self):
        with pytest.raises(JSONRecoveryError):
            parse_llm_json("")

    def test_whitespace_input_raises(self):
        with pytest.raises(JSONRecoveryError):
            parse_llm_json("   \n  ")

    def test_trailing_comma_is_not_repaired(self):
        with pytest.raises(JSONRecoveryError):
            parse_llm_json('{"a": 1,}')

    def test_single_quotes_are_not_repaired(self):
        with pytest.raises(JSONRecoveryError):
            parse_llm_json("{'a': 1}")

    def test_top_level_array_is_rejected(self):
        with pytest.raises(JSONRecoveryError):
            parse_llm_json("[1, 2, 3]")

    def test_error_carries_text_excerpt(self):
        with pytest.raises(JSONRecoveryError) as exc_info:
            parse_llm_json("not json at all")
        assert "not json at all" in str(exc_info.value)

    def test_recovery_error_is_value_error(self):
        assert issubclass(JSONRecoveryError, ValueError)


class TestStripMarkdown:
    def test_leaves_plain_text(self):
        assert _strip_markdown_blocks('{"a": 1}') == '{"a": 1}'

    def test_strips_trailing_fence_only(self):
        assert _strip_markdown_blocks('{"a": 1}\n```') == '{"a": 1}'
