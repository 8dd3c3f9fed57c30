"""Tests for JSON text extraction helpers."""

import pytest

from livescribe.pipeline import extract_final_text, extract_partial_text
from livescribe.utils import extract_text_field, normalize_whitespace, parse_json_object


class TestExtraction:
  """Test that text extraction tolerates anything the engine or backend emits."""

  @pytest.mark.parametrize(
    "raw",
    [
      None,
      "",
      b"",
      "not json",
      "{",
      "[1, 2, 3]",
      '"just a string"',
      "42",
      '{"text": null}',
      '{"text": 17}',
      '{"text": ["a"]}',
      '{"other": "value"}',
    ],
  )
  def test_malformed_input_yields_empty(self, raw):
    """Test that malformed or mismatched documents never raise."""
    assert extract_text_field(raw, "text") == ""
    assert extract_final_text(raw or "") == ""
    assert extract_partial_text(raw or "") == ""

  def test_extracts_and_strips(self):
    """Test that a present string field is returned stripped."""
    assert extract_text_field('{"text": "  hello world \\n"}', "text") == "hello world"
    assert extract_text_field(b'{"response": "ok"}', "response") == "ok"

  def test_partial_prefers_partial_field(self):
    """Test that partial extraction reads ``partial`` and falls back to ``text``."""
    assert extract_partial_text('{"partial": "hel", "text": "ignored"}') == "hel"
    assert extract_partial_text('{"text": "fallback"}') == "fallback"
    assert extract_partial_text('{"partial": ""}') == ""

  def test_parse_json_object_only_accepts_objects(self):
    """Test that only JSON objects are returned."""
    assert parse_json_object('{"a": 1}') == {"a": 1}
    assert parse_json_object("[]") is None
    assert parse_json_object("nope") is None


class TestNormalizeWhitespace:
  """Test whitespace normalization of generated summaries."""

  def test_collapses_real_and_escaped_newlines(self):
    """Test that newlines, escaped newlines and runs of spaces become single spaces."""
    assert normalize_whitespace("one\ntwo\\nthree\r\n  four ") == "one two three four"

  def test_empty(self):
    """Test that blank text normalizes to an empty string."""
    assert normalize_whitespace(" \n ") == ""
