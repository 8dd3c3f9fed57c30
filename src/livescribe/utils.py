"""Helpers for pulling text out of engine and backend JSON documents."""

import json
import re
from typing import Any

_WHITESPACE = re.compile(r"\s+")


def parse_json_object(raw: str | bytes | None) -> dict[str, Any] | None:
  """
  Parse ``raw`` as a JSON object.

  :returns: The decoded object, or None when ``raw`` is empty, not JSON, or not an object.
  """
  if not raw:
    return None
  try:
    value = json.loads(raw)
  except (ValueError, TypeError):
    return None
  return value if isinstance(value, dict) else None


def extract_text_field(raw: str | bytes | None, field: str) -> str:
  """
  Extract a string field from a JSON document, stripped.

  Never raises: a missing document, invalid JSON, a missing field or a non-string value all
  yield an empty string.
  """
  document = parse_json_object(raw)
  if document is None:
    return ""
  value = document.get(field)
  return value.strip() if isinstance(value, str) else ""


def normalize_whitespace(text: str) -> str:
  """Collapse newlines (real or escaped), carriage returns and runs of spaces."""
  return _WHITESPACE.sub(" ", text.replace("\\n", " ")).strip()
