"""
Shared helpers
"""
import json
from typing import Any

from pydantic import BaseModel


class ParsedArray(BaseModel):
  """
  Result of a permissive JSON array parse.
  items holds the non-empty string elements and elements the whole array
  as decoded; error is set when the raw value could not be read as an array.
  """
  items: list[str] = []
  elements: list[Any] = []
  error: str | None = None

  @property
  def ok(self) -> bool:
    return self.error is None


def parse_json_array(raw: Any) -> ParsedArray:
  """
  Parse a JSON-encoded array of strings, or return an empty result.

  None, empty strings and JSON null are an empty array. Anything that is
  not valid JSON, or is valid JSON but not an array, yields no items and
  an error message. Elements that are not non-empty strings are skipped.

  >>> parse_json_array('["/uploads/a.jpg", null, ""]').items
  ['/uploads/a.jpg']
  """
  if raw is None:
    return ParsedArray()
  if isinstance(raw, (bytes, bytearray)):
    raw = raw.decode("utf-8", errors="replace")
  if isinstance(raw, list):
    value = raw
  else:
    if not str(raw).strip():
      return ParsedArray()
    try:
      value = json.loads(raw)
    except (TypeError, ValueError) as e:
      return ParsedArray(error=f"invalid JSON: {e}")

  if value is None:
    return ParsedArray()
  if not isinstance(value, list):
    return ParsedArray(error=f"expected a JSON array, got {type(value).__name__}")

  return ParsedArray(
    items=[v for v in value if isinstance(v, str) and v],
    elements=value,
  )
