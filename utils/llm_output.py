"""Helpers for reading structured data out of model replies."""

import json
import re
from typing import Any

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*```$")


def strip_code_fence(text: str) -> str:
    """Remove a leading ``` / ```json fence and its closing ``` if present."""
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = _FENCE_OPEN.sub("", stripped, count=1)
        stripped = _FENCE_CLOSE.sub("", stripped, count=1)
    return stripped.strip()


def parse_json_object(text: str) -> dict[str, Any]:
    """
    Parse a (possibly fenced) JSON object.

    Raises:
        ValueError: If the text is not JSON or not an object
    """
    data = json.loads(strip_code_fence(text))
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data
