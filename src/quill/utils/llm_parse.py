"""LLM output parsing utilities.

Helpers for pulling JSON out of backend responses (think tags, markdown
fences, chatty preambles) and for coercing loosely-typed fields.
"""

import json
import math
import re
from typing import Any

_THINK_PAIR_RE = re.compile(r"<think>.*?</think>", re.DOTALL)
_THINK_OPEN_RE = re.compile(r"<think>.*", re.DOTALL)
_THINK_CLOSE_RE = re.compile(r"^.*?</think>", re.DOTALL)
_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def strip_think_tags(text: str) -> str:
    """Remove <think>...</think> tags from LLM output."""
    text = _THINK_PAIR_RE.sub("", text)
    text = _THINK_OPEN_RE.sub("", text)
    text = _THINK_CLOSE_RE.sub("", text)
    return text


def _clean(text: str) -> str:
    return _FENCE_RE.sub("", strip_think_tags(text)).strip()


def extract_json_object(text: str) -> str:
    """Extract a JSON object from LLM output, stripping think tags and markdown fences."""
    text = _clean(text)
    start = text.find("{")
    if start > 0:
        text = text[start:]
    end = text.rfind("}")
    if end >= 0:
        text = text[: end + 1]
    return text.strip()


def extract_json_array(text: str) -> str:
    """Extract a JSON array from LLM output, falling back to a wrapping object."""
    text = _clean(text)
    start = text.find("[")
    if start >= 0:
        end = text.rfind("]")
        if end > start:
            return text[start : end + 1]
    # LLM may have wrapped the array in an object like {"suggestions": [...]}
    start = text.find("{")
    if start >= 0:
        end = text.rfind("}")
        if end > start:
            return text[start : end + 1]
    return text


def loads_object(text: str) -> dict[str, Any]:
    """Parse a JSON object out of raw LLM text.

    Raises:
        json.JSONDecodeError: no valid JSON could be parsed
        TypeError: the payload is valid JSON but not an object
    """
    data = json.loads(extract_json_object(text))
    if not isinstance(data, dict):
        raise TypeError(f"expected a JSON object, got {type(data).__name__}")
    return data


def coerce_score(value: Any, *, low: float = 0.0, high: float = 100.0) -> float | None:
    """Turn a number-ish value (``82``, ``"82"``, ``"82/100"``) into a clamped float."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().split("/")[0].rstrip("%").strip()
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return max(low, min(high, number))


def coerce_str_list(value: Any) -> list[str]:
    """Normalize a list-ish value into a list of non-empty strings."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    items = []
    for item in value:
        if isinstance(item, (dict, list, tuple)) or item is None:
            continue
        text = str(item).strip()
        if text:
            items.append(text)
    return items
