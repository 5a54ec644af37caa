"""Pull a JSON object out of a model completion.

Models wrap structured output inconsistently: sometimes in a fenced
```json block, sometimes inside prose, sometimes bare. Attempts, first match
wins:
1) the body of a fenced block tagged ``json``;
2) the span from the first ``{`` to the last ``}``.
Anything else is a ResponseParseError for the calling stage to handle.
"""

from __future__ import annotations

import json
import re
from typing import Any

_FENCED_JSON_RE = re.compile(r"```json[ \t]*\r?\n(.*?)\r?\n?```", re.DOTALL | re.IGNORECASE)


class ResponseParseError(ValueError):
    """Completion text did not contain a parseable JSON object."""


def extract_json(text: str) -> dict[str, Any]:
    if not isinstance(text, str) or not text.strip():
        raise ResponseParseError("completion was empty")

    fenced = _FENCED_JSON_RE.search(text)
    if fenced:
        parsed = _loads_object(fenced.group(1))
        if parsed is not None:
            return parsed

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        parsed = _loads_object(text[start : end + 1])
        if parsed is not None:
            return parsed
        raise ResponseParseError("brace-delimited span was not a valid JSON object")

    raise ResponseParseError("completion contained no JSON object")


def first_value(payload: dict[str, Any], *keys: str) -> Any:
    """Value of the first key present, so camelCase and snake_case both work."""
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return None


def string_list(value: Any) -> list[str]:
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list):
        return []
    output: list[str] = []
    for item in value:
        if isinstance(item, dict):
            item = first_value(item, "name", "description", "text", "title")
        if isinstance(item, (int, float)) and not isinstance(item, bool):
            item = str(item)
        if not isinstance(item, str):
            continue
        text = item.strip()
        if text:
            output.append(text)
    return output


def _loads_object(raw: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None
