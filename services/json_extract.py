"""Locate and parse a JSON object embedded in free-form model output."""

import json
import re
from typing import Any

_FENCE = re.compile(r"```[ \t]*(?:json|JSON)?[ \t]*\n?(.*?)```", re.DOTALL)


def extract_fenced_block(text: str) -> str | None:
    """Return the body of the first Markdown code fence, if any."""
    match = _FENCE.search(text or "")
    if match is None:
        return None
    return match.group(1).strip()


def extract_balanced_json_object(text: str) -> str | None:
    """Return the first balanced top-level ``{...}`` span.

    Braces inside string literals are ignored, so ``{"a": "}"}`` is returned
    whole. Scanning restarts at the next ``{`` if an opening brace is never
    closed.
    """
    if not text:
        return None
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start:index + 1]
        start = text.find("{", start + 1)
    return None


def parse_json_object(text: str) -> dict[str, Any] | None:
    """Parse the JSON object in ``text``: fenced block first, then brace scanning."""
    if not text or not text.strip():
        return None
    candidates = []
    fenced = extract_fenced_block(text)
    if fenced:
        candidates.append(fenced)
    candidates.append(text)

    for candidate in candidates:
        span = extract_balanced_json_object(candidate)
        if span is None:
            continue
        try:
            parsed = json.loads(span)
        except (ValueError, RecursionError):
            # JSONDecodeError, oversized integers and pathological nesting
            continue
        if isinstance(parsed, dict):
            return parsed
    return None
