"""Pull a JSON object out of a provider response body.

Some upstream APIs prepend PHP warnings or trailing HTML to their JSON payload,
so the body cannot be handed to ``json.loads`` directly.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field


@dataclass
class JsonExtraction:
    ok: bool
    data: dict = field(default_factory=dict)
    error: str = ""


def find_first_object_span(text: str) -> tuple[int, int] | None:
    """Return (start, end) of the first balanced ``{...}`` span, string-aware."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return start, i + 1
        # Unbalanced from this brace; try the next opening brace.
        start = text.find("{", start + 1)
    return None


def extract_json_object(body) -> JsonExtraction:
    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8", errors="replace")
    text = body or ""
    if not text.strip():
        return JsonExtraction(ok=False, error="empty response body")

    span = find_first_object_span(text)
    if span is None:
        return JsonExtraction(ok=False, error=f"no JSON object in response: {text[:200]}")

    candidate = text[span[0]:span[1]]
    try:
        data = json.loads(candidate)
    except ValueError as e:
        return JsonExtraction(ok=False, error=f"unparseable JSON ({e}): {candidate[:200]}")
    if not isinstance(data, dict):
        return JsonExtraction(ok=False, error="JSON payload is not an object")
    return JsonExtraction(ok=True, data=data)
