from __future__ import annotations

import json
import re
from typing import Any, Optional

import yaml

from apidraft.errors import JsonParseFailed, NoJsonFound
from apidraft.extractors.fastify.lexer import find_closing

_ANCHORED_RE = re.compile(r"\{[\s\S]*\}\s*$")
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_FENCE_RE = re.compile(r"```(?:json|JSON)?")


def _candidates(text: str) -> list[str]:
    out: list[str] = []
    anchored = _ANCHORED_RE.search(text)
    if anchored:
        out.append(anchored.group(0).strip())

    start = text.find("{")
    while start != -1:
        close = find_closing(text, start)
        if close == -1:
            start = text.find("{", start + 1)
            continue
        candidate = text[start : close + 1]
        if candidate not in out:
            out.append(candidate)
        start = text.find("{", close + 1)
    return out


def parse_strict(text: str) -> Optional[dict[str, Any]]:
    try:
        value = json.loads(text)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def parse_lenient(text: str) -> Optional[dict[str, Any]]:
    """JSON-ish parse: tolerates trailing commas, single quotes and bare keys."""
    try:
        value = yaml.safe_load(_TRAILING_COMMA_RE.sub(r"\1", text))
    except (yaml.YAMLError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def extract_json_object(text: str) -> dict[str, Any]:
    """
    Pull the JSON object out of a free-form completion.

    Candidates are the object running to the end of the reply, then every
    top-level balanced object in order. All of them are tried strictly
    before any is tried leniently.
    """
    cleaned = _FENCE_RE.sub("", text or "")
    candidates = _candidates(cleaned)
    if not candidates:
        raise NoJsonFound("no JSON object in completion")
    for parse in (parse_strict, parse_lenient):
        for candidate in candidates:
            value = parse(candidate)
            if value is not None:
                return value
    raise JsonParseFailed(f"could not parse completion as JSON: {candidates[0][:80]!r}")
