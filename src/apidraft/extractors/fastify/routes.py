from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Optional

from apidraft.domain.models import HTTP_METHODS, RouteInfo
from apidraft.errors import SchemaParseError
from apidraft.extractors.fastify.lexer import (
    QUOTES,
    find_closing,
    line_of,
    mask_comments,
    read_string_literal,
    scan_argument,
    skip_string,
    skip_ws,
)
from apidraft.repo.scanner import read_text

logger = logging.getLogger(__name__)

_REGISTRATION_RE = re.compile(
    r"(?<![\w$])(?P<receiver>[A-Za-z_$][\w$]*)\s*\.\s*(?P<method>"
    + "|".join(HTTP_METHODS)
    + r")\s*(?=[(<])"
)
_PATH_PARAM_RE = re.compile(r":(\w+)|\{(\w+)\}")
_SCHEMA_ANNOTATION_RE = re.compile(r"@(?:[A-Za-z_$][\w$]*\.)?schema\s*\(")
_IDENT_RE = re.compile(r"^[A-Za-z_$][\w$]*$")
_MEMBER_RE = re.compile(r"^[A-Za-z_$][\w$]*(?:\s*\.\s*[A-Za-z_$][\w$]*)+$")
_INLINE_RE = re.compile(r"^(?:async\b|function\b|\(|[A-Za-z_$][\w$]*\s*=>)")
_COMMENT_PREFIX_RE = re.compile(r"^\s*(?://+|\*+(?!/))", re.MULTILINE)

# how far back an annotation may sit from the registration it describes
ANNOTATION_WINDOW = 500


def extract_path_params(template: str) -> list[str]:
    """`:name` and `{name}` tokens in order of appearance, first occurrence only."""
    out: list[str] = []
    for m in _PATH_PARAM_RE.finditer(template):
        name = m.group(1) or m.group(2)
        if name not in out:
            out.append(name)
    return out


def extract_routes(source: str, file_path: str = "") -> list[RouteInfo]:
    """
    Find Fastify-style registrations such as:
      fastify.get('/users/:id', async (request, reply) => { ... })
      app.post('/carts', { schema }, fastify.cartsCreate)
      router.delete(`/items/:id`, removeItem)

    Commented-out registrations are ignored. When the same method and path
    are registered twice, the later registration wins.
    """
    masked = mask_comments(source)
    found: dict[tuple[str, str], RouteInfo] = {}
    prev_end = 0

    for m in _REGISTRATION_RE.finditer(masked):
        parsed = _parse_registration(source, masked, m.end())
        if parsed is None:
            continue
        path, handler_begin, handler_end, call_end = parsed

        method = m.group("method")
        handler_text = source[handler_begin:handler_end]
        info = RouteInfo(
            method=method,
            route=path,
            file_path=file_path,
            line=line_of(source, m.start()),
            path_params=extract_path_params(path),
        )
        if not _classify_handler(info, handler_text):
            logger.debug("Unsupported handler expression for %s %s: %s", method, path, handler_text[:60])
            continue

        info.declared_schema = _declared_schema_before(source, max(prev_end, m.start() - ANNOTATION_WINDOW), m.start())
        prev_end = call_end

        key = (method, path)
        if key in found:
            logger.debug("Duplicate registration %s %s in %s; keeping the later one", method, path, file_path)
        found[key] = info

    return list(found.values())


def extract_routes_from_file(path: Path | str) -> list[RouteInfo]:
    try:
        source = read_text(path)
    except OSError as e:
        logger.warning("Could not read %s: %s", path, e)
        return []
    return extract_routes(source, file_path=str(Path(path).absolute()))


def _parse_registration(source: str, masked: str, i: int) -> Optional[tuple[str, int, int, int]]:
    """
    Parse `[<generic>](<path>, [options,] <handler>)` starting right after
    the method name. Returns (path, handler_begin, handler_end, call_end).
    """
    i = skip_ws(masked, i)
    if i < len(masked) and masked[i] == "<":
        i = _skip_generic(masked, i)
        if i == -1:
            return None
        i = skip_ws(masked, i)
    if i >= len(masked) or masked[i] != "(":
        return None

    call_close = find_closing(masked, i)
    if call_close == -1:
        return None

    # first argument: the path, which must be a plain or template literal
    begin, end = scan_argument(masked, i + 1)
    lit = read_string_literal(masked, begin)
    if lit is None or lit[1] != end:
        return None
    path = lit[0].strip()
    if not _looks_like_route(path):
        return None
    if end >= call_close or masked[end] != ",":
        return None

    # optional route options object, then the handler
    begin, end = scan_argument(masked, end + 1)
    if begin < len(masked) and masked[begin] == "{" and end < call_close and masked[end] == ",":
        begin, end = scan_argument(masked, end + 1)
    if end == -1 or begin >= end:
        return None
    return path, begin, end, call_close + 1


def _skip_generic(text: str, i: int) -> int:
    depth = 0
    n = len(text)
    while i < n:
        c = text[i]
        if c in QUOTES:
            i = skip_string(text, i)
            continue
        if c == "<":
            depth += 1
        elif c == ">" and text[i - 1] != "=":
            depth -= 1
            if depth == 0:
                return i + 1
        elif c in ";(":
            return -1
        i += 1
    return -1


def _looks_like_route(path: str) -> bool:
    # keeps Map.get('key', fallback) and similar calls out
    return path == "" or path.startswith(("/", "*"))


def _classify_handler(info: RouteInfo, handler_text: str) -> bool:
    text = handler_text.strip()
    if _INLINE_RE.match(text):
        info.handler_source = text
        return True
    if _MEMBER_RE.match(text):
        info.handler_name = re.sub(r"\s+", "", text)
        return True
    if _IDENT_RE.match(text):
        info.handler_name = text
        return True
    return False


def _declared_schema_before(source: str, window_start: int, call_start: int) -> Optional[dict[str, Any]]:
    window = source[window_start:call_start]
    matches = list(_SCHEMA_ANNOTATION_RE.finditer(window))
    if not matches:
        return None
    m = matches[-1]
    try:
        return parse_schema_annotation(window[m.end():])
    except SchemaParseError as e:
        logger.warning("Ignoring malformed schema annotation near line %d: %s", line_of(source, window_start + m.start()), e)
        return None


def parse_schema_annotation(text: str) -> dict[str, Any]:
    """
    Parse the JSON object that opens `text` (the part after `@schema(`).
    Comment prefixes (`//`, ` * `) on continuation lines are stripped first.
    """
    text = _COMMENT_PREFIX_RE.sub("", text)
    start = text.find("{")
    if start == -1 or text[:start].strip():
        raise SchemaParseError("annotation does not start with a JSON object")
    close = find_closing(text, start)
    if close == -1:
        raise SchemaParseError("unbalanced braces in annotation")
    try:
        value = json.loads(text[start : close + 1])
    except json.JSONDecodeError as e:
        raise SchemaParseError(str(e)) from e
    if not isinstance(value, dict):
        raise SchemaParseError("annotation is not a JSON object")
    return value
