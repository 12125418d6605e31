from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Callable, Iterable, Mapping, Optional

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError

logger = logging.getLogger(__name__)

JSON = "application/json"

_PLACEHOLDER_RE = re.compile(r"\{\w+\}|:\w+")


@dataclass(frozen=True)
class RequestParts:
    body: Any = None
    params: Mapping[str, str] = field(default_factory=dict)
    query: Mapping[str, str] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)


Validator = Callable[[RequestParts], list[str]]
# None marks a documented operation that needs no checks
ValidatorTable = dict[str, dict[str, Optional[Validator]]]


def _compile(schema: Any, where: str) -> Optional[Draft7Validator]:
    if not isinstance(schema, dict) or not schema:
        return None
    try:
        Draft7Validator.check_schema(schema)
    except SchemaError as e:
        logger.debug("Skipping invalid %s schema: %s", where, e.message)
        return None
    return Draft7Validator(schema)


def _param_schema(parameters: list[Any], location: str) -> tuple[dict[str, Any], list[str]]:
    properties: dict[str, Any] = {}
    required: list[str] = []
    for p in parameters:
        if not isinstance(p, dict) or p.get("in") != location or not p.get("name"):
            continue
        schema = p.get("schema")
        properties[p["name"]] = schema if isinstance(schema, dict) else {}
        if p.get("required") or location == "path":
            required.append(p["name"])
    return properties, required


def _body_schema(operation: dict[str, Any]) -> tuple[Optional[dict[str, Any]], bool]:
    body = operation.get("requestBody")
    if not isinstance(body, dict):
        return None, False
    content = body.get("content") or {}
    schema = (content.get(JSON) or {}).get("schema") if isinstance(content, dict) else None
    if not isinstance(schema, dict):
        return None, bool(body.get("required"))
    return schema, bool(body.get("required") or schema.get("required"))


def _coerce(values: Mapping[str, Any], properties: dict[str, Any]) -> dict[str, Any]:
    """Wire values are strings; convert the ones whose schema wants a scalar type."""
    out: dict[str, Any] = {}
    for name, value in values.items():
        wanted = (properties.get(name) or {}).get("type")
        out[name] = _coerce_one(value, wanted) if isinstance(value, str) else value
    return out


def _coerce_one(value: str, wanted: Any) -> Any:
    try:
        if wanted == "integer":
            return int(value)
        if wanted == "number":
            return float(value)
    except ValueError:
        return value
    if wanted == "boolean" and value.lower() in ("true", "false"):
        return value.lower() == "true"
    return value


def _messages(validator: Draft7Validator, instance: Any, label: str) -> list[str]:
    errors = sorted(validator.iter_errors(instance), key=lambda e: [str(p) for p in e.path])
    return [f"{label} validation failed: {e.message}" for e in errors]


def _has_header(headers: Mapping[str, str], name: str) -> bool:
    wanted = name.lower()
    return any(k.lower() == wanted and v for k, v in headers.items())


def build_validator(operation: dict[str, Any], requires_auth: bool = False) -> Optional[Validator]:
    """
    Validator for one operation, or None when the operation neither
    requires any field nor authentication. A `security` clause on the
    operation implies requires_auth.
    """
    parameters = operation.get("parameters") or []
    if not isinstance(parameters, list):
        parameters = []
    path_props, path_required = _param_schema(parameters, "path")
    query_props, query_required = _param_schema(parameters, "query")
    body_schema, body_required = _body_schema(operation)
    requires_auth = requires_auth or bool(operation.get("security"))

    if not (path_required or query_required or body_required or requires_auth):
        return None

    params_v = _compile({"type": "object", "properties": path_props, "required": path_required}, "params")
    query_v = _compile({"type": "object", "properties": query_props, "required": query_required}, "query")
    body_v = _compile(body_schema, "body")

    def validate(request: RequestParts) -> list[str]:
        errors: list[str] = []
        if requires_auth and not _has_header(request.headers, "authorization"):
            errors.append("Authorization header is required")

        if request.body is None:
            if body_required:
                errors.append("Body validation failed: request body is required")
        elif body_v is not None:
            errors.extend(_messages(body_v, request.body, "Body"))

        if params_v is not None:
            errors.extend(_messages(params_v, _coerce(request.params, path_props), "Params"))
        if query_v is not None:
            errors.extend(_messages(query_v, _coerce(request.query, query_props), "Query"))
        return errors

    return validate


def build_validator_table(
    paths: dict[str, dict[str, Any]],
    auth_routes: Iterable[tuple[str, str]] = (),
) -> ValidatorTable:
    """
    Built in a local dict; callers publish the finished table in one step.
    auth_routes holds (route, method) pairs whose handler checks credentials.
    """
    needs_auth = {(route, method.lower()) for route, method in auth_routes}
    table: ValidatorTable = {}
    for route, methods in paths.items():
        for method, operation in methods.items():
            if not isinstance(operation, dict):
                continue
            validator = build_validator(operation, (route, method.lower()) in needs_auth)
            table.setdefault(route, {})[method.lower()] = validator
    return table


@lru_cache(maxsize=1024)
def _template_re(template: str) -> re.Pattern[str]:
    parts = re.split(r"(\{\w+\}|:\w+)", template)
    pattern = ""
    seen: set[str] = set()
    for part in parts:
        m = re.fullmatch(r"\{(\w+)\}|:(\w+)", part)
        if m:
            name = m.group(1) or m.group(2)
            pattern += "[^/]+" if name in seen else f"(?P<{name}>[^/]+)"
            seen.add(name)
        else:
            pattern += re.escape(part)
    return re.compile("^" + pattern + "/?$")


def _specificity(template: str) -> tuple[int, int]:
    # fewer placeholders first, then longer literal text
    return (len(_PLACEHOLDER_RE.findall(template)), -len(_PLACEHOLDER_RE.sub("", template)))


def lookup_validator(table: ValidatorTable, path: str, method: str) -> Optional[tuple[Validator, dict[str, str]]]:
    """
    Find the documented operation serving (path, method) and return
    (validator, path params), or None when nothing matches or the matching
    operation has no checks. Literal routes win over templates.
    """
    method = method.lower()
    if not _PLACEHOLDER_RE.search(path) and method in table.get(path, {}):
        validator = table[path][method]
        return (validator, {}) if validator is not None else None
    for template, methods in sorted(table.items(), key=lambda item: _specificity(item[0])):
        if method not in methods:
            continue
        m = _template_re(template).match(path)
        if m:
            validator = methods[method]
            return (validator, m.groupdict()) if validator is not None else None
    return None
