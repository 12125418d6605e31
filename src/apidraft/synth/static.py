from __future__ import annotations

import copy
from typing import Any

from apidraft.domain.models import RouteInfo

JSON = "application/json"


def summary_for(route: str) -> str:
    return f"Auto-generated from {route}"


def _json_content(schema: dict[str, Any]) -> dict[str, Any]:
    return {JSON: {"schema": schema}}


def synthesize(info: RouteInfo) -> dict[str, Any]:
    """
    Build an OpenAPI operation from lexical facts only. Pure; never fails.
    A declared schema replaces the result wholesale, except for the summary.
    """
    route = info.doc_route
    if info.declared_schema is not None:
        return apply_declared(info.declared_schema, route)

    parameters: list[dict[str, Any]] = []
    for name in info.path_params:
        parameters.append(
            {
                "name": name,
                "in": "path",
                "required": True,
                "description": f"{name} identifier",
                "schema": {"type": "string"},
            }
        )
    for name in info.query_params or []:
        parameters.append(
            {
                "name": name,
                "in": "query",
                "required": False,
                "description": f"{name} query parameter",
                "schema": {"type": "string"},
            }
        )

    responses: dict[str, Any] = {
        "200": {
            "description": "Successful response",
            "content": _json_content(
                {
                    "type": "object",
                    "properties": {
                        "status": {"type": "boolean"},
                        "result": {"type": "object"},
                    },
                }
            ),
        }
    }
    if info.requires_auth:
        responses["401"] = {
            "description": "Unauthorized",
            "content": _json_content(
                {
                    "type": "object",
                    "properties": {
                        "status": {"type": "boolean"},
                        "message": {"type": "string"},
                    },
                }
            ),
        }

    op: dict[str, Any] = {
        "summary": summary_for(route),
        "parameters": parameters,
        "responses": responses,
    }

    body_params = info.body_params or []
    if body_params:
        op["requestBody"] = {
            "required": True,
            "content": _json_content(
                {
                    "type": "object",
                    "properties": {
                        name: {"type": "string", "description": f"{name} field"} for name in body_params
                    },
                    "required": list(body_params),
                }
            ),
        }

    if info.requires_auth:
        op["security"] = [{"bearerAuth": []}]

    return op


def apply_declared(declared: dict[str, Any], route: str) -> dict[str, Any]:
    op = copy.deepcopy(declared)
    op["summary"] = summary_for(route)
    return op


def merge_enhancement(static_op: dict[str, Any], enhancement: dict[str, Any]) -> dict[str, Any]:
    """LLM fields win field by field; the static summary always stays."""
    merged = {**static_op, **enhancement}
    merged["summary"] = static_op["summary"]
    return merged
