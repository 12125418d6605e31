from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

HttpMethod = Literal["get", "post", "put", "delete", "patch"]
HTTP_METHODS: tuple[str, ...] = ("get", "post", "put", "delete", "patch")

SchemaSource = Literal["static", "llm"]


@dataclass
class RouteInfo:
    """
    One route registration found in a route file.

    Exactly one of handler_source / handler_name is set by the extractor.
    Fields left as None have not been derived yet; an empty list means
    "derived, nothing found".
    """

    method: str
    route: str
    handler_source: Optional[str] = None
    handler_name: Optional[str] = None
    file_path: str = ""
    line: int = 0
    path_params: list[str] = field(default_factory=list)
    query_params: Optional[list[str]] = None
    body_params: Optional[list[str]] = None
    requires_auth: Optional[bool] = None
    declared_schema: Optional[dict[str, Any]] = None
    full_route: Optional[str] = None

    @property
    def is_symbolic(self) -> bool:
        return self.handler_name is not None

    @property
    def doc_route(self) -> str:
        return self.full_route or self.route


class CacheEntry(BaseModel):
    route: str
    method: str
    schema_: dict[str, Any] = Field(alias="schema")
    timestamp: float
    source: SchemaSource = "static"

    model_config = ConfigDict(populate_by_name=True)
