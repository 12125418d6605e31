from __future__ import annotations

import dataclasses
import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from apidraft.config import GenerateOptions
from apidraft.domain.models import CacheEntry, RouteInfo
from apidraft.errors import CacheWriteFailed, DirectoryNotFound, HandlerNotFound, LlmError, MissingCredentials
from apidraft.extractors.fastify.handlers import HandlerResolver, LexicalHandlerResolver
from apidraft.extractors.fastify.routes import extract_routes_from_file
from apidraft.llm.client import CompletionCapability, OpenAICompletion
from apidraft.llm.enhancer import LlmEnhancer
from apidraft.repo.scanner import list_source_files, select_candidate_route_files
from apidraft.store.json_cache import NullCache, ResultCache, fingerprint
from apidraft.synth.heuristics import analyze_handler
from apidraft.synth.static import apply_declared, merge_enhancement, synthesize
from apidraft.validation.validators import ValidatorTable, build_validator_table

logger = logging.getLogger(__name__)

OPENAPI_VERSION = "3.0.0"

BEARER_AUTH = {
    "type": "http",
    "scheme": "bearer",
    "bearerFormat": "JWT",
    "description": "Authorization token",
}


@dataclass(frozen=True)
class SkippedRoute:
    method: str
    route: str
    file_path: str
    reason: str


@dataclass
class GenerationResult:
    document: dict[str, Any]
    validators: ValidatorTable
    routes: list[RouteInfo] = field(default_factory=list)
    skipped: list[SkippedRoute] = field(default_factory=list)
    files_scanned: int = 0
    cache_hits: int = 0
    llm_enhanced: int = 0

    @property
    def endpoint_count(self) -> int:
        return sum(len(methods) for methods in self.document.get("paths", {}).values())


def full_route(routes_dir: Path, file_path: str, route: str) -> str:
    """
    OpenAPI path for a registration: the route file's directory relative to
    routes_dir is the prefix (autoload style) and `:id` becomes `{id}`.
    """
    rel = os.path.relpath(os.path.dirname(file_path), str(routes_dir)) if file_path else "."
    prefix = "" if rel in (".", "") else rel.replace(os.sep, "/")
    joined = "/" + prefix + "/" + route
    joined = re.sub(r"/{2,}", "/", joined)
    joined = re.sub(r":(\w+)", r"{\1}", joined)
    if len(joined) > 1 and joined.endswith("/"):
        joined = joined[:-1]
    return joined


def collect_routes(
    routes_dir: Path,
    resolver: HandlerResolver,
) -> tuple[list[RouteInfo], list[SkippedRoute], int]:
    """Scan, extract, resolve and analyse. Returns (routes, skipped, files_scanned)."""
    files = list_source_files(routes_dir)
    candidates = select_candidate_route_files(files)

    routes: list[RouteInfo] = []
    skipped: list[SkippedRoute] = []
    for path in candidates:
        for info in extract_routes_from_file(path):
            info.full_route = full_route(routes_dir, info.file_path, info.route)
            if info.handler_name is not None:
                source = resolver.resolve(info.handler_name)
                if source is None:
                    err = HandlerNotFound(info.handler_name)
                    logger.warning("Skipping %s %s: %s", info.method.upper(), info.full_route, err)
                    skipped.append(SkippedRoute(info.method, info.full_route, info.file_path, str(err)))
                    continue
                info.handler_source = source
            analyze_handler(info)
            routes.append(info)
    return routes, skipped, len(files)


def render_document(
    paths: dict[str, dict[str, Any]],
    use_llm: bool = False,
    title: str = "Auto-generated Swagger",
    version: str = "1.0.0",
    bearer_auth: bool = False,
) -> dict[str, Any]:
    description = (
        "API documentation automatically generated using static analysis and an LLM"
        if use_llm
        else "API documentation automatically generated using static analysis"
    )
    components: dict[str, Any] = {"schemas": {}}
    if bearer_auth or any(op.get("security") for methods in paths.values() for op in methods.values() if isinstance(op, dict)):
        components["securitySchemes"] = {"bearerAuth": dict(BEARER_AUTH)}
    return {
        "openapi": OPENAPI_VERSION,
        "info": {"title": title, "version": version, "description": description},
        "paths": paths,
        "components": components,
    }


def write_document(document: dict[str, Any], output_path: Path | str) -> Path:
    out = Path(output_path).expanduser()
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(json.dumps(document, indent=2), encoding="utf-8")
    return out


@dataclass
class _Counters:
    cache_hits: int = 0
    llm_enhanced: int = 0


async def _operation_for(
    info: RouteInfo,
    cache: ResultCache | NullCache,
    enhancer: Optional[LlmEnhancer],
    counters: _Counters,
) -> dict[str, Any]:
    route = info.doc_route
    key = fingerprint(route, info.method, info.handler_source)

    cached = cache.get(key)
    # a static-only entry does not satisfy a run that asked for the LLM
    if cached is not None and not (enhancer and cached.source == "static" and info.handler_source):
        logger.info("Using cached schema for %s %s", info.method.upper(), route)
        counters.cache_hits += 1
        op = cached.schema_
        if info.declared_schema is not None:
            op = apply_declared(info.declared_schema, route)
        return op

    op = synthesize(dataclasses.replace(info, declared_schema=None))
    source = "static"

    if info.declared_schema is not None:
        op = apply_declared(info.declared_schema, route)
    elif enhancer is not None and info.handler_source:
        logger.info("Enhancing %s %s with the LLM", info.method.upper(), route)
        try:
            enhancement = await enhancer.enhance(info.handler_source)
        except LlmError as e:
            logger.warning("LLM enhancement failed for %s %s, keeping static schema: %s", info.method.upper(), route, e)
        else:
            op = merge_enhancement(op, enhancement)
            source = "llm"
            counters.llm_enhanced += 1

    cache.put(
        key,
        CacheEntry(route=route, method=info.method, schema=op, timestamp=cache.now(), source=source),
    )
    return op


async def generate_document(
    options: GenerateOptions,
    completion: Optional[CompletionCapability] = None,
    cache: ResultCache | NullCache | None = None,
    resolver: Optional[HandlerResolver] = None,
) -> GenerationResult:
    """
    Scan options.routes_dir and build the OpenAPI document plus the request
    ValidatorTable. Per-route failures are logged and skipped; only a
    missing routes directory or missing LLM credentials abort the run.
    """
    routes_dir = Path(options.routes_dir)
    if not routes_dir.is_dir():
        raise DirectoryNotFound(str(routes_dir))

    enhancer: Optional[LlmEnhancer] = None
    if options.use_llm:
        if completion is None:
            if not options.openai_api_key:
                raise MissingCredentials("OPENAI_API_KEY is required when LLM enhancement is enabled")
            completion = OpenAICompletion(options.openai_api_key, options.openai_endpoint)
        enhancer = LlmEnhancer(
            completion,
            model=options.model,
            max_retries=options.max_retries,
            backoff=options.retry_backoff,
            timeout=options.llm_timeout,
        )

    if cache is None:
        cache = ResultCache(options.cache_dir).load() if options.use_cache else NullCache()
    if resolver is None:
        resolver = LexicalHandlerResolver(routes_dir, options.plugins_dir)

    routes, skipped, files_scanned = collect_routes(routes_dir, resolver)

    counters = _Counters()
    paths: dict[str, dict[str, Any]] = {}
    for info in routes:
        op = await _operation_for(info, cache, enhancer, counters)
        paths.setdefault(info.doc_route, {})[info.method] = op

    try:
        cache.flush()
    except CacheWriteFailed as e:
        logger.warning("%s", e)

    auth_routes = [(info.doc_route, info.method) for info in routes if info.requires_auth]
    document = render_document(
        paths,
        use_llm=options.use_llm,
        title=options.title,
        version=options.version,
        bearer_auth=bool(auth_routes),
    )
    return GenerationResult(
        document=document,
        validators=build_validator_table(paths, auth_routes),
        routes=routes,
        skipped=skipped,
        files_scanned=files_scanned,
        cache_hits=counters.cache_hits,
        llm_enhanced=counters.llm_enhanced,
    )
