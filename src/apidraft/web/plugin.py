from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager, suppress
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from apidraft.config import GenerateOptions
from apidraft.llm.client import CompletionCapability
from apidraft.orchestrator.pipeline import GenerationResult, generate_document
from apidraft.validation.validators import RequestParts, lookup_validator
from apidraft.web.state import DocumentState, Snapshot

logger = logging.getLogger(__name__)


class DocsPlugin:
    """
    Serves the generated OpenAPI document and validates requests against it.

    Generation runs on demand via generate(), or in the background when the
    app starts if auto_generate is set. Until a document is published the
    validation middleware lets every request through.
    """

    def __init__(
        self,
        options: GenerateOptions,
        completion: Optional[CompletionCapability] = None,
        docs_path: str = "/docs/json",
        enable_validation: bool = True,
        auto_generate: bool = False,
    ):
        self.options = options
        self.completion = completion
        self.docs_path = docs_path
        self.enable_validation = enable_validation
        self.auto_generate = auto_generate
        self.state = DocumentState()
        self._task: Optional[asyncio.Task] = None

    async def generate(self) -> dict[str, Any]:
        self.state.mark_started()
        try:
            result: GenerationResult = await generate_document(self.options, completion=self.completion)
        except Exception as e:
            logger.exception("Document generation failed")
            self.state.mark_finished(e)
            raise
        self.state.publish(Snapshot(document=result.document, validators=result.validators))
        self.state.mark_finished()
        logger.info("Generated OpenAPI document with %d endpoints", result.endpoint_count)
        return result.document

    def start_background_generation(self) -> asyncio.Task:
        self.state.mark_started()
        self._task = asyncio.create_task(self._generate_quietly())
        return self._task

    async def stop_background_generation(self) -> None:
        """Cancel a generation still running at shutdown and wait for it."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        self.state.mark_finished()
        logger.info("Cancelled unfinished document generation")

    async def _generate_quietly(self) -> None:
        try:
            await self.generate()
        except Exception:
            # already logged and recorded on the state
            pass

    def install(self, app: FastAPI) -> "DocsPlugin":
        app.add_api_route(self.docs_path, self.docs_endpoint, methods=["GET"], include_in_schema=False)
        if self.enable_validation:
            app.middleware("http")(self.validation_middleware)
        if self.auto_generate:
            self._wrap_lifespan(app)
        app.state.apidraft = self
        return self

    def _wrap_lifespan(self, app: FastAPI) -> None:
        inner = app.router.lifespan_context
        plugin = self

        @asynccontextmanager
        async def lifespan(a: FastAPI):
            plugin.start_background_generation()
            try:
                async with inner(a) as maybe_state:
                    yield maybe_state
            finally:
                await plugin.stop_background_generation()

        app.router.lifespan_context = lifespan

    async def docs_endpoint(self) -> JSONResponse:
        snapshot = self.state.snapshot
        if snapshot is not None:
            return JSONResponse(snapshot.document)
        if self.state.requested or self.auto_generate:
            message = "Documentation is not ready yet. Generation is in progress; try again shortly."
            if self.state.last_error is not None:
                message = f"Documentation generation failed: {self.state.last_error}"
            return JSONResponse({"error": message}, status_code=503)
        return JSONResponse(
            {"error": "Documentation has not been generated. Call generate() or enable auto_generate."},
            status_code=404,
        )

    async def validation_middleware(self, request: Request, call_next):
        snapshot = self.state.snapshot
        if snapshot is None or not snapshot.validators:
            return await call_next(request)

        found = lookup_validator(snapshot.validators, request.url.path, request.method)
        if found is None:
            return await call_next(request)
        validator, path_params = found

        errors = validator(
            RequestParts(
                body=await _json_body(request),
                params=path_params,
                query=dict(request.query_params),
                headers=dict(request.headers),
            )
        )
        if errors:
            return JSONResponse({"error": "Validation failed", "details": errors}, status_code=400)
        return await call_next(request)


async def _json_body(request: Request) -> Any:
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        # non-JSON bodies are left to the route handler
        return None


def install(
    app: FastAPI,
    options: GenerateOptions,
    completion: Optional[CompletionCapability] = None,
    docs_path: str = "/docs/json",
    enable_validation: bool = True,
    auto_generate: bool = False,
) -> DocsPlugin:
    return DocsPlugin(
        options,
        completion=completion,
        docs_path=docs_path,
        enable_validation=enable_validation,
        auto_generate=auto_generate,
    ).install(app)
