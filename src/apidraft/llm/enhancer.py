from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from apidraft.errors import LlmCallFailed, LlmError, RetriesExhausted
from apidraft.llm.client import CompletionCapability
from apidraft.llm.extract import extract_json_object
from apidraft.llm.prompt import build_prompt, prompt_for_attempt

logger = logging.getLogger(__name__)

RECOGNIZED_FIELDS = ("requestBody", "parameters", "responses")


class LlmEnhancer:
    """
    Ask the LLM for requestBody / parameters / responses of one handler.

    Every attempt is one completion call bounded by `timeout`. A call that
    raises, times out or returns no parseable JSON object consumes an
    attempt; after `max_retries` attempts RetriesExhausted is raised.
    """

    def __init__(
        self,
        completion: CompletionCapability,
        model: str = "gpt-4",
        max_retries: int = 3,
        backoff: float = 1.0,
        timeout: float = 60.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.completion = completion
        self.model = model
        self.max_retries = max_retries
        self.backoff = backoff
        self.timeout = timeout
        self._sleep = sleep

    async def enhance(self, handler_source: str, max_retries: Optional[int] = None) -> dict[str, Any]:
        attempts_allowed = self.max_retries if max_retries is None else max_retries
        attempts_allowed = max(1, attempts_allowed)
        base = build_prompt(handler_source)

        last_error: Optional[Exception] = None
        for attempt in range(attempts_allowed):
            if attempt:
                await self._sleep(self.backoff)
            prompt = prompt_for_attempt(base, attempt)
            try:
                text = await self._call(prompt)
                parsed = extract_json_object(text)
            except LlmError as e:
                last_error = e
                logger.info("LLM attempt %d/%d failed: %s", attempt + 1, attempts_allowed, e)
                continue
            return {k: parsed[k] for k in RECOGNIZED_FIELDS if k in parsed}

        raise RetriesExhausted(attempts_allowed, last_error)

    async def _call(self, prompt: str) -> str:
        try:
            async with asyncio.timeout(self.timeout):
                return await self.completion.complete(self.model, prompt)
        except TimeoutError as e:
            raise LlmCallFailed(f"completion timed out after {self.timeout}s") from e
        except Exception as e:
            raise LlmCallFailed(f"completion call failed: {e}") from e
