from __future__ import annotations

from typing import Any, Optional, Protocol

from openai import AsyncOpenAI


class CompletionCapability(Protocol):
    async def complete(self, model: str, prompt: str) -> str:
        """Submit one prompt and return the completion text."""
        ...


class OpenAICompletion:
    """Chat-completions backed implementation of CompletionCapability."""

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        client: Optional[Any] = None,
    ):
        # the SDK's own retries stay off; the enhancer owns the retry policy
        self._client = client or AsyncOpenAI(api_key=api_key, base_url=base_url or None, max_retries=0)

    async def complete(self, model: str, prompt: str) -> str:
        resp = await self._client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
        )
        if not resp.choices:
            return ""
        return resp.choices[0].message.content or ""
