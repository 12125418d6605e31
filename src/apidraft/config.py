"""Generation options, with defaults taken from the environment (and .env)."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

DEFAULT_MODEL = "gpt-4"
DEFAULT_CACHE_DIR = "./.swagger-cache"


class GenerateOptions(BaseModel):
    routes_dir: Path
    plugins_dir: Optional[Path] = None
    use_llm: bool = False
    model: str = DEFAULT_MODEL
    openai_api_key: Optional[str] = None
    openai_endpoint: Optional[str] = None
    use_cache: bool = True
    cache_dir: Path = Path(DEFAULT_CACHE_DIR)
    max_retries: int = 3
    llm_timeout: float = 60.0
    retry_backoff: float = 1.0
    title: str = "Auto-generated Swagger"
    version: str = "1.0.0"

    @classmethod
    def from_env(cls, **overrides: Any) -> "GenerateOptions":
        """
        Build options from OPENAI_API_KEY, OPENAI_BASE_URL, APIDRAFT_MODEL and
        APIDRAFT_CACHE_DIR; explicit keyword arguments win when not None.
        """
        load_dotenv()
        values: dict[str, Any] = {
            "openai_api_key": os.environ.get("OPENAI_API_KEY") or None,
            "openai_endpoint": os.environ.get("OPENAI_BASE_URL") or None,
            "model": os.environ.get("APIDRAFT_MODEL") or DEFAULT_MODEL,
            "cache_dir": os.environ.get("APIDRAFT_CACHE_DIR") or DEFAULT_CACHE_DIR,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
