from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Callable, Optional

from pydantic import ValidationError

from apidraft.domain.models import CacheEntry
from apidraft.errors import CacheLoadFailed, CacheWriteFailed

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60
DEFAULT_FILENAME = "cache.json"


def _sha256_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def fingerprint(route: str, method: str, handler_source: Optional[str]) -> str:
    """
    Cache key for one operation. The whole handler text is hashed, so two
    handlers that share a long prefix still get different keys.
    """
    return f"{route}:{method.lower()}:{_sha256_text(handler_source or '')}"


class ResultCache:
    """
    Flat-file cache of synthesized operations.

    The file is read in full by load() and rewritten in full by flush().
    Expired entries are dropped on access and never served.
    """

    def __init__(
        self,
        cache_dir: Path | str,
        filename: str = DEFAULT_FILENAME,
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.cache_dir = Path(cache_dir)
        self.path = self.cache_dir / filename
        self.ttl = ttl
        self.clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def now(self) -> float:
        return self.clock()

    def load(self) -> "ResultCache":
        """Read the backing file; an absent or corrupt file leaves the cache empty."""
        self._entries = {}
        try:
            self._entries = self._read()
        except CacheLoadFailed as e:
            logger.warning("Could not load cache %s, starting empty: %s", self.path, e)
        return self

    def _read(self) -> dict[str, CacheEntry]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CacheLoadFailed(str(e)) from e
        if not isinstance(raw, dict):
            raise CacheLoadFailed("cache file is not a JSON object")

        entries: dict[str, CacheEntry] = {}
        for key, value in raw.items():
            try:
                entries[key] = CacheEntry.model_validate(value)
            except ValidationError:
                logger.debug("Dropping malformed cache entry %s", key)
        return entries

    def is_expired(self, entry: CacheEntry) -> bool:
        return self.now() - entry.timestamp >= self.ttl

    def get(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self.is_expired(entry):
            del self._entries[key]
            return None
        return entry

    def put(self, key: str, entry: CacheEntry) -> None:
        self._entries[key] = entry

    def flush(self) -> None:
        payload = {k: v.model_dump(by_alias=True) for k, v in self._entries.items()}
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(prefix=".cache-", suffix=".json", dir=str(self.cache_dir))
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2)
                os.replace(tmp, self.path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except OSError as e:
            raise CacheWriteFailed(f"could not write {self.path}: {e}") from e


class NullCache:
    """Stand-in used when caching is disabled."""

    def load(self) -> "NullCache":
        return self

    def now(self) -> float:
        return time.time()

    def get(self, key: str) -> Optional[CacheEntry]:
        return None

    def put(self, key: str, entry: CacheEntry) -> None:
        pass

    def flush(self) -> None:
        pass
