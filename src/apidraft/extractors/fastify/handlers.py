from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional, Protocol

from apidraft.errors import DirectoryNotFound
from apidraft.extractors.fastify.lexer import (
    block_after,
    mask_comments,
    scan_argument,
)
from apidraft.repo.scanner import list_source_files, read_text

logger = logging.getLogger(__name__)

_IDENT_RE = re.compile(r"^[A-Za-z_$][\w$]*$")


class HandlerResolver(Protocol):
    def resolve(self, symbolic_name: str) -> Optional[str]:
        """Return the handler's source text, or None when it cannot be found."""
        ...


def strip_namespace(symbolic_name: str) -> str:
    """`fastify.cartsGet` -> `cartsGet`."""
    return symbolic_name.strip().rsplit(".", 1)[-1].strip()


class LexicalHandlerResolver:
    """
    Resolve handler references by scanning source text.

    Decorated handlers (`fastify.decorate('cartsGet', cartsGetFunction)`)
    are looked up under plugins_dir first; only when no decoration exists
    anywhere there do we fall back to a plain `async function <name>` under
    routes_dir. File listings, file contents and answers are memoised for
    the lifetime of the resolver.
    """

    def __init__(self, routes_dir: str | Path, plugins_dir: str | Path | None):
        self.routes_dir = Path(routes_dir)
        self.plugins_dir = Path(plugins_dir) if plugins_dir else None
        self._files: dict[Path, list[str]] = {}
        self._texts: dict[str, str] = {}
        self._masked_texts: dict[str, str] = {}
        self._resolved: dict[str, Optional[str]] = {}

    def resolve(self, symbolic_name: str) -> Optional[str]:
        name = strip_namespace(symbolic_name)
        if not name:
            return None
        if name not in self._resolved:
            self._resolved[name] = self._resolve_uncached(name)
        return self._resolved[name]

    def _resolve_uncached(self, name: str) -> Optional[str]:
        plugin_files = self._list(self.plugins_dir)

        decorated = False
        for path in plugin_files:
            masked = self._masked(path)
            for target_begin, target_end in _decorations(masked, name):
                decorated = True
                source = self._text(path)
                target = source[target_begin:target_end].strip()
                if not _IDENT_RE.match(target):
                    # decorate('name', async function (...) { ... })
                    return target
                body = self._find_function(target, [path] + [p for p in plugin_files if p != path])
                if body is not None:
                    return body
                logger.debug("Decoration %s -> %s found in %s but no definition", name, target, path)

        if decorated:
            return None

        return self._find_function(name, self._list(self.routes_dir), async_only=True)

    def _find_function(self, fn_name: str, files: list[str], async_only: bool = False) -> Optional[str]:
        patterns = [_function_decl_re(fn_name, is_async=True)]
        if not async_only:
            patterns.append(_function_decl_re(fn_name, is_async=False))
        for pattern in patterns:
            for path in files:
                masked = self._masked(path)
                m = pattern.search(masked)
                if m is None:
                    continue
                block = block_after(masked, m.end())
                if block is None:
                    continue
                return self._text(path)[m.start() : block[1] + 1]
        return None

    def _list(self, root: Optional[Path]) -> list[str]:
        if root is None:
            return []
        if root not in self._files:
            try:
                self._files[root] = list_source_files(root)
            except DirectoryNotFound:
                logger.debug("Handler search directory missing: %s", root)
                self._files[root] = []
        return self._files[root]

    def _text(self, path: str) -> str:
        if path not in self._texts:
            try:
                self._texts[path] = read_text(path)
            except OSError as e:
                logger.warning("Could not read %s: %s", path, e)
                self._texts[path] = ""
        return self._texts[path]

    def _masked(self, path: str) -> str:
        if path not in self._masked_texts:
            self._masked_texts[path] = mask_comments(self._text(path))
        return self._masked_texts[path]


def resolve_handler(symbolic_name: str, routes_dir: str | Path, plugins_dir: str | Path | None) -> Optional[str]:
    return LexicalHandlerResolver(routes_dir, plugins_dir).resolve(symbolic_name)


def _decorations(masked: str, name: str):
    """Yield (begin, end) spans of the target argument of decorate('name', target)."""
    pattern = re.compile(r"\bdecorate\s*\(\s*(['\"`])" + re.escape(name) + r"\1\s*,")
    for m in pattern.finditer(masked):
        begin, end = scan_argument(masked, m.end())
        if end != -1 and end > begin:
            yield begin, end


def _function_decl_re(fn_name: str, is_async: bool) -> re.Pattern[str]:
    prefix = r"\basync\s+function\s*\*?\s*" if is_async else r"(?<!async )\bfunction\s*\*?\s*"
    return re.compile(prefix + re.escape(fn_name) + r"\s*(?=[(<])")
