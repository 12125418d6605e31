from __future__ import annotations

import os
import re
from pathlib import Path

from apidraft.domain.models import HTTP_METHODS
from apidraft.errors import DirectoryNotFound
from apidraft.repo.ignore import SOURCE_EXTENSIONS, is_source_file, should_ignore_dir


def list_source_files(
    root_dir: str | Path,
    extensions: tuple[str, ...] = SOURCE_EXTENSIONS,
    max_files: int | None = None,
) -> list[str]:
    """
    Return absolute paths (as strings) of JS/TS source files under root_dir,
    sorted for deterministic output.

    Symlinked directories are followed, but each real directory is visited
    once, so link cycles terminate.
    """
    root = Path(root_dir)
    if not root.is_dir():
        raise DirectoryNotFound(str(root_dir))

    out: list[str] = []
    visited: set[str] = set()
    for dirpath, dirs, files in _walk(root):
        real = os.path.realpath(dirpath)
        if real in visited:
            dirs[:] = []
            continue
        visited.add(real)

        root_p = Path(dirpath)
        dirs[:] = sorted(d for d in dirs if not should_ignore_dir(root_p / d))

        for f in sorted(files):
            if is_source_file(f, extensions):
                out.append(str((root_p / f).absolute()))

    out.sort()
    if max_files is not None:
        out = out[:max_files]
    return out


def _walk(root: Path):
    return os.walk(root, followlinks=True)


def read_text(path: str | Path, max_bytes: int = 2_000_000) -> str:
    with open(path, "rb") as f:
        data = f.read(max_bytes)
    return data.decode("utf-8", errors="ignore")


def file_matches(path: str, pattern: re.Pattern[str], max_bytes: int = 200_000) -> bool:
    try:
        text = read_text(path, max_bytes=max_bytes)
    except OSError:
        return False
    return pattern.search(text) is not None


# same shape the route extractor accepts: `.get(`, `.get<`, `. get (`
_REGISTRATION_HINT = re.compile(r"\.\s*(?:" + "|".join(HTTP_METHODS) + r")\s*[(<]")


def select_candidate_route_files(files: list[str]) -> list[str]:
    """Keep files that look like they register at least one route."""
    return [p for p in files if file_matches(p, _REGISTRATION_HINT)]
