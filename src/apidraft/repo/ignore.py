from __future__ import annotations

from pathlib import Path

DEFAULT_IGNORES = {
    ".git",
    "node_modules",
    "dist",
    "build",
    "coverage",
    ".next",
    ".turbo",
    ".cache",
    ".swagger-cache",
}

SOURCE_EXTENSIONS = (".ts", ".js", ".mjs", ".cjs", ".mts", ".cts")


def should_ignore_dir(dir_path: Path) -> bool:
    return dir_path.name in DEFAULT_IGNORES


def is_source_file(name: str, extensions: tuple[str, ...] = SOURCE_EXTENSIONS) -> bool:
    # type declarations carry no handler bodies
    if name.endswith((".d.ts", ".d.mts", ".d.cts")):
        return False
    return name.endswith(extensions)
