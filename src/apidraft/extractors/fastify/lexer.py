"""
Small lexical helpers for JavaScript / TypeScript source.

These are not a parser. They know just enough about string literals,
template literals and comments to count bracket depth correctly, which is
what route and handler extraction needs.
"""
from __future__ import annotations

from typing import Optional

QUOTES = ("'", '"', "`")
OPENERS = {"(": ")", "[": "]", "{": "}"}
CLOSERS = {")", "]", "}"}


def skip_string(text: str, i: int) -> int:
    """Given text[i] is a quote, return the index just past the closing quote."""
    quote = text[i]
    j = i + 1
    n = len(text)
    while j < n:
        c = text[j]
        if c == "\\":
            j += 2
            continue
        if c == quote:
            return j + 1
        if quote != "`" and c == "\n":
            # unterminated single-line string; stop at the line end
            return j
        j += 1
    return n


def mask_comments(text: str) -> str:
    """
    Replace every comment character with a space, keeping newlines and
    offsets intact. String and template literals are left untouched.
    """
    out = list(text)
    i = 0
    n = len(text)
    while i < n:
        c = text[i]
        if c in QUOTES:
            i = skip_string(text, i)
            continue
        if c == "/" and i + 1 < n:
            nxt = text[i + 1]
            if nxt == "/":
                j = text.find("\n", i)
                j = n if j == -1 else j
                for k in range(i, j):
                    out[k] = " "
                i = j
                continue
            if nxt == "*":
                j = text.find("*/", i + 2)
                j = n if j == -1 else j + 2
                for k in range(i, j):
                    if out[k] != "\n":
                        out[k] = " "
                i = j
                continue
        i += 1
    return "".join(out)


def find_closing(text: str, open_index: int) -> int:
    """
    Index of the bracket matching text[open_index], or -1 when unbalanced.
    Expects comments already masked.
    """
    stack: list[str] = []
    i = open_index
    n = len(text)
    while i < n:
        c = text[i]
        if c in QUOTES:
            i = skip_string(text, i)
            continue
        if c in OPENERS:
            stack.append(OPENERS[c])
        elif c in CLOSERS:
            if not stack or stack[-1] != c:
                return -1
            stack.pop()
            if not stack:
                return i
        i += 1
    return -1


def skip_ws(text: str, i: int) -> int:
    n = len(text)
    while i < n and text[i].isspace():
        i += 1
    return i


def scan_argument(text: str, start: int) -> tuple[int, int]:
    """
    Return (begin, end) of one call argument starting at `start`: the span
    up to the next ',' or ')' at bracket depth zero, whitespace trimmed.
    end is -1 when the argument list is never closed.
    """
    begin = skip_ws(text, start)
    depth = 0
    i = begin
    n = len(text)
    while i < n:
        c = text[i]
        if c in QUOTES:
            i = skip_string(text, i)
            continue
        if c in OPENERS:
            depth += 1
        elif c in CLOSERS:
            if depth == 0:
                break
            depth -= 1
        elif c == "," and depth == 0:
            break
        i += 1
    else:
        return begin, -1
    end = i
    while end > begin and text[end - 1].isspace():
        end -= 1
    return begin, end


def read_string_literal(text: str, i: int) -> Optional[tuple[str, int]]:
    """Read a quoted or template literal at text[i]; returns (value, end)."""
    if i >= len(text) or text[i] not in QUOTES:
        return None
    end = skip_string(text, i)
    if end > len(text) or text[end - 1] != text[i]:
        return None
    return text[i + 1 : end - 1], end


def block_after(text: str, start: int) -> Optional[tuple[int, int]]:
    """
    Locate the first '{ ... }' block at or after `start` and return
    (open, close) indices, skipping over a parenthesised parameter list
    first so destructured parameters are not mistaken for the body.
    """
    i = start
    n = len(text)
    while i < n and text[i] not in "({":
        if text[i] in QUOTES:
            i = skip_string(text, i)
            continue
        i += 1
    if i >= n:
        return None
    if text[i] == "(":
        close = find_closing(text, i)
        if close == -1:
            return None
        i = text.find("{", close + 1)
        if i == -1:
            return None
    close = find_closing(text, i)
    if close == -1:
        return None
    return i, close


def line_of(text: str, index: int) -> int:
    return text.count("\n", 0, index) + 1
