"""Depth-tracked scanning helpers shared by the decomposer and the extractor.

All helpers skip quoted text, so parentheses and commas inside string
literals or quoted identifiers never affect nesting.
"""

from __future__ import annotations

import re
from typing import Iterator, Optional

QUOTES = "'\"`"


def skip_quoted(text: str, start: int) -> int:
    """Return the index just past the quoted run opening at ``start``.

    Handles doubled-quote and backslash escapes. An unterminated quote runs
    to the end of the text.
    """
    quote = text[start]
    i = start + 1
    n = len(text)
    while i < n:
        char = text[i]
        if char == "\\" and quote != "`":
            i += 2
            continue
        if char == quote:
            if i + 1 < n and text[i + 1] == quote:
                i += 2
                continue
            return i + 1
        i += 1
    return n


def find_closing(text: str, open_pos: int) -> Optional[int]:
    """Index of the parenthesis matching the one at ``open_pos``, or None."""
    depth = 0
    i = open_pos
    n = len(text)
    while i < n:
        char = text[i]
        if char in QUOTES:
            i = skip_quoted(text, i)
            continue
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return None


def paren_balance(text: str) -> int:
    """Nesting depth left open at the end of ``text``; -1 on a stray ')'."""
    depth = 0
    i = 0
    n = len(text)
    while i < n:
        char = text[i]
        if char in QUOTES:
            i = skip_quoted(text, i)
            continue
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                return -1
        i += 1
    return depth


def flatten(text: str) -> str:
    """Blank out literal contents and everything nested inside parentheses.

    The result has the same length as ``text``, so offsets found in it can
    be used to slice the original. Only depth-0 characters survive, which
    makes clause keywords and separators safe to search with plain regexes.
    """
    out = list(text)
    depth = 0
    i = 0
    n = len(text)
    while i < n:
        char = text[i]
        if char in QUOTES:
            end = skip_quoted(text, i)
            closed = end - 1 > i and text[end - 1] == char
            lo, hi = (i + 1, end - 1 if closed else end) if depth == 0 else (i, end)
            for j in range(lo, hi):
                out[j] = " "
            i = end
            continue
        if char == "(":
            if depth > 0:
                out[i] = " "
            depth += 1
        elif char == ")" and depth > 0:
            depth -= 1
            if depth > 0:
                out[i] = " "
        elif depth > 0:
            out[i] = " "
        i += 1
    return "".join(out)


def blank_literals(text: str) -> str:
    """Replace the contents of string literals with spaces."""
    out = list(text)
    i = 0
    n = len(text)
    while i < n:
        char = text[i]
        if char in "'\"":
            end = skip_quoted(text, i)
            for j in range(i + 1, max(i + 1, end - 1)):
                out[j] = " "
            i = end
            continue
        i += 1
    return "".join(out)


def split_top_level(text: str, sep: str = ",") -> list[str]:
    """Split ``text`` on ``sep`` occurrences at parenthesis depth 0."""
    flat = flatten(text)
    pieces: list[str] = []
    last = 0
    for i, char in enumerate(flat):
        if char == sep:
            pieces.append(text[last:i])
            last = i + 1
    pieces.append(text[last:])
    return [piece.strip() for piece in pieces if piece.strip()]


def top_level_matches(pattern: re.Pattern, text: str) -> Iterator[re.Match]:
    """Matches of ``pattern`` that lie at parenthesis depth 0 outside literals."""
    return pattern.finditer(flatten(text))
