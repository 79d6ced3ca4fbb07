"""SQL normalizer: strips comments and identifier quoting and collapses whitespace."""

from __future__ import annotations

import re

from sqlparse import lexer
from sqlparse import tokens as T

_WHITESPACE = re.compile(r"\s+")


def _unquote(value: str) -> str:
    """Strip backtick or bracket quoting from an identifier token."""
    if len(value) >= 2:
        if value[0] == "`" and value[-1] == "`":
            return value[1:-1].replace("``", "`")
        if value[0] == "[" and value[-1] == "]":
            return value[1:-1]
    return value


def normalize(raw: str) -> str:
    """Return the canonical form of a SQL string.

    Comments become whitespace, `quoted` and [quoted] identifiers lose their
    quoting, and runs of whitespace outside string literals collapse to a
    single space. Unterminated comment or quote delimiters are passed through
    as ordinary text.

    Raises:
        TypeError: If ``raw`` is not text.
    """
    parts: list[str] = []
    pending_space = False

    for ttype, value in lexer.tokenize(raw):
        if ttype in T.Comment or ttype in T.Whitespace:
            pending_space = True
            continue
        if pending_space and parts:
            parts.append(" ")
        pending_space = False

        if ttype in T.Name:
            value = _unquote(value)
        elif ttype not in T.Literal:
            # multi-word tokens such as "GROUP  BY" or "LEFT\nJOIN"
            value = _WHITESPACE.sub(" ", value)
        parts.append(value)

    return "".join(parts).strip()
