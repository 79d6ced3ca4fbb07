"""SQL parser module — decomposes a normalized query into a tree of scopes."""

from __future__ import annotations

import logging
import re

from sqlscope.core.models import QueryScope, ScopeKind
from sqlscope.core.scanner import (
    QUOTES,
    find_closing,
    paren_balance,
    skip_quoted,
    top_level_matches,
)

logger = logging.getLogger(__name__)

_WITH = re.compile(r"WITH\s+(?:(RECURSIVE)\s+)?", re.IGNORECASE)
_CTE_HEAD = re.compile(
    r"\s*([A-Za-z_][\w$-]*)\s*(?:\([^()]*\)\s*)?AS\s*(?:(?:NOT\s+)?MATERIALIZED\s*)?\(",
    re.IGNORECASE,
)
_COMMA = re.compile(r"\s*,")
_QUERY_START = re.compile(r"\s*(?:SELECT|WITH)\b", re.IGNORECASE)
_SET_OPERATOR = re.compile(
    r"\b(?:UNION|INTERSECT|EXCEPT)(?:\s+(?:ALL|DISTINCT))?\b", re.IGNORECASE
)
_STAR_BEFORE = re.compile(r"\*\s*$")

# Placeholder left in a parent's text where a child scope was cut out.
SUBQUERY_PLACEHOLDER = "( )"


class _Decomposer:
    """Builds the scope tree for one query; discarded after the call."""

    def __init__(self) -> None:
        self._next_id = 0

    def new_scope(self, kind: ScopeKind, text: str, **kwargs) -> QueryScope:
        scope = QueryScope(scope_id=self._next_id, kind=kind, text=text, **kwargs)
        self._next_id += 1
        return scope

    def build(self, scope: QueryScope) -> QueryScope:
        body = self._split_with(scope)
        branches = _split_branches(body)

        if len(branches) > 1:
            scope.own_text = ""
            for branch in branches:
                self.build(scope.add_child(self.new_scope(ScopeKind.BRANCH, branch)))
        else:
            scope.own_text = self._cut_subqueries(scope, body)
            if paren_balance(scope.own_text) != 0:
                _diagnose(scope, "unbalanced parentheses")
        return scope

    def _split_with(self, scope: QueryScope) -> str:
        """Register the scope's CTEs as children and return the query body."""
        text = scope.text
        match = _WITH.match(text)
        if match is None:
            return text

        recursive = match.group(1) is not None
        pos = match.end()
        while True:
            head = _CTE_HEAD.match(text, pos)
            if head is None:
                _diagnose(scope, f"unmatched WITH at offset {pos}")
                return text[pos:].strip()

            name = head.group(1)
            open_pos = head.end() - 1
            close = find_closing(text, open_pos)
            if close is None:
                cte = scope.add_child(
                    self.new_scope(ScopeKind.CTE, "", name=name, recursive=recursive)
                )
                _diagnose(cte, f"unterminated parenthesis at offset {open_pos}")
                return ""

            cte = scope.add_child(
                self.new_scope(
                    ScopeKind.CTE,
                    text[open_pos + 1 : close].strip(),
                    name=name,
                    recursive=recursive,
                )
            )
            self.build(cte)

            pos = close + 1
            comma = _COMMA.match(text, pos)
            if comma is None:
                break
            pos = comma.end()

        return text[pos:].strip()

    def _cut_subqueries(self, scope: QueryScope, text: str) -> str:
        """Register parenthesized subqueries as children; return the rest."""
        pieces: list[str] = []
        last = 0
        i = 0
        n = len(text)
        while i < n:
            char = text[i]
            if char in QUOTES:
                i = skip_quoted(text, i)
                continue
            if char == "(" and _QUERY_START.match(text, i + 1):
                pieces.append(text[last:i])
                pieces.append(SUBQUERY_PLACEHOLDER)
                close = find_closing(text, i)
                if close is None:
                    child = scope.add_child(self.new_scope(ScopeKind.SUBQUERY, ""))
                    _diagnose(child, f"unterminated parenthesis at offset {i}")
                    last = n
                    break
                child = scope.add_child(
                    self.new_scope(ScopeKind.SUBQUERY, text[i + 1 : close].strip())
                )
                self.build(child)
                last = i = close + 1
                continue
            i += 1

        pieces.append(text[last:])
        return "".join(pieces)


def _split_branches(text: str) -> list[str]:
    """Split on top-level UNION / INTERSECT / EXCEPT operators."""
    bounds: list[tuple[int, int]] = []
    for match in top_level_matches(_SET_OPERATOR, text):
        # BigQuery's SELECT * EXCEPT (col) is a projection modifier.
        if _STAR_BEFORE.search(text, 0, match.start()):
            continue
        bounds.append((match.start(), match.end()))

    if not bounds:
        return [text]

    branches: list[str] = []
    last = 0
    for start, end in bounds:
        branches.append(text[last:start].strip())
        last = end
    branches.append(text[last:].strip())
    return [branch for branch in branches if branch]


def _diagnose(scope: QueryScope, message: str) -> None:
    scope.diagnostics.append(f"{scope.label()}: {message}")
    logger.warning("Malformed scope %s: %s", scope.label(), message)


def decompose(sql: str) -> QueryScope:
    """Split normalized SQL into a tree of query scopes.

    The root is the MAIN scope. Its children are, in order, the CTEs of a
    leading WITH clause, then the set-operation branches or parenthesized
    subqueries of the query body; the same decomposition is applied to every
    child. Malformed parts are recorded as diagnostics on the scope they
    occur in and never abort the decomposition.

    Args:
        sql: Normalized SQL text.

    Returns:
        The root QueryScope.
    """
    decomposer = _Decomposer()
    root = decomposer.new_scope(ScopeKind.MAIN, sql.strip())
    return decomposer.build(root)
