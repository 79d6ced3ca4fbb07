"""Leaf classifier — merges per-scope results and drops CTE-defined names."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlscope.core.models import ScopeResult

logger = logging.getLogger(__name__)


@dataclass
class Classification:
    """Leaf tables and their columns, merged over the whole scope tree."""

    tables: list[str] = field(default_factory=list)
    columns: dict[str, list[str]] = field(default_factory=dict)
    unresolved: dict[str, list[str]] = field(default_factory=dict)
    diagnostics: list[str] = field(default_factory=list)


def _append_unique(values: list[str], value: str) -> None:
    if value not in values:
        values.append(value)


def _text_order(results: list[ScopeResult]) -> list[ScopeResult]:
    """Reorder results so scopes come in the order they start in the query."""
    roots = [r.scope for r in results if r.scope.parent is None]
    if not roots:
        return list(results)
    rank = {scope: i for i, scope in enumerate(roots[0].in_text_order())}
    return sorted(results, key=lambda r: rank.get(r.scope, len(rank)))


def classify(results: list[ScopeResult]) -> Classification:
    """Merge scope results into leaf tables and their used columns.

    Every CTE name defined anywhere in the query is intermediate: table
    references and column usages carrying such a name are dropped, however
    deeply they occur, including inside the CTE bodies themselves. Every
    leaf table gets a column list; an empty list means the query reads all
    of its columns (``SELECT *``, or no column named).

    Args:
        results: Per-scope tables and usages, one per scope of a single
            scope tree, in any order.

    Returns:
        A Classification with tables and columns in the order they first
        appear in the query text.
    """
    results = _text_order(results)
    ctes: set[str] = set()
    for result in results:
        if result.scope.parent is None:
            ctes |= result.scope.cte_names()

    names: dict[str, str] = {}
    columns: dict[str, list[str]] = {}
    wildcard: set[str] = set()
    unresolved: dict[str, list[str]] = {}
    diagnostics: list[str] = []

    for result in results:
        diagnostics.extend(result.scope.diagnostics)
        for ref in result.tables:
            if ref.key in ctes:
                logger.debug("Skipping CTE reference %s in %s", ref, result.scope.label())
                continue
            names.setdefault(ref.key, ref.qualified_name)
            columns.setdefault(ref.key, [])

    for result in results:
        for usage in result.usages:
            key = usage.table.lower()
            if usage.is_unattributed:
                logger.debug("Dropping unattributed column %s", usage.column)
                continue
            if key in ctes:
                continue
            if not usage.resolved or key not in names:
                _append_unique(unresolved.setdefault(usage.table, []), usage.column)
                continue
            if usage.is_wildcard:
                wildcard.add(key)
                continue
            _append_unique(columns[key], usage.column)

    return Classification(
        tables=list(names.values()),
        columns={
            name: [] if key in wildcard else columns[key] for key, name in names.items()
        },
        unresolved=unresolved,
        diagnostics=diagnostics,
    )
