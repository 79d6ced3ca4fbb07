"""The analysis entry point tying the lineage pipeline together."""

from __future__ import annotations

import logging
from typing import Optional

from sqlscope.config import LineageConfig
from sqlscope.core.errors import AnalysisError
from sqlscope.core.extractor import resolve_tables, track_columns
from sqlscope.core.models import AliasScope, LineageResult, QueryScope, ScopeKind, ScopeResult
from sqlscope.core.normalizer import normalize
from sqlscope.core.parser import decompose
from sqlscope.core.report import build
from sqlscope.core.resolver import classify
from sqlscope.core.schema import SchemaProvider, enrich

logger = logging.getLogger(__name__)


def _resolve_scope(
    scope: QueryScope,
    parent: Optional[AliasScope],
    config: LineageConfig,
    results: list[ScopeResult],
) -> None:
    """Resolve a scope and its descendants, appending results in post-order."""
    # A CTE body cannot see the aliases of the query that defines it.
    tables, aliases = resolve_tables(scope, None if scope.kind == ScopeKind.CTE else parent)
    for child in scope.children:
        _resolve_scope(child, aliases, config, results)
    usages = track_columns(scope, aliases, broadcast=config.broadcast_unqualified)
    results.append(ScopeResult(scope=scope, tables=tables, aliases=aliases, usages=usages))


def analyze(
    sql: str,
    provider: Optional[SchemaProvider] = None,
    config: Optional[LineageConfig] = None,
) -> LineageResult:
    """Extract leaf tables, used columns and schema from a SQL query.

    Args:
        sql: The query text.
        provider: Schema provider consulted for ``project.dataset.table``
            leaf tables. Without one no schema is reported.
        config: Analyzer settings; defaults apply when omitted.

    Returns:
        The LineageResult. Text that contains no query yields an empty result.

    Raises:
        AnalysisError: If the input cannot be normalized at all.
    """
    config = config or LineageConfig()
    try:
        canonical = normalize(sql)
    except TypeError as e:
        raise AnalysisError(f"Cannot analyze SQL input: {e}") from e

    if not canonical:
        return LineageResult()

    root = decompose(canonical)
    results: list[ScopeResult] = []
    _resolve_scope(root, None, config, results)
    classification = classify(results)

    schema: dict[str, dict[str, str]] = {}
    if provider is not None and classification.tables:
        schema = enrich(classification.tables, provider, max_workers=config.schema_lookup_workers)

    logger.debug(
        "Analyzed %d scopes: %d leaf tables", len(results), len(classification.tables)
    )
    return build(
        classification.tables,
        classification.columns,
        schema,
        unresolved=classification.unresolved,
        diagnostics=classification.diagnostics,
    )
