"""Report builder: assembles and renders lineage results."""

from __future__ import annotations

from typing import Optional

from sqlscope.core.models import LineageResult


def build(
    tables: list[str],
    columns: dict[str, list[str]],
    schema: dict[str, dict[str, str]],
    unresolved: Optional[dict[str, list[str]]] = None,
    diagnostics: Optional[list[str]] = None,
) -> LineageResult:
    """Assemble a LineageResult ordered by first-seen table."""
    leaf_tables = list(dict.fromkeys(tables))
    return LineageResult(
        leaf_tables=leaf_tables,
        table_columns={t: list(columns.get(t, [])) for t in leaf_tables},
        table_schemas={t: dict(schema[t]) for t in leaf_tables if t in schema},
        unresolved_columns={k: list(v) for k, v in (unresolved or {}).items()},
        diagnostics=list(diagnostics or []),
    )


def render_text(result: LineageResult) -> str:
    """Render a human-readable lineage report."""
    if result.is_empty:
        return "No table dependencies found in the SQL query.\n"

    lines = ["Table Dependencies:", "==================", ""]
    lines.extend(result.leaf_tables)

    lines += ["", "Used Columns:", "=============", ""]
    for table in result.leaf_tables:
        lines.append(f"{table}:")
        columns = result.table_columns.get(table, [])
        if columns:
            lines.extend(f"  - {column}" for column in columns)
        else:
            lines.append("  All columns used")

    if result.table_schemas:
        lines += ["", "Schema Information:", "===================", ""]
        for table, schema in result.table_schemas.items():
            lines.append(f"{table}:")
            lines.extend(f"  - {column} ({type_name})" for column, type_name in schema.items())

    return "\n".join(lines) + "\n"


def render_error(message: str) -> str:
    return f"Error analyzing SQL:\n==================\n{message}\n"
