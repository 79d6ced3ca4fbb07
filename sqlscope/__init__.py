"""sqlscope — Scope-aware SQL lineage: leaf tables, used columns and their schema."""

__version__ = "0.1.0"

from sqlscope.config import LineageConfig
from sqlscope.core.analyzer import analyze
from sqlscope.core.errors import AnalysisError, LineageError
from sqlscope.core.models import (
    ColumnUsage,
    LineageResult,
    QueryScope,
    ScopeKind,
    TableRef,
)
from sqlscope.core.normalizer import normalize
from sqlscope.core.parser import decompose
from sqlscope.core.report import render_text
from sqlscope.core.schema import (
    InMemorySchemaProvider,
    JsonFileSchemaProvider,
    SchemaProvider,
)

__all__ = [
    "analyze",
    "normalize",
    "decompose",
    "render_text",
    "LineageConfig",
    "LineageResult",
    "QueryScope",
    "ScopeKind",
    "TableRef",
    "ColumnUsage",
    "SchemaProvider",
    "InMemorySchemaProvider",
    "JsonFileSchemaProvider",
    "LineageError",
    "AnalysisError",
]
