"""Schema providers and the schema enricher.

A schema provider answers ``get_schema(project, dataset, table)`` with a
column-to-type mapping, or None when it knows nothing about the table.
Providers must not raise; :func:`enrich` still guards every call so a
misbehaving provider can never abort an analysis.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class SchemaProvider(ABC):
    """Abstract interface for table schema lookups."""

    @abstractmethod
    def get_schema(
        self, project: str, dataset: str, table: str
    ) -> Optional[dict[str, str]]:
        """Return the column -> type mapping of a table, or None if unknown."""


class InMemorySchemaProvider(SchemaProvider):
    """Schema provider backed by a dictionary keyed by ``project.dataset.table``.

    Example:
        >>> provider = InMemorySchemaProvider({"p.d.users": {"id": "STRING"}})
        >>> provider.get_schema("p", "d", "users")
        {'id': 'STRING'}
        >>> provider.get_schema("p", "d", "missing") is None
        True
    """

    def __init__(self, schemas: Optional[dict[str, dict[str, str]]] = None) -> None:
        self._schemas: dict[str, dict[str, str]] = {}
        for name, columns in (schemas or {}).items():
            self._schemas[name.lower()] = dict(columns)

    @classmethod
    def with_sample_data(cls) -> InMemorySchemaProvider:
        """A provider pre-loaded with the sample ``test-project`` catalog."""
        return cls(SAMPLE_SCHEMAS)

    def get_schema(
        self, project: str, dataset: str, table: str
    ) -> Optional[dict[str, str]]:
        schema = self._schemas.get(f"{project}.{dataset}.{table}".lower())
        return dict(schema) if schema is not None else None

    def add_table_schema(
        self, project: str, dataset: str, table: str, schema: dict[str, str]
    ) -> None:
        self._schemas[f"{project}.{dataset}.{table}".lower()] = dict(schema)

    def clear(self) -> None:
        self._schemas.clear()


class JsonFileSchemaProvider(SchemaProvider):
    """Schema provider reading a JSON catalog file.

    The file maps ``project.dataset.table`` to ``{column: type}`` objects. It
    is read on first lookup; a missing or malformed file yields no schema for
    any table.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._delegate: Optional[InMemorySchemaProvider] = None

    def _load(self) -> InMemorySchemaProvider:
        if self._delegate is None:
            schemas: dict[str, dict[str, str]] = {}
            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
                if not isinstance(data, dict):
                    raise ValueError("top-level JSON value must be an object")
                for name, columns in data.items():
                    if isinstance(columns, dict):
                        schemas[name] = {str(k): str(v) for k, v in columns.items()}
            except (OSError, ValueError) as e:
                logger.warning("Could not load schema catalog %s: %s", self.path, e)
            self._delegate = InMemorySchemaProvider(schemas)
        return self._delegate

    def get_schema(
        self, project: str, dataset: str, table: str
    ) -> Optional[dict[str, str]]:
        return self._load().get_schema(project, dataset, table)


def _lookup(provider: SchemaProvider, table: str) -> Optional[dict[str, str]]:
    project, dataset, name = table.split(".")
    try:
        schema = provider.get_schema(project, dataset, name)
    except Exception as e:
        logger.warning("Schema lookup failed for %s: %s", table, e)
        return None
    if not schema:
        logger.debug("No schema found for %s", table)
        return None
    return dict(schema)


def enrich(
    leaf_tables: list[str],
    provider: SchemaProvider,
    max_workers: int = 4,
) -> dict[str, dict[str, str]]:
    """Look up the schema of every ``project.dataset.table`` leaf table.

    Names without exactly three dotted parts are skipped. Lookups run on a
    thread pool; failures and empty answers leave the table out of the
    result. The result follows the order of ``leaf_tables``.

    Args:
        leaf_tables: Qualified leaf table names.
        provider: The schema provider to consult.
        max_workers: Upper bound on concurrent lookups.

    Returns:
        Mapping of qualified name to column -> type.
    """
    candidates = [t for t in dict.fromkeys(leaf_tables) if len(t.split(".")) == 3]
    if not candidates:
        return {}

    workers = max(1, min(max_workers, len(candidates)))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        found = list(pool.map(lambda t: _lookup(provider, t), candidates))

    return {table: schema for table, schema in zip(candidates, found) if schema}


SAMPLE_SCHEMAS: dict[str, dict[str, str]] = {
    "test-project.test-dataset.users": {
        "id": "STRING",
        "name": "STRING",
        "email": "STRING",
        "created_at": "TIMESTAMP",
    },
    "test-project.test-dataset.orders": {
        "order_id": "STRING",
        "user_id": "STRING",
        "amount": "FLOAT",
        "status": "STRING",
        "created_at": "TIMESTAMP",
    },
    "test-project.test-dataset.products": {
        "product_id": "STRING",
        "name": "STRING",
        "description": "STRING",
        "price": "DECIMAL",
        "category": "STRING",
        "in_stock": "BOOLEAN",
    },
    "test-project.test-dataset.order_items": {
        "order_item_id": "STRING",
        "order_id": "STRING",
        "product_id": "STRING",
        "quantity": "INTEGER",
        "unit_price": "DECIMAL",
    },
}
