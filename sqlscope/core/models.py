"""Data models for query scopes, table references and lineage results."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Iterator, Optional

from pydantic import BaseModel, Field

# Table identifier for an unqualified column that could not be attributed.
UNATTRIBUTED = "<unattributed>"

# Binding target for aliases of derived tables and table functions.
DERIVED = "<derived>"

WILDCARD = "*"


class ScopeKind(str, enum.Enum):
    """Kind of a query scope."""

    MAIN = "main"
    CTE = "cte"
    SUBQUERY = "subquery"
    BRANCH = "branch"  # one operand of UNION / INTERSECT / EXCEPT


@dataclass(eq=False)
class QueryScope:
    """A node of the scope tree built for a single query."""

    scope_id: int
    kind: ScopeKind
    text: str
    name: Optional[str] = None
    recursive: bool = False
    own_text: str = ""
    children: list[QueryScope] = field(default_factory=list)
    parent: Optional[QueryScope] = field(default=None, repr=False)
    diagnostics: list[str] = field(default_factory=list)

    @property
    def cte_children(self) -> list[QueryScope]:
        return [c for c in self.children if c.kind == ScopeKind.CTE]

    def add_child(self, child: QueryScope) -> QueryScope:
        child.parent = self
        self.children.append(child)
        return child

    def walk(self) -> Iterator[QueryScope]:
        """Yield this scope and its descendants in pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()

    def in_text_order(self) -> Iterator[QueryScope]:
        """Yield scopes in the order their text starts in the query.

        A scope's CTEs precede it; its other children follow it.
        """
        for cte in self.cte_children:
            yield from cte.in_text_order()
        yield self
        for child in self.children:
            if child.kind != ScopeKind.CTE:
                yield from child.in_text_order()

    def cte_names(self) -> set[str]:
        """Lower-cased names of every CTE defined in this scope's subtree."""
        return {s.name.lower() for s in self.walk() if s.kind == ScopeKind.CTE and s.name}

    def label(self) -> str:
        if self.kind == ScopeKind.CTE:
            return f"cte {self.name}"
        return f"{self.kind.value} #{self.scope_id}"


class TableRef(BaseModel):
    """A table read by a FROM or JOIN clause."""

    qualified_name: str
    alias: Optional[str] = None
    scope_id: int = 0

    @property
    def key(self) -> str:
        return self.qualified_name.lower()

    @property
    def parts(self) -> list[str]:
        return self.qualified_name.split(".")

    def __str__(self) -> str:
        return self.qualified_name


class ColumnUsage(BaseModel):
    """A column attributed to a table (or to the unattributed sentinel)."""

    table: str
    column: str
    resolved: bool = True

    @property
    def is_wildcard(self) -> bool:
        return self.column == WILDCARD

    @property
    def is_unattributed(self) -> bool:
        return self.table == UNATTRIBUTED

    def __str__(self) -> str:
        return f"{self.table}.{self.column}"


@dataclass
class AliasScope:
    """Alias bindings of one scope, falling back to the enclosing scope."""

    parent: Optional[AliasScope] = None
    bindings: dict[str, str] = field(default_factory=dict)
    tables: list[str] = field(default_factory=list)

    def bind(self, name: str, qualified_name: str) -> None:
        self.bindings[name.lower()] = qualified_name

    def bind_derived(self, alias: str) -> None:
        self.bindings[alias.lower()] = DERIVED

    def add_table(self, qualified_name: str) -> None:
        if qualified_name.lower() not in {t.lower() for t in self.tables}:
            self.tables.append(qualified_name)

    def resolve(self, qualifier: str) -> Optional[str]:
        """Return the qualified name bound to ``qualifier``, or None."""
        key = qualifier.lower()
        scope: Optional[AliasScope] = self
        while scope is not None:
            if key in scope.bindings:
                return scope.bindings[key]
            scope = scope.parent
        return None


@dataclass
class ScopeResult:
    """Tables and column usages found in one scope."""

    scope: QueryScope
    tables: list[TableRef]
    aliases: AliasScope
    usages: list[ColumnUsage]


class LineageResult(BaseModel):
    """Leaf tables of a query, the columns used from each and their schema."""

    leaf_tables: list[str] = Field(default_factory=list)
    table_columns: dict[str, list[str]] = Field(default_factory=dict)
    table_schemas: dict[str, dict[str, str]] = Field(default_factory=dict)
    unresolved_columns: dict[str, list[str]] = Field(default_factory=dict)
    diagnostics: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.leaf_tables

    def columns_for(self, table: str) -> Optional[list[str]]:
        """Columns used from ``table``; None when the table was never seen."""
        for name, columns in self.table_columns.items():
            if name.lower() == table.lower():
                return columns
        return None

    def uses_all_columns(self, table: str) -> bool:
        return self.columns_for(table) == []
