"""Lineage extractor — resolves table references and column usages per scope."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

from sqlparse.keywords import KEYWORDS_COMMON

from sqlscope.core.models import (
    DERIVED,
    UNATTRIBUTED,
    WILDCARD,
    AliasScope,
    ColumnUsage,
    QueryScope,
    TableRef,
)
from sqlscope.core.scanner import blank_literals, flatten, split_top_level

logger = logging.getLogger(__name__)

KEYWORDS: frozenset[str] = frozenset(KEYWORDS_COMMON) | frozenset(
    {
        "ALL", "ANY", "APPLY", "ASC", "BETWEEN", "BOTH", "CROSS", "CURRENT",
        "CURRENT_DATE", "CURRENT_TIME", "CURRENT_TIMESTAMP", "DAY", "DESC",
        "ESCAPE", "EXCEPT", "EXISTS", "FALSE", "FETCH", "FIRST", "FOLLOWING",
        "HAVING", "HOUR", "IGNORE", "ILIKE", "INTERSECT", "INTERVAL", "IS",
        "LAST", "LATERAL", "LIMIT", "MICROSECOND", "MILLISECOND", "MINUTE",
        "MONTH", "NATURAL", "NEXT", "NOT", "NULL", "NULLS", "OFFSET", "ONLY",
        "OVER", "PARTITION", "PRECEDING", "QUALIFY", "QUARTER", "RANGE",
        "RECURSIVE", "RESPECT", "RIGHT", "RLIKE", "ROW", "ROWS", "SECOND",
        "SIMILAR", "SOME", "TABLESAMPLE", "TIES", "TOP", "TRUE", "UNBOUNDED",
        "UNION", "UNKNOWN", "USING", "WEEK", "WINDOW", "WITH", "WITHIN", "YEAR",
    }
)

_SELECT = re.compile(
    r"\bSELECT\s+(?:(?:DISTINCT|ALL)\s+)?(?:AS\s+(?:STRUCT|VALUE)\s+)?(?:TOP\s+\d+\s+)?",
    re.IGNORECASE,
)
_FROM = re.compile(r"\bFROM\b", re.IGNORECASE)
_DISTINCT_BEFORE = re.compile(r"\bDISTINCT\s*$", re.IGNORECASE)
_CLAUSE_END = re.compile(
    r"\b(?:WHERE|GROUP\s+BY|HAVING|QUALIFY|WINDOW|ORDER\s+BY|LIMIT|OFFSET|FETCH|FOR)\b",
    re.IGNORECASE,
)
_JOIN = re.compile(
    r"(?:\b(?:NATURAL\s+)?(?:INNER\s+|CROSS\s+|(?:LEFT|RIGHT|FULL)(?:\s+OUTER)?\s+)?JOIN\b"
    r"|\b(?:CROSS|OUTER)\s+APPLY\b|,)",
    re.IGNORECASE,
)
_CONDITION = re.compile(r"\b(?:ON|USING)\b", re.IGNORECASE)
_DERIVED_ITEM = re.compile(
    r"(?:(?P<fn>[A-Za-z_][\w$.]*)\s*)?\([^()]*\)(?:\s+(?:AS\s+)?(?P<alias>[A-Za-z_][\w$]*))?",
    re.IGNORECASE,
)
_TABLE_ITEM = re.compile(
    r"(?P<name>[A-Za-z_][\w$-]*(?:\.[A-Za-z_0-9][\w$-]*)*)"
    r"(?:\s+(?:AS\s+)?(?P<alias>[A-Za-z_][\w$]*))?",
    re.IGNORECASE,
)
_OUTPUT_ALIAS = re.compile(r"\s+AS\s+[A-Za-z_][\w$]*\s*$", re.IGNORECASE)
_BARE_ALIAS = re.compile(r"(?<=[\w$)\]'\"])\s+(?P<alias>[A-Za-z_][\w$]*)\s*$")
_STAR_ITEM = re.compile(r"^\s*(?:(?P<qualifier>[\w$.-]+)\.)?\*(?:\s|$)")
_REFERENCE = re.compile(
    r"(?<![\w$@:.#])(?:[A-Za-z_][\w$]*(?:-[\w$]+)*\.)*[A-Za-z_][\w$]*"
)
_AS_BEFORE = re.compile(r"\bAS\s*$", re.IGNORECASE)
_CALL_AFTER = re.compile(r"\s*\(")
_WINDOW_NAME_BEFORE = re.compile(r"\b(?:OVER|WINDOW)\s+$", re.IGNORECASE)
_WINDOW_DEF_AFTER = re.compile(r"\s+AS\s*\(", re.IGNORECASE)
_LITERAL_AFTER = re.compile(r"\s*'")
_IDENTIFIER = re.compile(r"[A-Za-z_][\w$]*(?:\.[A-Za-z_][\w$]*)*")


@dataclass
class _FromItem:
    """One table, derived table or table function of a FROM clause."""

    name: Optional[str]
    alias: Optional[str]
    condition: str = ""


@dataclass
class _Clauses:
    """The parts of a scope's own text that the tracker reads."""

    select_list: str
    items: list[_FromItem]
    tail: str


def _is_keyword(word: Optional[str]) -> bool:
    return word is not None and word.upper() in KEYWORDS


def _parse_from_item(text: str, flat: str) -> Optional[_FromItem]:
    """Read ``<name> [[AS] alias] [ON ... | USING (...)]`` from one piece."""
    offset = len(flat) - len(flat.lstrip())
    flat_piece = flat[offset:]
    piece = text[offset:]
    if not flat_piece:
        return None

    condition = ""
    cond = _CONDITION.search(flat_piece)
    if cond is not None:
        condition = piece[cond.end() :]
        flat_piece = flat_piece[: cond.start()]

    derived = _DERIVED_ITEM.match(flat_piece)
    if derived is not None:
        alias = derived.group("alias")
        return _FromItem(None, None if _is_keyword(alias) else alias, condition)

    table = _TABLE_ITEM.match(flat_piece)
    if table is None or _is_keyword(table.group("name")):
        return None
    alias = table.group("alias")
    return _FromItem(table.group("name"), None if _is_keyword(alias) else alias, condition)


def _from_items(text: str, flat: str) -> list[_FromItem]:
    items: list[_FromItem] = []
    last = 0
    for match in _JOIN.finditer(flat):
        item = _parse_from_item(text[last : match.start()], flat[last : match.start()])
        if item is not None:
            items.append(item)
        last = match.end()
    item = _parse_from_item(text[last:], flat[last:])
    if item is not None:
        items.append(item)
    return items


def _split_clauses(text: str) -> _Clauses:
    """Locate the SELECT list, the FROM items and the trailing clauses."""
    flat = flatten(text)

    select = _SELECT.search(flat)
    list_start = select.end() if select else 0

    from_match = None
    for match in _FROM.finditer(flat, list_start):
        if not _DISTINCT_BEFORE.search(flat, 0, match.start()):
            from_match = match
            break

    if from_match is None:
        end = _CLAUSE_END.search(flat, list_start)
        list_end = end.start() if end else len(text)
        return _Clauses(text[list_start:list_end], [], text[list_end:])

    end = _CLAUSE_END.search(flat, from_match.end())
    clause_end = end.start() if end else len(text)
    items = _from_items(
        text[from_match.end() : clause_end], flat[from_match.end() : clause_end]
    )
    return _Clauses(text[list_start : from_match.start()], items, text[clause_end:])


def resolve_tables(
    scope: QueryScope, parent: Optional[AliasScope] = None
) -> tuple[list[TableRef], AliasScope]:
    """Extract the FROM/JOIN table references of a scope and bind their aliases.

    Only the scope's own text is read; child scopes are masked out. Each
    table is bound under its alias, its qualified name and, when it has no
    alias, its last dotted segment. Aliases of derived tables and table
    functions are bound as derived.

    Args:
        scope: The scope to resolve.
        parent: Alias scope of the enclosing query, used as lookup fallback.

    Returns:
        The de-duplicated table references in order of appearance, and the
        scope's AliasScope.
    """
    aliases = AliasScope(parent=parent)
    if scope.diagnostics:
        return [], aliases

    tables: list[TableRef] = []
    seen: set[str] = set()
    for item in _split_clauses(scope.own_text).items:
        if item.name is None:
            if item.alias:
                aliases.bind_derived(item.alias)
            continue

        aliases.bind(item.name, item.name)
        if item.alias:
            aliases.bind(item.alias, item.name)
        elif "." in item.name:
            aliases.bind(item.name.rsplit(".", 1)[1], item.name)

        aliases.add_table(item.name)
        if item.name.lower() not in seen:
            seen.add(item.name.lower())
            tables.append(
                TableRef(qualified_name=item.name, alias=item.alias, scope_id=scope.scope_id)
            )

    logger.debug("%s reads %s", scope.label(), [t.qualified_name for t in tables])
    return tables, aliases


def _attribute(ref: str, aliases: AliasScope, broadcast: bool) -> list[ColumnUsage]:
    """Attribute one dotted reference to the table(s) it reads."""
    if "." not in ref:
        if broadcast and aliases.tables:
            return [ColumnUsage(table=t, column=ref) for t in aliases.tables]
        return [ColumnUsage(table=UNATTRIBUTED, column=ref)]

    parts = ref.split(".")
    for k in range(len(parts) - 1, 0, -1):
        target = aliases.resolve(".".join(parts[:k]))
        if target == DERIVED:
            return []
        if target is not None:
            if "-" in parts[k]:
                break
            return [ColumnUsage(table=target, column=parts[k])]

    if "-" in ref and "." in ref.split("-", 1)[0]:
        # a.x-b.y is a subtraction, not a hyphenated qualifier
        usages: list[ColumnUsage] = []
        for piece in ref.split("-"):
            if _IDENTIFIER.fullmatch(piece) and (
                "." in piece or not _is_keyword(piece)
            ):
                usages.extend(_attribute(piece, aliases, broadcast))
        return usages

    qualifier, column = ref.rsplit(".", 1)
    logger.debug("Unresolved qualifier %r for column %r", qualifier, column)
    return [ColumnUsage(table=qualifier, column=column, resolved=False)]


def _references(text: str) -> list[str]:
    """Dotted column references in an expression, skipping non-column words."""
    text = blank_literals(text)
    refs: list[str] = []
    for match in _REFERENCE.finditer(text):
        ref = match.group()
        if _CALL_AFTER.match(text, match.end()):
            continue
        window = max(0, match.start() - 16)
        if _AS_BEFORE.search(text, window, match.start()):
            continue
        if "." not in ref:
            if _is_keyword(ref) or _LITERAL_AFTER.match(text, match.end()):
                continue
            # named windows: OVER w, WINDOW w AS (...)
            if _WINDOW_NAME_BEFORE.search(text, window, match.start()):
                continue
            if _WINDOW_DEF_AFTER.match(text, match.end()):
                continue
        refs.append(ref)
    return refs


def _select_items(select_list: str) -> list[str]:
    """Split a SELECT list into expressions with output aliases removed."""
    items: list[str] = []
    for item in split_top_level(select_list):
        flat = flatten(item)
        alias = _OUTPUT_ALIAS.search(flat)
        if alias is None:
            bare = _BARE_ALIAS.search(flat)
            if bare is not None and not _is_keyword(bare.group("alias")):
                alias = bare
        items.append(item[: alias.start()] if alias else item)
    return items


def _wildcard(item: str, aliases: AliasScope) -> Optional[list[ColumnUsage]]:
    match = _STAR_ITEM.match(flatten(item))
    if match is None:
        return None
    qualifier = match.group("qualifier")
    if qualifier is None:
        return [ColumnUsage(table=t, column=WILDCARD) for t in aliases.tables]
    target = aliases.resolve(qualifier)
    if target == DERIVED:
        return []
    if target is None:
        return [ColumnUsage(table=qualifier, column=WILDCARD, resolved=False)]
    return [ColumnUsage(table=target, column=WILDCARD)]


def track_columns(
    scope: QueryScope, aliases: AliasScope, broadcast: bool = True
) -> list[ColumnUsage]:
    """Extract the column usages of a scope and attribute them to tables.

    Reads the SELECT list, join conditions and trailing WHERE / GROUP BY /
    HAVING / QUALIFY / ORDER BY clauses of the scope's own text. Qualified
    references go to the table their qualifier resolves to; unqualified ones
    are broadcast to every table of the scope, or left unattributed when
    ``broadcast`` is False or the scope reads no table.
    """
    if scope.diagnostics:
        return []

    clauses = _split_clauses(scope.own_text)
    usages: list[ColumnUsage] = []

    for item in _select_items(clauses.select_list):
        wildcard = _wildcard(item, aliases)
        if wildcard is not None:
            usages.extend(wildcard)
            item = _STAR_ITEM.sub("", item, count=1)
        for ref in _references(item):
            usages.extend(_attribute(ref, aliases, broadcast))

    predicates = [item.condition for item in clauses.items] + [clauses.tail]
    for text in predicates:
        for ref in _references(text):
            usages.extend(_attribute(ref, aliases, broadcast))

    return usages
