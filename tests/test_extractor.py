"""Tests for table resolution and column tracking."""

from sqlscope.core.extractor import resolve_tables, track_columns
from sqlscope.core.models import DERIVED, UNATTRIBUTED, AliasScope
from sqlscope.core.parser import decompose

USERS = "test-project.test-dataset.users"
ORDERS = "test-project.test-dataset.orders"


def _usages(sql, broadcast=True):
    scope = decompose(sql)
    _, aliases = resolve_tables(scope)
    return {(u.table, u.column) for u in track_columns(scope, aliases, broadcast)}


class TestResolveTables:
    """Test FROM / JOIN table extraction and alias binding."""

    def test_single_table(self):
        tables, aliases = resolve_tables(decompose(f"SELECT id FROM {USERS}"))
        assert [t.qualified_name for t in tables] == [USERS]
        assert aliases.resolve("users") == USERS
        assert aliases.resolve(USERS) == USERS

    def test_aliases(self):
        sql = f"SELECT u.name FROM {USERS} u JOIN {ORDERS} AS o ON u.id = o.user_id"
        tables, aliases = resolve_tables(decompose(sql))
        assert [t.qualified_name for t in tables] == [USERS, ORDERS]
        assert [t.alias for t in tables] == ["u", "o"]
        assert aliases.resolve("U") == USERS
        assert aliases.resolve("o") == ORDERS

    def test_join_flavours(self):
        sql = (
            "SELECT a.id FROM a LEFT OUTER JOIN b ON a.id = b.id "
            "CROSS JOIN c FULL JOIN d USING (id), e"
        )
        tables, _ = resolve_tables(decompose(sql))
        assert [t.qualified_name for t in tables] == ["a", "b", "c", "d", "e"]

    def test_stops_at_where(self):
        tables, _ = resolve_tables(decompose("SELECT id FROM users WHERE id = 1 ORDER BY id"))
        assert [t.qualified_name for t in tables] == ["users"]

    def test_duplicate_table_listed_once(self):
        sql = "SELECT a.id FROM users a JOIN users b ON a.id = b.manager_id"
        tables, aliases = resolve_tables(decompose(sql))
        assert [t.qualified_name for t in tables] == ["users"]
        assert aliases.resolve("b") == "users"

    def test_derived_table_alias(self):
        tables, aliases = resolve_tables(decompose("SELECT x.id FROM (SELECT id FROM t) x"))
        assert tables == []
        assert aliases.resolve("x") == DERIVED

    def test_table_function_alias(self):
        tables, aliases = resolve_tables(decompose("SELECT n FROM UNNEST(items) AS n"))
        assert tables == []
        assert aliases.resolve("n") == DERIVED

    def test_parent_fallback(self):
        parent = AliasScope()
        parent.bind("u", USERS)
        _, aliases = resolve_tables(decompose("SELECT 1 FROM orders o"), parent)
        assert aliases.resolve("u") == USERS
        assert aliases.tables == ["orders"]

    def test_malformed_scope_yields_nothing(self):
        root = decompose("SELECT a FROM (SELECT b FROM t")
        tables, _ = resolve_tables(root.children[0])
        assert tables == []


class TestTrackColumns:
    """Test column extraction and attribution."""

    def test_qualified_columns(self):
        sql = f"SELECT u.name, o.order_id FROM {USERS} u JOIN {ORDERS} o ON u.id = o.user_id"
        assert _usages(sql) == {
            (USERS, "name"),
            (USERS, "id"),
            (ORDERS, "order_id"),
            (ORDERS, "user_id"),
        }

    def test_unqualified_broadcast(self):
        assert _usages("SELECT id FROM a JOIN b ON a.k = b.k") == {
            ("a", "id"),
            ("b", "id"),
            ("a", "k"),
            ("b", "k"),
        }

    def test_unqualified_without_broadcast(self):
        usages = _usages("SELECT id FROM a JOIN b ON a.k = b.k", broadcast=False)
        assert (UNATTRIBUTED, "id") in usages
        assert ("a", "id") not in usages

    def test_output_aliases_are_not_columns(self):
        usages = _usages("SELECT amount AS total, status label FROM orders")
        assert usages == {("orders", "amount"), ("orders", "status")}

    def test_function_names_skipped(self):
        usages = _usages("SELECT COUNT(o.order_id) AS n, MAX(amount) FROM orders o")
        assert usages == {("orders", "order_id"), ("orders", "amount")}

    def test_keywords_and_literals_skipped(self):
        sql = (
            "SELECT CASE WHEN status = 'done' THEN amount ELSE 0 END AS paid "
            "FROM orders WHERE created_at > DATE '2024-01-01' AND note IS NOT NULL"
        )
        assert _usages(sql) == {
            ("orders", "status"),
            ("orders", "amount"),
            ("orders", "created_at"),
            ("orders", "note"),
        }

    def test_window_function(self):
        sql = (
            "SELECT user_id, ROW_NUMBER() OVER (PARTITION BY user_id ORDER BY created_at DESC) AS rn "
            "FROM orders"
        )
        assert _usages(sql) == {("orders", "user_id"), ("orders", "created_at")}

    def test_named_window(self):
        sql = (
            "SELECT SUM(amount) OVER w AS running FROM orders "
            "WINDOW w AS (PARTITION BY user_id ORDER BY created_at)"
        )
        assert _usages(sql) == {
            ("orders", "amount"),
            ("orders", "user_id"),
            ("orders", "created_at"),
        }

    def test_group_by_and_having(self):
        sql = "SELECT status, SUM(amount) FROM orders GROUP BY status HAVING SUM(amount) > 10"
        assert _usages(sql) == {("orders", "status"), ("orders", "amount")}

    def test_wildcard(self):
        assert _usages("SELECT * FROM orders") == {("orders", "*")}

    def test_qualified_wildcard(self):
        sql = "SELECT o.*, u.name FROM orders o JOIN users u ON o.user_id = u.id"
        usages = _usages(sql)
        assert ("orders", "*") in usages
        assert ("users", "name") in usages
        assert ("users", "*") not in usages

    def test_hyphenated_qualifier(self):
        sql = f"SELECT {USERS}.email FROM {USERS}"
        assert _usages(sql) == {(USERS, "email")}

    def test_subtraction_without_spaces(self):
        sql = "SELECT o.amount-r.amount FROM orders o JOIN refunds r ON o.order_id = r.order_id"
        assert _usages(sql) == {
            ("orders", "amount"),
            ("refunds", "amount"),
            ("orders", "order_id"),
            ("refunds", "order_id"),
        }

    def test_derived_columns_dropped(self):
        assert _usages("SELECT x.id FROM (SELECT id FROM t) x") == set()

    def test_unresolved_qualifier(self):
        scope = decompose("SELECT z.a FROM t")
        _, aliases = resolve_tables(scope)
        usages = track_columns(scope, aliases)
        assert len(usages) == 1
        assert usages[0].table == "z"
        assert usages[0].column == "a"
        assert not usages[0].resolved

    def test_correlated_reference(self):
        root = decompose(
            "SELECT u.name FROM users u WHERE EXISTS "
            "(SELECT 1 FROM orders o WHERE o.user_id = u.id)"
        )
        _, outer = resolve_tables(root)
        sub = root.children[0]
        _, inner = resolve_tables(sub, outer)
        usages = {(u.table, u.column) for u in track_columns(sub, inner)}
        assert usages == {("orders", "user_id"), ("users", "id")}
