"""Tests for the command-line interface."""

import io
import json

import pytest
from sqlscope.cli import main

USERS = "test-project.test-dataset.users"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "BROADCAST_UNQUALIFIED",
        "SCHEMA_LOOKUP_WORKERS",
        "SCHEMA_FILE",
        "ENVIRONMENT",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(f"SQLSCOPE_{name}", raising=False)


class TestAnalyzeCommand:
    """Test the ``analyze`` subcommand."""

    def test_text_output(self, capsys):
        main(["analyze", "--sql", f"SELECT id, name FROM {USERS}"])
        out = capsys.readouterr().out
        assert "Table Dependencies:" in out
        assert f"{USERS}:\n  - id\n  - name" in out
        assert "  - created_at (TIMESTAMP)" in out

    def test_json_output(self, capsys):
        main(["analyze", "--sql", "SELECT o.amount FROM orders o", "--format", "json"])
        data = json.loads(capsys.readouterr().out)
        assert data["leaf_tables"] == ["orders"]
        assert data["table_columns"] == {"orders": ["amount"]}

    def test_files(self, tmp_path, capsys):
        (tmp_path / "a.sql").write_text("SELECT id FROM users")
        (tmp_path / "b.sql").write_text("SELECT * FROM orders")
        main(["analyze", str(tmp_path / "a.sql"), str(tmp_path / "b.sql"), "--format", "json"])
        data = json.loads(capsys.readouterr().out)
        assert data["a.sql"]["table_columns"] == {"users": ["id"]}
        assert data["b.sql"]["table_columns"] == {"orders": []}

    def test_stdin(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO("SELECT id FROM users"))
        main(["analyze"])
        assert "users:\n  - id" in capsys.readouterr().out

    def test_missing_file(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main(["analyze", str(tmp_path / "missing.sql")])
        assert excinfo.value.code == 1
        assert "File not found" in capsys.readouterr().err

    def test_no_broadcast(self, capsys):
        sql = "SELECT id FROM a JOIN b ON a.k = b.k"
        main(["analyze", "--sql", sql, "--no-broadcast", "--format", "json"])
        data = json.loads(capsys.readouterr().out)
        assert data["table_columns"] == {"a": ["k"], "b": ["k"]}

    def test_schema_file(self, tmp_path, capsys):
        catalog = tmp_path / "catalog.json"
        catalog.write_text(json.dumps({"p.d.t": {"a": "INTEGER"}}))
        main(["analyze", "--sql", "SELECT a FROM p.d.t", "--schema-file", str(catalog)])
        assert "  - a (INTEGER)" in capsys.readouterr().out

    def test_schema_disabled_outside_local(self, monkeypatch, capsys):
        monkeypatch.setenv("SQLSCOPE_ENVIRONMENT", "production")
        main(["analyze", "--sql", f"SELECT id FROM {USERS}"])
        assert "Schema Information:" not in capsys.readouterr().out


class TestMain:
    """Test argument handling."""

    def test_no_command_prints_help(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main([])
        assert excinfo.value.code == 0
        assert "analyze" in capsys.readouterr().out

    def test_unknown_format_rejected(self):
        with pytest.raises(SystemExit):
            main(["analyze", "--sql", "SELECT 1", "--format", "xml"])
