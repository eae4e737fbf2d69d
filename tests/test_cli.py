"""
Tests for the querylens command line.

Commands are driven through Typer's CliRunner; assertions stick to exit
codes, plain-echo output and --json payloads.
"""

import json

import pytest
from typer.testing import CliRunner

from querylens.cli.main import app


runner = CliRunner()

MARKDOWN = (
    "# Intro\n"
    "Some intro text that is long enough.\n"
    "\n"
    "## Details\n"
    "Detail text that is also long enough here.\n"
)


class TestGlobalOptions:
    """Callback options."""

    def test_version(self):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert "QueryLens version 0.3.0" in result.output

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        for command in ("analyze", "risk", "anonymize", "chunk", "docs"):
            assert command in result.output


class TestQueryCommands:
    """anonymize, fingerprint and explain-params."""

    def test_anonymize(self):
        result = runner.invoke(app, ["anonymize", "SELECT * FROM t WHERE name = 'Bob' AND id = 5"])

        assert result.exit_code == 0
        assert result.stdout.splitlines()[0] == "SELECT * FROM t WHERE name = ? AND id = ?"

    def test_anonymize_json(self):
        result = runner.invoke(app, ["anonymize", "--json", "SELECT id FROM orders WHERE total > 100"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["templated"] == "SELECT id FROM orders WHERE total > ?"
        assert data["fingerprint"] == "select id from orders where total > ?"
        assert data["hasSensitiveData"] is False

    def test_anonymize_from_stdin(self):
        result = runner.invoke(app, ["anonymize", "-"], input="SELECT 1 FROM t WHERE a = 'x'\n")

        assert result.exit_code == 0
        assert "SELECT ? FROM t WHERE a = ?" in result.stdout

    def test_fingerprint(self):
        result = runner.invoke(app, ["fingerprint", "SELECT * FROM t WHERE id=1"])

        assert result.exit_code == 0
        assert result.stdout.strip() == "select * from t where id = ?"

    def test_explain_params(self):
        result = runner.invoke(app, ["explain-params", "SELECT * FROM users WHERE id IN (?, ?)"])

        assert result.exit_code == 0
        assert "SELECT * FROM users WHERE id IN (1, 1)" in result.stdout
        assert "Replaced 2 placeholder(s)" in result.output


class TestAnalysisCommands:
    """analyze, risk and validate."""

    def test_risk_requires_confirmation(self):
        result = runner.invoke(app, ["risk", "DROP TABLE users"])

        assert result.exit_code == 2
        assert "CRITICAL" in result.output

    def test_risk_low(self):
        result = runner.invoke(app, ["risk", "SELECT 1"])

        assert result.exit_code == 0
        assert "LOW" in result.output

    def test_validate_invalid(self):
        result = runner.invoke(app, ["validate", "DELETE FROM users"])

        assert result.exit_code == 1
        assert "Invalid" in result.output

    def test_validate_valid(self):
        result = runner.invoke(app, ["validate", "SELECT id FROM users WHERE id = 1"])

        assert result.exit_code == 0
        assert "Valid" in result.output

    def test_analyze_json(self):
        result = runner.invoke(app, ["analyze", "--json", "SELECT * FROM users"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["parse"]["queryType"] == "select"
        assert data["risk"]["level"] == "low"
        assert "ai" not in data

    def test_analyze_table(self):
        result = runner.invoke(app, ["analyze", "SELECT * FROM users"])

        assert result.exit_code == 0
        assert "select_star" in result.output
        assert "[WARNING]" in result.output

    def test_analyze_with_ai_and_no_provider(self):
        result = runner.invoke(
            app, ["analyze", "--json", "--ai", "--provider", "none", "SELECT * FROM users"]
        )

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["ai"]["outcome"] == "static_only"
        assert data["ai"]["result"]["summary"] == "Query type: select, Complexity: 1"

    def test_unknown_provider_is_rejected(self):
        result = runner.invoke(app, ["analyze", "--ai", "--provider", "gemini", "SELECT 1"])
        assert result.exit_code != 0


class TestDocumentationCommands:
    """chunk and docs."""

    @pytest.fixture
    def guide(self, tmp_path):
        path = tmp_path / "guide.md"
        path.write_text(MARKDOWN)
        return path

    def test_chunk_smart_json(self, guide):
        result = runner.invoke(
            app, ["chunk", str(guide), "--smart", "--min-size", "10", "--title", "Guide", "--json"]
        )

        assert result.exit_code == 0
        chunks = json.loads(result.stdout)
        assert [c["metadata"]["title"] for c in chunks] == ["Guide - Intro", "Guide - Details"]

    def test_chunk_title_defaults_to_file_stem(self, guide):
        result = runner.invoke(
            app, ["chunk", str(guide), "--strategy", "markdown", "--min-size", "10", "--json"]
        )

        assert result.exit_code == 0
        assert json.loads(result.stdout)[0]["metadata"]["title"] == "guide - Intro"

    def test_chunk_invalid_options(self, guide):
        result = runner.invoke(
            app, ["chunk", str(guide), "--max-size", "50", "--min-size", "60"]
        )

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_chunk_empty_document(self, tmp_path):
        path = tmp_path / "empty.txt"
        path.write_text("   \n")

        result = runner.invoke(app, ["chunk", str(path)])

        assert result.exit_code == 0
        assert "No chunks produced." in result.output

    def test_docs_json(self):
        result = runner.invoke(
            app, ["docs", "--json", "SELECT name FROM users ORDER BY created_at LIMIT 10"]
        )

        assert result.exit_code == 0
        docs = json.loads(result.stdout)
        assert docs[0]["id"] == "mysql-order-by"
        assert len(docs) <= 3

    def test_docs_max_docs(self):
        result = runner.invoke(
            app, ["docs", "--json", "-n", "1", "SELECT name FROM users ORDER BY created_at"]
        )

        assert result.exit_code == 0
        assert len(json.loads(result.stdout)) == 1

    def test_docs_nothing_relevant(self):
        result = runner.invoke(app, ["docs", "SELECT * FROM t"])

        assert result.exit_code == 0
        assert "No relevant documentation found." in result.output

    def test_docs_broken_corpus(self, tmp_path):
        (tmp_path / "mysql-docs.json").write_text("{broken")

        result = runner.invoke(app, ["docs", "--docs-dir", str(tmp_path), "SELECT 1"])

        assert result.exit_code == 1
