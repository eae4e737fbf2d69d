"""
Tests for placeholder replacement ahead of EXPLAIN.
"""

import pytest

from querylens.analyzer import QueryDeanonymizer
from querylens.analyzer.deanonymizer import sample_value


replace = QueryDeanonymizer.replace_parameters_for_explain


class TestReplaceParameters:
    """Context-aware sample values."""

    def test_email_and_in_list(self):
        sql = "SELECT * FROM users WHERE email = ? AND id IN (?, ?)"
        assert replace(sql) == (
            "SELECT * FROM users WHERE email = 'sample@example.com' AND id IN (1, 1)"
        )

    def test_between_dates(self):
        sql = "SELECT id FROM orders WHERE created_at BETWEEN ? AND ?"
        assert replace(sql) == (
            "SELECT id FROM orders WHERE created_at BETWEEN '2024-01-01' AND '2024-12-31'"
        )

    def test_between_numeric_column(self):
        sql = "SELECT id FROM products WHERE price BETWEEN ? AND ?"
        assert replace(sql) == "SELECT id FROM products WHERE price BETWEEN 1 AND 100"

    def test_between_on_word_containing_numeric_token(self):
        sql = "SELECT id FROM t WHERE storage BETWEEN ? AND ?"
        assert replace(sql) == (
            "SELECT id FROM t WHERE storage BETWEEN '2024-01-01' AND '2024-12-31'"
        )

    def test_like(self):
        sql = "SELECT id FROM users WHERE name LIKE ?"
        assert replace(sql) == "SELECT id FROM users WHERE name LIKE '%sample%'"

    @pytest.mark.parametrize(
        "column,expected",
        [
            ("status", "'active'"),
            ("name", "'sample'"),
            ("user_id", "1"),
            ("quantity", "1"),
            ("updated_at", "'2024-01-01'"),
            ("t.`email`", "'sample@example.com'"),
            ("mystery", "1"),
            ("message", "'sample'"),
            ("country", "'sample'"),
            ("page_title", "'sample'"),
            ("language", "'sample'"),
            ("message_count", "1"),
            ("is_active", "1"),
        ],
    )
    def test_comparison_by_column_name(self, column, expected):
        assert replace(f"SELECT 1 FROM t WHERE {column} = ?") == (
            f"SELECT 1 FROM t WHERE {column} = {expected}"
        )

    def test_placeholder_in_string_is_preserved(self):
        sql = "SELECT '?' AS q FROM t WHERE id = ?"
        assert replace(sql) == "SELECT '?' AS q FROM t WHERE id = 1"

    def test_placeholder_in_comment_is_preserved(self):
        sql = "SELECT id FROM t -- why?\nWHERE id = ?"
        assert replace(sql) == "SELECT id FROM t -- why?\nWHERE id = 1"

    def test_string_literal_does_not_leak_context(self):
        sql = "SELECT id FROM t WHERE note = 'x IN (' AND status = ?"
        assert replace(sql) == "SELECT id FROM t WHERE note = 'x IN (' AND status = 'active'"

    @pytest.mark.parametrize("sql", ["", "SELECT id FROM users"])
    def test_no_placeholders_unchanged(self, sql):
        assert replace(sql) == sql


class TestCounting:
    """Placeholder detection."""

    def test_count_ignores_strings_and_comments(self):
        sql = "SELECT '?', \"?\" FROM t /* ? */ WHERE a = ? AND b = ?"
        assert QueryDeanonymizer.count_parameters(sql) == 2

    def test_has_parameters(self):
        assert QueryDeanonymizer.has_parameters("SELECT ? FROM dual")
        assert not QueryDeanonymizer.has_parameters("SELECT '?' FROM dual")

    def test_unknown_context_defaults_to_numeric(self):
        assert sample_value("SELECT ") == "1"
