"""
Tests for query anonymization, fingerprinting and sensitive-term detection.
"""

import pytest


class TestAnonymize:
    """Literal replacement."""

    def test_strings_and_numbers(self, anonymizer):
        sql = "SELECT * FROM t WHERE name = 'Bob' AND id = 5"
        assert anonymizer.anonymize(sql) == "SELECT * FROM t WHERE name = ? AND id = ?"

    def test_double_quoted_strings(self, anonymizer):
        sql = 'SELECT id FROM users WHERE email = "bob@example.com"'
        assert anonymizer.anonymize(sql) == "SELECT id FROM users WHERE email = ?"

    def test_identifiers_with_digits_are_kept(self, anonymizer):
        sql = "SELECT col1 FROM t2 WHERE x = 3"
        assert anonymizer.anonymize(sql) == "SELECT col1 FROM t2 WHERE x = ?"

    def test_backtick_identifiers_are_kept(self, anonymizer):
        sql = "SELECT `col` FROM `order_items` WHERE `qty` > 10"
        assert anonymizer.anonymize(sql) == "SELECT `col` FROM `order_items` WHERE `qty` > ?"

    def test_in_list(self, anonymizer):
        sql = "SELECT id FROM t WHERE id IN (1, 2, 3)"
        assert anonymizer.anonymize(sql) == "SELECT id FROM t WHERE id IN (?, ?, ?)"

    def test_decimal_numbers(self, anonymizer):
        sql = "SELECT id FROM products WHERE price > 19.99"
        assert anonymizer.anonymize(sql) == "SELECT id FROM products WHERE price > ?"

    def test_prefixed_string_literals(self, anonymizer):
        sql = "SELECT x'ABCD', b'0101', N'caf', 0x1F FROM t2 WHERE x = 'y'"
        assert anonymizer.anonymize(sql) == "SELECT ?, ?, ?, ? FROM t2 WHERE x = ?"

    def test_no_literals_unchanged(self, anonymizer):
        sql = "SELECT id, name FROM users"
        assert anonymizer.anonymize(sql) == sql

    def test_unterminated_string_is_masked_to_end(self, anonymizer):
        sql = "SELECT * FROM t WHERE name = 'Bob"
        assert anonymizer.anonymize(sql) == "SELECT * FROM t WHERE name = ?"

    @pytest.mark.parametrize("sql", ["", None])
    def test_empty(self, anonymizer, sql):
        assert anonymizer.anonymize(sql) == ""


class TestRegexFallback:
    """The regex stage follows the same contract as the token stage."""

    def test_matches_token_stage(self, anonymizer):
        sql = "SELECT * FROM t WHERE name = 'O''Brien' AND id = 5 AND flag = 0x1F"
        assert anonymizer.anonymize_with_regex(sql) == (
            "SELECT * FROM t WHERE name = ? AND id = ? AND flag = ?"
        )

    def test_prefixed_string_literals(self, anonymizer):
        sql = "SELECT x'ABCD', b'0101', N'caf' FROM t2 WHERE tax = '1'"
        assert anonymizer.anonymize_with_regex(sql) == (
            "SELECT ?, ?, ? FROM t2 WHERE tax = ?"
        )

    def test_comments_and_identifiers_survive(self, anonymizer):
        sql = "SELECT `a1` FROM t /* id = 5 */ WHERE b = 'x'"
        assert anonymizer.anonymize_with_regex(sql) == (
            "SELECT `a1` FROM t /* id = 5 */ WHERE b = ?"
        )


class TestFingerprint:
    """Grouping key normalization."""

    def test_normalizes_case_spacing_and_literals(self, anonymizer):
        assert anonymizer.fingerprint("select * from t where id=1") == (
            "select * from t where id = ?"
        )

    def test_equivalent_queries_share_fingerprint(self, anonymizer):
        a = anonymizer.fingerprint("SELECT * FROM users WHERE id = 1")
        b = anonymizer.fingerprint("select *   from users\n where id=42;")
        c = anonymizer.fingerprint("/* dashboard */ SELECT * FROM users WHERE id = 7")

        assert a == b == c

    def test_different_structure_differs(self, anonymizer):
        a = anonymizer.fingerprint("SELECT * FROM users WHERE id = 1")
        b = anonymizer.fingerprint("SELECT * FROM users WHERE email = 'x'")

        assert a != b

    def test_empty(self, anonymizer):
        assert anonymizer.fingerprint("") == ""


class TestSensitiveData:
    """Heuristic sensitive-term detection."""

    @pytest.mark.parametrize(
        "sql",
        [
            "SELECT password FROM users",
            "SELECT credit_card FROM payments",
            "SELECT ssn FROM employees",
            "SELECT api_key FROM integrations",
            "SELECT * FROM sessions WHERE token = ?",
            "UPDATE apps SET client_secret = ?",
            "SELECT phone FROM contacts",
            "SELECT email FROM users",
        ],
    )
    def test_detects_sensitive_terms(self, anonymizer, sql):
        assert anonymizer.has_sensitive_data(sql) is True

    @pytest.mark.parametrize(
        "sql",
        ["SELECT id, total FROM orders", "SELECT discarded FROM items", ""],
    )
    def test_ignores_ordinary_queries(self, anonymizer, sql):
        assert anonymizer.has_sensitive_data(sql) is False

    def test_terms_in_pattern_order(self, anonymizer):
        assert anonymizer.sensitive_terms("SELECT email, phone FROM users") == [
            "phone",
            "email",
        ]
