"""
Tests for the query service facade (parse, template, risk, validate).
"""

from querylens.analyzer import QueryType, RiskLevel
from querylens.analyzer.risk import ISSUE_DROP, ISSUE_INSERT
from querylens.analyzer.service import UNRECOGNIZED_WARNING


class TestParseAndTemplate:
    """Pass-through operations."""

    def test_parse(self, service):
        result = service.parse("SELECT * FROM users")

        assert result.query_type == QueryType.SELECT
        assert result.has_anti_pattern("select_star")

    def test_template_query(self, service):
        templated = service.template_query("SELECT * FROM users WHERE password = 'hunter2'")

        assert templated.original == "SELECT * FROM users WHERE password = 'hunter2'"
        assert templated.templated == "SELECT * FROM users WHERE password = ?"
        assert templated.fingerprint == "select * from users where password = ?"
        assert templated.has_sensitive_data is True

    def test_template_query_without_sensitive_terms(self, service):
        templated = service.template_query("SELECT id FROM orders WHERE total > 100")

        assert templated.templated == "SELECT id FROM orders WHERE total > ?"
        assert templated.has_sensitive_data is False

    def test_analyze_risk_uses_config_threshold(self, service):
        assert service.analyze_risk("DROP TABLE users").level == RiskLevel.CRITICAL


class TestValidate:
    """Error/warning partitioning."""

    def test_clean_query(self, service):
        result = service.validate("SELECT id FROM users WHERE id = 1")

        assert result.valid is True
        assert result.errors == ()
        assert result.warnings == ()
        assert result.risk_level == RiskLevel.LOW

    def test_high_risk_issues_are_errors(self, service):
        result = service.validate("DELETE FROM users")

        assert result.valid is False
        assert "DELETE without WHERE clause - will affect all rows" in result.errors
        assert result.risk_level == RiskLevel.HIGH

    def test_warning_anti_pattern_is_a_warning(self, service):
        result = service.validate("SELECT * FROM users")

        assert result.valid is True
        assert result.warnings == (
            "Warning: Using SELECT * retrieves all columns, which may be inefficient",
        )

    def test_critical_anti_pattern_is_an_error(self, service):
        result = service.validate("SELECT * FROM a, b")

        assert result.valid is False
        assert result.risk_level == RiskLevel.MEDIUM
        assert result.errors == (
            "Critical: Potential Cartesian product detected - missing join conditions",
        )
        assert len(result.warnings) == 1

    def test_medium_issue_is_a_warning(self, service):
        result = service.validate("INSERT INTO t VALUES (1)")

        assert result.valid is True
        assert result.warnings == (ISSUE_INSERT,)

    def test_empty_query(self, service):
        result = service.validate("")

        assert result.valid is False
        assert result.errors == ("Empty query",)

    def test_unrecognized_statement_warns(self, service):
        result = service.validate("INVALID SQL")

        assert result.valid is True
        assert UNRECOGNIZED_WARNING in result.warnings

    def test_drop_is_error_with_parse_warning(self, service):
        result = service.validate("DROP TABLE users")

        assert result.valid is False
        assert result.errors == (ISSUE_DROP,)
        assert UNRECOGNIZED_WARNING in result.warnings
        assert result.risk_level == RiskLevel.CRITICAL

    def test_schema_is_accepted_and_ignored(self, service):
        result = service.validate("SELECT id FROM users", schema={"tables": []})
        assert result.valid is True

    def test_to_dict(self, service):
        data = service.validate("DELETE FROM users").to_dict()

        assert data["valid"] is False
        assert data["riskLevel"] == "HIGH"
        assert isinstance(data["errors"], list)
