"""
Tests for the AI analysis coordinator.

Providers are in-process fakes so every outcome (static-only, enhanced,
failed, cancelled) can be forced deterministically.
"""

import asyncio

import pytest

from querylens.ai import (
    AIAnalysisCoordinator,
    AIAnalysisResult,
    AIProvider,
    AnalysisOutcome,
    OptimizationSuggestion,
)
from querylens.analyzer import AntiPattern, Severity
from querylens.config import Config
from querylens.exceptions import AnalysisCancelledError, ConfigurationError, ProviderError


SENSITIVE_SQL = "SELECT * FROM users WHERE password = 'hunter2'"


class FakeProvider(AIProvider):
    """Records what it was sent and returns a canned result."""

    name = "Fake"

    def __init__(self, result=None, error=None, delay=0.0):
        self.result = result or AIAnalysisResult(
            summary="AI summary",
            anti_patterns=(
                AntiPattern(type="full_table_scan", severity=Severity.WARNING, message="scan"),
            ),
            optimization_suggestions=(OptimizationSuggestion(title="Add index"),),
            estimated_complexity=7,
        )
        self.error = error
        self.delay = delay
        self.calls = []
        self.closed = False

    async def is_available(self) -> bool:
        return True

    async def analyze_query(self, anonymized_query, context):
        self.calls.append((anonymized_query, context))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


class TestStaticOnly:
    """No provider, or AI turned off."""

    @pytest.mark.asyncio
    async def test_no_provider(self):
        coordinator = AIAnalysisCoordinator(config=Config(ai_provider="none"))
        report = await coordinator.analyze_query("SELECT * FROM users")

        assert report.outcome == AnalysisOutcome.STATIC_ONLY
        assert report.result.summary == "Query type: select, Complexity: 1"
        assert [p.type for p in report.result.anti_patterns] == ["select_star"]
        assert report.result.optimization_suggestions == ()
        assert report.result.estimated_complexity == 1
        assert report.provider is None

    @pytest.mark.asyncio
    async def test_ai_disabled(self, provider):
        coordinator = AIAnalysisCoordinator(provider=provider, config=Config(ai_enabled=False))
        report = await coordinator.analyze_query("SELECT 1")

        assert report.outcome == AnalysisOutcome.STATIC_ONLY
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_sensitive_query_without_provider_is_not_cancelled(self):
        config = Config(ai_provider="none", anonymize_queries=False)
        report = await AIAnalysisCoordinator(config=config).analyze_query(SENSITIVE_SQL)

        assert report.outcome == AnalysisOutcome.STATIC_ONLY


class TestEnhanced:
    """Successful provider calls."""

    @pytest.mark.asyncio
    async def test_merges_static_then_ai(self, provider):
        coordinator = AIAnalysisCoordinator(provider=provider, config=Config())
        report = await coordinator.analyze_query("SELECT * FROM users")

        assert report.outcome == AnalysisOutcome.AI_ENHANCED
        assert report.provider == "Fake"
        assert report.result.summary == "AI summary"
        assert [p.type for p in report.result.anti_patterns] == ["select_star", "full_table_scan"]
        assert report.result.optimization_suggestions[0].title == "Add index"
        assert report.result.estimated_complexity == 7

    @pytest.mark.asyncio
    async def test_static_complexity_when_ai_has_none(self):
        provider = FakeProvider(result=AIAnalysisResult(summary="ok"))
        report = await AIAnalysisCoordinator(provider=provider).analyze_query("SELECT id FROM t")

        assert report.result.estimated_complexity == 1

    @pytest.mark.asyncio
    async def test_sends_anonymized_query(self, provider):
        coordinator = AIAnalysisCoordinator(provider=provider, config=Config())
        await coordinator.analyze_query(SENSITIVE_SQL)

        sent, context = provider.calls[0]
        assert sent == "SELECT * FROM users WHERE password = ?"
        assert context.prompt_query == sent
        assert context.query == SENSITIVE_SQL

    @pytest.mark.asyncio
    async def test_retrieves_documentation(self, provider, retriever):
        coordinator = AIAnalysisCoordinator(provider=provider, retriever=retriever, config=Config())
        report = await coordinator.analyze_query(
            "SELECT name FROM users ORDER BY created_at LIMIT 10", db_type="mysql"
        )

        _, context = provider.calls[0]
        assert 0 < report.docs_retrieved <= 3
        assert context.rag_docs[0].id == "mysql-order-by"

    @pytest.mark.asyncio
    async def test_rag_max_docs_zero(self, provider, retriever):
        config = Config(rag_max_docs=0)
        coordinator = AIAnalysisCoordinator(provider=provider, retriever=retriever, config=config)
        report = await coordinator.analyze_query("SELECT name FROM users ORDER BY created_at")

        assert report.docs_retrieved == 0

    @pytest.mark.asyncio
    async def test_schema_context(self, provider):
        schema = {"database": "shop", "tables": {"users": {"columns": [{"name": "id"}]}}}

        await AIAnalysisCoordinator(provider=provider).analyze_query("SELECT 1", schema)
        _, context = provider.calls[0]
        assert context.schema_context.tables[0].name == "users"

        provider.calls.clear()
        config = Config(include_schema_context=False)
        await AIAnalysisCoordinator(provider=provider, config=config).analyze_query("SELECT 1", schema)
        _, context = provider.calls[0]
        assert context.schema_context is None

    @pytest.mark.asyncio
    async def test_invalid_arguments(self, provider):
        coordinator = AIAnalysisCoordinator(provider=provider)

        with pytest.raises(ConfigurationError):
            await coordinator.analyze_query("SELECT 1", db_type="oracle")
        with pytest.raises(ConfigurationError):
            await coordinator.analyze_query("SELECT 1", {"tables": 5})


class TestFailures:
    """Provider failures degrade to static results."""

    @pytest.mark.asyncio
    async def test_provider_error(self):
        provider = FakeProvider(error=ProviderError("rate limited", provider="Fake"))
        report = await AIAnalysisCoordinator(provider=provider).analyze_query("SELECT * FROM users")

        assert report.outcome == AnalysisOutcome.AI_FAILED
        assert report.error == "rate limited"
        assert report.result.summary == "Query type: select, Complexity: 1"
        assert [p.type for p in report.result.anti_patterns] == ["select_star"]
        assert report.result.optimization_suggestions[0].title == "AI Analysis Unavailable"

    @pytest.mark.asyncio
    async def test_unexpected_exception(self):
        provider = FakeProvider(error=RuntimeError())
        report = await AIAnalysisCoordinator(provider=provider).analyze_query("SELECT 1")

        assert report.outcome == AnalysisOutcome.AI_FAILED
        assert report.error == "RuntimeError"

    @pytest.mark.asyncio
    async def test_malformed_provider_result(self):
        provider = FakeProvider(result={"summary": "not a model"})
        report = await AIAnalysisCoordinator(provider=provider).analyze_query("SELECT * FROM users")

        assert report.outcome == AnalysisOutcome.AI_FAILED
        assert "returned dict" in report.error
        assert report.result.summary == "Query type: select, Complexity: 1"
        assert report.result.optimization_suggestions[0].title == "AI Analysis Unavailable"

    @pytest.mark.asyncio
    async def test_timeout(self):
        provider = FakeProvider(delay=1.0)
        config = Config(ai_timeout_seconds=0.05)
        report = await AIAnalysisCoordinator(provider=provider, config=config).analyze_query("SELECT 1")

        assert report.outcome == AnalysisOutcome.AI_FAILED
        assert "did not respond within" in report.error

    @pytest.mark.asyncio
    async def test_retrieval_failure_is_ignored(self, provider):
        class BrokenRetriever:
            def retrieve(self, *args, **kwargs):
                raise RuntimeError("index corrupt")

        coordinator = AIAnalysisCoordinator(provider=provider, retriever=BrokenRetriever())
        report = await coordinator.analyze_query("SELECT 1")

        assert report.outcome == AnalysisOutcome.AI_ENHANCED
        assert report.docs_retrieved == 0


class TestConsent:
    """Sensitive data with anonymization turned off."""

    @pytest.mark.asyncio
    async def test_no_callback_cancels(self, provider):
        config = Config(anonymize_queries=False)
        coordinator = AIAnalysisCoordinator(provider=provider, config=config)

        with pytest.raises(AnalysisCancelledError):
            await coordinator.analyze_query(SENSITIVE_SQL)
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_declined(self, provider):
        prompts = []

        def confirm(message):
            prompts.append(message)
            return False

        config = Config(anonymize_queries=False)
        coordinator = AIAnalysisCoordinator(provider=provider, config=config, confirm=confirm)

        with pytest.raises(AnalysisCancelledError):
            await coordinator.analyze_query(SENSITIVE_SQL)
        assert "password" in prompts[0]

    @pytest.mark.asyncio
    async def test_async_consent_sends_raw_query(self, provider):
        async def confirm(message):
            return True

        config = Config(anonymize_queries=False)
        coordinator = AIAnalysisCoordinator(provider=provider, config=config, confirm=confirm)
        report = await coordinator.analyze_query(SENSITIVE_SQL)

        assert report.outcome == AnalysisOutcome.AI_ENHANCED
        assert provider.calls[0][0] == SENSITIVE_SQL

    @pytest.mark.asyncio
    async def test_anonymized_sensitive_query_needs_no_consent(self, provider):
        def confirm(message):
            raise AssertionError("consent should not be requested")

        coordinator = AIAnalysisCoordinator(provider=provider, confirm=confirm)
        report = await coordinator.analyze_query(SENSITIVE_SQL)

        assert report.outcome == AnalysisOutcome.AI_ENHANCED


class TestHelpers:
    """Construction and auxiliary operations."""

    @pytest.mark.asyncio
    async def test_create_without_provider(self):
        coordinator = await AIAnalysisCoordinator.create(Config(ai_provider="none"), api_keys={})

        assert coordinator.provider is None
        assert coordinator.provider_info() is None
        assert coordinator.retrieval_stats()["total"] == 13

    @pytest.mark.asyncio
    async def test_create_with_docs_dir(self, tmp_path):
        coordinator = await AIAnalysisCoordinator.create(
            Config(ai_provider="none"), api_keys={}, docs_dir=tmp_path
        )
        assert coordinator.retrieval_stats()["total"] == 0

    def test_generate_fingerprint(self):
        coordinator = AIAnalysisCoordinator()
        assert coordinator.generate_fingerprint("SELECT * FROM t WHERE id=1") == (
            "select * from t where id = ?"
        )

    def test_retrieval_stats_without_retriever(self):
        assert AIAnalysisCoordinator().retrieval_stats()["total"] == 0

    @pytest.mark.asyncio
    async def test_provider_info_and_close(self, provider):
        coordinator = AIAnalysisCoordinator(provider=provider)

        assert coordinator.provider_info() == {"name": "Fake", "available": True}
        await coordinator.aclose()
        assert provider.closed

    def test_to_dict(self):
        report = asyncio.run(AIAnalysisCoordinator().analyze_query("SELECT 1"))
        data = report.to_dict()

        assert data["outcome"] == "static_only"
        assert data["docsRetrieved"] == 0
        assert data["result"]["summary"] == "Query type: select, Complexity: 1"
