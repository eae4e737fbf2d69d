"""
AI analysis coordinator.

Runs the analysis pipeline as a fixed sequence of steps, each with a
declared failure mode:

    1. static analysis        never fails (classifier degrades instead)
    2. provider check         no provider -> STATIC_ONLY result
    3. anonymize + consent    declined consent -> AnalysisCancelledError
    4. doc retrieval          failure -> continue without docs
    5. provider call          failure, timeout or malformed result -> AI_FAILED
    6. merge                  static + AI -> AI_ENHANCED result

Static analysis always completes before the provider is called, so a
complete fallback result exists before anything can go wrong. Apart
from the deliberate cancellation in step 3 and caller misuse (unknown
db_type), analyze_query always returns an AnalysisReport.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from querylens.ai.models import (
    AIAnalysisResult,
    AnalysisOutcome,
    AnalysisReport,
    DatabaseType,
    Difficulty,
    Impact,
    OptimizationSuggestion,
    QueryContext,
    RAGDocument,
    SchemaContext,
)
from querylens.ai.protocol import AIProvider
from querylens.analyzer.anonymizer import QueryAnonymizer
from querylens.analyzer.classifier import QueryClassifier
from querylens.analyzer.models import ParseResult
from querylens.config import Config
from querylens.exceptions import AnalysisCancelledError, ConfigurationError, ProviderError

if TYPE_CHECKING:
    from querylens.retrieval.docs import DocumentationRetriever

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[str], "bool | Awaitable[bool]"]

SENSITIVE_DATA_PROMPT = (
    "Query may contain sensitive data ({terms}). "
    "Send it to the AI provider without anonymization?"
)

AI_UNAVAILABLE = OptimizationSuggestion(
    title="AI Analysis Unavailable",
    description=(
        "Static analysis completed successfully. AI enhancement failed; "
        "check the AI provider configuration for detailed suggestions."
    ),
    impact=Impact.LOW,
    difficulty=Difficulty.EASY,
)


def static_result(parse: ParseResult) -> AIAnalysisResult:
    """Static-only analysis in the full result shape."""
    return AIAnalysisResult(
        summary=f"Query type: {parse.query_type.value}, Complexity: {parse.complexity}",
        anti_patterns=parse.anti_patterns,
        optimization_suggestions=(),
        estimated_complexity=parse.complexity,
    )


def merge_results(parse: ParseResult, ai: AIAnalysisResult) -> AIAnalysisResult:
    """Static anti-patterns first, then the AI's; AI wins everything else."""
    static = static_result(parse)
    return AIAnalysisResult(
        summary=ai.summary or static.summary,
        anti_patterns=parse.anti_patterns + ai.anti_patterns,
        optimization_suggestions=ai.optimization_suggestions,
        estimated_complexity=(
            ai.estimated_complexity
            if ai.estimated_complexity is not None
            else parse.complexity
        ),
        citations=ai.citations,
    )


class AIAnalysisCoordinator:
    """
    Merges static analysis with an optional AI provider.

    Example:
        coordinator = await AIAnalysisCoordinator.create(get_config())
        report = await coordinator.analyze_query("SELECT * FROM orders")
        print(report.outcome, report.result.summary)
    """

    def __init__(
        self,
        provider: AIProvider | None = None,
        retriever: "DocumentationRetriever | None" = None,
        config: Config | None = None,
        confirm: ConfirmCallback | None = None,
        classifier: QueryClassifier | None = None,
        anonymizer: QueryAnonymizer | None = None,
    ) -> None:
        """
        Initialize the coordinator.

        Args:
            provider: AI backend; None means static analysis only.
            retriever: Documentation corpus for prompt grounding.
            config: Toggles (anonymize, schema context, timeout, doc count).
            confirm: Sync or async callable asked before sending sensitive,
                non-anonymized SQL. Absent means consent is not granted.
        """
        self._provider = provider
        self._retriever = retriever
        self._config = config or Config()
        self._confirm = confirm
        self._classifier = classifier or QueryClassifier()
        self._anonymizer = anonymizer or QueryAnonymizer()

    @classmethod
    async def create(
        cls,
        config: Config,
        api_keys: Mapping[str, str] | None = None,
        docs_dir: str | Path | None = None,
        confirm: ConfirmCallback | None = None,
    ) -> "AIAnalysisCoordinator":
        """Build a coordinator with the configured provider and bundled docs."""
        from querylens.ai.factory import api_keys_from_env, create_provider
        from querylens.retrieval.docs import DocumentationRetriever

        keys = api_keys if api_keys is not None else api_keys_from_env()
        provider = await create_provider(config, keys)
        retriever = DocumentationRetriever.load(docs_dir)
        stats = retriever.stats()
        logger.info(
            "Docs: %d loaded (MySQL: %d, MariaDB: %d)",
            stats["total"],
            stats["mysql"],
            stats["mariadb"],
        )
        if provider is not None:
            logger.info("AI analysis initialized with provider: %s", provider.name)
        return cls(provider=provider, retriever=retriever, config=config, confirm=confirm)

    @property
    def provider(self) -> AIProvider | None:
        return self._provider

    async def analyze_query(
        self,
        query: str,
        schema_context: SchemaContext | Mapping[str, Any] | None = None,
        db_type: str | DatabaseType = DatabaseType.MYSQL,
    ) -> AnalysisReport:
        """
        Analyze ``query``, enhancing static analysis with AI when possible.

        Raises:
            AnalysisCancelledError: Sensitive data, anonymization off, and
                consent not granted.
            ConfigurationError: Unknown db_type or malformed schema_context.
        """
        flavour = DatabaseType.parse(db_type)
        schema = self._schema(schema_context)

        # 1. Static analysis: the guaranteed fallback
        parse = self._classifier.analyze(query)

        # 2. Provider
        if self._provider is None or not self._config.ai_enabled:
            return AnalysisReport(result=static_result(parse), outcome=AnalysisOutcome.STATIC_ONLY)

        # 3. Anonymization and consent
        outgoing = await self._outgoing_query(query)

        # 4. Documentation retrieval
        docs = self._retrieve(query, flavour)

        context = QueryContext(
            query=query,
            anonymized_query=outgoing,
            schema_context=schema if self._config.include_schema_context else None,
            rag_docs=tuple(docs),
        )

        # 5. Provider call
        provider_name = self._provider.name
        timeout = self._config.ai_timeout_seconds
        try:
            ai_result = await asyncio.wait_for(
                self._provider.analyze_query(outgoing, context),
                timeout=timeout,
            )
            if not isinstance(ai_result, AIAnalysisResult):
                raise ProviderError(
                    f"{provider_name} returned {type(ai_result).__name__}, "
                    "expected AIAnalysisResult",
                    provider=provider_name,
                )
            # 6. Merge
            merged = merge_results(parse, ai_result)
        except asyncio.TimeoutError:
            error = f"{provider_name} did not respond within {timeout:g}s"
        except Exception as e:
            error = str(e) or type(e).__name__
        else:
            return AnalysisReport(
                result=merged,
                outcome=AnalysisOutcome.AI_ENHANCED,
                provider=provider_name,
                docs_retrieved=len(docs),
            )

        logger.error("AI analysis failed, returning static analysis: %s", error)
        fallback = static_result(parse)
        return AnalysisReport(
            result=fallback.model_copy(update={"optimization_suggestions": (AI_UNAVAILABLE,)}),
            outcome=AnalysisOutcome.AI_FAILED,
            provider=provider_name,
            error=error,
            docs_retrieved=len(docs),
        )

    def generate_fingerprint(self, query: str) -> str:
        """Fingerprint for grouping equivalent queries."""
        return self._anonymizer.fingerprint(query)

    def provider_info(self) -> dict[str, Any] | None:
        """Name of the active provider, or None for static-only."""
        if self._provider is None:
            return None
        return {"name": self._provider.name, "available": True}

    def retrieval_stats(self) -> dict[str, float]:
        """Documentation corpus statistics."""
        if self._retriever is None:
            return {"total": 0, "mysql": 0, "mariadb": 0, "avgKeywordsPerDoc": 0}
        return self._retriever.stats()

    async def aclose(self) -> None:
        if self._provider is not None:
            await self._provider.aclose()

    # ── Pipeline steps ───────────────────────────────────────────────────

    async def _outgoing_query(self, query: str) -> str:
        anonymize = self._config.anonymize_queries
        outgoing = self._anonymizer.anonymize(query) if anonymize else query

        terms = self._anonymizer.sensitive_terms(query)
        if not terms:
            return outgoing

        logger.warning("Query contains potentially sensitive data: %s", ", ".join(terms))
        if anonymize:
            return outgoing

        if not await self._ask_consent(SENSITIVE_DATA_PROMPT.format(terms=", ".join(terms))):
            raise AnalysisCancelledError()
        return outgoing

    async def _ask_consent(self, message: str) -> bool:
        if self._confirm is None:
            return False
        answer = self._confirm(message)
        if inspect.isawaitable(answer):
            answer = await answer
        return bool(answer)

    def _retrieve(self, query: str, flavour: DatabaseType) -> list[RAGDocument]:
        if self._retriever is None or self._config.rag_max_docs <= 0:
            return []
        try:
            docs = self._retriever.retrieve(query, flavour, self._config.rag_max_docs)
        except Exception as e:
            logger.warning("Documentation retrieval failed, continuing without docs: %s", e)
            return []
        logger.debug("Retrieved %d relevant documents", len(docs))
        return docs

    @staticmethod
    def _schema(schema_context: SchemaContext | Mapping[str, Any] | None) -> SchemaContext | None:
        if schema_context is None or isinstance(schema_context, SchemaContext):
            return schema_context
        try:
            return SchemaContext.model_validate(dict(schema_context))
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid schema context: {e}",
                config_key="schema_context",
            ) from e
