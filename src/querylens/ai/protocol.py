"""
AI provider protocol (optional enhancement layer).

Static analysis works without any provider. A provider turns an
anonymized query plus context into a structured AIAnalysisResult, or
raises ProviderError. The coordinator treats every implementation the
same and never inspects the concrete type.

Shared helpers build the prompt and parse the model's JSON reply so
each provider only implements transport.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any

from querylens.ai.models import (
    AIAnalysisResult,
    Citation,
    Difficulty,
    Impact,
    OptimizationSuggestion,
    QueryContext,
    coerce_anti_pattern,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a MySQL/MariaDB database optimization expert. Analyze queries "
    "and provide structured optimization advice in JSON format."
)

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_BARE_OBJECT = re.compile(r"\{[\s\S]*\}")

_MAX_STAGES = 5
_LOW_EFFICIENCY = 50.0

_RESPONSE_FORMAT = """Provide your analysis as a JSON object with the following structure:
```json
{
  "summary": "Your DBA assessment and performance analysis (include citations like [Citation 1] where relevant)",
  "antiPatterns": [
    {
      "type": "descriptive_type (e.g., full_table_scan, missing_index)",
      "severity": "critical|warning|info",
      "message": "clear description of the issue",
      "suggestion": "specific recommendation to fix"
    }
  ],
  "optimizationSuggestions": [
    {
      "title": "suggestion title",
      "description": "detailed explanation",
      "impact": "high|medium|low",
      "difficulty": "easy|medium|hard",
      "before": "original query (if applicable)",
      "after": "optimized query (if applicable)"
    }
  ],
  "estimatedComplexity": 5,
  "citations": [
    {
      "id": "citation-1",
      "title": "title from the reference documentation",
      "source": "source of the reference documentation",
      "relevance": "why this citation is relevant"
    }
  ]
}
```

Only return the JSON object, no additional text."""


class AIProvider(ABC):
    """
    Abstract base for AI analysis providers.

    Implementations must raise ProviderError (never return a partial
    result) when the backend fails.
    """

    name: str = "unknown"

    @abstractmethod
    async def is_available(self) -> bool:
        """True if the backend can currently serve requests."""
        ...

    @abstractmethod
    async def analyze_query(
        self,
        anonymized_query: str,
        context: QueryContext,
    ) -> AIAnalysisResult:
        """Analyze a query that is safe to send to the backend."""
        ...

    async def aclose(self) -> None:
        """Release network resources. Default: nothing to release."""
        return None


def build_prompt(context: QueryContext) -> str:
    """
    Build the analysis prompt: query, schema, performance, references.

    Only ``context.prompt_query`` (the anonymized query when available)
    is included, never the raw query.
    """
    sections = [
        "You are a Senior Database Administrator with 15+ years of experience "
        "managing high-performance MySQL and MariaDB systems in production. "
        "You provide practical, production-ready advice.\n\n"
        "Analyze the following query:\n\n"
        f"**Query:**\n```sql\n{context.prompt_query}\n```\n"
    ]

    schema = context.schema_context
    if schema is not None:
        lines = ["**Schema Context:**", f"Database: {schema.database or 'N/A'}", "Tables:"]
        for table in schema.tables:
            columns = ", ".join(f"{c.name} ({c.type})" for c in table.columns)
            lines.append(f"  - {table.name or 'unknown'}: {columns}")
            if table.indexes:
                lines.append(f"    Indexes: {', '.join(i.name for i in table.indexes)}")
        sections.append("\n".join(lines) + "\n")

        perf = schema.performance
        if perf is not None:
            sections.append(_performance_section(perf))

    if context.rag_docs:
        lines = [
            "**Reference Documentation (cite these sources when relevant to "
            "your recommendations):**"
        ]
        for number, doc in enumerate(context.rag_docs, start=1):
            lines.append(f"\n[Citation {number}] {doc.title} ({doc.source}):\n{doc.content}")
        sections.append("\n".join(lines) + "\n")

    sections.append(
        "**Provide:**\n"
        "If a performance section is present above, your summary MUST analyze "
        "execution time, efficiency (rows examined vs sent) and stage bottlenecks.\n"
        "Cite the reference documentation using [Citation X] where applicable.\n\n"
        + _RESPONSE_FORMAT
    )
    return "\n".join(sections)


def _performance_section(perf: Any) -> str:
    def fmt(value: float | int | None, unit: str = "") -> str:
        return "N/A" if value is None else f"{value:,}{unit}"

    duration = "N/A"
    if perf.total_duration is not None:
        duration = f"{perf.total_duration:,.0f}µs ({perf.total_duration / 1000:.2f}ms)"
    efficiency = "N/A"
    if perf.efficiency is not None:
        efficiency = f"{perf.efficiency:.1f}%"
        if perf.efficiency < _LOW_EFFICIENCY:
            efficiency += " (low efficiency)"

    lines = [
        "**Query Performance Analysis:**",
        f"- Execution Time: {duration}",
        f"- Rows Examined: {fmt(perf.rows_examined)}",
        f"- Rows Sent: {fmt(perf.rows_sent)}",
        f"- Efficiency: {efficiency}",
        f"- Lock Time: {fmt(perf.lock_time, 'µs')}",
    ]
    if perf.stages:
        top = sorted(perf.stages, key=lambda s: s.duration, reverse=True)[:_MAX_STAGES]
        lines.append("Top Execution Stages:")
        lines.extend(f"  - {stage.name}: {stage.duration:,.0f}µs" for stage in top)
    return "\n".join(lines) + "\n"


def parse_response(content: str) -> AIAnalysisResult:
    """
    Parse a model reply into an AIAnalysisResult.

    Accepts JSON in a fenced block or a bare object. Anything else (or
    malformed JSON) becomes a plain-text result: first line as summary,
    full text as one suggestion.
    """
    text = content or ""
    match = _FENCED_JSON.search(text) or _BARE_OBJECT.search(text)
    if match is None:
        return parse_unstructured(text)

    raw = match.group(1) if match.re is _FENCED_JSON else match.group(0)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("Failed to parse AI JSON response: %s", e)
        return parse_unstructured(text)
    if not isinstance(data, dict):
        return parse_unstructured(text)

    return result_from_dict(data)


def result_from_dict(data: dict[str, Any]) -> AIAnalysisResult:
    """Build a result from decoded JSON, dropping malformed entries."""
    anti_patterns = [
        p for p in (coerce_anti_pattern(raw) for raw in _as_list(data.get("antiPatterns")))
        if p is not None
    ]

    suggestions = []
    for raw in _as_list(data.get("optimizationSuggestions")):
        suggestion = _coerce_suggestion(raw)
        if suggestion is not None:
            suggestions.append(suggestion)

    citations = []
    for raw in _as_list(data.get("citations")):
        if not isinstance(raw, dict) or not raw.get("title"):
            continue
        try:
            citations.append(Citation.model_validate(raw))
        except ValueError:
            logger.debug("Dropping malformed citation: %r", raw)

    complexity = data.get("estimatedComplexity")
    if isinstance(complexity, bool) or not isinstance(complexity, (int, float)):
        complexity = None

    return AIAnalysisResult(
        summary=str(data.get("summary") or "No summary provided"),
        anti_patterns=tuple(anti_patterns),
        optimization_suggestions=tuple(suggestions),
        estimated_complexity=complexity,
        citations=tuple(citations),
    )


def parse_unstructured(text: str) -> AIAnalysisResult:
    """Plain-text fallback result."""
    first_line = next((line.strip() for line in text.splitlines() if line.strip()), "")
    return AIAnalysisResult(
        summary=first_line or "AI analysis completed",
        optimization_suggestions=(
            OptimizationSuggestion(
                title="AI Analysis",
                description=text,
                impact=Impact.MEDIUM,
                difficulty=Difficulty.MEDIUM,
            ),
        ) if text.strip() else (),
    )


def _coerce_suggestion(raw: Any) -> OptimizationSuggestion | None:
    if not isinstance(raw, dict) or not raw.get("title"):
        return None
    data = dict(raw)
    if str(data.get("impact", "")).lower() not in {i.value for i in Impact}:
        data["impact"] = Impact.MEDIUM.value
    if str(data.get("difficulty", "")).lower() not in {d.value for d in Difficulty}:
        data["difficulty"] = Difficulty.MEDIUM.value
    try:
        return OptimizationSuggestion.model_validate(data)
    except ValueError:
        logger.debug("Dropping malformed suggestion: %r", raw)
        return None


def _as_list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []
