"""
AI analysis module (OPTIONAL enhancement layer).

Static analysis works without any of this. When a provider is
configured, the coordinator grounds the prompt in documentation, calls
the provider and merges its answer with the static findings, falling
back to static-only results whenever the provider fails.
"""

from querylens.ai.claude import ClaudeProvider
from querylens.ai.coordinator import AIAnalysisCoordinator
from querylens.ai.factory import api_keys_from_env, create_provider
from querylens.ai.models import (
    AIAnalysisResult,
    AnalysisOutcome,
    AnalysisReport,
    Citation,
    ColumnInfo,
    DatabaseType,
    IndexInfo,
    OptimizationSuggestion,
    PerformanceContext,
    QueryContext,
    RAGDocument,
    SchemaContext,
    TableInfo,
)
from querylens.ai.ollama import OllamaProvider
from querylens.ai.openai import OpenAIProvider
from querylens.ai.protocol import AIProvider, build_prompt, parse_response

__all__ = [
    "AIAnalysisCoordinator",
    "AIAnalysisResult",
    "AIProvider",
    "AnalysisOutcome",
    "AnalysisReport",
    "Citation",
    "ClaudeProvider",
    "ColumnInfo",
    "DatabaseType",
    "IndexInfo",
    "OllamaProvider",
    "OpenAIProvider",
    "OptimizationSuggestion",
    "PerformanceContext",
    "QueryContext",
    "RAGDocument",
    "SchemaContext",
    "TableInfo",
    "api_keys_from_env",
    "build_prompt",
    "create_provider",
    "parse_response",
]
