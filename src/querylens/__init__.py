"""QueryLens - SQL analysis toolkit for MySQL and MariaDB."""

__version__ = "0.3.0"
__license__ = "MIT"

# Exception hierarchy (import first so other modules can use it)
from querylens.exceptions import (
    QueryLensError,
    ConfigurationError,
    AnalysisCancelledError,
    ProviderError,
    DiagnosticsError,
    PerformanceSchemaDisabledError,
    PerformanceSchemaConfigurationError,
    InvalidIdentifierError,
)

from querylens.config import Config, ProviderName, get_config, reset_config

# Static analysis
from querylens.analyzer import (
    AntiPattern,
    ParseResult,
    QueryAnonymizer,
    QueryClassifier,
    QueryDeanonymizer,
    QueryService,
    QueryType,
    RiskAnalysisResult,
    RiskAnalyzer,
    RiskLevel,
    Severity,
    TemplatedQuery,
    ValidationResult,
)

# Documentation retrieval
from querylens.retrieval import (
    ChunkStrategy,
    ChunkingOptions,
    DocumentChunk,
    DocumentChunker,
    DocumentationRetriever,
)

# AI enhancement (optional at runtime: no provider means static-only)
from querylens.ai import (
    AIAnalysisCoordinator,
    AIAnalysisResult,
    AIProvider,
    AnalysisOutcome,
    AnalysisReport,
    DatabaseType,
    SchemaContext,
)

# Server diagnostics
from querylens.diagnostics import (
    InnoDBHealthChecker,
    QueriesWithoutIndexesService,
    SlowQueriesService,
)

__all__ = [
    "__version__",
    # Exceptions
    "QueryLensError",
    "ConfigurationError",
    "AnalysisCancelledError",
    "ProviderError",
    "DiagnosticsError",
    "PerformanceSchemaDisabledError",
    "PerformanceSchemaConfigurationError",
    "InvalidIdentifierError",
    # Config
    "Config",
    "ProviderName",
    "get_config",
    "reset_config",
    # Static analysis
    "AntiPattern",
    "ParseResult",
    "QueryAnonymizer",
    "QueryClassifier",
    "QueryDeanonymizer",
    "QueryService",
    "QueryType",
    "RiskAnalysisResult",
    "RiskAnalyzer",
    "RiskLevel",
    "Severity",
    "TemplatedQuery",
    "ValidationResult",
    # Retrieval
    "ChunkStrategy",
    "ChunkingOptions",
    "DocumentChunk",
    "DocumentChunker",
    "DocumentationRetriever",
    # AI
    "AIAnalysisCoordinator",
    "AIAnalysisResult",
    "AIProvider",
    "AnalysisOutcome",
    "AnalysisReport",
    "DatabaseType",
    "SchemaContext",
    # Diagnostics
    "InnoDBHealthChecker",
    "QueriesWithoutIndexesService",
    "SlowQueriesService",
]
