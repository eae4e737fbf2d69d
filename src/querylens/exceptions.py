"""
Package-level exception hierarchy for QueryLens.

All exceptions inherit from QueryLensError, enabling:
- Catching all QueryLens errors with a single except clause
- Rich context fields for debugging (config_key, provider, identifier, etc.)
- Structured serialization via to_dict() for JSON error responses

The analysis primitives (classifier, anonymizer, deanonymizer, risk
analyzer) never raise for malformed SQL. Only caller misuse and the
deliberate sensitive-data cancellation reach the caller as exceptions.

Hierarchy:
    QueryLensError
    ├── ConfigurationError                     – Invalid options or configuration
    ├── AnalysisCancelledError                 – Sensitive-data confirmation declined
    ├── ProviderError                          – AI provider call failed
    └── DiagnosticsError                       – Diagnostic query failures
        ├── PerformanceSchemaDisabledError     – performance_schema is OFF
        ├── PerformanceSchemaConfigurationError – instruments/consumers disabled
        └── InvalidIdentifierError             – unsafe schema/table name
"""

from __future__ import annotations

from typing import Any


class QueryLensError(Exception):
    """
    Base exception for all QueryLens errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON error responses."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
        }


# ── Configuration Errors ─────────────────────────────────────────────────


class ConfigurationError(QueryLensError):
    """
    Invalid configuration or options passed by the caller.

    Attributes:
        config_key: The configuration key that caused the error (if known).
    """

    def __init__(self, message: str, config_key: str | None = None) -> None:
        self.config_key = config_key
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["config_key"] = self.config_key
        return result


# ── AI Errors ────────────────────────────────────────────────────────────


class AnalysisCancelledError(QueryLensError):
    """
    AI analysis was cancelled because the query may contain sensitive data.

    Raised only when anonymization is disabled and the user declined
    to send the raw query. Distinct from ProviderError: this is a
    deliberate stop, not a failure to fall back from.
    """

    def __init__(
        self,
        message: str = "Query analysis cancelled - contains sensitive data",
    ) -> None:
        super().__init__(message)


class ProviderError(QueryLensError):
    """
    An AI provider failed (network, auth, malformed response, timeout).

    Attributes:
        provider: Display name of the provider that failed.
        original_error: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.provider = provider
        self.original_error = original_error
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["provider"] = self.provider
        if self.original_error is not None:
            result["original_error_type"] = self.original_error.__class__.__name__
        return result


# ── Diagnostics Errors ───────────────────────────────────────────────────


class DiagnosticsError(QueryLensError):
    """Errors while collecting diagnostics from a database adapter."""
    pass


class PerformanceSchemaDisabledError(DiagnosticsError):
    """performance_schema is not enabled on the server."""

    def __init__(
        self,
        message: str = (
            "Performance Schema is not enabled. Please enable it in MySQL "
            "configuration and restart the server."
        ),
    ) -> None:
        super().__init__(message)


class PerformanceSchemaConfigurationError(DiagnosticsError):
    """
    performance_schema is on, but statement instruments or consumers are off.

    The caller decides whether to ask the user for consent before
    calling ``apply_performance_schema_configuration``.
    """

    def __init__(
        self,
        message: str,
        needs_instruments: bool,
        needs_consumers: bool,
        instrument_count: int = 0,
        consumer_count: int = 0,
    ) -> None:
        self.needs_instruments = needs_instruments
        self.needs_consumers = needs_consumers
        self.instrument_count = instrument_count
        self.consumer_count = consumer_count
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result.update({
            "needs_instruments": self.needs_instruments,
            "needs_consumers": self.needs_consumers,
            "instrument_count": self.instrument_count,
            "consumer_count": self.consumer_count,
        })
        return result


class InvalidIdentifierError(DiagnosticsError):
    """
    A schema or table name failed validation before being used in SQL.

    Attributes:
        identifier: The rejected identifier.
    """

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(
            f"Invalid schema name {identifier!r}: only alphanumeric "
            "characters and underscores allowed"
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["identifier"] = self.identifier
        return result
