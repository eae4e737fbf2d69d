"""
Configuration system for QueryLens.

Implements 12-factor config principles:
- Environment variables as primary config source
- Optional JSON/YAML config file for local development
- Explicit injection: components take a Config at construction time
  and never read process-wide state on their own

Usage:
    from querylens.config import get_config, Config

    # Load from environment (default)
    config = get_config()

    # Or build one explicitly (tests, embedding hosts)
    config = Config(ai_provider="ollama", anonymize_queries=False)

    coordinator = AIAnalysisCoordinator(provider, retriever, config=config)
"""

from __future__ import annotations

import json
import logging
import os
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from querylens.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class ProviderName(str, Enum):
    """AI provider selection."""

    AUTO = "auto"
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    OLLAMA = "ollama"
    NONE = "none"

    @classmethod
    def from_string(cls, value: str) -> "ProviderName":
        """Parse provider from string, defaulting to auto."""
        try:
            return cls(value.lower())
        except ValueError:
            return cls.AUTO


class Config(BaseModel):
    """
    QueryLens configuration.

    Read-only set of toggles and thresholds. Every component receives
    one of these explicitly; the defaults mirror the host tool's settings.
    """

    model_config = ConfigDict(frozen=True)

    # AI
    ai_enabled: bool = Field(
        default=True,
        description="Enable AI-enhanced query analysis",
    )
    ai_provider: ProviderName = Field(
        default=ProviderName.AUTO,
        description="Which AI provider to use (auto picks the first usable one)",
    )
    anonymize_queries: bool = Field(
        default=True,
        description="Replace literals with placeholders before sending SQL to AI",
    )
    include_schema_context: bool = Field(
        default=True,
        description="Send schema context (tables, columns, indexes) to AI",
    )
    ai_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for a single AI provider call",
    )
    rag_max_docs: int = Field(
        default=3,
        ge=0,
        description="Number of documentation snippets retrieved per analysis",
    )
    anthropic_model: str = Field(default="claude-sonnet-4-20250514")
    openai_model: str = Field(default="gpt-4o-mini")
    openai_base_url: str = Field(default="https://api.openai.com/v1")
    ollama_endpoint: str = Field(default="http://localhost:11434")
    ollama_model: str = Field(default="llama3.1")

    # Risk analysis
    complexity_threshold: int = Field(
        default=50,
        ge=0,
        description="Complexity above which a LOW-risk query is raised to MEDIUM",
    )

    # Queries-without-indexes diagnostics
    min_avg_rows_examined: int = Field(
        default=1000,
        ge=0,
        description="Average rows examined per execution before a digest is reported",
    )
    min_executions: int = Field(
        default=5,
        ge=0,
        description="Minimum executions before a digest is reported",
    )
    max_efficiency_percent: float = Field(
        default=10.0,
        ge=0,
        description="Maximum rows-sent / rows-examined percentage to report",
    )

    @field_validator("ai_provider", mode="before")
    @classmethod
    def _known_provider(cls, value: Any) -> Any:
        if isinstance(value, str) and not isinstance(value, ProviderName):
            try:
                return ProviderName(value.lower())
            except ValueError:
                raise ConfigurationError(
                    f"Unknown AI provider: {value!r}",
                    config_key="ai_provider",
                ) from None
        return value


def _parse_env_bool(value: str | None, default: bool = False) -> bool:
    """Parse boolean from environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_env_int(value: str | None, default: int) -> int:
    """Parse integer from environment variable."""
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_env_float(value: str | None, default: float) -> float:
    """Parse float from environment variable."""
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def load_config_from_env() -> Config:
    """
    Load configuration from environment variables.

    Variables are named QUERYLENS_<SETTING>, e.g.:
    - QUERYLENS_AI_ENABLED=false
    - QUERYLENS_AI_PROVIDER=ollama
    - QUERYLENS_ANONYMIZE_QUERIES=true
    - QUERYLENS_MIN_AVG_ROWS_EXAMINED=5000
    """
    env = os.environ
    defaults = Config()

    config_kwargs: dict[str, Any] = {
        "ai_enabled": _parse_env_bool(env.get("QUERYLENS_AI_ENABLED"), defaults.ai_enabled),
        "ai_provider": ProviderName.from_string(
            env.get("QUERYLENS_AI_PROVIDER", defaults.ai_provider.value)
        ),
        "anonymize_queries": _parse_env_bool(
            env.get("QUERYLENS_ANONYMIZE_QUERIES"), defaults.anonymize_queries
        ),
        "include_schema_context": _parse_env_bool(
            env.get("QUERYLENS_INCLUDE_SCHEMA_CONTEXT"), defaults.include_schema_context
        ),
        "ai_timeout_seconds": _parse_env_float(
            env.get("QUERYLENS_AI_TIMEOUT_SECONDS"), defaults.ai_timeout_seconds
        ),
        "rag_max_docs": _parse_env_int(
            env.get("QUERYLENS_RAG_MAX_DOCS"), defaults.rag_max_docs
        ),
        "complexity_threshold": _parse_env_int(
            env.get("QUERYLENS_COMPLEXITY_THRESHOLD"), defaults.complexity_threshold
        ),
        "min_avg_rows_examined": _parse_env_int(
            env.get("QUERYLENS_MIN_AVG_ROWS_EXAMINED"), defaults.min_avg_rows_examined
        ),
        "min_executions": _parse_env_int(
            env.get("QUERYLENS_MIN_EXECUTIONS"), defaults.min_executions
        ),
        "max_efficiency_percent": _parse_env_float(
            env.get("QUERYLENS_MAX_EFFICIENCY_PERCENT"), defaults.max_efficiency_percent
        ),
    }

    # Free-form strings: only override when set
    for field_name in (
        "anthropic_model",
        "openai_model",
        "openai_base_url",
        "ollama_endpoint",
        "ollama_model",
    ):
        value = env.get(f"QUERYLENS_{field_name.upper()}")
        if value:
            config_kwargs[field_name] = value

    return Config(**config_kwargs)


def load_config_from_file(path: Path) -> Config:
    """
    Load configuration from a JSON or YAML file.

    Falls back to environment variables if the file is missing or invalid.
    """
    if not path.exists():
        logger.warning("Config file not found: %s, using environment", path)
        return load_config_from_env()

    try:
        with open(path) as f:
            if path.suffix in (".yaml", ".yml"):
                import yaml
                data = yaml.safe_load(f) or {}
            else:
                data = json.load(f)

        return Config(**data)
    except Exception as e:
        logger.error("Failed to load config from %s: %s", path, e)
        return load_config_from_env()


@lru_cache(maxsize=1)
def get_config() -> Config:
    """
    Get the process-wide configuration instance.

    Loads from:
    1. QUERYLENS_CONFIG_FILE environment variable (if set)
    2. Environment variables (default)

    Only entry points (the CLI, host integrations) should call this;
    library components take a Config argument instead.
    """
    config_file = os.environ.get("QUERYLENS_CONFIG_FILE")

    if config_file:
        return load_config_from_file(Path(config_file))

    return load_config_from_env()


def reset_config() -> None:
    """Reset the cached configuration (mainly for testing)."""
    get_config.cache_clear()
