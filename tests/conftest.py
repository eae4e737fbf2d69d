"""Shared fixtures for the QueryLens test suite."""

import os

import pytest

from querylens.analyzer import QueryAnonymizer, QueryClassifier, QueryService, RiskAnalyzer
from querylens.config import Config, reset_config
from querylens.retrieval import DocumentationRetriever


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keep host environment variables and cached config out of tests."""
    for name in list(os.environ):
        if name.startswith("QUERYLENS_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def config() -> Config:
    return Config(ai_provider="none")


@pytest.fixture
def classifier() -> QueryClassifier:
    return QueryClassifier()


@pytest.fixture
def anonymizer() -> QueryAnonymizer:
    return QueryAnonymizer()


@pytest.fixture
def risk_analyzer(config) -> RiskAnalyzer:
    return RiskAnalyzer(config=config)


@pytest.fixture
def service(config) -> QueryService:
    return QueryService(config)


@pytest.fixture
def retriever() -> DocumentationRetriever:
    """Retriever over the bundled documentation corpus."""
    return DocumentationRetriever.load()
