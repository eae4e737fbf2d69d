"""
Tests for AI providers, prompt building, response parsing and provider selection.

Network calls go through httpx.MockTransport; the Anthropic client is
replaced by a fake with the same ``messages.create`` shape.
"""

import json
from types import SimpleNamespace

import httpx
import pytest

from querylens.ai import (
    ClaudeProvider,
    OllamaProvider,
    OpenAIProvider,
    QueryContext,
    RAGDocument,
    SchemaContext,
    api_keys_from_env,
    build_prompt,
    create_provider,
    parse_response,
)
from querylens.ai.models import Difficulty, Impact
from querylens.analyzer import Severity
from querylens.config import Config
from querylens.exceptions import ConfigurationError, ProviderError


RESPONSE_JSON = {
    "summary": "Full scan on orders",
    "antiPatterns": [
        {"type": "full_table_scan", "severity": "critical", "message": "No index on status"},
    ],
    "optimizationSuggestions": [
        {"title": "Add index", "description": "Index status", "impact": "high", "difficulty": "easy"},
    ],
    "estimatedComplexity": 4,
    "citations": [{"id": "citation-1", "title": "Index Basics", "source": "MySQL Manual"}],
}


@pytest.fixture
def context() -> QueryContext:
    return QueryContext(
        query="SELECT * FROM orders WHERE status = 'paid'",
        anonymized_query="SELECT * FROM orders WHERE status = ?",
    )


class TestBuildPrompt:
    """Prompt assembly."""

    def test_uses_anonymized_query_only(self, context):
        prompt = build_prompt(context)

        assert "SELECT * FROM orders WHERE status = ?" in prompt
        assert "'paid'" not in prompt
        assert "Only return the JSON object" in prompt

    def test_falls_back_to_raw_query(self):
        prompt = build_prompt(QueryContext(query="SELECT 1"))
        assert "```sql\nSELECT 1\n```" in prompt

    def test_schema_and_performance(self):
        schema = SchemaContext.model_validate({
            "database": "shop",
            "tables": {
                "orders": {
                    "columns": [{"name": "id", "type": "int"}, {"name": "status", "type": "varchar"}],
                    "indexes": [{"name": "PRIMARY", "columns": [{"name": "id", "position": 1}]}],
                },
            },
            "performance": {
                "total_duration": 12500,
                "rows_examined": 50000,
                "rows_sent": 5000,
                "efficiency": 10.0,
                "stages": [{"name": "Sending data", "duration": 9000}],
            },
        })
        prompt = build_prompt(QueryContext(query="SELECT 1", schema=schema))

        assert "Database: shop" in prompt
        assert "  - orders: id (int), status (varchar)" in prompt
        assert "Indexes: PRIMARY" in prompt
        assert "Rows Examined: 50,000" in prompt
        assert "Efficiency: 10.0% (low efficiency)" in prompt
        assert "Sending data: 9,000µs" in prompt

    def test_documentation_citations(self):
        doc = RAGDocument(id="d1", title="Index Basics", source="MySQL Manual", content="Use indexes.")
        prompt = build_prompt(QueryContext(query="SELECT 1", rag_docs=(doc,)))

        assert "[Citation 1] Index Basics (MySQL Manual):\nUse indexes." in prompt


class TestParseResponse:
    """Structured and unstructured replies."""

    def test_fenced_json(self):
        result = parse_response("Here you go:\n```json\n" + json.dumps(RESPONSE_JSON) + "\n```")

        assert result.summary == "Full scan on orders"
        assert result.anti_patterns[0].severity == Severity.CRITICAL
        assert result.optimization_suggestions[0].impact == Impact.HIGH
        assert result.estimated_complexity == 4
        assert result.citations[0].id == "citation-1"

    def test_bare_json(self):
        result = parse_response('Result: {"summary": "Looks fine"} end')
        assert result.summary == "Looks fine"

    def test_malformed_entries_are_coerced_or_dropped(self):
        data = {
            "summary": "s",
            "antiPatterns": [{"type": "x", "severity": "fatal", "message": "m"}, "junk"],
            "optimizationSuggestions": [{"title": "t", "impact": "huge"}, {"description": "no title"}],
            "estimatedComplexity": "very",
            "citations": [{"title": "Doc", "relevance": 0.9}, {"source": "no title"}],
        }
        result = parse_response(json.dumps(data))

        assert [p.severity for p in result.anti_patterns] == [Severity.WARNING]
        assert len(result.optimization_suggestions) == 1
        assert result.optimization_suggestions[0].impact == Impact.MEDIUM
        assert result.optimization_suggestions[0].difficulty == Difficulty.MEDIUM
        assert result.estimated_complexity is None
        assert [c.relevance for c in result.citations] == ["0.9"]

    def test_plain_text(self):
        result = parse_response("\nUse an index on status.\nAlso avoid SELECT *.")

        assert result.summary == "Use an index on status."
        assert result.optimization_suggestions[0].title == "AI Analysis"
        assert "avoid SELECT *" in result.optimization_suggestions[0].description

    def test_invalid_json_falls_back_to_text(self):
        assert parse_response("{not json}").summary == "{not json}"

    def test_empty_reply(self):
        result = parse_response("")

        assert result.summary == "AI analysis completed"
        assert result.optimization_suggestions == ()


class TestOpenAIProvider:
    """Chat-completions over a mocked transport."""

    @pytest.mark.asyncio
    async def test_analyze_query(self, context):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"choices": [{"message": {"content": json.dumps(RESPONSE_JSON)}}]},
            )

        provider = OpenAIProvider(api_key="sk-test", transport=httpx.MockTransport(handler))
        result = await provider.analyze_query(context.prompt_query, context)

        assert result.summary == "Full scan on orders"
        assert seen["path"] == "/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["model"] == "gpt-4o-mini"
        assert seen["body"]["response_format"] == {"type": "json_object"}
        assert "'paid'" not in seen["body"]["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_http_error(self, context):
        transport = httpx.MockTransport(lambda request: httpx.Response(401, json={"error": "bad key"}))
        provider = OpenAIProvider(api_key="sk-test", transport=transport)

        with pytest.raises(ProviderError) as exc_info:
            await provider.analyze_query(context.prompt_query, context)

        assert exc_info.value.provider == "OpenAI"

    @pytest.mark.asyncio
    async def test_empty_content(self, context):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"choices": []}))
        provider = OpenAIProvider(api_key="sk-test", transport=transport)

        with pytest.raises(ProviderError, match="Empty response from OpenAI"):
            await provider.analyze_query(context.prompt_query, context)

    @pytest.mark.asyncio
    async def test_is_available(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200 if request.url.path == "/v1/models" else 404)
        )
        assert await OpenAIProvider(api_key="sk-test", transport=transport).is_available()
        assert not await OpenAIProvider(api_key="", transport=transport).is_available()


class TestOllamaProvider:
    """Local Ollama server over a mocked transport."""

    @pytest.mark.asyncio
    async def test_analyze_query(self, context):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"message": {"content": json.dumps(RESPONSE_JSON)}})

        provider = OllamaProvider(model="llama3.1", transport=httpx.MockTransport(handler))
        result = await provider.analyze_query(context.prompt_query, context)

        assert result.anti_patterns[0].type == "full_table_scan"
        assert seen["path"] == "/api/chat"
        assert seen["body"]["stream"] is False
        assert seen["body"]["format"] == "json"

    @pytest.mark.asyncio
    async def test_not_running(self, context):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        provider = OllamaProvider(transport=httpx.MockTransport(handler))

        with pytest.raises(ProviderError, match="Ollama is not running"):
            await provider.analyze_query(context.prompt_query, context)
        assert not await provider.is_available()

    @pytest.mark.asyncio
    async def test_is_available_requires_model(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"models": [{"name": "llama3.1:latest"}]})
        )

        assert await OllamaProvider(model="llama3.1", transport=transport).is_available()
        assert not await OllamaProvider(model="mistral", transport=transport).is_available()


class FakeMessages:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=self.text)])


class FakeAnthropic:
    def __init__(self, messages):
        self.messages = messages
        self.closed = False

    async def close(self):
        self.closed = True


class TestClaudeProvider:
    """Claude provider with the SDK client stubbed out."""

    @pytest.mark.asyncio
    async def test_analyze_query(self, context):
        messages = FakeMessages(text=json.dumps(RESPONSE_JSON))
        provider = ClaudeProvider(api_key="key")
        provider._client = FakeAnthropic(messages)

        result = await provider.analyze_query(context.prompt_query, context)

        assert result.summary == "Full scan on orders"
        call = messages.calls[0]
        assert call["model"] == provider.model
        assert "'paid'" not in call["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_failure_wraps_error(self, context):
        provider = ClaudeProvider(api_key="key")
        provider._client = FakeAnthropic(FakeMessages(error=RuntimeError("overloaded")))

        with pytest.raises(ProviderError) as exc_info:
            await provider.analyze_query(context.prompt_query, context)

        assert isinstance(exc_info.value.original_error, RuntimeError)

    @pytest.mark.asyncio
    async def test_aclose(self):
        provider = ClaudeProvider(api_key="key")
        client = FakeAnthropic(FakeMessages(text="{}"))
        provider._client = client

        await provider.aclose()

        assert client.closed
        assert provider._client is None


class TestProviderFactory:
    """Provider selection from config and keys."""

    @pytest.mark.asyncio
    async def test_none(self):
        assert await create_provider(Config(ai_provider="none")) is None

    @pytest.mark.asyncio
    async def test_disabled(self):
        assert await create_provider(Config(ai_enabled=False, ai_provider="ollama")) is None

    @pytest.mark.asyncio
    async def test_explicit_hosted_provider_needs_key(self):
        with pytest.raises(ConfigurationError):
            await create_provider(Config(ai_provider="anthropic"), {})
        with pytest.raises(ConfigurationError):
            await create_provider(Config(ai_provider="openai"), {})

    @pytest.mark.asyncio
    async def test_explicit_providers(self):
        config = Config(ai_provider="openai", openai_model="gpt-4o", ai_timeout_seconds=5)
        provider = await create_provider(config, {"openai": "sk"})

        assert isinstance(provider, OpenAIProvider)
        assert provider.model == "gpt-4o"
        assert provider.timeout_seconds == 5

        ollama = await create_provider(Config(ai_provider="ollama", ollama_endpoint="http://gpu:11434"))
        assert isinstance(ollama, OllamaProvider)
        assert ollama.endpoint == "http://gpu:11434"

    @pytest.mark.asyncio
    async def test_auto_prefers_anthropic_then_openai(self):
        both = await create_provider(Config(), {"anthropic": "a", "openai": "o"})
        openai_only = await create_provider(Config(), {"openai": "o"})

        assert isinstance(both, ClaudeProvider)
        assert isinstance(openai_only, OpenAIProvider)

    @pytest.mark.asyncio
    async def test_auto_falls_back_to_ollama_or_none(self, monkeypatch):
        async def available(self):
            return True

        async def unavailable(self):
            return False

        monkeypatch.setattr(OllamaProvider, "is_available", available)
        assert isinstance(await create_provider(Config(), {}), OllamaProvider)

        monkeypatch.setattr(OllamaProvider, "is_available", unavailable)
        assert await create_provider(Config(), {}) is None

    def test_api_keys_from_env(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", " sk-ant ")
        monkeypatch.setenv("OPENAI_API_KEY", "")

        assert api_keys_from_env() == {"anthropic": "sk-ant"}
