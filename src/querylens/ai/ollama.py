"""
Ollama provider for local models (plain HTTP via httpx).

Nothing leaves the machine, so this is the provider auto-detection
falls back to when no hosted API key is configured.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from querylens.ai.models import AIAnalysisResult, QueryContext
from querylens.ai.protocol import SYSTEM_PROMPT, AIProvider, build_prompt, parse_response
from querylens.exceptions import ProviderError

logger = logging.getLogger(__name__)


@dataclass
class OllamaProvider(AIProvider):
    """
    Ollama-based query analysis.

    ``transport`` replaces the network layer (e.g. httpx.MockTransport).
    """

    endpoint: str = "http://localhost:11434"
    model: str = "llama3.1"
    temperature: float = 0.3
    timeout_seconds: float = 30.0
    transport: httpx.AsyncBaseTransport | None = None

    name: str = field(default="Ollama (Local)", init=False)

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.endpoint.rstrip("/"),
            timeout=timeout,
            transport=self.transport,
        )

    async def list_models(self) -> list[str]:
        """Names of the models the local server has pulled."""
        async with self._client(timeout=5.0) as client:
            response = await client.get("/api/tags")
            response.raise_for_status()
            return [m.get("name", "") for m in response.json().get("models", [])]

    async def is_available(self) -> bool:
        """True if the server is running and has the configured model."""
        try:
            models = await self.list_models()
        except Exception as e:
            logger.debug("Ollama availability check failed: %s", e)
            return False

        if not any(self.model in name for name in models):
            logger.debug(
                "Ollama model '%s' not found. Available models: %s",
                self.model,
                ", ".join(models) or "none",
            )
            return False
        return True

    async def analyze_query(
        self,
        anonymized_query: str,
        context: QueryContext,
    ) -> AIAnalysisResult:
        logger.info("Analyzing query with Ollama (%s)", self.model)

        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(context)},
            ],
            "stream": False,
            "format": "json",
            "options": {"temperature": self.temperature, "top_p": 0.9},
        }

        try:
            async with self._client(timeout=self.timeout_seconds) as client:
                response = await client.post("/api/chat", json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.ConnectError as e:
            raise ProviderError(
                "Ollama is not running. Start it with: ollama serve",
                provider=self.name,
                original_error=e,
            ) from e
        except Exception as e:
            raise ProviderError(
                f"Ollama analysis failed: {e}",
                provider=self.name,
                original_error=e,
            ) from e

        content = (data.get("message") or {}).get("content") if isinstance(data, dict) else None
        if not content:
            raise ProviderError("Empty response from Ollama", provider=self.name)

        return parse_response(content)
