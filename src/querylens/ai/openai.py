"""
OpenAI chat-completions provider (plain HTTP via httpx).

Also works against any OpenAI-compatible endpoint through ``base_url``.
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
class OpenAIProvider(AIProvider):
    """
    OpenAI-based query analysis.

    ``transport`` replaces the network layer (e.g. httpx.MockTransport).
    """

    api_key: str
    model: str = "gpt-4o-mini"
    base_url: str = "https://api.openai.com/v1"
    temperature: float = 0.3
    timeout_seconds: float = 30.0
    transport: httpx.AsyncBaseTransport | None = None

    name: str = field(default="OpenAI", init=False)

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url.rstrip("/"),
            timeout=timeout,
            transport=self.transport,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )

    async def is_available(self) -> bool:
        if not self.api_key:
            return False
        try:
            async with self._client(timeout=10.0) as client:
                response = await client.get("/models")
                return response.status_code == 200
        except Exception as e:
            logger.debug("OpenAI availability check failed: %s", e)
            return False

    async def analyze_query(
        self,
        anonymized_query: str,
        context: QueryContext,
    ) -> AIAnalysisResult:
        logger.info("Analyzing query with OpenAI (%s)", self.model)

        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(context)},
            ],
            "temperature": self.temperature,
            "response_format": {"type": "json_object"},
        }

        try:
            async with self._client(timeout=self.timeout_seconds) as client:
                response = await client.post("/chat/completions", json=payload)
                response.raise_for_status()
                data = response.json()
        except Exception as e:
            raise ProviderError(
                f"OpenAI analysis failed: {e}",
                provider=self.name,
                original_error=e,
            ) from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if not content:
            raise ProviderError("Empty response from OpenAI", provider=self.name)

        return parse_response(content)
