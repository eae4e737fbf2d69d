"""
Anthropic Claude provider.

Requires: pip install anthropic
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

from querylens.ai.models import AIAnalysisResult, QueryContext
from querylens.ai.protocol import SYSTEM_PROMPT, AIProvider, build_prompt, parse_response
from querylens.exceptions import ProviderError

logger = logging.getLogger(__name__)


@dataclass
class ClaudeProvider(AIProvider):
    """
    Claude-based query analysis.

    Example:
        provider = ClaudeProvider(api_key="...")
        result = await provider.analyze_query(anonymized_sql, context)
    """

    api_key: str
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 4096
    temperature: float = 0.3
    timeout_seconds: float = 30.0

    name: str = field(default="Anthropic Claude", init=False)
    _client: Any = field(default=None, init=False, repr=False)

    async def _get_client(self) -> Any:
        """Get or create the Anthropic client."""
        if self._client is None:
            try:
                import anthropic
            except ImportError as e:
                raise ImportError(
                    "anthropic package required. Install with: pip install anthropic"
                ) from e

            self._client = anthropic.AsyncAnthropic(
                api_key=self.api_key,
                timeout=self.timeout_seconds,
            )
        return self._client

    async def is_available(self) -> bool:
        """Verify credentials with a minimal request."""
        if not self.api_key:
            return False
        try:
            client = await self._get_client()
            await client.messages.create(
                model=self.model,
                max_tokens=10,
                messages=[{"role": "user", "content": "test"}],
            )
            return True
        except Exception as e:
            logger.debug("Anthropic availability check failed: %s", e)
            return False

    async def analyze_query(
        self,
        anonymized_query: str,
        context: QueryContext,
    ) -> AIAnalysisResult:
        start_time = time.perf_counter()
        logger.info("Analyzing query with Anthropic Claude (%s)", self.model)

        try:
            client = await self._get_client()
            response = await client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": build_prompt(context)}],
            )
        except Exception as e:
            raise ProviderError(
                f"Anthropic analysis failed: {e}",
                provider=self.name,
                original_error=e,
            ) from e

        blocks = [b for b in response.content if getattr(b, "type", None) == "text"]
        if not blocks:
            raise ProviderError(
                "Unexpected response type from Anthropic",
                provider=self.name,
            )

        logger.debug(
            "Claude responded in %.0fms",
            (time.perf_counter() - start_time) * 1000,
        )
        return parse_response(blocks[0].text)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
