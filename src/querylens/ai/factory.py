"""
AI provider selection.

    none / AI disabled   -> no provider (static analysis only)
    anthropic            -> ClaudeProvider (API key required)
    openai               -> OpenAIProvider (API key required)
    ollama               -> OllamaProvider
    auto                 -> anthropic key, then openai key, then a running
                            Ollama with the configured model, else none
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping

from querylens.ai.claude import ClaudeProvider
from querylens.ai.ollama import OllamaProvider
from querylens.ai.openai import OpenAIProvider
from querylens.ai.protocol import AIProvider
from querylens.config import Config, ProviderName
from querylens.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ANTHROPIC_KEY = "anthropic"
OPENAI_KEY = "openai"

_KEY_ENV_VARS = {
    ANTHROPIC_KEY: "ANTHROPIC_API_KEY",
    OPENAI_KEY: "OPENAI_API_KEY",
}


def api_keys_from_env() -> dict[str, str]:
    """Read provider API keys from the standard environment variables."""
    keys = {}
    for name, env_var in _KEY_ENV_VARS.items():
        value = os.environ.get(env_var, "").strip()
        if value:
            keys[name] = value
    return keys


async def create_provider(
    config: Config,
    api_keys: Mapping[str, str] | None = None,
) -> AIProvider | None:
    """
    Create the configured provider, or None when AI is off or unavailable.

    Args:
        config: Supplies ai_enabled, ai_provider and model settings.
        api_keys: Provider name ("anthropic", "openai") to API key.

    Raises:
        ConfigurationError: An explicitly chosen hosted provider has no
            API key. Unknown provider names are rejected by Config itself.
    """
    keys = dict(api_keys or {})
    provider = config.ai_provider

    if provider == ProviderName.NONE or not config.ai_enabled:
        logger.info("AI features disabled")
        return None

    if provider == ProviderName.AUTO:
        return await _auto_detect(config, keys)
    if provider == ProviderName.ANTHROPIC:
        return _claude(config, _require_key(keys, ANTHROPIC_KEY))
    if provider == ProviderName.OPENAI:
        return _openai(config, _require_key(keys, OPENAI_KEY))
    return _ollama(config)


async def _auto_detect(config: Config, keys: Mapping[str, str]) -> AIProvider | None:
    logger.info("Auto-detecting best AI provider...")

    if keys.get(ANTHROPIC_KEY):
        logger.info("Using Anthropic Claude API")
        return _claude(config, keys[ANTHROPIC_KEY])

    if keys.get(OPENAI_KEY):
        logger.info("Using OpenAI API")
        return _openai(config, keys[OPENAI_KEY])

    ollama = _ollama(config)
    if await ollama.is_available():
        logger.info("Using Ollama (local model)")
        return ollama

    logger.info("No AI provider available, static analysis only")
    return None


def _require_key(keys: Mapping[str, str], name: str) -> str:
    key = keys.get(name)
    if not key:
        raise ConfigurationError(
            f"{name.title()} API key not configured (set {_KEY_ENV_VARS[name]})",
            config_key=f"{name}_api_key",
        )
    return key


def _claude(config: Config, api_key: str) -> ClaudeProvider:
    return ClaudeProvider(
        api_key=api_key,
        model=config.anthropic_model,
        timeout_seconds=config.ai_timeout_seconds,
    )


def _openai(config: Config, api_key: str) -> OpenAIProvider:
    return OpenAIProvider(
        api_key=api_key,
        model=config.openai_model,
        base_url=config.openai_base_url,
        timeout_seconds=config.ai_timeout_seconds,
    )


def _ollama(config: Config) -> OllamaProvider:
    return OllamaProvider(
        endpoint=config.ollama_endpoint,
        model=config.ollama_model,
        timeout_seconds=config.ai_timeout_seconds,
    )
