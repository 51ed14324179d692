"""Provider registry: name -> adapter class."""

from __future__ import annotations

import logging

from daberu.providers.anthropic import AnthropicAdapter
from daberu.providers.base import ProviderAdapter
from daberu.providers.openai import OpenAIAdapter

log = logging.getLogger(__name__)

_PROVIDERS: dict[str, type] = {
    "openai": OpenAIAdapter,
    "anthropic": AnthropicAdapter,
}

# Alternate names accepted on the command line and in config.
_ALIASES: dict[str, str] = {
    "chatgpt": "openai",
    "gpt": "openai",
    "claude": "anthropic",
}


def get_provider(name: str, config: dict | None = None) -> ProviderAdapter:
    """Get a provider adapter instance by name.

    Args:
        name: Provider name ('openai', 'anthropic') or an alias.
        config: Provider-specific options (base_url, max_tokens).

    Raises:
        ValueError: Unknown provider name.
    """
    key = _ALIASES.get(name.lower(), name.lower())
    cls = _PROVIDERS.get(key)
    if cls is None:
        available = ", ".join(list_providers())
        raise ValueError(f"Unknown provider '{name}'. Available: {available}")
    log.debug("Using provider %s", key)
    return cls(config)


def list_providers() -> list[str]:
    """Return all available provider names."""
    return sorted(_PROVIDERS.keys())


def infer_provider(model: str) -> str:
    """Guess the provider from a model identifier."""
    if model.lower().startswith("claude"):
        return "anthropic"
    return "openai"
