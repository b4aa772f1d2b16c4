"""Static/curated model source adapter.

For providers without a usable model listing API (or as a fallback when the
listing call fails), returns curated model lists from a built-in registry.
A curated list is only offered when the provider has a usable credential.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from nexuscat.discovery.base import ModelDescriptor

if TYPE_CHECKING:
    from nexuscat.credentials.resolver import CredentialResolver

logger = logging.getLogger(__name__)

# Curated model registries by provider name
ANTHROPIC_MODELS: list[dict] = [
    {"id": "claude-3-5-sonnet-20241022", "name": "Claude 3.5 Sonnet", "context": 200000, "tokens": 8192, "vision": True},
    {"id": "claude-3-5-haiku-20241022", "name": "Claude 3.5 Haiku", "context": 200000, "tokens": 8192},
    {"id": "claude-3-opus-20240229", "name": "Claude 3 Opus", "context": 200000, "tokens": 4096, "vision": True},
    {"id": "claude-3-sonnet-20240229", "name": "Claude 3 Sonnet", "context": 200000, "tokens": 4096, "vision": True},
    {"id": "claude-3-haiku-20240307", "name": "Claude 3 Haiku", "context": 200000, "tokens": 4096, "vision": True},
]

OPENROUTER_FALLBACK_MODELS: list[dict] = [
    {
        "id": "anthropic/claude-3-opus",
        "name": "Claude 3 Opus",
        "description": "Claude 3 Opus - Anthropic's most powerful model",
        "context": 200000,
        "tokens": 4096,
        "vision": True,
    },
    {
        "id": "anthropic/claude-3-sonnet",
        "name": "Claude 3 Sonnet",
        "description": "Claude 3 Sonnet - balanced performance & quality",
        "context": 200000,
        "tokens": 4096,
        "vision": True,
    },
    {
        "id": "anthropic/claude-3-haiku",
        "name": "Claude 3 Haiku",
        "description": "Claude 3 Haiku - fastest & most compact Claude model",
        "context": 200000,
        "tokens": 4096,
        "vision": True,
    },
    {
        "id": "anthropic/claude-3.5-sonnet",
        "name": "Claude 3.5 Sonnet (via OpenRouter)",
        "description": "Anthropic's most advanced model",
        "context": 200000,
        "tokens": 4096,
        "vision": True,
    },
    {
        "id": "openai/gpt-4o",
        "name": "GPT-4o (via OpenRouter)",
        "description": "OpenAI's latest multimodal model",
        "context": 128000,
        "tokens": 4096,
        "vision": True,
    },
    {
        "id": "openai/gpt-4-turbo",
        "name": "GPT-4 Turbo",
        "description": "GPT-4 Turbo - Latest OpenAI model",
        "context": 128000,
        "tokens": 4096,
    },
    {
        "id": "openai/gpt-3.5-turbo",
        "name": "GPT-3.5 Turbo",
        "description": "GPT-3.5 Turbo - Fast and economical",
        "context": 16385,
        "tokens": 4096,
    },
    {
        "id": "google/gemini-1.5-pro",
        "name": "Gemini 1.5 Pro (via OpenRouter)",
        "description": "Google's advanced model with large context",
        "context": 1048576,
        "tokens": 8192,
        "vision": True,
    },
    {
        "id": "google/gemini-1.5-flash",
        "name": "Gemini 1.5 Flash",
        "description": "Gemini 1.5 Flash - Fast response model",
        "context": 128000,
        "tokens": 8192,
        "vision": True,
    },
    {
        "id": "mistralai/mistral-large",
        "name": "Mistral Large",
        "description": "Mistral Large - advanced reasoning",
        "context": 32768,
        "tokens": 8192,
    },
    {
        "id": "meta-llama/llama-3.1-405b-instruct",
        "name": "Llama 3.1 405B Instruct (via OpenRouter)",
        "description": "Meta's largest instruction-tuned model",
        "context": 131072,
        "tokens": 4096,
    },
    {
        "id": "meta-llama/llama-3-70b-instruct",
        "name": "Llama 3 70B Instruct",
        "description": "Llama 3 70B - Meta's flagship model",
        "context": 8192,
        "tokens": 8192,
    },
]

# Registry mapping normalized provider names to curated model lists
STATIC_REGISTRIES: dict[str, list[dict]] = {
    "anthropic": ANTHROPIC_MODELS,
    "openrouter": OPENROUTER_FALLBACK_MODELS,
}


class StaticModelSource:
    """Model source backed by a curated registry.

    Returns nothing when the provider has no usable credential, so a curated
    list never advertises models the user cannot call.
    """

    def __init__(self, provider: str) -> None:
        """Initialize static model source.

        Args:
            provider: Provider name to return curated models for.
        """
        self.provider = provider

    async def discover_models(self, resolver: CredentialResolver) -> list[ModelDescriptor]:
        """Return the curated model list for this provider.

        Args:
            resolver: Used to check the provider has a usable credential.

        Returns:
            List of curated ModelDescriptor instances. Empty if the provider
            has no registry or no usable credential.
        """
        registry = STATIC_REGISTRIES.get(self.provider.strip().casefold(), [])
        if not registry:
            logger.warning("No curated model registry for provider %s", self.provider)
            return []

        if not await resolver.has_usable_credential(self.provider):
            logger.debug("No usable credential for %s, skipping curated models", self.provider)
            return []

        models = [self._to_descriptor(entry) for entry in registry]
        logger.info("Returned %d curated models for %s", len(models), self.provider)
        return models

    def _to_descriptor(self, entry: dict) -> ModelDescriptor:
        return ModelDescriptor(
            provider_name=self.provider,
            model_name=entry["id"],
            display_name=entry.get("name", entry["id"]),
            description=entry.get("description", f"{self.provider} model: {entry['id']}"),
            supports_streaming=True,
            supports_vision=entry.get("vision", False),
            supports_code=True,
            max_tokens=entry.get("tokens", 4096),
            max_context_window=entry.get("context", 8192),
        )

    def supports_discovery(self) -> bool:
        """Return False - static sources don't support dynamic discovery."""
        return False
