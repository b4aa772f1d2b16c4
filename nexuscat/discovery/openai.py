"""OpenAI-compatible model source adapter.

Supports providers exposing an OpenAI-style ``GET /models`` listing:
- OpenAI
- Groq
- OpenRouter
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from nexuscat.discovery.base import DEFAULT_CONTEXT_WINDOW, DEFAULT_MAX_TOKENS, ModelDescriptor
from nexuscat.exceptions import DiscoveryConnectionError, DiscoveryError, DiscoveryStatusError

if TYPE_CHECKING:
    from nexuscat.credentials.resolver import CredentialResolver
    from nexuscat.discovery.base import ModelSource

logger = logging.getLogger(__name__)

# Default endpoints per provider
DEFAULT_ENDPOINTS: dict[str, str] = {
    "openai": "https://api.openai.com/v1",
    "groq": "https://api.groq.com/openai/v1",
    "openrouter": "https://openrouter.ai/api/v1",
}


class OpenAICompatibleModelSource:
    """Model source for OpenAI-compatible providers.

    Calls the ``/models`` endpoint with a Bearer token. When a ``fallback``
    source is given, its models are returned if the listing call fails.
    """

    def __init__(
        self,
        provider: str,
        base_url: str | None = None,
        timeout: float = 30.0,
        fallback: ModelSource | None = None,
    ) -> None:
        """Initialize OpenAI-compatible model source.

        Args:
            provider: Provider name, also used to resolve the API key.
            base_url: API base URL; defaults to the provider's public endpoint.
            timeout: HTTP request timeout in seconds.
            fallback: Source consulted when the listing call fails.
        """
        self.provider = provider
        self.base_url = base_url or DEFAULT_ENDPOINTS.get(provider.strip().casefold(), "")
        self.timeout = timeout
        self.fallback = fallback

    async def discover_models(self, resolver: CredentialResolver) -> list[ModelDescriptor]:
        """Fetch available models from the provider's ``/models`` endpoint.

        Args:
            resolver: Credential resolver used for the availability check and
                the API key.

        Returns:
            List of ModelDescriptor for each listed model. Empty when the
            provider has no usable credential.

        Raises:
            DiscoveryError: If the endpoint is unreachable or returns an error
                status and no fallback source is configured.
        """
        if not await resolver.has_usable_credential(self.provider):
            logger.debug("No usable credential for %s, skipping discovery", self.provider)
            return []

        try:
            return await self._list_models(resolver)
        except DiscoveryError as e:
            if self.fallback is None:
                raise
            logger.warning(
                "Model listing failed for %s (%s), using curated fallback",
                self.provider,
                e.message,
            )
            return await self.fallback.discover_models(resolver)

    async def _list_models(self, resolver: CredentialResolver) -> list[ModelDescriptor]:
        if not self.base_url:
            raise DiscoveryError(
                f"No base_url configured for provider {self.provider}", provider=self.provider
            )

        api_key = await resolver.resolve(self.provider)
        if not api_key:
            logger.debug("Credential for %s disappeared before discovery", self.provider)
            return []

        headers = {"Authorization": f"Bearer {api_key}"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(f"{self.base_url.rstrip('/')}/models", headers=headers)
        except httpx.RequestError as e:
            logger.error("Request error discovering models from %s: %s", self.provider, str(e))
            raise DiscoveryConnectionError(
                f"Could not reach {self.provider}: {e}", provider=self.provider
            ) from e

        if response.status_code >= 400:
            error = DiscoveryStatusError.from_response(self.provider, response)
            logger.error("HTTP error discovering models from %s: %s", self.provider, error.message)
            raise error

        try:
            models = self._parse_listing(response.json())
        except (ValueError, TypeError, AttributeError) as e:
            logger.error("Malformed model listing from %s: %s", self.provider, str(e))
            raise DiscoveryError(
                f"Malformed model listing from {self.provider}: {e}", provider=self.provider
            ) from e

        logger.info("Discovered %d models from %s", len(models), self.provider)
        return models

    def _parse_listing(self, payload: Any) -> list[ModelDescriptor]:
        if not isinstance(payload, dict) or not isinstance(payload.get("data", []), list):
            raise ValueError("expected an object with a 'data' list")

        models: list[ModelDescriptor] = []
        for model_data in payload.get("data", []):
            if not isinstance(model_data, dict):
                raise ValueError(f"unexpected model entry {model_data!r}")
            descriptor = self._to_descriptor(model_data)
            if descriptor is not None:
                models.append(descriptor)
        return models

    def _to_descriptor(self, model_data: dict[str, Any]) -> ModelDescriptor | None:
        model_id = (model_data.get("id") or "").strip()
        if not model_id or model_data.get("active") is False:
            return None

        top_provider = model_data.get("top_provider") or {}
        context = (
            model_data.get("context_length")
            or model_data.get("context_window")
            or top_provider.get("context_length")
            or DEFAULT_CONTEXT_WINDOW
        )
        max_tokens = (
            model_data.get("max_completion_tokens")
            or top_provider.get("max_completion_tokens")
            or DEFAULT_MAX_TOKENS
        )
        modality = (model_data.get("architecture") or {}).get("modality") or ""

        return ModelDescriptor(
            provider_name=self.provider,
            model_name=model_id,
            display_name=model_data.get("name") or model_id,
            description=model_data.get("description") or f"{self.provider} model: {model_id}",
            supports_streaming=True,
            supports_vision="image" in modality.split("->")[0],
            max_tokens=int(max_tokens),
            max_context_window=int(context),
        )

    def supports_discovery(self) -> bool:
        """Return True - OpenAI-compatible providers support /models."""
        return True
