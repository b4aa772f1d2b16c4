"""Registry mapping provider names to discovery strategies."""

from __future__ import annotations

import logging
from typing import Iterator

from nexuscat.core.config import Settings
from nexuscat.discovery.base import ModelSource

logger = logging.getLogger(__name__)


class StrategyRegistry:
    """Case-insensitive provider name to :class:`ModelSource` lookup."""

    def __init__(self, sources: list[ModelSource] | None = None) -> None:
        self._sources: dict[str, ModelSource] = {}
        for source in sources or []:
            self.register(source)

    @staticmethod
    def _key(provider: str) -> str:
        return provider.strip().casefold()

    def register(self, source: ModelSource, provider: str | None = None) -> None:
        """Register ``source`` under ``provider`` (defaults to ``source.provider``).

        Registering a second source under the same name replaces the first.
        """
        name = provider or source.provider
        if not name or not name.strip():
            raise ValueError("provider name is required")
        if self._key(name) in self._sources:
            logger.info("Replacing discovery strategy for %s", name)
        self._sources[self._key(name)] = source

    def unregister(self, provider: str) -> bool:
        return self._sources.pop(self._key(provider), None) is not None

    def get(self, provider: str) -> ModelSource | None:
        if not provider or not provider.strip():
            return None
        return self._sources.get(self._key(provider))

    def names(self) -> list[str]:
        """Display names of the registered providers, in registration order."""
        return [source.provider for source in self._sources.values()]

    def __contains__(self, provider: object) -> bool:
        return isinstance(provider, str) and self.get(provider) is not None

    def __iter__(self) -> Iterator[ModelSource]:
        return iter(list(self._sources.values()))

    def __len__(self) -> int:
        return len(self._sources)


def default_registry(settings: Settings) -> StrategyRegistry:
    """Registry with the built-in OpenAI, Groq, OpenRouter and Anthropic strategies."""
    from nexuscat.discovery.openai import OpenAICompatibleModelSource
    from nexuscat.discovery.static import StaticModelSource

    timeout = settings.discovery_timeout_seconds
    return StrategyRegistry(
        [
            OpenAICompatibleModelSource("OpenAI", timeout=timeout),
            OpenAICompatibleModelSource("Groq", timeout=timeout),
            OpenAICompatibleModelSource(
                "OpenRouter",
                timeout=timeout,
                fallback=StaticModelSource("OpenRouter"),
            ),
            StaticModelSource("Anthropic"),
        ]
    )
