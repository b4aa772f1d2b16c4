"""Base protocol and types for model discovery."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import TYPE_CHECKING, Iterable, Protocol

if TYPE_CHECKING:
    from nexuscat.credentials.resolver import CredentialResolver

DEFAULT_MAX_TOKENS = 4096
DEFAULT_CONTEXT_WINDOW = 8192
DEFAULT_TEMPERATURE = 0.7

NaturalKey = tuple[str, str]


def fold_name(name: str | None) -> str:
    """Trim and casefold one half of a natural key."""
    return (name or "").strip().casefold()


def natural_key(provider_name: str, model_name: str) -> NaturalKey:
    """Return the case-insensitive, whitespace-trimmed identity of a model."""
    return fold_name(provider_name), fold_name(model_name)


@dataclass
class ModelDescriptor:
    """Catalog record for one (provider, model) pair.

    Discovery strategies return fresh descriptors (``id`` is None); the catalog
    returns detached copies of persisted rows with ``id`` set.
    """

    provider_name: str
    model_name: str
    display_name: str = ""
    description: str = ""
    supports_streaming: bool = True
    supports_vision: bool = False
    supports_code: bool = False
    supports_function_calling: bool = False
    max_tokens: int = DEFAULT_MAX_TOKENS
    max_context_window: int = DEFAULT_CONTEXT_WINDOW
    default_temperature: float = DEFAULT_TEMPERATURE
    use_count: int = 0
    last_used: datetime | None = None
    is_favorite: bool = False
    is_default: bool = False
    is_available: bool = True
    id: uuid.UUID | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not self.display_name:
            self.display_name = self.model_name

    @property
    def key(self) -> NaturalKey:
        return natural_key(self.provider_name, self.model_name)

    def copy(self, **changes) -> ModelDescriptor:
        return replace(self, **changes)

    @classmethod
    def placeholder(
        cls, provider_name: str, model_name: str, *, is_favorite: bool = False
    ) -> ModelDescriptor:
        """Minimal row for a model nobody has discovered yet."""
        return cls(
            provider_name=provider_name.strip(),
            model_name=model_name.strip(),
            description=f"{provider_name.strip()} model: {model_name.strip()}",
            supports_streaming=True,
            max_tokens=DEFAULT_MAX_TOKENS,
            max_context_window=DEFAULT_CONTEXT_WINDOW,
            is_favorite=is_favorite,
            is_available=True,
        )


def dedupe_descriptors(models: Iterable[ModelDescriptor]) -> list[ModelDescriptor]:
    """Drop later descriptors whose natural key was already seen."""
    seen: set[NaturalKey] = set()
    unique: list[ModelDescriptor] = []
    for model in models:
        if model.key in seen:
            continue
        seen.add(model.key)
        unique.append(model)
    return unique


class ModelSource(Protocol):
    """Protocol for provider discovery strategies.

    Implementations query a provider (or a curated registry) for the models it
    currently offers. They may raise :class:`~nexuscat.exceptions.DiscoveryError`;
    the orchestrator isolates failures per provider.
    """

    provider: str

    async def discover_models(self, resolver: "CredentialResolver") -> list[ModelDescriptor]:
        """Return the models this provider offers.

        Args:
            resolver: Used to check credential availability and obtain the key.

        Returns:
            List of discovered model descriptors, empty when the provider has
            no usable credential.
        """
        ...

    def supports_discovery(self) -> bool:
        """Return True if this provider supports dynamic model discovery.

        Returns:
            True for providers with /v1/models or similar API.
            False for providers requiring static/curated model lists.
        """
        ...
