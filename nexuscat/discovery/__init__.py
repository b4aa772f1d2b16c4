"""Model discovery for LLM providers.

This module provides:
- Discovery strategies (OpenAI-compatible ``/models`` listing, curated static
  registries) behind the :class:`ModelSource` protocol
- A case-insensitive strategy registry
- The orchestrator that caches, de-duplicates and isolates failures
"""

from nexuscat.discovery.base import ModelDescriptor, ModelSource, dedupe_descriptors, natural_key
from nexuscat.discovery.openai import OpenAICompatibleModelSource
from nexuscat.discovery.orchestrator import DiscoveryOrchestrator
from nexuscat.discovery.registry import StrategyRegistry, default_registry
from nexuscat.discovery.static import StaticModelSource

__all__ = [
    "ModelDescriptor",
    "ModelSource",
    "dedupe_descriptors",
    "natural_key",
    "OpenAICompatibleModelSource",
    "StaticModelSource",
    "StrategyRegistry",
    "default_registry",
    "DiscoveryOrchestrator",
]
