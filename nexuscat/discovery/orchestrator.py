"""Model discovery orchestration.

Fans discovery out to every registered strategy, isolates per-provider
failures, caches each provider's result for a TTL and merges everything into
one de-duplicated list.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from nexuscat.core.cache import CacheState, Clock, TTLCache
from nexuscat.core.config import Settings
from nexuscat.credentials.resolver import CredentialResolver
from nexuscat.discovery.base import ModelDescriptor, ModelSource, dedupe_descriptors
from nexuscat.discovery.registry import StrategyRegistry
from nexuscat.exceptions import DiscoveryError

logger = logging.getLogger(__name__)

DEFAULT_DISCOVERY_TTL = 600.0


class DiscoveryOrchestrator:
    """Runs discovery strategies with caching and single-flight fetches.

    Usage:
        orchestrator = DiscoveryOrchestrator(default_registry(settings), resolver)
        models = await orchestrator.discover_all()
    """

    def __init__(
        self,
        registry: StrategyRegistry,
        resolver: CredentialResolver,
        *,
        cache: TTLCache[list[ModelDescriptor]] | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._registry = registry
        self._resolver = resolver
        self._cache = cache if cache is not None else TTLCache(DEFAULT_DISCOVERY_TTL, clock)
        self._discovery_lock: asyncio.Lock | None = None
        self._lock_loop: asyncio.AbstractEventLoop | None = None
        self._in_flight: dict[str, asyncio.Task[list[ModelDescriptor]]] = {}

    @classmethod
    def from_settings(
        cls,
        registry: StrategyRegistry,
        resolver: CredentialResolver,
        settings: Settings,
        clock: Clock | None = None,
    ) -> DiscoveryOrchestrator:
        return cls(
            registry,
            resolver,
            cache=TTLCache(settings.discovery_cache_ttl_seconds, clock),
        )

    def _loop_lock(self) -> asyncio.Lock:
        """Full-discovery lock for the running event loop.

        An ``asyncio.Lock`` binds to the loop it is first contended on, so a new
        one is made when the orchestrator is driven from a different loop.
        """
        loop = asyncio.get_running_loop()
        if self._discovery_lock is None or self._lock_loop is not loop:
            self._discovery_lock = asyncio.Lock()
            self._lock_loop = loop
        return self._discovery_lock

    @property
    def registry(self) -> StrategyRegistry:
        return self._registry

    async def discover_all(self) -> list[ModelDescriptor]:
        """Discover models from every registered provider.

        Only one full discovery runs at a time; a second caller waits for the
        first to finish and is then served mostly from cache.
        """
        async with self._loop_lock():
            return await self._discover_many(self._registry.names())

    async def discover_for_providers(self, providers: Iterable[str]) -> list[ModelDescriptor]:
        """Discover models for a subset of providers, without the full-discovery lock."""
        return await self._discover_many(list(providers))

    async def _discover_many(self, providers: list[str]) -> list[ModelDescriptor]:
        if not providers:
            return []

        results = await asyncio.gather(
            *(self.discover_provider(provider) for provider in providers),
            return_exceptions=True,
        )

        combined: list[ModelDescriptor] = []
        for provider, result in zip(providers, results):
            if isinstance(result, BaseException):
                logger.error("Discovery task for %s failed: %s", provider, result)
                continue
            combined.extend(result)

        unique = dedupe_descriptors(combined)
        logger.info(
            "Discovered %d unique models across %d providers", len(unique), len(providers)
        )
        return unique

    async def discover_provider(self, provider: str) -> list[ModelDescriptor]:
        """Discover one provider's models, served from cache while fresh.

        Concurrent callers for the same provider share a single strategy call.
        Failures yield an empty list and are not cached.
        """
        if not provider or not provider.strip():
            return []

        source = self._registry.get(provider)
        if source is None:
            logger.debug("No discovery strategy registered for %s", provider)
            return []

        entry = self._cache.get_fresh(provider)
        if entry is not None:
            logger.debug("Discovery cache hit for %s", provider)
            return [model.copy() for model in entry.value]

        key = provider.strip().casefold()
        task = self._in_flight.get(key)
        if task is None or task.get_loop() is not asyncio.get_running_loop():
            task = asyncio.create_task(self._fetch(provider, source))
            self._in_flight[key] = task
            task.add_done_callback(lambda done, key=key: self._forget(key, done))

        try:
            models = await asyncio.shield(task)
        except Exception:
            logger.exception("Unexpected error awaiting discovery for %s", provider)
            return []
        return [model.copy() for model in models]

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    async def _fetch(self, provider: str, source: ModelSource) -> list[ModelDescriptor]:
        try:
            models = await source.discover_models(self._resolver)
        except DiscoveryError as e:
            logger.error("Discovery failed for %s: %s", provider, e.message)
            return []
        except Exception:
            logger.exception("Unexpected error discovering models for %s", provider)
            return []

        models = dedupe_descriptors(models)
        self._cache.set(provider, models)
        logger.info("Cached %d models for %s", len(models), provider)
        return models

    def cache_state(self, provider: str) -> CacheState:
        return self._cache.state(provider)

    def clear_cache(self) -> None:
        """Drop every provider's cached discovery result."""
        self._cache.clear()
        logger.info("Discovery cache cleared")

    def invalidate(self, provider: str) -> bool:
        """Drop one provider's cached discovery result."""
        return self._cache.invalidate(provider)
