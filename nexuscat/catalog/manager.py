"""Catalog manager.

Keeps the persisted model catalog in step with what providers offer: merges
discovery results without duplicating rows, tracks the current model and
favorites, and reconciles duplicate rows left behind by concurrent writers.

Public methods never raise. Failures are logged and reported as ``[]``,
``False``, ``None`` or ``0``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timezone
from typing import Callable

from nexuscat.catalog.repository import CatalogRepository
from nexuscat.core.cancellation import CancellationToken
from nexuscat.core.config import Settings
from nexuscat.credentials.resolver import CredentialResolver
from nexuscat.discovery.base import ModelDescriptor, NaturalKey, natural_key
from nexuscat.discovery.orchestrator import DiscoveryOrchestrator
from nexuscat.exceptions import CancelledError
from nexuscat.models.catalog import CatalogModel

logger = logging.getLogger(__name__)

CurrentModelListener = Callable[[ModelDescriptor], None]

DEFAULT_BATCH_SIZE = 10
DEFAULT_BATCH_DELAY = 0.01


def _usage_rank(row: CatalogModel) -> tuple[float, int, bool]:
    """Sort key preferring most recently used, then most used, then favorite."""
    if row.last_used is None:
        last_used = float("-inf")
    else:
        stamp = row.last_used
        if stamp.tzinfo is None:
            stamp = stamp.replace(tzinfo=timezone.utc)
        last_used = stamp.timestamp()
    return last_used, row.use_count, row.is_favorite


class CatalogManager:
    """Public entry point for reading and updating the model catalog."""

    def __init__(
        self,
        repository: CatalogRepository,
        orchestrator: DiscoveryOrchestrator,
        resolver: CredentialResolver,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = DEFAULT_BATCH_DELAY,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self._repository = repository
        self._orchestrator = orchestrator
        self._resolver = resolver
        self._batch_size = batch_size
        self._batch_delay = batch_delay
        self._listeners: list[CurrentModelListener] = []

    @classmethod
    def from_settings(
        cls,
        repository: CatalogRepository,
        orchestrator: DiscoveryOrchestrator,
        resolver: CredentialResolver,
        settings: Settings,
    ) -> CatalogManager:
        return cls(
            repository,
            orchestrator,
            resolver,
            batch_size=settings.merge_batch_size,
            batch_delay=settings.merge_batch_delay_seconds,
        )

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def initialize(self) -> ModelDescriptor | None:
        """Pick a current model when none is set.

        Prefers a model flagged as default, otherwise the first catalog row.
        """
        try:
            current = await self._repository.get_current()
            if current is not None:
                return current.to_descriptor()

            defaults = await self._repository.get_default_models()
            candidates = defaults or await self._repository.get_all()
            if not candidates:
                logger.info("Catalog is empty, no current model selected")
                return None

            chosen = candidates[0]
            await self._repository.set_current(chosen.id)
            logger.info(
                "Selected %s/%s as current model", chosen.provider_name, chosen.model_name
            )
            return chosen.to_descriptor()
        except Exception:
            logger.exception("Error initializing catalog")
            return None

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def get_all(self) -> list[ModelDescriptor]:
        """Catalog models whose provider currently has a usable credential.

        An empty catalog is populated by a discovery merge first.
        """
        try:
            rows = await self._repository.get_all()
            if not rows:
                await self.discover_and_merge()
                rows = await self._repository.get_all()

            usable: dict[str, bool] = {}
            models: list[ModelDescriptor] = []
            for row in rows:
                provider = row.provider_name.strip().casefold()
                if provider not in usable:
                    usable[provider] = await self._resolver.has_usable_credential(
                        row.provider_name
                    )
                if usable[provider]:
                    models.append(row.to_descriptor())
            return models
        except Exception:
            logger.exception("Error listing catalog models")
            return []

    async def get_all_unfiltered(self) -> list[ModelDescriptor]:
        """Every catalog row, regardless of credentials."""
        try:
            return [row.to_descriptor() for row in await self._repository.get_all()]
        except Exception:
            logger.exception("Error listing catalog models")
            return []

    async def get_by_provider(self, provider_name: str) -> list[ModelDescriptor]:
        if not provider_name or not provider_name.strip():
            return []
        try:
            rows = await self._repository.get_by_provider(provider_name)
            return [row.to_descriptor() for row in rows]
        except Exception:
            logger.exception("Error listing models for %s", provider_name)
            return []

    async def get_favorites(self) -> list[ModelDescriptor]:
        try:
            return [row.to_descriptor() for row in await self._repository.get_favorites()]
        except Exception:
            logger.exception("Error listing favorite models")
            return []

    async def get_current(self) -> ModelDescriptor | None:
        try:
            row = await self._repository.get_current()
            return row.to_descriptor() if row is not None else None
        except Exception:
            logger.exception("Error loading current model")
            return None

    # ------------------------------------------------------------------
    # Discovery merge
    # ------------------------------------------------------------------

    async def discover_and_merge(self, cancel_token: CancellationToken | None = None) -> int:
        """Discover models and insert the ones not yet in the catalog.

        Duplicates are reconciled first. New rows are written in batches with
        a short pause between batches; ``cancel_token`` is checked before each
        batch and a cancelled run keeps what it already inserted.

        Returns:
            Number of rows inserted.
        """
        inserted = 0
        try:
            await self._reconcile()

            discovered = await self._orchestrator.discover_all()
            existing = await self._repository.existing_keys()

            pending: list[ModelDescriptor] = []
            for model in discovered:
                if model.key in existing:
                    continue
                existing.add(model.key)
                pending.append(model)

            for start in range(0, len(pending), self._batch_size):
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled()
                if start:
                    await asyncio.sleep(self._batch_delay)
                batch = pending[start : start + self._batch_size]
                inserted += await self._repository.add_many(batch, source="discovered")

            logger.info(
                "Merged discovery results: %d discovered, %d inserted", len(discovered), inserted
            )
            return inserted
        except CancelledError as e:
            logger.info("Discovery merge cancelled after %d inserts: %s", inserted, e)
            return inserted
        except Exception:
            logger.exception("Error merging discovered models")
            return 0

    # ------------------------------------------------------------------
    # Current model, favorites, defaults, usage
    # ------------------------------------------------------------------

    async def set_current(self, model: ModelDescriptor) -> bool:
        """Make ``model`` the current model, adding it to the catalog if missing.

        Listeners are notified and the model's usage is recorded.
        """
        if not model.provider_name.strip() or not model.model_name.strip():
            return False
        try:
            row = await self._repository.get_by_key(model.provider_name, model.model_name)
            if row is None:
                row = await self._repository.add(model, source="user")

            await self._repository.set_current(row.id)
            await self._repository.record_usage(row.id)
            refreshed = await self._repository.get_by_id(row.id)
            current = (refreshed or row).to_descriptor()
        except Exception:
            logger.exception(
                "Error setting current model %s/%s", model.provider_name, model.model_name
            )
            return False

        logger.info("Current model set to %s/%s", current.provider_name, current.model_name)
        self._notify(current)
        return True

    async def set_favorite(self, provider_name: str, model_name: str, is_favorite: bool) -> bool:
        """Flag a model as favorite (or not).

        A model missing from the catalog is looked up with a targeted discovery
        for its provider; if discovery does not know it either, a placeholder
        row is created so the preference is not lost.
        """
        if not provider_name or not provider_name.strip() or not model_name or not model_name.strip():
            return False
        try:
            row = await self._repository.get_by_key(provider_name, model_name)
            if row is not None:
                return await self._repository.set_favorite(row.id, is_favorite)

            wanted = natural_key(provider_name, model_name)
            discovered = await self._orchestrator.discover_provider(provider_name)
            match = next((model for model in discovered if model.key == wanted), None)
            if match is not None:
                await self._repository.add(match.copy(is_favorite=is_favorite), source="discovered")
                logger.info("Added discovered model %s/%s as favorite", provider_name, model_name)
                return True

            placeholder = ModelDescriptor.placeholder(
                provider_name, model_name, is_favorite=is_favorite
            )
            await self._repository.add(placeholder, source="placeholder")
            logger.info("Created placeholder for unknown model %s/%s", provider_name, model_name)
            return True
        except Exception:
            logger.exception("Error updating favorite for %s/%s", provider_name, model_name)
            return False

    async def set_default(self, provider_name: str, model_name: str) -> bool:
        """Make the model its provider's single default."""
        try:
            row = await self._repository.get_by_key(provider_name, model_name)
            if row is None:
                logger.debug("Cannot set default, %s/%s not in catalog", provider_name, model_name)
                return False
            return await self._repository.set_default(row.id)
        except Exception:
            logger.exception("Error setting default model %s/%s", provider_name, model_name)
            return False

    async def record_usage(self, provider_name: str, model_name: str) -> bool:
        try:
            row = await self._repository.get_by_key(provider_name, model_name)
            if row is None:
                return False
            return await self._repository.record_usage(row.id)
        except Exception:
            logger.exception("Error recording usage for %s/%s", provider_name, model_name)
            return False

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def reconcile_duplicates(self) -> int:
        """Collapse rows sharing a natural key into one.

        The survivor is the most recently used row, then the most used, then a
        favorite. A current-model pointer at a removed row moves to the
        survivor.

        Returns:
            Number of rows removed.
        """
        try:
            return await self._reconcile()
        except Exception:
            logger.exception("Error reconciling duplicate models")
            return 0

    async def _reconcile(self) -> int:
        groups: dict[NaturalKey, list[CatalogModel]] = {}
        for row in await self._repository.get_all():
            groups.setdefault(row.key, []).append(row)

        doomed = []
        survivors = {}
        for rows in groups.values():
            if len(rows) < 2:
                continue
            ranked = sorted(rows, key=_usage_rank, reverse=True)
            for row in ranked[1:]:
                doomed.append(row.id)
                survivors[row.id] = ranked[0].id

        if not doomed:
            return 0

        current = await self._repository.get_current()
        if current is not None and current.id in survivors:
            await self._repository.set_current(survivors[current.id])

        removed = await self._repository.delete_many(doomed)
        logger.info("Removed %d duplicate catalog rows", removed)
        return removed

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def subscribe(self, listener: CurrentModelListener) -> None:
        """Call ``listener(model)`` whenever the current model changes."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: CurrentModelListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, model: ModelDescriptor) -> None:
        for listener in list(self._listeners):
            try:
                listener(model)
            except Exception:
                logger.exception("Current model listener failed")
