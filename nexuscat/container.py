"""Construction of the service graph.

The resolver, orchestrator and catalog manager are plain objects wired here
once per application; nothing is created at import time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from nexuscat.catalog.manager import CatalogManager
from nexuscat.catalog.repository import CatalogRepository
from nexuscat.catalog.seeding import EnvironmentSeeder
from nexuscat.core.cache import Clock
from nexuscat.core.config import Settings
from nexuscat.core.scheduler import MaintenanceScheduler
from nexuscat.core.security import SecretEncryption
from nexuscat.credentials.resolver import CredentialResolver
from nexuscat.credentials.store import EncryptedSecretStore, SecretStore
from nexuscat.db.init import create_engine, create_session_factory, init_db
from nexuscat.discovery.orchestrator import DiscoveryOrchestrator
from nexuscat.discovery.registry import StrategyRegistry, default_registry

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything the HTTP layer and the scheduler need."""

    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    store: SecretStore
    resolver: CredentialResolver
    registry: StrategyRegistry
    orchestrator: DiscoveryOrchestrator
    repository: CatalogRepository
    catalog: CatalogManager
    seeder: EnvironmentSeeder
    scheduler: MaintenanceScheduler

    async def startup(self) -> None:
        """Create tables, load credentials, seed the catalog and start maintenance."""
        await init_db(self.engine)
        await self.resolver.initialize(self.registry.names())
        seeded = await self.seeder.seed()
        await self.catalog.initialize()
        self.scheduler.start(self.settings.reconcile_interval_minutes)
        logger.info("Services started (%d models seeded from environment)", seeded)

    async def shutdown(self) -> None:
        self.scheduler.stop()
        await self.engine.dispose()
        logger.info("Services stopped")


def build_services(
    settings: Settings,
    *,
    engine: AsyncEngine | None = None,
    store: SecretStore | None = None,
    registry: StrategyRegistry | None = None,
    clock: Clock | None = None,
) -> Services:
    """Wire the service graph described by ``settings``.

    Args:
        settings: Application settings.
        engine: Database engine; created from ``settings`` when omitted.
        store: Secret store; an encrypted database store when omitted.
        registry: Discovery strategies; the built-in set when omitted.
        clock: Monotonic clock shared by every cache.
    """
    if engine is None:
        engine = create_engine(settings)
    session_factory = create_session_factory(engine)
    store = store or EncryptedSecretStore(
        session_factory, SecretEncryption(settings.encryption_key)
    )
    if registry is None:
        registry = default_registry(settings)

    resolver = CredentialResolver.from_settings(store, settings, clock)
    orchestrator = DiscoveryOrchestrator.from_settings(registry, resolver, settings, clock)
    # A changed key can change what a provider lists.
    resolver.subscribe(orchestrator.invalidate)

    repository = CatalogRepository(session_factory)
    catalog = CatalogManager.from_settings(repository, orchestrator, resolver, settings)
    seeder = EnvironmentSeeder(
        store,
        repository,
        batch_size=settings.merge_batch_size,
        batch_delay=settings.merge_batch_delay_seconds,
    )

    return Services(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        store=store,
        resolver=resolver,
        registry=registry,
        orchestrator=orchestrator,
        repository=repository,
        catalog=catalog,
        seeder=seeder,
        scheduler=MaintenanceScheduler(catalog),
    )
