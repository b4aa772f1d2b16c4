"""Model catalog: persistence, merge, favorites and environment seeding."""

from nexuscat.catalog.manager import CatalogManager
from nexuscat.catalog.repository import CatalogRepository
from nexuscat.catalog.seeding import EnvironmentSeeder, normalize_provider_name

__all__ = [
    "CatalogManager",
    "CatalogRepository",
    "EnvironmentSeeder",
    "normalize_provider_name",
]
