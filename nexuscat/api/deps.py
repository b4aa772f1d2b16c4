"""FastAPI dependencies resolving services from application state."""

from fastapi import Depends, Request

from nexuscat.catalog.manager import CatalogManager
from nexuscat.container import Services
from nexuscat.credentials.resolver import CredentialResolver
from nexuscat.discovery.registry import StrategyRegistry


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_catalog(services: Services = Depends(get_services)) -> CatalogManager:
    return services.catalog


def get_resolver(services: Services = Depends(get_services)) -> CredentialResolver:
    return services.resolver


def get_registry(services: Services = Depends(get_services)) -> StrategyRegistry:
    return services.registry
