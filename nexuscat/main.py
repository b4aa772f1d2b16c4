"""FastAPI application.

Serve ``nexuscat.main:create_app`` with an ASGI server in factory mode.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from nexuscat.api.credentials import router as credentials_router
from nexuscat.api.models import router as models_router
from nexuscat.container import Services, build_services
from nexuscat.core.config import Settings, get_settings


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the server process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Build the application.

    Args:
        settings: Application settings; loaded from the environment if omitted.
        services: Pre-built services. When given, the lifespan does not start
            or stop them.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if services is not None:
            app.state.services = services
            yield
            return

        configure_logging(settings.log_level)
        built = build_services(settings)
        app.state.services = built
        await built.startup()
        yield
        await built.shutdown()

    app = FastAPI(title=settings.api_title, version=settings.api_version, lifespan=lifespan)
    if services is not None:
        app.state.services = services

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register API routers
    app.include_router(models_router, prefix=settings.api_prefix)
    app.include_router(credentials_router, prefix=settings.api_prefix)

    @app.get("/")
    async def root() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy"}

    return app
