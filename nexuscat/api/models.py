"""Model catalog API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status

from nexuscat.api.deps import get_catalog
from nexuscat.api.schemas.model import (
    DiscoverResponse,
    FavoriteUpdate,
    ModelListResponse,
    ModelResponse,
    ModelSelection,
    ReconcileResponse,
)
from nexuscat.catalog.manager import CatalogManager
from nexuscat.discovery.base import ModelDescriptor

router = APIRouter(prefix="/models", tags=["models"])


def _list_response(models: list[ModelDescriptor]) -> ModelListResponse:
    return ModelListResponse(
        items=[ModelResponse.model_validate(model) for model in models],
        total=len(models),
    )


@router.get("", response_model=ModelListResponse)
async def list_models(catalog: CatalogManager = Depends(get_catalog)) -> ModelListResponse:
    """List catalog models whose provider has a usable credential.

    An empty catalog is populated by discovery first.
    """
    return _list_response(await catalog.get_all())


@router.get("/all", response_model=ModelListResponse)
async def list_all_models(catalog: CatalogManager = Depends(get_catalog)) -> ModelListResponse:
    """List every catalog model, regardless of credentials."""
    return _list_response(await catalog.get_all_unfiltered())


@router.get("/favorites", response_model=ModelListResponse)
async def list_favorite_models(
    catalog: CatalogManager = Depends(get_catalog),
) -> ModelListResponse:
    return _list_response(await catalog.get_favorites())


@router.post("/discover", response_model=DiscoverResponse)
async def discover_models(catalog: CatalogManager = Depends(get_catalog)) -> DiscoverResponse:
    """Run discovery for every provider and merge new models into the catalog."""
    inserted = await catalog.discover_and_merge()
    return DiscoverResponse(inserted=inserted)


@router.get("/current", response_model=ModelResponse)
async def get_current_model(catalog: CatalogManager = Depends(get_catalog)) -> ModelResponse:
    """Get the currently selected model."""
    current = await catalog.get_current()
    if current is None:
        raise HTTPException(status_code=404, detail="No current model selected")
    return ModelResponse.model_validate(current)


@router.put("/current", response_model=ModelResponse)
async def set_current_model(
    selection: ModelSelection,
    catalog: CatalogManager = Depends(get_catalog),
) -> ModelResponse:
    """Select the current model, adding it to the catalog if it is missing."""
    model = ModelDescriptor.placeholder(selection.provider_name, selection.model_name)
    if not await catalog.set_current(model):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to set current model",
        )
    current = await catalog.get_current()
    if current is None:
        raise HTTPException(status_code=404, detail="No current model selected")
    return ModelResponse.model_validate(current)


@router.put("/favorite", status_code=status.HTTP_204_NO_CONTENT)
async def set_favorite_model(
    update: FavoriteUpdate,
    catalog: CatalogManager = Depends(get_catalog),
) -> None:
    """Flag or unflag a model as favorite.

    Unknown models are discovered or created as placeholders.
    """
    if not await catalog.set_favorite(update.provider_name, update.model_name, update.is_favorite):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update favorite",
        )


@router.put("/default", status_code=status.HTTP_204_NO_CONTENT)
async def set_default_model(
    selection: ModelSelection,
    catalog: CatalogManager = Depends(get_catalog),
) -> None:
    """Make a catalog model its provider's default."""
    if not await catalog.set_default(selection.provider_name, selection.model_name):
        raise HTTPException(status_code=404, detail="Model not found")


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile_models(catalog: CatalogManager = Depends(get_catalog)) -> ReconcileResponse:
    """Remove duplicate catalog rows."""
    removed = await catalog.reconcile_duplicates()
    return ReconcileResponse(removed=removed)
