"""Provider credential API endpoints.

Keys are write-only: responses carry a masked form at most.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from nexuscat.api.deps import get_registry, get_resolver
from nexuscat.api.schemas.credential import (
    CredentialListResponse,
    CredentialStatus,
    CredentialUpdate,
)
from nexuscat.credentials.resolver import CredentialResolver
from nexuscat.discovery.registry import StrategyRegistry

router = APIRouter(prefix="/credentials", tags=["credentials"])


async def _status(resolver: CredentialResolver, provider: str) -> CredentialStatus:
    has_key, masked_key = await resolver.masked(provider)
    return CredentialStatus(
        provider=provider,
        has_key=has_key,
        available=await resolver.has_usable_credential(provider),
        masked_key=masked_key,
    )


@router.get("", response_model=CredentialListResponse)
async def list_credentials(
    resolver: CredentialResolver = Depends(get_resolver),
    registry: StrategyRegistry = Depends(get_registry),
) -> CredentialListResponse:
    """Credential status for every provider with a discovery strategy."""
    items = [await _status(resolver, provider) for provider in registry.names()]
    return CredentialListResponse(items=items)


@router.put("/{provider}", response_model=CredentialStatus)
async def save_credential(
    provider: str,
    update: CredentialUpdate,
    resolver: CredentialResolver = Depends(get_resolver),
) -> CredentialStatus:
    """Store an API key for a provider, or for one of its models.

    The key's format is validated before it is stored.
    """
    if update.model_name:
        saved = await resolver.save_model_specific(provider, update.model_name, update.api_key)
    else:
        saved = await resolver.save(provider, update.api_key)

    if not saved:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"API key for {provider} was rejected or could not be stored",
        )
    return await _status(resolver, provider)


@router.delete("/{provider}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_credential(
    provider: str,
    resolver: CredentialResolver = Depends(get_resolver),
) -> None:
    """Remove the stored API key for a provider.

    Keys supplied by the environment are unaffected.
    """
    if not await resolver.delete(provider):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete API key for {provider}",
        )
