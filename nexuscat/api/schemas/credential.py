"""Pydantic schemas for credential API endpoints."""

from typing import Optional

from pydantic import BaseModel, Field


class CredentialUpdate(BaseModel):
    """Schema for saving an API key."""

    api_key: str = Field(..., min_length=1, description="API key to store (never returned)")
    model_name: Optional[str] = Field(
        None,
        description="Store the key for this model only instead of the whole provider",
        examples=["llama3-70b-8192"],
    )


class CredentialStatus(BaseModel):
    """Schema for a provider's credential status."""

    provider: str = Field(..., description="Provider name")
    has_key: bool = Field(..., description="Whether any key is configured")
    available: bool = Field(..., description="Whether the key passes format validation")
    masked_key: str = Field("", description="Masked key for display")


class CredentialListResponse(BaseModel):
    """Schema for credential status list response."""

    items: list[CredentialStatus] = Field(..., description="Per-provider credential status")
