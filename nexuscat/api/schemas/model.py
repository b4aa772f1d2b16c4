"""Pydantic schemas for catalog API endpoints."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ModelResponse(BaseModel):
    """Schema for a catalog model."""

    id: Optional[UUID] = Field(None, description="Catalog row ID")
    provider_name: str = Field(..., description="Provider name")
    model_name: str = Field(..., description="Model identifier as used by the provider")
    display_name: str = Field(..., description="Human-readable name")
    description: str = Field("", description="Model description")
    supports_streaming: bool = Field(..., description="Streaming responses supported")
    supports_vision: bool = Field(..., description="Image input supported")
    supports_code: bool = Field(..., description="Code completion supported")
    supports_function_calling: bool = Field(..., description="Function calling supported")
    max_tokens: int = Field(..., description="Maximum output tokens")
    max_context_window: int = Field(..., description="Context window size in tokens")
    default_temperature: float = Field(..., description="Default sampling temperature")
    use_count: int = Field(0, description="Times this model was selected")
    last_used: Optional[datetime] = Field(None, description="Last selection timestamp")
    is_favorite: bool = Field(False, description="Marked as favorite")
    is_default: bool = Field(False, description="Provider's default model")
    is_available: bool = Field(True, description="Available for use")

    model_config = ConfigDict(from_attributes=True)


class ModelListResponse(BaseModel):
    """Schema for model list response."""

    items: list[ModelResponse] = Field(..., description="List of models")
    total: int = Field(..., description="Total number of models")


class ModelSelection(BaseModel):
    """Schema identifying a model by provider and name."""

    provider_name: str = Field(
        ..., min_length=1, description="Provider name", examples=["Groq"]
    )
    model_name: str = Field(
        ..., min_length=1, description="Model identifier", examples=["llama3-70b-8192"]
    )


class FavoriteUpdate(ModelSelection):
    """Schema for flagging a model as favorite."""

    is_favorite: bool = Field(True, description="Whether the model is a favorite")


class DiscoverResponse(BaseModel):
    """Schema for a discovery merge result."""

    inserted: int = Field(..., description="Number of models added to the catalog")


class ReconcileResponse(BaseModel):
    """Schema for a duplicate reconcile result."""

    removed: int = Field(..., description="Number of duplicate rows removed")
