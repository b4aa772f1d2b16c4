"""Catalog entities: persisted model descriptors and the current-model pointer."""

import uuid
from datetime import datetime
from typing import Literal

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, validates

from nexuscat.discovery.base import (
    DEFAULT_CONTEXT_WINDOW,
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    ModelDescriptor,
    NaturalKey,
    fold_name,
    natural_key,
)
from nexuscat.models.base import Base, Record

CatalogSource = Literal["discovered", "environment", "user", "placeholder"]

CURRENT_POINTER_ID = 1


class CatalogModel(Record):
    """A model offered by a provider, as stored in the catalog.

    ``(provider_name, model_name)`` is the natural key. Its folded form is kept
    in ``provider_key`` and ``model_key`` so lookups compare exactly what
    :func:`natural_key` computes. It is not enforced by a unique constraint
    because concurrent discovery runs may race; the catalog reconciler removes
    duplicates after the fact.
    """

    __tablename__ = "catalog_models"
    __table_args__ = (Index("ix_catalog_models_natural_key", "provider_key", "model_key"),)

    provider_name: Mapped[str] = mapped_column(String(50), nullable=False)
    model_name: Mapped[str] = mapped_column(String(255), nullable=False)
    provider_key: Mapped[str] = mapped_column(String(50), nullable=False)
    model_key: Mapped[str] = mapped_column(String(255), nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    source: Mapped[str] = mapped_column(String(20), nullable=False, default="discovered")

    supports_streaming: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    supports_vision: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    supports_code: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    supports_function_calling: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    max_tokens: Mapped[int] = mapped_column(Integer, default=DEFAULT_MAX_TOKENS, nullable=False)
    max_context_window: Mapped[int] = mapped_column(
        Integer, default=DEFAULT_CONTEXT_WINDOW, nullable=False
    )
    default_temperature: Mapped[float] = mapped_column(
        Float, default=DEFAULT_TEMPERATURE, nullable=False
    )

    use_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_used: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    is_favorite: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    @validates("provider_name", "model_name")
    def _fold_key(self, column: str, value: str) -> str:
        if column == "provider_name":
            self.provider_key = fold_name(value)
        else:
            self.model_key = fold_name(value)
        return value

    @property
    def key(self) -> NaturalKey:
        return natural_key(self.provider_name, self.model_name)

    def to_descriptor(self) -> ModelDescriptor:
        """Detached descriptor carrying this row's values."""
        return ModelDescriptor(
            id=self.id,
            provider_name=self.provider_name,
            model_name=self.model_name,
            display_name=self.display_name,
            description=self.description,
            supports_streaming=self.supports_streaming,
            supports_vision=self.supports_vision,
            supports_code=self.supports_code,
            supports_function_calling=self.supports_function_calling,
            max_tokens=self.max_tokens,
            max_context_window=self.max_context_window,
            default_temperature=self.default_temperature,
            use_count=self.use_count,
            last_used=self.last_used,
            is_favorite=self.is_favorite,
            is_default=self.is_default,
            is_available=self.is_available,
        )

    @classmethod
    def from_descriptor(
        cls, descriptor: ModelDescriptor, source: CatalogSource = "discovered"
    ) -> "CatalogModel":
        """New (unsaved) row for ``descriptor``; names are trimmed."""
        return cls(
            provider_name=descriptor.provider_name.strip(),
            model_name=descriptor.model_name.strip(),
            display_name=descriptor.display_name or descriptor.model_name.strip(),
            description=descriptor.description,
            source=source,
            supports_streaming=descriptor.supports_streaming,
            supports_vision=descriptor.supports_vision,
            supports_code=descriptor.supports_code,
            supports_function_calling=descriptor.supports_function_calling,
            max_tokens=descriptor.max_tokens,
            max_context_window=descriptor.max_context_window,
            default_temperature=descriptor.default_temperature,
            use_count=descriptor.use_count,
            last_used=descriptor.last_used,
            is_favorite=descriptor.is_favorite,
            is_default=descriptor.is_default,
            is_available=descriptor.is_available,
        )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<CatalogModel(id={self.id}, provider={self.provider_name}, "
            f"model={self.model_name}, favorite={self.is_favorite})>"
        )


class CurrentModelPointer(Base):
    """Single-row table pointing at the currently selected catalog model."""

    __tablename__ = "current_model"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=CURRENT_POINTER_ID)
    model_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("catalog_models.id", ondelete="SET NULL"),
        nullable=True,
    )
