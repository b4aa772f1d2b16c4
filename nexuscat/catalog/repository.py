"""Persistence for the model catalog.

Every operation opens its own short-lived session. Database failures surface
as :class:`~nexuscat.exceptions.PersistenceError`; callers decide how to
degrade.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Iterable

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nexuscat.discovery.base import ModelDescriptor, NaturalKey, fold_name, natural_key
from nexuscat.exceptions import PersistenceError
from nexuscat.models.catalog import (
    CURRENT_POINTER_ID,
    CatalogModel,
    CatalogSource,
    CurrentModelPointer,
)

logger = logging.getLogger(__name__)


def _matches_key(provider_name: str, model_name: str):
    provider, model = natural_key(provider_name, model_name)
    return CatalogModel.provider_key == provider, CatalogModel.model_key == model


class CatalogRepository:
    """Async CRUD over catalog rows and the current-model pointer."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, action: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to {action}: {e}") from e

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_all(self) -> list[CatalogModel]:
        async with self._session("list catalog models") as session:
            result = await session.execute(
                select(CatalogModel).order_by(
                    CatalogModel.provider_name, CatalogModel.model_name, CatalogModel.created_at
                )
            )
            return list(result.scalars().all())

    async def count(self) -> int:
        async with self._session("count catalog models") as session:
            result = await session.execute(select(func.count()).select_from(CatalogModel))
            return int(result.scalar_one())

    async def get_by_id(self, model_id: uuid.UUID) -> CatalogModel | None:
        async with self._session("load catalog model") as session:
            return await session.get(CatalogModel, model_id)

    async def get_by_key(self, provider_name: str, model_name: str) -> CatalogModel | None:
        """Oldest row whose folded natural key matches."""
        async with self._session("look up catalog model") as session:
            result = await session.execute(
                select(CatalogModel)
                .where(*_matches_key(provider_name, model_name))
                .order_by(CatalogModel.created_at)
                .limit(1)
            )
            return result.scalars().first()

    async def existing_keys(self) -> set[NaturalKey]:
        async with self._session("list catalog keys") as session:
            result = await session.execute(select(CatalogModel.provider_key, CatalogModel.model_key))
            return {(provider, model) for provider, model in result.all()}

    async def get_by_provider(self, provider_name: str) -> list[CatalogModel]:
        async with self._session("list provider models") as session:
            result = await session.execute(
                select(CatalogModel)
                .where(CatalogModel.provider_key == fold_name(provider_name))
                .order_by(CatalogModel.model_name)
            )
            return list(result.scalars().all())

    async def get_favorites(self) -> list[CatalogModel]:
        async with self._session("list favorite models") as session:
            result = await session.execute(
                select(CatalogModel)
                .where(CatalogModel.is_favorite.is_(True))
                .order_by(CatalogModel.provider_name, CatalogModel.model_name)
            )
            return list(result.scalars().all())

    async def get_default_models(self) -> list[CatalogModel]:
        async with self._session("list default models") as session:
            result = await session.execute(
                select(CatalogModel)
                .where(CatalogModel.is_default.is_(True))
                .order_by(CatalogModel.provider_name)
            )
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def add(
        self, descriptor: ModelDescriptor, source: CatalogSource = "discovered"
    ) -> CatalogModel:
        """Insert one row for ``descriptor`` and return it."""
        row = CatalogModel.from_descriptor(descriptor, source)
        async with self._session("insert catalog model") as session:
            session.add(row)
            await session.commit()
            await session.refresh(row)
        logger.debug("Inserted catalog model %s/%s", row.provider_name, row.model_name)
        return row

    async def add_many(
        self, descriptors: Iterable[ModelDescriptor], source: CatalogSource = "discovered"
    ) -> int:
        """Insert one row per descriptor in a single transaction."""
        rows = [CatalogModel.from_descriptor(descriptor, source) for descriptor in descriptors]
        if not rows:
            return 0
        async with self._session("insert catalog models") as session:
            session.add_all(rows)
            await session.commit()
        return len(rows)

    async def delete_many(self, model_ids: Iterable[uuid.UUID]) -> int:
        """Delete rows by id; a current-model pointer at a deleted row is cleared."""
        ids = list(model_ids)
        if not ids:
            return 0
        async with self._session("delete catalog models") as session:
            await session.execute(
                update(CurrentModelPointer)
                .where(CurrentModelPointer.model_id.in_(ids))
                .values(model_id=None)
            )
            result = await session.execute(delete(CatalogModel).where(CatalogModel.id.in_(ids)))
            await session.commit()
            return result.rowcount or 0

    async def set_favorite(self, model_id: uuid.UUID, is_favorite: bool) -> bool:
        async with self._session("update favorite flag") as session:
            result = await session.execute(
                update(CatalogModel)
                .where(CatalogModel.id == model_id)
                .values(is_favorite=is_favorite)
            )
            await session.commit()
            return bool(result.rowcount)

    async def set_default(self, model_id: uuid.UUID) -> bool:
        """Make ``model_id`` its provider's only default model."""
        async with self._session("update default model") as session:
            row = await session.get(CatalogModel, model_id)
            if row is None:
                return False
            await session.execute(
                update(CatalogModel)
                .where(CatalogModel.provider_key == row.provider_key)
                .values(is_default=False)
            )
            row.is_default = True
            await session.commit()
            return True

    async def record_usage(self, model_id: uuid.UUID) -> bool:
        """Increment ``use_count`` and stamp ``last_used``."""
        async with self._session("record model usage") as session:
            result = await session.execute(
                update(CatalogModel)
                .where(CatalogModel.id == model_id)
                .values(
                    use_count=CatalogModel.use_count + 1,
                    last_used=datetime.now(timezone.utc),
                )
            )
            await session.commit()
            return bool(result.rowcount)

    # ------------------------------------------------------------------
    # Current model pointer
    # ------------------------------------------------------------------

    async def get_current(self) -> CatalogModel | None:
        async with self._session("load current model") as session:
            pointer = await session.get(CurrentModelPointer, CURRENT_POINTER_ID)
            if pointer is None or pointer.model_id is None:
                return None
            return await session.get(CatalogModel, pointer.model_id)

    async def set_current(self, model_id: uuid.UUID | None) -> None:
        async with self._session("update current model") as session:
            pointer = await session.get(CurrentModelPointer, CURRENT_POINTER_ID)
            if pointer is None:
                pointer = CurrentModelPointer(id=CURRENT_POINTER_ID)
                session.add(pointer)
            pointer.model_id = model_id
            await session.commit()
