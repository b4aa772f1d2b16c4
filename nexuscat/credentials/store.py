"""Secret store adapters.

A secret store persists user-entered secrets (encrypted at rest) and exposes a
read-only view of environment-sourced secrets: the process environment plus an
optional ``.env`` file read once at initialization.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

from dotenv import dotenv_values
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nexuscat.core.security import SecretEncryption
from nexuscat.credentials.naming import KEY_PREFIX
from nexuscat.exceptions import CredentialStoreError
from nexuscat.models.secret import StoredSecret

logger = logging.getLogger(__name__)


class SecretStore(Protocol):
    """Contract consumed by the credential resolver."""

    async def initialize(self) -> None: ...

    async def get_secret(self, name: str) -> str | None:
        """Return the securely stored secret called ``name``, if any.

        Raises:
            CredentialStoreError: If the backing storage cannot be read.
        """
        ...

    async def set_secret(self, name: str, value: str) -> bool: ...

    async def delete_secret(self, name: str) -> bool: ...

    def get_environment_value(self, name: str) -> str | None:
        """Synchronous environment lookup; never touches secure storage."""
        ...

    def get_environment_secrets(self, prefix: str = KEY_PREFIX) -> dict[str, str]: ...


class _EnvironmentView:
    """Process environment overlaid on a ``.env`` snapshot."""

    def __init__(self, environ: Mapping[str, str] | None, env_file: str | Path | None) -> None:
        self._environ = os.environ if environ is None else environ
        self._env_file = Path(env_file) if env_file else None
        self._file_values: dict[str, str] = {}

    def load(self) -> int:
        if self._env_file is None or not self._env_file.is_file():
            logger.debug("No .env file found at %s", self._env_file)
            return 0
        values = dotenv_values(self._env_file)
        self._file_values = {
            key.upper(): value for key, value in values.items() if key and value
        }
        logger.info("Loaded %d values from %s", len(self._file_values), self._env_file)
        return len(self._file_values)

    def get(self, name: str) -> str | None:
        if not name:
            return None
        value = self._environ.get(name) or self._environ.get(name.upper())
        if value:
            return value
        return self._file_values.get(name.upper()) or None

    def with_prefix(self, prefix: str) -> dict[str, str]:
        wanted = prefix.upper()
        result = {key: value for key, value in self._file_values.items() if key.startswith(wanted)}
        for key, value in self._environ.items():
            if key.upper().startswith(wanted) and value:
                result[key.upper()] = value
        return result


class EncryptedSecretStore:
    """Secret store backed by Fernet-encrypted rows in the catalog database."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        encryption: SecretEncryption,
        *,
        environ: Mapping[str, str] | None = None,
        env_file: str | Path | None = ".env",
    ) -> None:
        self._session_factory = session_factory
        self._encryption = encryption
        self._env = _EnvironmentView(environ, env_file)
        self._initialized = False

    async def initialize(self) -> None:
        """Read the ``.env`` file once; later calls are no-ops."""
        if self._initialized:
            return
        self._env.load()
        self._initialized = True
        logger.info(
            "Secret store initialized with %d environment secrets",
            len(self._env.with_prefix(KEY_PREFIX)),
        )

    async def get_secret(self, name: str) -> str | None:
        if not name:
            return None
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(StoredSecret).where(StoredSecret.name == name.upper())
                )
                row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise CredentialStoreError(f"Failed to read secret {name}") from e

        if row is None:
            return None
        return row.reveal(self._encryption)

    async def set_secret(self, name: str, value: str) -> bool:
        if not name or not value:
            return False
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(StoredSecret).where(StoredSecret.name == name.upper())
                )
                row = result.scalar_one_or_none()
                if row is None:
                    row = StoredSecret(name=name.upper())
                    session.add(row)
                row.seal(self._encryption, value)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Failed to save secret %s: %s", name, e)
            return False

        logger.info("Saved secret %s", name.upper())
        return True

    async def delete_secret(self, name: str) -> bool:
        if not name:
            return False
        try:
            async with self._session_factory() as session:
                await session.execute(delete(StoredSecret).where(StoredSecret.name == name.upper()))
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Failed to delete secret %s: %s", name, e)
            return False

        logger.info("Deleted secret %s", name.upper())
        return True

    def get_environment_value(self, name: str) -> str | None:
        return self._env.get(name)

    def get_environment_secrets(self, prefix: str = KEY_PREFIX) -> dict[str, str]:
        return self._env.with_prefix(prefix)


class MemorySecretStore:
    """In-process secret store, for embedding and tests."""

    def __init__(
        self,
        secrets: Mapping[str, str] | None = None,
        *,
        environ: Mapping[str, str] | None = None,
        env_file: str | Path | None = None,
    ) -> None:
        self._secrets = {name.upper(): value for name, value in (secrets or {}).items()}
        self._env = _EnvironmentView({} if environ is None else environ, env_file)

    async def initialize(self) -> None:
        self._env.load()

    async def get_secret(self, name: str) -> str | None:
        if not name:
            return None
        return self._secrets.get(name.upper())

    async def set_secret(self, name: str, value: str) -> bool:
        if not name or not value:
            return False
        self._secrets[name.upper()] = value
        return True

    async def delete_secret(self, name: str) -> bool:
        if not name:
            return False
        self._secrets.pop(name.upper(), None)
        return True

    def get_environment_value(self, name: str) -> str | None:
        return self._env.get(name)

    def get_environment_secrets(self, prefix: str = KEY_PREFIX) -> dict[str, str]:
        return self._env.with_prefix(prefix)
