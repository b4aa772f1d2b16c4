"""Seed the catalog from model declarations in the environment.

Declarations use the following variables, where ``<KEY>`` is any label the
operator picks for the model::

    AI_MODEL_<PROVIDER>_<KEY>=<model id>
    AI_MODEL_DESC_<PROVIDER>_<KEY>=<description>
    AI_MODEL_CAP_<PROVIDER>_<KEY>_TOKENS=4096
    AI_MODEL_CAP_<PROVIDER>_<KEY>_CONTEXT=8192
    AI_MODEL_CAP_<PROVIDER>_<KEY>_STREAMING=true
    AI_MODEL_CAP_<PROVIDER>_<KEY>_TEMP=0.7
    AI_MODEL_CAP_<PROVIDER>_<KEY>_CODE=false
    AI_MODEL_CAP_<PROVIDER>_<KEY>_VISION=false
"""

from __future__ import annotations

import asyncio
import logging

from nexuscat.catalog.repository import CatalogRepository
from nexuscat.core.cancellation import CancellationToken
from nexuscat.credentials.store import SecretStore
from nexuscat.discovery.base import (
    DEFAULT_CONTEXT_WINDOW,
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    ModelDescriptor,
)
from nexuscat.exceptions import CancelledError

logger = logging.getLogger(__name__)

MODEL_PREFIX = "AI_MODEL_"
DESC_PREFIX = "AI_MODEL_DESC_"
CAP_PREFIX = "AI_MODEL_CAP_"

PROVIDER_ALIASES: dict[str, str] = {
    "groq": "Groq",
    "groqi": "Groq",
    "groqapi": "Groq",
    "openrouter": "OpenRouter",
    "or": "OpenRouter",
    "openr": "OpenRouter",
    "openai": "OpenAI",
    "oai": "OpenAI",
    "anthropic": "Anthropic",
    "claude": "Anthropic",
    "google": "Google",
    "gemini": "Google",
    "dummy": "Dummy",
    "test": "Dummy",
    "testing": "Dummy",
}

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


def normalize_provider_name(provider_name: str) -> str:
    """Map common spellings to the canonical provider name.

    Unknown names are returned with the first letter upper-cased.
    """
    name = (provider_name or "").strip()
    if not name:
        return ""
    alias = PROVIDER_ALIASES.get(name.casefold())
    if alias:
        return alias
    return name[0].upper() + name[1:].lower()


def _parse_int(value: str | None, default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


def _parse_float(value: str | None, default: float) -> float:
    try:
        return float(value) if value is not None else default
    except ValueError:
        return default


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().casefold()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    return default


def parse_model_declarations(variables: dict[str, str]) -> list[ModelDescriptor]:
    """Build descriptors from ``AI_MODEL_*`` variables.

    Args:
        variables: Upper-cased variable names mapped to values.

    Returns:
        One descriptor per ``AI_MODEL_<PROVIDER>_<KEY>`` declaration, in
        variable name order.
    """
    upper = {name.upper(): value for name, value in variables.items()}
    models: list[ModelDescriptor] = []

    for name in sorted(upper):
        if not name.startswith(MODEL_PREFIX):
            continue
        if name.startswith(DESC_PREFIX) or name.startswith(CAP_PREFIX):
            continue

        provider_part, _, model_key = name[len(MODEL_PREFIX) :].partition("_")
        model_id = (upper[name] or "").strip()
        if not provider_part or not model_key or not model_id:
            logger.warning("Ignoring malformed model declaration %s", name)
            continue

        suffix = f"{provider_part}_{model_key}"

        def cap(capability: str, _suffix: str = suffix) -> str | None:
            return upper.get(f"{CAP_PREFIX}{_suffix}_{capability}")

        models.append(
            ModelDescriptor(
                provider_name=normalize_provider_name(provider_part),
                model_name=model_id,
                description=upper.get(f"{DESC_PREFIX}{suffix}") or f"{model_key} model",
                max_tokens=_parse_int(cap("TOKENS"), DEFAULT_MAX_TOKENS),
                max_context_window=_parse_int(cap("CONTEXT"), DEFAULT_CONTEXT_WINDOW),
                supports_streaming=_parse_bool(cap("STREAMING"), True),
                default_temperature=_parse_float(cap("TEMP"), DEFAULT_TEMPERATURE),
                supports_code=_parse_bool(cap("CODE"), False),
                supports_vision=_parse_bool(cap("VISION"), False),
            )
        )

    return models


class EnvironmentSeeder:
    """Inserts environment-declared models missing from the catalog."""

    def __init__(
        self,
        store: SecretStore,
        repository: CatalogRepository,
        *,
        batch_size: int = 10,
        batch_delay: float = 0.01,
    ) -> None:
        self._store = store
        self._repository = repository
        self._batch_size = batch_size
        self._batch_delay = batch_delay

    async def seed(self, cancel_token: CancellationToken | None = None) -> int:
        """Insert declared models whose natural key is not yet in the catalog.

        Returns:
            Number of rows inserted; a cancelled run reports what it inserted
            before stopping.
        """
        inserted = 0
        try:
            declared = parse_model_declarations(self._store.get_environment_secrets(MODEL_PREFIX))
            if not declared:
                logger.debug("No environment model declarations found")
                return 0

            existing = await self._repository.existing_keys()
            pending = []
            for model in declared:
                if model.key in existing:
                    continue
                existing.add(model.key)
                pending.append(model)

            for start in range(0, len(pending), self._batch_size):
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled()
                if start:
                    await asyncio.sleep(self._batch_delay)
                batch = pending[start : start + self._batch_size]
                inserted += await self._repository.add_many(batch, source="environment")

            logger.info(
                "Seeded %d of %d environment-declared models", inserted, len(declared)
            )
            return inserted
        except CancelledError as e:
            logger.info("Environment seeding cancelled after %d inserts: %s", inserted, e)
            return inserted
        except Exception:
            logger.exception("Error seeding models from environment")
            return 0
