"""Credential resolution with time-boxed availability caching.

The resolver answers two questions for the rest of the system:

* which secret should be used to call provider X (optionally for model Y), and
* does provider X currently have a usable credential at all.

Resolution walks a fixed priority chain and caches the outcome, including
"nothing found", so repeated UI renders do not hammer the secret store.
Availability answers are cached separately and are updated in place when the
user saves or deletes a key, so the change is visible on the very next call.

Both caches are guarded by one ``threading.Lock`` that is only held while the
maps are read or mutated; awaited store I/O always happens outside it.
"""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable

from nexuscat.core.cache import Clock, TTLCache
from nexuscat.core.config import Settings
from nexuscat.core.security import mask_secret
from nexuscat.credentials.naming import (
    KEY_PREFIX,
    cache_key,
    candidate_key_names,
    folded_key_names,
    model_key_name,
    provider_key_name,
)
from nexuscat.credentials.store import SecretStore
from nexuscat.credentials.validation import is_valid_secret_format
from nexuscat.exceptions import CredentialStoreError

logger = logging.getLogger(__name__)

DEFAULT_AVAILABILITY_TTL = 600.0
DEFAULT_GRACE_SECONDS = 1800.0
DEFAULT_RESOLVED_TTL = 600.0

CredentialListener = Callable[[str], None]


class CredentialSource(str, enum.Enum):
    """Where a resolved secret came from."""

    ENVIRONMENT = "environment"
    SECURE_STORAGE = "secure_storage"
    USER_DEFINED = "user_defined"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CredentialRecord:
    """A resolved secret plus usage bookkeeping."""

    secret: str
    source: CredentialSource
    created_at: datetime = field(default_factory=_utcnow)
    last_used_at: datetime | None = None
    use_count: int = 0

    def mark_used(self) -> None:
        self.use_count += 1
        self.last_used_at = _utcnow()


class CredentialResolver:
    """Resolves, validates and caches provider credentials.

    Usage:
        resolver = CredentialResolver(store)
        if await resolver.has_usable_credential("Groq"):
            api_key = await resolver.resolve("Groq")
    """

    def __init__(
        self,
        store: SecretStore,
        *,
        availability_cache: TTLCache[bool] | None = None,
        resolved_cache: TTLCache[CredentialRecord | None] | None = None,
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            store: Secret store adapter.
            availability_cache: Per-provider "has a usable key" booleans.
            resolved_cache: Resolved records keyed by ``provider[:model]``.
            grace_seconds: How old an availability entry the non-blocking
                check will still trust. Injected caches should retain entries
                at least this long.
            clock: Monotonic clock used by caches created here.
        """
        self._store = store
        if availability_cache is None:
            availability_cache = TTLCache(DEFAULT_AVAILABILITY_TTL, clock, retention=grace_seconds)
        if resolved_cache is None:
            resolved_cache = TTLCache(DEFAULT_RESOLVED_TTL, clock, retention=grace_seconds)
        self._availability = availability_cache
        self._resolved = resolved_cache
        self._grace_seconds = max(grace_seconds, self._availability.ttl)
        self._lock = threading.Lock()
        self._user_defined: set[str] = set()
        self._listeners: list[CredentialListener] = []

    @classmethod
    def from_settings(
        cls, store: SecretStore, settings: Settings, clock: Clock | None = None
    ) -> CredentialResolver:
        return cls(
            store,
            availability_cache=TTLCache(
                settings.credential_cache_ttl_seconds,
                clock,
                retention=settings.credential_grace_seconds,
            ),
            resolved_cache=TTLCache(
                settings.resolved_cache_ttl_seconds,
                clock,
                retention=settings.credential_grace_seconds,
            ),
            grace_seconds=settings.credential_grace_seconds,
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def initialize(self, known_providers: Iterable[str] = ()) -> None:
        """Initialize the store and pre-mark providers with environment keys.

        Only positive answers are cached here; providers without an
        environment key are resolved on demand.
        """
        try:
            await self._store.initialize()
            env_secrets = self._store.get_environment_secrets(KEY_PREFIX)
        except Exception:
            logger.exception("Secret store initialization failed")
            return

        warmed = 0
        for provider in known_providers:
            secret = env_secrets.get(provider_key_name(provider))
            if secret and is_valid_secret_format(secret, provider):
                with self._lock:
                    self._availability.set(provider, True)
                warmed += 1
        logger.info("Credential resolver initialized, %d providers pre-cached", warmed)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve(self, provider: str, model: str | None = None) -> str | None:
        """Return the secret to use for ``provider`` (and ``model``), or None."""
        record = await self.resolve_record(provider, model)
        if record is None:
            return None
        with self._lock:
            record.mark_used()
        return record.secret

    async def resolve_record(
        self, provider: str, model: str | None = None
    ) -> CredentialRecord | None:
        """Resolve without touching usage counters.

        Tries, in order: the model-specific stored secret, the provider-level
        stored secret, both names in the environment, then their
        separator-folded variants in the environment. The outcome, including
        a miss, is cached under ``provider`` or ``provider:model``.
        """
        if not provider or not provider.strip():
            return None

        key = cache_key(provider, model)
        with self._lock:
            entry = self._resolved.get_fresh(key)
        if entry is not None:
            logger.debug("Resolved credential cache hit for %s", key)
            return entry.value

        try:
            record = await self._lookup(provider, model)
        except Exception:
            logger.exception("Error resolving credential for %s", key)
            return None

        with self._lock:
            self._resolved.set(key, record)
        if record is None:
            logger.debug("No credential configured for %s", key)
        return record

    async def _lookup(self, provider: str, model: str | None) -> CredentialRecord | None:
        exact_names = candidate_key_names(provider, model)

        for name in exact_names:
            secret = await self._stored_secret(name)
            if secret:
                source = (
                    CredentialSource.USER_DEFINED
                    if name in self._user_defined
                    else CredentialSource.SECURE_STORAGE
                )
                return CredentialRecord(secret=secret, source=source)

        for name in exact_names + folded_key_names(provider, model):
            secret = self._store.get_environment_value(name)
            if secret:
                return CredentialRecord(secret=secret, source=CredentialSource.ENVIRONMENT)

        return None

    async def _stored_secret(self, name: str) -> str | None:
        try:
            return await self._store.get_secret(name)
        except CredentialStoreError as e:
            logger.warning("Secure storage unavailable for %s: %s", name, e)
            return None

    def _environment_secret(self, provider: str) -> str | None:
        names = candidate_key_names(provider)
        for name in names + folded_key_names(provider):
            secret = self._store.get_environment_value(name)
            if secret:
                return secret
        return None

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    async def has_usable_credential(self, provider: str) -> bool:
        """Whether ``provider`` has a credential that passes format validation.

        Served from the availability cache while fresh; otherwise resolves,
        validates and stores the answer.
        """
        if not provider or not provider.strip():
            return False

        with self._lock:
            entry = self._availability.get_fresh(provider)
        if entry is not None:
            return entry.value

        try:
            record = await self.resolve_record(provider)
            usable = record is not None and is_valid_secret_format(record.secret, provider)
        except Exception:
            logger.exception("Error checking credential availability for %s", provider)
            return False

        with self._lock:
            self._availability.set(provider, usable)
        logger.debug("Credential availability for %s: %s", provider, usable)
        return usable

    def has_usable_credential_nowait(self, provider: str) -> bool:
        """Non-blocking availability check for callers that cannot await.

        Trusts a cached answer up to the grace window. Otherwise falls back to
        a direct environment read; secure storage is never consulted. Only a
        positive environment answer is cached, so a key that lives solely in
        secure storage is not hidden from the next awaited check.
        """
        if not provider or not provider.strip():
            return False

        try:
            with self._lock:
                entry = self._availability.get_fresh(provider, max_age=self._grace_seconds)
                if entry is not None:
                    return entry.value
                resolved = self._resolved.get_fresh(provider, max_age=self._grace_seconds)

            if resolved is not None and resolved.value is not None:
                secret: str | None = resolved.value.secret
            else:
                secret = self._environment_secret(provider)

            usable = secret is not None and is_valid_secret_format(secret, provider)
            if usable:
                with self._lock:
                    self._availability.set(provider, True)
            return usable
        except Exception:
            logger.exception("Error in non-blocking availability check for %s", provider)
            return False

    def availability_batch(self, providers: Iterable[str]) -> dict[str, bool]:
        """Availability for several providers via repeated non-blocking checks."""
        return {provider: self.has_usable_credential_nowait(provider) for provider in providers}

    def active_providers(self) -> list[str]:
        """Normalized names of providers with a fresh positive availability entry."""
        with self._lock:
            now = self._availability.now()
            return [
                key
                for key, entry in self._availability.items()
                if entry.value and entry.is_fresh(self._availability.ttl, now)
            ]

    async def masked(self, provider: str) -> tuple[bool, str]:
        """Return ``(has_key, masked_key)`` for display."""
        record = await self.resolve_record(provider)
        if record is None:
            return False, ""
        return True, mask_secret(record.secret)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    async def save(self, provider: str, secret: str) -> bool:
        """Store a provider-level secret and mark the provider usable at once."""
        if not provider or not provider.strip() or not secret:
            return False
        if not is_valid_secret_format(secret, provider):
            logger.warning("Rejected credential for %s: invalid format", provider)
            return False

        name = provider_key_name(provider)
        try:
            saved = await self._store.set_secret(name, secret)
        except Exception:
            logger.exception("Error saving credential for %s", provider)
            return False
        if not saved:
            return False

        with self._lock:
            self._user_defined.add(name)
            self._drop_resolved(provider)
            self._availability.set(provider, True)
        logger.info("Saved credential for %s", provider)
        self._notify(provider)
        return True

    async def save_model_specific(self, provider: str, model: str, secret: str) -> bool:
        """Store a secret that only applies to ``model`` of ``provider``.

        Provider availability tracks provider-level credentials only and is
        left as is.
        """
        if not provider or not provider.strip() or not model or not model.strip() or not secret:
            return False
        if not is_valid_secret_format(secret, provider):
            logger.warning("Rejected credential for %s/%s: invalid format", provider, model)
            return False

        name = model_key_name(provider, model)
        try:
            saved = await self._store.set_secret(name, secret)
        except Exception:
            logger.exception("Error saving credential for %s/%s", provider, model)
            return False
        if not saved:
            return False

        with self._lock:
            self._user_defined.add(name)
            self._drop_resolved(provider)
        logger.info("Saved model-specific credential for %s/%s", provider, model)
        self._notify(provider)
        return True

    async def delete(self, provider: str) -> bool:
        """Remove the stored provider-level secret.

        Availability is updated immediately; it stays true only if the
        environment still supplies a valid key for the provider.
        """
        if not provider or not provider.strip():
            return False

        name = provider_key_name(provider)
        try:
            deleted = await self._store.delete_secret(name)
        except Exception:
            logger.exception("Error deleting credential for %s", provider)
            return False
        if not deleted:
            return False

        fallback = self._environment_secret(provider)
        usable = fallback is not None and is_valid_secret_format(fallback, provider)
        with self._lock:
            self._user_defined.discard(name)
            self._drop_resolved(provider)
            self._availability.set(provider, usable)
        logger.info("Deleted credential for %s", provider)
        self._notify(provider)
        return True

    def _drop_resolved(self, provider: str) -> None:
        # Caller holds self._lock.
        normalized = provider.strip().casefold()
        self._resolved.invalidate_where(
            lambda key: key == normalized or key.startswith(f"{normalized}:")
        )

    # ------------------------------------------------------------------
    # Cache control and notifications
    # ------------------------------------------------------------------

    def clear_cache(self) -> None:
        """Forget every cached availability answer and resolved secret."""
        with self._lock:
            self._availability.clear()
            self._resolved.clear()
        logger.info("Credential caches cleared")

    def clear_provider_cache(self, provider: str) -> None:
        if not provider or not provider.strip():
            return
        with self._lock:
            self._drop_resolved(provider)
            self._availability.invalidate(provider)

    def subscribe(self, listener: CredentialListener) -> None:
        """Call ``listener(provider)`` whenever a credential is saved or deleted."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: CredentialListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, provider: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(provider)
            except Exception:
                logger.exception("Credential listener failed for %s", provider)
