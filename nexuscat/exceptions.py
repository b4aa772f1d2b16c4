"""NexusCat exceptions.

These are raised by the storage, persistence and discovery adapters and are
caught at the public boundary of the resolver, orchestrator and catalog
manager, which convert them into empty results or ``False``.
"""

from __future__ import annotations

from typing import Any

import httpx


class NexusCatError(Exception):
    """Base exception for all NexusCat errors."""


class CredentialStoreError(NexusCatError):
    """Raised when the secret store cannot read or write a secret."""


class PersistenceError(NexusCatError):
    """Raised when a catalog database operation fails."""


class CancelledError(NexusCatError):
    """Raised when a bulk operation observes a cancellation request."""


class DiscoveryError(NexusCatError):
    """Raised when model discovery for a provider fails."""

    provider: str

    def __init__(self, message: str, *, provider: str) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider


class DiscoveryConnectionError(DiscoveryError):
    """Raised when the provider's model listing endpoint cannot be reached."""


class DiscoveryStatusError(DiscoveryError):
    """Raised when the provider returns an HTTP error status (4xx or 5xx)."""

    response: httpx.Response
    status_code: int
    body: Any

    def __init__(
        self, message: str, *, provider: str, response: httpx.Response, body: Any = None
    ) -> None:
        super().__init__(message, provider=provider)
        self.response = response
        self.status_code = response.status_code
        self.body = body

    @classmethod
    def from_response(cls, provider: str, response: httpx.Response) -> DiscoveryStatusError:
        try:
            body = response.json()
            detail = body.get("error", response.text) if isinstance(body, dict) else response.text
        except Exception:
            body = None
            detail = response.text

        message = f"{provider} HTTP {response.status_code}: {str(detail)[:200]}"

        status_to_class: dict[int, type[DiscoveryStatusError]] = {
            401: AuthenticationError,
            403: AuthenticationError,
            429: RateLimitError,
        }

        error_cls = status_to_class.get(response.status_code, DiscoveryStatusError)
        if error_cls is DiscoveryStatusError and response.status_code >= 500:
            error_cls = ProviderServerError

        return error_cls(message, provider=provider, response=response, body=body)


class AuthenticationError(DiscoveryStatusError):
    """HTTP 401/403."""


class RateLimitError(DiscoveryStatusError):
    """HTTP 429."""


class ProviderServerError(DiscoveryStatusError):
    """HTTP 5xx."""
