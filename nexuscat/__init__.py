"""NexusCat: credential resolution, model discovery and a persistent model catalog."""

from nexuscat.exceptions import (
    AuthenticationError,
    CancelledError,
    CredentialStoreError,
    DiscoveryConnectionError,
    DiscoveryError,
    DiscoveryStatusError,
    NexusCatError,
    PersistenceError,
    ProviderServerError,
    RateLimitError,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "NexusCatError",
    "CredentialStoreError",
    "PersistenceError",
    "CancelledError",
    "DiscoveryError",
    "DiscoveryConnectionError",
    "DiscoveryStatusError",
    "AuthenticationError",
    "RateLimitError",
    "ProviderServerError",
]
