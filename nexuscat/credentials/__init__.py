"""Credential storage, naming, validation and resolution."""

from nexuscat.credentials.naming import (
    KEY_PREFIX,
    candidate_key_names,
    model_key_name,
    provider_key_name,
)
from nexuscat.credentials.resolver import CredentialRecord, CredentialResolver, CredentialSource
from nexuscat.credentials.store import EncryptedSecretStore, MemorySecretStore, SecretStore
from nexuscat.credentials.validation import is_valid_secret_format

__all__ = [
    "KEY_PREFIX",
    "candidate_key_names",
    "model_key_name",
    "provider_key_name",
    "CredentialRecord",
    "CredentialResolver",
    "CredentialSource",
    "EncryptedSecretStore",
    "MemorySecretStore",
    "SecretStore",
    "is_valid_secret_format",
]
