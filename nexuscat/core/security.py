"""Encryption at rest for stored API keys, and masking for display."""

from cryptography.fernet import Fernet, InvalidToken

from nexuscat.exceptions import CredentialStoreError


class SecretEncryption:
    """Fernet wrapper used by the secret store.

    Args:
        encryption_key: URL-safe base64 Fernet key, as produced by
            :meth:`generate_key`.
    """

    def __init__(self, encryption_key: str) -> None:
        self._fernet = Fernet(encryption_key.encode())

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode()

    def encrypt(self, secret: str) -> str:
        return self._fernet.encrypt(secret.encode()).decode()

    def decrypt(self, token: str) -> str:
        """Return the plain secret for ``token``.

        Raises:
            CredentialStoreError: The token was written under another key or
                has been altered.
        """
        try:
            return self._fernet.decrypt(token.encode()).decode()
        except InvalidToken as e:
            raise CredentialStoreError("Stored secret could not be decrypted") from e


def mask_secret(secret: str | None, visible: int = 4) -> str:
    """Mask a secret for display, keeping only the last few characters."""
    if not secret:
        return ""
    if len(secret) <= visible * 2:
        return "*" * len(secret)
    return f"{secret[:3]}...{secret[-visible:]}"
