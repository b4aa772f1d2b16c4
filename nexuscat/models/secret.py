"""Stored secret entity with encryption at rest."""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from nexuscat.core.security import SecretEncryption
from nexuscat.models.base import Record


class StoredSecret(Record):
    """A named secret (API key) entered by the user.

    The value is Fernet-encrypted; ``name`` follows the ``AI_KEY_*`` naming
    convention and is stored upper-cased so lookups are case-insensitive.
    """

    __tablename__ = "stored_secrets"

    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    value_encrypted: Mapped[str] = mapped_column(Text, nullable=False)

    def reveal(self, encryption: SecretEncryption) -> str:
        """Decrypt and return the secret value."""
        return encryption.decrypt(self.value_encrypted)

    def seal(self, encryption: SecretEncryption, value: str) -> None:
        """Encrypt and store a new secret value."""
        self.value_encrypted = encryption.encrypt(value)

    def __repr__(self) -> str:
        """String representation."""
        return f"<StoredSecret(id={self.id}, name={self.name})>"
