"""Runtime configuration read from the process environment and ``.env``."""

from functools import lru_cache

from cryptography.fernet import Fernet
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

KEY_HINT = "generate one with SecretEncryption.generate_key()"


class Settings(BaseSettings):
    """Service settings. Every field maps to the upper-cased environment variable."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    database_url: str = "sqlite+aiosqlite:///./nexuscat.db"
    database_echo: bool = False
    encryption_key: str = ""

    # Cache lifetimes
    discovery_cache_ttl_seconds: float = Field(600.0, gt=0)
    credential_cache_ttl_seconds: float = Field(600.0, gt=0)
    credential_grace_seconds: float = Field(1800.0, gt=0)
    resolved_cache_ttl_seconds: float = Field(600.0, gt=0)

    # Catalog maintenance
    merge_batch_size: int = Field(10, gt=0)
    merge_batch_delay_seconds: float = Field(0.01, ge=0)
    reconcile_interval_minutes: int = Field(15, gt=0)
    discovery_timeout_seconds: float = Field(30.0, gt=0)

    # HTTP
    api_title: str = "NexusCat API"
    api_version: str = "0.1.0"
    api_prefix: str = "/api/v1"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]
    log_level: str = "INFO"

    @field_validator("encryption_key")
    @classmethod
    def check_encryption_key(cls, v: str) -> str:
        if not v:
            raise ValueError(f"ENCRYPTION_KEY is required; {KEY_HINT}")
        try:
            Fernet(v.encode())
        except ValueError as e:
            raise ValueError(f"ENCRYPTION_KEY is not a valid Fernet key; {KEY_HINT}") from e
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
