"""Typed settings configuration - single source of truth."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database (in-memory store when unset)
    database_url: str | None = None

    # Read cache
    redis_url: str | None = None
    read_cache_ttl_seconds: int = 30

    # Locales accepted for versions, comma separated; empty accepts any well-formed tag
    supported_locales: str = ""

    # Audit trail
    audit_retry_attempts: int = 2
    audit_retry_backoff_ms: int = 50
    audit_page_max: int = 200

    # Stub auth
    dev_actor_id: str = "admin@policyhub.local"

    def locale_allowlist(self) -> frozenset[str]:
        """Parse supported_locales into a set (empty means unrestricted)."""
        return frozenset(
            item.strip() for item in self.supported_locales.split(",") if item.strip()
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
