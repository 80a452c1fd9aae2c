"""Application settings and configuration."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_LEDGER_SALT = "riskmate-ledger-v1-2025"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: Optional[str] = None
    postgres_user: str = "riskmate"
    postgres_password: str = "riskmate_dev_password"
    postgres_db: str = "riskmate"
    postgres_port: int = 5432

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # API
    environment: str = "development"

    # Ledger
    ledger_secret_salt: str = DEFAULT_LEDGER_SALT
    ledger_seq_base: int = 1
    ledger_append_max_retries: int = 5
    ledger_verify_max_depth: int = 10  # 0 walks back to genesis
    ledger_verify_recompute_hashes: bool = True
    ledger_metadata_max_bytes: int = 8000

    # Reporting
    reporting_cache_backend: str = "memory"  # memory, redis
    reporting_cache_ttl_seconds: int = 900
    reporting_warm_async: bool = False

    # Ledger roots
    ledger_root_hour_utc: int = 2  # daily root run, covers the previous UTC day

    # Logging
    log_level: str = "INFO"

    # CORS
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    @property
    def database_url_computed(self) -> str:
        """Compute database URL if not explicitly set."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@localhost:{self.postgres_port}/{self.postgres_db}"
        )

    def validate_production_settings(self):
        """Validate settings for production environment."""
        if self.reporting_cache_backend not in ("memory", "redis"):
            raise ValueError(f"Unknown REPORTING_CACHE_BACKEND: {self.reporting_cache_backend}")
        if self.reporting_warm_async and self.reporting_cache_backend == "memory":
            raise ValueError(
                "REPORTING_WARM_ASYNC requires REPORTING_CACHE_BACKEND=redis; "
                "the worker cannot fill an API process's in-memory cache."
            )

        env = self.environment.lower()
        if env in ("development", "test", "dev"):
            return
        if self.ledger_secret_salt == DEFAULT_LEDGER_SALT:
            raise ValueError(
                "LEDGER_SECRET_SALT must be set in production. "
                "Do not use the development salt."
            )
        if self.reporting_cache_backend == "memory":
            raise ValueError(
                "REPORTING_CACHE_BACKEND=memory is not allowed in production. "
                "Use REPORTING_CACHE_BACKEND=redis so every instance shares one cache."
            )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
