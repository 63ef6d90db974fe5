"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache

from models.reference import TransferFallbackPolicy


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        ...,
        description="Supabase anon/public key"
    )

    # ===================
    # BULK IMPORT LIMITS
    # ===================
    import_max_file_bytes: int = Field(
        default=5 * 1024 * 1024,
        ge=1024,
        le=50 * 1024 * 1024,
        description="Maximum CSV upload size in bytes"
    )
    import_max_rows: int = Field(
        default=500,
        ge=1,
        le=10000,
        description="Maximum data rows per import"
    )
    import_session_ttl_minutes: int = Field(
        default=30,
        ge=1,
        le=1440,
        description="Minutes an idle import session is kept in memory"
    )
    import_preview_rows: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Raw rows returned in the preview step"
    )

    # ===================
    # COMMIT BEHAVIOUR
    # ===================
    commit_max_retries: int = Field(
        default=2,
        ge=0,
        le=5,
        description="Retries for a remote call that failed to connect"
    )
    commit_retry_backoff_seconds: float = Field(
        default=0.5,
        ge=0,
        le=10,
        description="Base delay between retries (doubles per attempt)"
    )
    transfer_leg_fallback: TransferFallbackPolicy = Field(
        default=TransferFallbackPolicy.PRIMARY_ACCOUNT,
        description="What to do when a transfer row names only one account"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )
    cors_origins: list[str] = Field(
        default=[
            "http://localhost:5173",
            "http://localhost:8080",
        ],
        description="Origins allowed to call the API"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
