# =============================================================================
# app/config.py - Application Settings
# =============================================================================
# This module loads configuration from environment variables using pydantic-settings.
# It provides a single Settings class with all configuration values.
#
# Usage:
#   from app.config import settings
#   print(settings.SUPABASE_URL)
#
# Environment variables are loaded from:
# 1. System environment variables
# 2. .env file in project root (if exists)
#
# The core/ package never reads these values directly. They are passed into
# the component constructors by app/dependencies.py.
# =============================================================================

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings are accessed via the global `settings` instance.
    """

    # -------------------------------------------------------------------------
    # Supabase Configuration
    # -------------------------------------------------------------------------
    # These are required - app won't start without them

    SUPABASE_URL: str = Field(
        ...,
        description="Supabase project URL (e.g., https://xxx.supabase.co)"
    )

    SUPABASE_ANON_KEY: str = Field(
        ...,
        description="Supabase anon/public API key"
    )

    SUPABASE_SERVICE_KEY: str = Field(
        ...,
        description="Supabase service_role key (needed to create buckets)"
    )

    # -------------------------------------------------------------------------
    # Relational Record Settings
    # -------------------------------------------------------------------------

    USERS_TABLE: str = Field(
        default="users_crm_2024",
        min_length=1,
        description="Table holding user profiles (avatar_url / updated_at columns)"
    )

    # -------------------------------------------------------------------------
    # Image Upload Settings
    # -------------------------------------------------------------------------

    MAX_UPLOAD_SIZE_MB: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum image size in MB (validation and bucket limit)"
    )

    ALLOWED_MIME_TYPES: str = Field(
        default="image/png,image/jpeg,image/jpg,image/webp",
        description="Accepted image MIME types (comma-separated)"
    )

    UPLOAD_CACHE_CONTROL: str = Field(
        default="3600",
        description="Cache-Control max-age declared on uploaded objects"
    )

    VERIFY_PUBLIC_URL: bool = Field(
        default=True,
        description="Send a HEAD request to the public URL after each upload"
    )

    # -------------------------------------------------------------------------
    # Diagnostic Log Settings
    # -------------------------------------------------------------------------

    DIAGNOSTIC_LOG_CAPACITY: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="How many diagnostic events are kept (oldest evicted first)"
    )

    SHARED_DIAGNOSTIC_LOG: bool = Field(
        default=True,
        description="One process-wide diagnostic log (true) or one per uploader (false)"
    )

    # -------------------------------------------------------------------------
    # Uploader Registry Settings
    # -------------------------------------------------------------------------

    MAX_OPEN_UPLOADERS: int = Field(
        default=100,
        ge=1,
        description="Open uploaders kept in memory; the least recently used is closed first"
    )

    UPLOADER_IDLE_TTL_SECONDS: int = Field(
        default=1800,
        ge=1,
        description="Uploaders untouched for this long are closed"
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Current environment"
    )

    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (verbose logging, auto-reload)"
    )

    API_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the API server to"
    )

    API_PORT: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port for the API server"
    )

    # CORS origins (comma-separated string that gets parsed)
    CORS_ORIGINS: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
    )

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS_ORIGINS string into a list.

        Example: "http://localhost:3000, https://myapp.com" -> ["http://localhost:3000", "https://myapp.com"]
        """
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def allowed_mime_types_list(self) -> list[str]:
        """
        Parse ALLOWED_MIME_TYPES string into a list.

        Example: "image/png, image/webp" -> ["image/png", "image/webp"]
        """
        return [
            mime.strip().lower()
            for mime in self.ALLOWED_MIME_TYPES.split(",")
            if mime.strip()
        ]

    @property
    def max_upload_size_bytes(self) -> int:
        """Convert MB to bytes for file size validation."""
        return self.MAX_UPLOAD_SIZE_MB * 1024 * 1024

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Using lru_cache ensures we only parse .env and validate once,
    not on every access.
    """
    return Settings()


# Global settings instance for easy importing
# Usage: from app.config import settings
settings = get_settings()
