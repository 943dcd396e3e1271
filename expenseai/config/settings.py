"""
Configuration Management for ExpenseAI

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Every section has usable defaults: with an empty environment the server
runs entirely on the in-memory backend and the AI agents answer with their
fallback values.
"""

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MongoSettings(BaseSettings):
    """MongoDB document store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MONGODB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    uri: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MONGODB_URI", "DATABASE_URL"),
        description="MongoDB connection string; absent means in-memory only"
    )
    database_name: str = Field(
        default="expenseai",
        description="Database holding the application collections"
    )
    server_selection_timeout_ms: int = Field(
        default=10000,
        ge=100,
        description="How long the driver waits for a usable server"
    )
    connect_timeout_ms: int = Field(
        default=10000,
        ge=100,
    )
    socket_timeout_ms: int = Field(
        default=45000,
        ge=100,
    )
    max_pool_size: int = Field(default=10, ge=1)
    min_pool_size: int = Field(default=2, ge=0)

    @field_validator('uri')
    @classmethod
    def only_mongodb_urls(cls, v: Optional[str]) -> Optional[str]:
        """DATABASE_URL may point at another database; ignore anything that isn't MongoDB."""
        if v is None:
            return None
        v = v.strip()
        if not v.startswith(("mongodb://", "mongodb+srv://")):
            return None
        return v


class StorageSettings(BaseSettings):
    """Timing of the in-memory -> MongoDB upgrade probe."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    initial_probe_delay_seconds: float = Field(
        default=0.1,
        ge=0.0,
        description="Delay before the first connectivity probe"
    )
    retry_interval_seconds: float = Field(
        default=2.0,
        gt=0.0,
        description="Pause between connectivity probes"
    )
    retry_window_seconds: float = Field(
        default=30.0,
        ge=0.0,
        description="Total time spent probing before giving up"
    )


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: Optional[str] = Field(
        default=None,
        description="Gemini API key; agents use their fallbacks without it"
    )
    model_name: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=2048,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Per-request timeout for model calls"
    )


class AuthSettings(BaseSettings):
    """Bearer token configuration."""

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    secret_key: str = Field(
        default="change-this-secret-in-production-use-long-random-string",
        min_length=16,
    )
    algorithm: str = Field(default="HS256")
    token_expire_days: int = Field(default=30, ge=1)

    @property
    def session_ttl_seconds(self) -> int:
        return self.token_expire_days * 24 * 60 * 60


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=5000, ge=1, le=65535)
    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins"
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def mongo(self) -> MongoSettings:
        return MongoSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def auth(self) -> AuthSettings:
        return AuthSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings sections load.

    Returns a dict of {setting_name: is_valid} plus "<name>_error" entries
    for sections that failed. Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("mongo", "storage", "gemini", "auth", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
