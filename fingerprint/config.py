"""
Configuration management for the device fingerprint server.

Uses pydantic-settings for type-safe configuration with environment variable support.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fingerprint.models import SimilarityWeights


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(
        env_prefix="POSTGRES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    user: str = "fingerprint"
    password: str = ""  # Required: Set POSTGRES_PASSWORD in .env
    host: str = "localhost"
    port: int = 5432
    db: str = "fingerprint"

    # Full URL override (e.g. sqlite:///:memory: in tests)
    database_url: Optional[str] = Field(default=None, validation_alias="DATABASE_URL")

    pool_size: int = 20
    max_overflow: int = 30
    pool_timeout: int = 30  # seconds
    connect_timeout: int = 10  # seconds
    statement_timeout_ms: int = 30000

    @property
    def url(self) -> str:
        """Construct database URL."""
        if self.database_url:
            return self.database_url
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.db}"


class RedisSettings(BaseSettings):
    """Redis connection settings."""

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = "localhost"
    port: int = 6379
    db: int = 0

    @property
    def url(self) -> str:
        """Construct Redis URL."""
        return f"redis://{self.host}:{self.port}/{self.db}"


class SimilaritySettings(BaseSettings):
    """Similarity weights and match threshold."""

    model_config = SettingsConfigDict(
        env_prefix="FINGERPRINT_SIMILARITY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    threshold: float = Field(default=0.95, ge=0.0, le=1.0)
    visitor_weight: float = Field(default=0.35, ge=0.0)
    browser_weight: float = Field(default=0.20, ge=0.0)
    device_weight: float = Field(default=0.20, ge=0.0)
    network_weight: float = Field(default=0.10, ge=0.0)
    geo_weight: float = Field(default=0.10, ge=0.0)
    certificate_weight: float = Field(default=0.05, ge=0.0)

    def to_weights(self) -> SimilarityWeights:
        """Freeze the settings into the value passed to the scorer and resolver."""
        return SimilarityWeights(
            visitor=self.visitor_weight,
            browser=self.browser_weight,
            device=self.device_weight,
            network=self.network_weight,
            geo=self.geo_weight,
            certificate=self.certificate_weight,
            threshold=self.threshold,
        )


class MatchingSettings(BaseSettings):
    """Candidate retrieval and merge limits."""

    model_config = SettingsConfigDict(
        env_prefix="FINGERPRINT_MATCHING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    candidate_limit: int = Field(default=20, ge=1)
    ip_history_limit: int = Field(default=20, ge=1)


class GeoIpSettings(BaseSettings):
    """GeoIP lookup settings."""

    model_config = SettingsConfigDict(
        env_prefix="GEOIP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_path: Path = Path("GeoLite2-City.mmdb")
    enabled: bool = True
    cache_ttl: int = 86400  # seconds; GeoLite2 is refreshed weekly at most


class StoreSettings(BaseSettings):
    """Profile store behaviour."""

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Reject saves whose version no longer matches the stored row
    optimistic_locking: bool = False


class APISettings(BaseSettings):
    """API server settings."""

    model_config = SettingsConfigDict(
        env_prefix="API_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    reload: bool = False
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


class LogSettings(BaseSettings):
    """Logging settings."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    level: str = "INFO"
    file: Optional[Path] = None

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v):
        """Accept lowercase level names from the environment."""
        return str(v).upper()


class Settings(BaseSettings):
    """Main settings class that combines all settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Sub-settings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    similarity: SimilaritySettings = Field(default_factory=SimilaritySettings)
    matching: MatchingSettings = Field(default_factory=MatchingSettings)
    geoip: GeoIpSettings = Field(default_factory=GeoIpSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    api: APISettings = Field(default_factory=APISettings)
    log: LogSettings = Field(default_factory=LogSettings)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
