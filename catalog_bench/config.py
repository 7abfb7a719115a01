"""
Application Configuration using Pydantic Settings

Loads configuration from environment variables with sensible defaults.
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # ========================================================================
    # Iceberg REST Catalog Settings
    # ========================================================================
    ICEBERG_CATALOG_URI: str = "http://127.0.0.1:9001/_iceberg"
    ICEBERG_API_PREFIX: str = "/v1"
    # SigV4 request signing. Both keys must be set to sign requests.
    ICEBERG_ACCESS_KEY: str = ""
    ICEBERG_SECRET_KEY: str = ""
    ICEBERG_SESSION_TOKEN: str = ""
    ICEBERG_REGION: str = "us-east-1"
    ICEBERG_SERVICE: str = "s3tables"
    # Optional bearer token sent as `Authorization: Bearer <token>` when SigV4
    # credentials are not configured.
    ICEBERG_TOKEN: str = ""
    CATALOG_NAME: str = "benchmark_catalog"

    # Client-side timeouts (seconds).
    #
    # These should be high enough that we observe catalog-side queueing/slowdowns
    # instead of client-side timeouts.
    ICEBERG_CONNECT_TIMEOUT: float = 10.0
    ICEBERG_REQUEST_TIMEOUT: float = 60.0
    ICEBERG_MAX_CONNECTIONS: int = 256

    # ========================================================================
    # Dataset (namespace tree) Settings
    # ========================================================================
    NAMESPACE_WIDTH: int = 2
    NAMESPACE_DEPTH: int = 3
    TABLES_PER_NS: int = 5

    # ========================================================================
    # Benchmark Execution Settings
    # ========================================================================
    DEFAULT_SEED: int = 42
    DEFAULT_DURATION_SECONDS: float = 300.0

    # Bounded operation channel between workers and the aggregator. Workers block
    # when it is full.
    COLLECTOR_BUFFER_SIZE: int = 1000

    # ========================================================================
    # Auto-Termination Settings
    # ========================================================================
    AUTOTERM_THRESHOLD_PCT: float = 7.5
    AUTOTERM_SPLITS: int = 7
    AUTOTERM_SAMPLES_PER_SPLIT: int = 25
    AUTOTERM_CHECK_INTERVAL_SECONDS: float = 1.0

    # ========================================================================
    # Logging Settings
    # ========================================================================
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _normalize_log_level(cls, v):
        return str(v or "INFO").strip().upper()

    @field_validator("ICEBERG_API_PREFIX", mode="before")
    @classmethod
    def _normalize_api_prefix(cls, v):
        prefix = str(v or "").strip().strip("/")
        return f"/{prefix}" if prefix else ""


# Create global settings instance
settings = Settings()
