"""Application configuration via environment variables and .env file."""

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings
from pydantic_settings.sources import DotEnvSettingsSource, PydanticBaseSettingsSource

# Path to .env file (patch in tests to use tmp_path / ".env")
_ENV_FILE: Path = Path(".env")


class Settings(BaseSettings):
    model_config = {
        "env_prefix": "SIGHTLINE_",
        "env_file_encoding": "utf-8",
    }

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Load .env from _ENV_FILE (patchable in tests)
        return (
            init_settings,
            env_settings,
            DotEnvSettingsSource(
                settings_cls,
                env_file=_ENV_FILE,
                env_file_encoding="utf-8",
            ),
            file_secret_settings,
        )

    # Push API credentials, both issued by the dashboard
    secret: str
    validator: str

    # Database, e.g. sqlite:///./data/sightline.db or postgresql://...
    database_url: str

    # Drop and recreate all tables on startup
    reset_schema_on_startup: bool = True

    # Logging
    log_level: str = "info"

    # Client listing
    recency_window: int = 900  # seconds
    client_row_ceiling: int = 6000

    # Ingestion queue
    ingest_workers: int = 1
    ingest_queue_size: int = 1000

    # Server
    host: str = "0.0.0.0"
    port: int = 4567

    @field_validator("secret", "validator", "database_url")
    @classmethod
    def require_non_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    @field_validator("ingest_workers", "ingest_queue_size", "client_row_ceiling")
    @classmethod
    def require_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v


def load_config() -> Settings:
    """Load configuration from .env and environment (env overrides .env)."""
    return Settings()


settings = load_config()
