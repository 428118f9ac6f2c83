"""Application configuration using Pydantic Settings."""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

# Keys in settings.json that belong to other sections, not to Settings fields
_NESTED_SECTIONS = ("matching", "lexicon")


def resolve_data_dir() -> Path:
    """Resolve the base data directory.

    LOSTFOUND_DATA_DIR wins (used by tests), then /config for container
    deployments, then backend/data for development.
    """
    data_dir_env = os.environ.get("LOSTFOUND_DATA_DIR", "")
    if data_dir_env and Path(data_dir_env).exists():
        return Path(data_dir_env)
    if Path("/config").exists():
        return Path("/config")
    # __file__ is backend/lostfound/core/config.py
    return (Path(__file__).parent.parent.parent / "data").resolve()


def get_settings_file_path() -> Path:
    """Path of the settings.json file shared by all config sections."""
    return resolve_data_dir() / "config" / "settings.json"


def load_settings_section(section: str) -> dict[str, Any] | None:
    """Load one nested section (e.g. "matching") from settings.json.

    Returns:
        The section dict, or None if the file or section is missing
    """
    settings_file = get_settings_file_path()
    if not settings_file.exists():
        return None

    with settings_file.open("r", encoding="utf-8") as f:
        data = json.load(f)

    value = data.get(section)
    return value if isinstance(value, dict) else None


def json_config_settings_source(
    settings: BaseSettings | None = None,
) -> dict[str, Any]:  # noqa: ANN001
    """Load top-level settings from settings.json.

    This source has lowest priority - env vars will override JSON values.
    Nested sections are skipped; they are read by their own loaders.
    """
    settings_file = get_settings_file_path()
    if not settings_file.exists():
        return {}

    try:
        with settings_file.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError):
        return {}

    if not isinstance(data, dict):
        return {}

    return {k.lower(): v for k, v in data.items() if k not in _NESTED_SECTIONS}


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from:
    1. JSON file (settings.json in config directory) - lowest priority
    2. .env file
    3. Environment variables - highest priority (override JSON/.env)

    All settings are prefixed with LOSTFOUND_ (e.g., LOSTFOUND_ENV=production).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="LOSTFOUND_",
        case_sensitive=False,
        extra="ignore",
        protected_namespaces=(),
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources, highest priority first."""
        return (  # type: ignore[return-value]
            init_settings,
            env_settings,
            dotenv_settings,
            json_config_settings_source,
        )

    # Application
    env: Literal["development", "production", "testing"] = Field(
        default="development",
        description="Application environment (development, production, testing)",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_to_file: bool = Field(
        default=False,
        description="Write JSON logs under logs_dir instead of stdout",
    )

    data_dir: Path = Field(
        default_factory=resolve_data_dir,
        description="Base directory for all application data (config, database, cache, logs)",
    )

    # Image classification
    classifier_model: str = Field(
        default="google/mobilenet_v2_1.0_224",
        description="Hugging Face model id for the image-classification pipeline",
    )
    classifier_top_k: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Number of labels returned per classified image",
    )
    classifier_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Upper bound for fetching and classifying one image",
    )
    classifier_device: str | None = Field(
        default=None,
        description="Torch device for inference (e.g. 'cpu', 'cuda'); None lets transformers pick",
    )

    # Image fetching
    image_fetch_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="HTTP timeout for downloading report images",
    )
    max_image_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1,
        description="Images larger than this are rejected before decoding",
    )

    # Match search
    max_concurrent_pairs: int = Field(
        default=1,
        ge=1,
        description="Number of report pairs evaluated concurrently during a search",
    )

    @property
    def config_dir(self) -> Path:
        """Directory for configuration files (settings.json, etc.)."""
        return self.data_dir / "config"

    @property
    def database_dir(self) -> Path:
        """Directory for database files."""
        return self.data_dir / "database"

    @property
    def cache_dir(self) -> Path:
        """Directory for cache files (downloaded models, etc.)."""
        return self.data_dir / "cache"

    @property
    def logs_dir(self) -> Path:
        """Directory for log files (if file logging is enabled)."""
        return self.data_dir / "logs"

    @property
    def database_file(self) -> Path:
        """SQLite file holding persisted match candidates."""
        return self.database_dir / "lostfound.db"

    @property
    def database_url(self) -> str:
        """Database connection URL.

        Absolute POSIX paths keep their leading slash, giving the
        four-slash form SQLAlchemy expects (sqlite+aiosqlite:////abs/path).
        """
        return f"sqlite+aiosqlite:///{self.database_file.resolve().as_posix()}"

    @property
    def log_debug(self) -> bool:
        """True when log_level asks for debug output."""
        return self.log_level == "DEBUG"

    def model_post_init(self, __context: object) -> None:
        """Post-initialization: create data directories if they don't exist."""
        self.data_dir = self.data_dir.resolve()

        for directory in (
            self.data_dir,
            self.config_dir,
            self.database_dir,
            self.cache_dir,
            self.logs_dir,
        ):
            directory.mkdir(parents=True, exist_ok=True)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the cached settings instance.

    The cache is cleared when reload_settings() is called.
    """
    return Settings()


def reload_settings() -> Settings:
    """Reload settings from all sources (JSON, .env, env vars)."""
    get_settings.cache_clear()
    return get_settings()
