"""
Configuration management for AdSync.

Supports loading from environment variables and YAML files.
Settings cover the local cache database, the upstream advertising API,
and the synchronization machinery that keeps the two in step.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from adsync.common.exceptions import ConfigError


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------

class DatabaseSettings(BaseSettings):
    """Local cache database configuration (PostgreSQL, or SQLite via ``url``)."""

    host: str = "localhost"
    port: int = 5432
    name: str = "adsync"
    user: str = "adsync"
    password: str = ""
    pool_size: int = 10
    max_overflow: int = 20

    # Full SQLAlchemy URL; overrides the discrete fields when set
    url: str = ""

    @property
    def async_url(self) -> str:
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password}@{self.host}:{self.port}/{self.name}"

    @property
    def is_sqlite(self) -> bool:
        return self.async_url.startswith("sqlite")


class ServerSettings(BaseSettings):
    """Uvicorn / HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 1
    reload: bool = False


# ---------------------------------------------------------------------------
# Upstream advertising API
# ---------------------------------------------------------------------------

class UpstreamSettings(BaseSettings):
    """Broadstreet advertising API configuration."""

    base_url: str = "https://api.broadstreetads.com/api/1"
    access_token: str = ""

    # Fixed per-request timeout; no retries are attempted on expiry
    timeout_seconds: float = 30.0


# ---------------------------------------------------------------------------
# Synchronization
# ---------------------------------------------------------------------------

class SyncSettings(BaseSettings):
    """Sync orchestration configuration."""

    # Capacity of the background sync work queue (jobs beyond it are dropped)
    background_queue_size: int = 32

    # Periodic full resync; 0 disables the scheduler
    auto_sync_interval_minutes: int = 0

    # Bootstrap an empty store during app startup instead of on first read
    initialize_on_startup: bool = False


# ---------------------------------------------------------------------------
# Observability
# ---------------------------------------------------------------------------

class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["json", "console"] = "json"


class MonitoringSettings(BaseSettings):
    """Prometheus / monitoring configuration."""

    enabled: bool = True


# ---------------------------------------------------------------------------
# Root Settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="ADSYNC_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Application
    app_name: str = "AdSync"
    app_version: str = "0.1.0"
    debug: bool = False
    env: Literal["dev", "prod", "test"] = "dev"

    # Nested settings
    server: ServerSettings = Field(default_factory=ServerSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    upstream: UpstreamSettings = Field(default_factory=UpstreamSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        if v not in ("dev", "prod", "test"):
            raise ValueError(f"Invalid environment: {v}")
        return v


# ---------------------------------------------------------------------------
# YAML Loader
# ---------------------------------------------------------------------------

def load_yaml_config(config_path: Path) -> dict:
    """
    Load configuration from YAML file.

    Raises:
        ConfigError: the file is not valid YAML or is not a mapping
    """
    if not config_path.exists():
        return {}
    try:
        with open(config_path) as f:
            config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path.name}", {"path": str(config_path)}) from e
    if not isinstance(config, dict):
        raise ConfigError(
            f"{config_path.name} must contain a mapping, got {type(config).__name__}",
            {"path": str(config_path)},
        )
    return config


def merge_configs(base: dict, override: dict) -> dict:
    """Deep-merge two configuration dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value
    return result


_SECTION_CLASSES: dict[str, type[BaseSettings]] = {
    "server": ServerSettings,
    "database": DatabaseSettings,
    "upstream": UpstreamSettings,
    "sync": SyncSettings,
    "logging": LoggingSettings,
    "monitoring": MonitoringSettings,
}


@lru_cache
def get_settings() -> Settings:
    """
    Get application settings.

    Loads from:
    1. configs/base.yaml (base configuration)
    2. configs/{env}.yaml (environment-specific overrides)
    3. Environment variables (highest priority)
    """
    import os

    env = os.getenv("ADSYNC_ENV", "dev")

    config_dir = Path(__file__).parent.parent.parent / "configs"

    base_config = load_yaml_config(config_dir / "base.yaml")
    env_config = load_yaml_config(config_dir / f"{env}.yaml")
    merged = merge_configs(base_config, env_config)

    # Flatten nested config for Pydantic
    flat_config: dict = {}
    if "app" in merged:
        flat_config["app_name"] = merged["app"].get("name", "AdSync")
        flat_config["app_version"] = merged["app"].get("version", "0.1.0")
        flat_config["debug"] = merged["app"].get("debug", False)

    flat_config["env"] = env

    # pydantic-settings gives init kwargs higher priority than env vars,
    # so env-var overrides are merged into the YAML dict first.
    for section_key, settings_cls in _SECTION_CLASSES.items():
        section_data = dict(merged.get(section_key, {}))

        # ADSYNC_SECTION__FIELD → field
        prefix = f"ADSYNC_{section_key.upper()}__"
        for env_key, env_value in os.environ.items():
            if env_key.startswith(prefix):
                field_name = env_key[len(prefix):].lower()
                section_data[field_name] = env_value

        flat_config[section_key] = settings_cls(**section_data)

    return Settings(**flat_config)


# Convenience alias
settings = get_settings()
