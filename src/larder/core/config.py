"""Larder configuration — reads env vars and .env, then larder.toml for anything unset."""

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Dict

from pydantic import Field
from pydantic_settings import BaseSettings

logger = logging.getLogger("larder.config")


class LarderSettings(BaseSettings):
    """Daemon settings."""

    # Server
    host: str = "0.0.0.0"
    port: int = 8410
    log_level: str = "info"

    # Database holding the source tables, the summary and run history
    database_url: str = Field(
        default="sqlite+aiosqlite:///larder.db",
        alias="LARDER_DATABASE_URL",
    )

    # Auth
    api_key: str = Field(default="larder_dev_key", alias="LARDER_API_KEY")

    # Refresh schedule (min hour day month dow): midnight on the 1st
    timezone: str = "UTC"
    refresh_cron: str = "0 0 1 * *"
    refresh_on_startup: bool = True

    # Reporting
    churn_days: int = 90

    model_config = {"env_prefix": "LARDER_", "env_file": ".env", "extra": "ignore"}


class ClientSettings(BaseSettings):
    """CLI client settings."""

    host: str = Field(default="http://localhost:8410", alias="LARDER_HOST")
    api_key: str = Field(default="larder_dev_key", alias="LARDER_API_KEY")

    model_config = {"env_prefix": "LARDER_", "extra": "ignore"}


def _read_toml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Ignoring unreadable config file {path}: {e}")
        return {}


def _load_toml_config() -> Dict[str, Any]:
    """Load configuration from larder.toml files.

    Searches for larder.toml in:
    1. LARDER_HOME (~/.larder/larder.toml by default)
    2. Current directory (./larder.toml)

    Returns:
        Combined configuration dict; keys from the local file win.
    """
    config: Dict[str, Any] = {}

    larder_home = Path(os.environ.get("LARDER_HOME", "~/.larder")).expanduser()
    global_config_path = larder_home / "larder.toml"
    if global_config_path.exists():
        config.update(_read_toml(global_config_path))

    local_config_path = Path("larder.toml")
    if local_config_path.exists():
        config.update(_read_toml(local_config_path))

    return config


def get_settings() -> LarderSettings:
    """Settings from env vars and .env, with larder.toml filling in the rest.

    A key in larder.toml never overrides the same setting given in the
    environment.
    """
    settings = LarderSettings()
    from_env = set(settings.model_fields_set)

    for key, value in _load_toml_config().items():
        if key not in LarderSettings.model_fields:
            logger.warning(f"Unknown setting '{key}' in larder.toml")
        elif key in from_env:
            logger.debug(f"Setting '{key}' from the environment overrides larder.toml")
        else:
            setattr(settings, key, value)

    return settings


def get_client_settings() -> ClientSettings:
    return ClientSettings()
