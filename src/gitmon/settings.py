"""Application settings and configuration file loading."""

import os
import tomllib
from pathlib import Path
from typing import Optional

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from gitmon.errors import ConfigInvalid
from gitmon.models import MonitorConfig


class Settings(BaseSettings):
    """Settings loaded from environment variables.

    All settings are prefixed with GITMON_ (e.g., GITMON_CONFIG).
    """

    model_config = SettingsConfigDict(
        env_prefix="GITMON_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    config: Optional[Path] = None
    log_level: str = "WARNING"
    log_json: bool = False

    # Mail token kept out of the config file
    token: Optional[str] = None


def default_config_path() -> Path:
    """``$XDG_CONFIG_HOME/gitmon/config.toml``, falling back to ``~/.config``."""
    base = os.environ.get("XDG_CONFIG_HOME")
    return (Path(base) if base else Path.home() / ".config") / "gitmon" / "config.toml"


def load_config(path: Optional[Path] = None, settings: Optional[Settings] = None) -> MonitorConfig:
    """Load and validate the TOML configuration.

    Args:
        path: Config file (defaults to GITMON_CONFIG, then the XDG location)
        settings: Environment settings (loaded when omitted)

    Returns:
        MonitorConfig

    Raises:
        ConfigInvalid: If the file cannot be read, parsed or validated
    """
    settings = settings or Settings()
    resolved = Path(path or settings.config or default_config_path()).expanduser()

    try:
        with open(resolved, "rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigInvalid(f"Failed to read config file at {resolved}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigInvalid(f"Failed to parse config TOML at {resolved}: {e}") from e

    try:
        config = MonitorConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigInvalid(f"Invalid config at {resolved}: {e}") from e

    if settings.token and config.mail is not None:
        config.mail = config.mail.model_copy(update={"token": settings.token})
    return config
