"""LAN chat application configuration.

Loads settings from a single YAML file:
  * lanchat.settings.yaml: server, chat, upload and logging settings

The file location can be overridden with the LANCHAT_SETTINGS environment
variable. Missing files fall back to defaults. Relative directories are
resolved against the directory the settings file lives in.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("lanchat.settings.yaml")
SETTINGS_ENV_VAR = "LANCHAT_SETTINGS"


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def _resolve_dir(value: str, base_dir: Path) -> str:
    path = Path(value).expanduser()
    if path.is_absolute():
        return str(path)
    return str(base_dir / path)


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:            str       = "0.0.0.0"
    port:            int       = 3000
    public_dir:      str       = "public"
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])


class ChatSettings(BaseModel):
    """Presence and history limits for the chat hub."""
    max_history:         int = Field(default=100, ge=1)
    default_name_prefix: str = "User"
    max_name_length:     int = Field(default=64, ge=1)
    max_text_length:     int = Field(default=10000, ge=1)
    outbox_size:         int = Field(default=256, ge=1)


class UploadSettings(BaseModel):
    directory:           str = "uploads"
    max_file_size_bytes: int = Field(default=50 * 1024 * 1024, ge=1)


class LoggingSettings(BaseModel):
    level: str = "info"


class AppConfig(BaseModel):
    server:  ServerSettings  = Field(default_factory=ServerSettings)
    chat:    ChatSettings    = Field(default_factory=ChatSettings)
    uploads: UploadSettings  = Field(default_factory=UploadSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(settings_path: Optional[Path] = None) -> AppConfig:
    """Load settings into a single *AppConfig* object.

    Args:
        settings_path: Explicit settings file. Defaults to $LANCHAT_SETTINGS,
            then ./lanchat.settings.yaml.
    """
    if settings_path is None:
        settings_path = Path(os.environ.get(SETTINGS_ENV_VAR, SETTINGS_FILE))
    settings_path = Path(settings_path)
    base_dir = settings_path.resolve().parent

    config = AppConfig(**_load_yaml(settings_path))

    config.server.public_dir = _resolve_dir(config.server.public_dir, base_dir)
    config.uploads.directory = _resolve_dir(config.uploads.directory, base_dir)

    logger.info(
        "Settings loaded (server=%s:%s, max_history=%d, uploads=%s)",
        config.server.host,
        config.server.port,
        config.chat.max_history,
        config.uploads.directory,
    )
    return config


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Return the process-wide config, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: AppConfig) -> None:
    """Replace the process-wide config (used by tests and embedding apps)."""
    global _config
    _config = config


def reset_config() -> None:
    """Drop the cached config so the next get_config() reloads it."""
    global _config
    _config = None
