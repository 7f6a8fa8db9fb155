"""
Runtime settings from environment variables.

    IAP_CATALOG_PATH     catalog file (default: app_data.json)
    IAP_ADMIN_MODE       start in admin mode (default: off)
    IAP_LOG_LEVEL        log level name (default: INFO)
    IAP_ALLOW_ERASE_ALL  allow full chip erase when flashing (default: off)

CLI options override these values.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

from iap_flasher.catalog.store import DEFAULT_CATALOG_FILENAME

CATALOG_PATH_ENV = "IAP_CATALOG_PATH"
ADMIN_MODE_ENV = "IAP_ADMIN_MODE"
LOG_LEVEL_ENV = "IAP_LOG_LEVEL"
ALLOW_ERASE_ALL_ENV = "IAP_ALLOW_ERASE_ALL"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def env_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    val = value.strip().lower()
    if val in _TRUE:
        return True
    if val in _FALSE:
        return False
    return default


@dataclass
class Settings:
    catalog_path: Path = Path(DEFAULT_CATALOG_FILENAME)
    admin_mode: bool = False
    log_level: str = "INFO"
    allow_erase_all: bool = False

    @property
    def log_level_value(self) -> int:
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.INFO


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from the environment (os.environ by default)."""
    env = os.environ if environ is None else environ
    return Settings(
        catalog_path=Path(env.get(CATALOG_PATH_ENV) or DEFAULT_CATALOG_FILENAME),
        admin_mode=env_bool(env.get(ADMIN_MODE_ENV)),
        log_level=(env.get(LOG_LEVEL_ENV) or "INFO").strip().upper(),
        allow_erase_all=env_bool(env.get(ALLOW_ERASE_ALL_ENV)),
    )


def settings_to_env(settings: Settings) -> Dict[str, str]:
    """Inverse of load_settings, for handing settings to the Streamlit script."""
    return {
        CATALOG_PATH_ENV: str(settings.catalog_path),
        ADMIN_MODE_ENV: "1" if settings.admin_mode else "0",
        LOG_LEVEL_ENV: settings.log_level,
        ALLOW_ERASE_ALL_ENV: "1" if settings.allow_erase_all else "0",
    }
