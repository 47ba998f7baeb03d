"""
Runtime configuration for GameShelf.

Settings are read from an optional settings.json in the data directory and
then overridden by environment variables:

- STEAM_API_KEY: Steam Web API key (owned games, profile summaries)
- ITAD_API_KEY: IsThereAnyDeal API key (catalog lookups and prices)
- GAMESHELF_DATA_DIR: where on-device and document stores keep their files
- GAMESHELF_LOG_LEVEL: root log level used by setup_logging()
- GAMESHELF_HTTP_TIMEOUT: total timeout in seconds for one external call
"""
import json
import logging
import os
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from .utils.paths import GAMESHELF_DATA_DIR, SETTINGS_FILE

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class Settings:
    steam_api_key: str = ""
    itad_api_key: str = ""
    data_dir: str = GAMESHELF_DATA_DIR
    log_level: str = "INFO"
    http_timeout: float = 10.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


ENV_OVERRIDES = {
    "STEAM_API_KEY": "steam_api_key",
    "ITAD_API_KEY": "itad_api_key",
    "GAMESHELF_DATA_DIR": "data_dir",
    "GAMESHELF_LOG_LEVEL": "log_level",
    "GAMESHELF_HTTP_TIMEOUT": "http_timeout",
}


def _load_settings_file(path: str) -> Dict[str, Any]:
    """Load settings.json, returning {} when missing or unreadable."""
    if not os.path.exists(path):
        return {}
    try:
        with open(path, 'r') as f:
            data = json.load(f)
        if isinstance(data, dict):
            return data
        logger.warning(f"[Config] Ignoring {path}: expected a JSON object")
    except Exception as e:
        logger.error(f"[Config] Error loading settings from {path}: {e}")
    return {}


def load_settings(env: Optional[Dict[str, str]] = None, settings_path: Optional[str] = None) -> Settings:
    """
    Build Settings from settings.json layered under environment variables.

    Args:
        env: Mapping to read variables from (defaults to os.environ)
        settings_path: Explicit settings.json path (defaults to <data_dir>/settings.json)

    Returns:
        Populated Settings instance
    """
    env = os.environ if env is None else env
    data_dir = env.get("GAMESHELF_DATA_DIR", GAMESHELF_DATA_DIR)
    path = settings_path or os.path.join(data_dir, SETTINGS_FILE)

    values = {k: v for k, v in _load_settings_file(path).items() if k in Settings.__dataclass_fields__}
    for var, field_name in ENV_OVERRIDES.items():
        if env.get(var):
            values[field_name] = env[var]

    if "http_timeout" in values:
        try:
            values["http_timeout"] = float(values["http_timeout"])
        except (TypeError, ValueError):
            logger.warning(f"[Config] Invalid http_timeout {values['http_timeout']!r}, using default")
            del values["http_timeout"]

    settings = Settings(**values)
    if not settings.itad_api_key:
        logger.warning("[Config] ITAD_API_KEY not set; catalog lookups will fail")
    if not settings.steam_api_key:
        logger.warning("[Config] STEAM_API_KEY not set; Steam library sync will fail")
    return settings


def setup_logging(settings: Settings) -> None:
    """Configure the root logger for hosts that do not configure logging themselves."""
    level = getattr(logging, str(settings.log_level).upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
