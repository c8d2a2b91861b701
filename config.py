import os
import logging

import yaml

APP_VERSION = "1.0.0"

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "progression.db"
DEFAULT_SETTINGS_PATH = "settings.yaml"


def db_path_from_env() -> str:
    return os.environ.get("PROGRESSION_DB", DEFAULT_DB_PATH)


def settings_path_from_env() -> str:
    return os.environ.get("PROGRESSION_SETTINGS", DEFAULT_SETTINGS_PATH)


def log_level_from_env() -> int:
    name = os.environ.get("LOG_LEVEL", "INFO").upper()
    return getattr(logging, name, logging.INFO)


class YamlConfig:
    """Load and save settings to a YAML file."""

    def __init__(self, path: str = DEFAULT_SETTINGS_PATH) -> None:
        self.path = path

    def load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} must contain a mapping")
        return data

    def save(self, data: dict) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(dict(data), f, sort_keys=True)
        logger.debug("settings written to %s", self.path)
