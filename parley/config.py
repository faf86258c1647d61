"""Settings: defaults, then <root>/config.yaml, then environment, then overrides."""

import logging
import os
from dataclasses import dataclass, fields, replace
from functools import lru_cache
from pathlib import Path

import yaml

from .errors import ValidationError
from .lib import paths

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    storage_root: Path
    external_api_key: str | None = None
    silence_threshold_seconds: int = 300
    queue_pressure_threshold: int = 50
    max_pending_notifications: int = 1000
    logging_level: str = "INFO"

    @property
    def agents_file(self) -> Path:
        return paths.agents_file(self.storage_root)

    @property
    def instances_file(self) -> Path:
        return paths.instances_file(self.storage_root)

    @property
    def messages_db(self) -> Path:
        return paths.messages_db(self.storage_root)


_ENV = {
    "external_api_key": "PARLEY_EXTERNAL_API_KEY",
    "logging_level": "PARLEY_LOG_LEVEL",
}

_INT_KEYS = {"silence_threshold_seconds", "queue_pressure_threshold", "max_pending_notifications"}


def clear_cache():
    read_config_file.cache_clear()


@lru_cache(maxsize=8)
def read_config_file(path: Path) -> dict:
    """Load a config.yaml, returning its content or an empty dict if not found."""
    if not path.exists():
        return {}
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValidationError(f"{path}: expected a mapping at top level")
    return data


def _coerce(key: str, value):
    if key in _INT_KEYS:
        try:
            number = int(value)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"{key} must be an integer") from e
        if number <= 0:
            raise ValidationError(f"{key} must be positive")
        return number
    if key == "storage_root":
        return Path(value).expanduser()
    if key == "logging_level":
        return str(value).upper()
    return value


def load_settings(root: Path | str | None = None, **overrides) -> Settings:
    storage = Path(root).expanduser() if root is not None else paths.storage_root()
    settings = Settings(storage_root=storage)
    known = {f.name for f in fields(Settings)}

    values = {}
    for key, value in read_config_file(paths.config_file(storage)).items():
        if key not in known or key == "storage_root":
            logger.warning(f"config.yaml: ignoring unknown key '{key}'")
            continue
        values[key] = value

    for key, env in _ENV.items():
        if os.environ.get(env):
            values[key] = os.environ[env]

    for key, value in overrides.items():
        if key not in known:
            raise ValidationError(f"Unknown setting: {key}")
        if value is not None:
            values[key] = value

    return replace(settings, **{k: _coerce(k, v) for k, v in values.items()})
