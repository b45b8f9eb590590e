"""
Settings resolution.

Precedence: command-line flags > environment > YAML config file > defaults.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .exceptions import ConfigurationError
from .services.ipfs_client import INFURA_API_URL

log = logging.getLogger(__name__)

ENV_PROJECT_ID = "INFURA_PROJECT_ID"
ENV_PROJECT_SECRET = "INFURA_PROJECT_SECRET"
ENV_API_URL = "IPFS_API_URL"
ENV_PIN = "IPFS_PIN"
ENV_PROGRESS = "IPFS_PROGRESS"
ENV_CONFIG_FILE = "IPFS_UPLOAD_CONFIG"

_TRUE = {"1", "true", "yes", "on", "t", "y"}
_FALSE = {"0", "false", "no", "off", "f", "n"}


def parse_bool(value: Any) -> bool:
    """Parse a flag/env/config boolean."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"invalid boolean value: {value!r}")


@dataclass(frozen=True)
class Settings:
    """Immutable, fully resolved run configuration."""
    project_id: str
    project_secret: str
    api_url: str = INFURA_API_URL
    pin: bool = True
    progress: bool = True
    show_elapsed: bool = True


def load_config_file(path: Path) -> Dict[str, Any]:
    """
    Read a YAML config file with keys ``id``, ``secret``, ``url``, ``pin``, ``progress``.

    Raises:
        ConfigurationError: file missing, unreadable, not YAML or not a mapping
    """
    path = Path(path).expanduser()
    if not path.is_file():
        raise ConfigurationError(f"config file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigurationError(f"could not read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"invalid YAML in config file {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"config file {path} must contain a mapping")
    log.debug("Loaded config file %s (%s)", path, ", ".join(sorted(map(str, data))))
    return data


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None and value != "":
            return value
    return None


def _resolve_bool(name: str, flag: Optional[bool], env_value: Optional[str], file_value: Any, default: bool) -> bool:
    value = _first(flag, env_value, file_value)
    if value is None:
        return default
    try:
        return parse_bool(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name}: {exc}") from exc


def resolve_settings(
    project_id: Optional[str] = None,
    project_secret: Optional[str] = None,
    api_url: Optional[str] = None,
    pin: Optional[bool] = None,
    progress: Optional[bool] = None,
    show_elapsed: bool = True,
    config_file: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """
    Merge flag values with the environment and an optional config file.

    ``None`` means "not given on the command line".

    Raises:
        ConfigurationError: a required credential is missing or a value is invalid
    """
    env = os.environ if environ is None else environ

    if config_file is None and env.get(ENV_CONFIG_FILE):
        config_file = Path(env[ENV_CONFIG_FILE])
    file_values = load_config_file(config_file) if config_file is not None else {}

    resolved_id = _first(project_id, env.get(ENV_PROJECT_ID), file_values.get("id"))
    if not resolved_id:
        raise ConfigurationError("parameter --id is required")
    resolved_secret = _first(project_secret, env.get(ENV_PROJECT_SECRET), file_values.get("secret"))
    if not resolved_secret:
        raise ConfigurationError("parameter --secret is required")

    resolved_url = _first(api_url, env.get(ENV_API_URL), file_values.get("url")) or INFURA_API_URL

    return Settings(
        project_id=str(resolved_id),
        project_secret=str(resolved_secret),
        api_url=str(resolved_url),
        pin=_resolve_bool("pin", pin, env.get(ENV_PIN), file_values.get("pin"), True),
        progress=_resolve_bool("progress", progress, env.get(ENV_PROGRESS), file_values.get("progress"), True),
        show_elapsed=show_elapsed,
    )
