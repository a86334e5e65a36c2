"""Bridge configuration loading and validation.

Reads ``hmip.toml``, resolves ``${VAR}`` references from the environment,
and validates the ``[hmip]`` section into an :class:`HmIPConfig`.
"""

from __future__ import annotations

import os
import re
import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

CONFIG_FILENAME = "hmip.toml"
DEFAULT_LOOKUP_URL = "https://lookup.homematic.com:48335/getHost"
DEFAULT_STORAGE_DIR = "~/.hmip-sync"

# Matches ${VAR_NAME} with alphanumeric and underscore names.
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


class ConfigError(Exception):
    """Raised when configuration is missing, malformed, or invalid."""


class WebSocketConfig(BaseModel):
    """Push feed settings from ``[hmip.websocket]``.

    Attributes
    ----------
    reconnect_initial:
        First reconnect delay in seconds; doubles per failed attempt.
    reconnect_max:
        Upper bound for the reconnect delay.
    heartbeat:
        Seconds between websocket pings sent by aiohttp.
    """

    reconnect_initial: float = 1.0
    reconnect_max: float = 60.0
    heartbeat: float = 30.0

    model_config = ConfigDict(extra="forbid")


class LoggingConfig(BaseModel):
    """Logging settings from ``[hmip.logging]``."""

    level: str = "INFO"
    format: Literal["text", "json"] = "text"
    log_root: str | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()


class HmIPConfig(BaseModel):
    """Top-level ``[hmip]`` configuration.

    Attributes
    ----------
    access_point:
        SGTIN of the access point; dashes are stripped and letters upper-cased.
    auth_token:
        Previously issued auth token for this client.
    lookup_url:
        Host lookup endpoint.
    bind_added_devices:
        When true, a ``DEVICE_ADDED`` push for an unseen device binds it;
        when false it is logged and ignored until the next restart.
    storage_dir:
        Directory holding the persisted accessory cache.
    """

    access_point: str
    auth_token: str
    lookup_url: str = DEFAULT_LOOKUP_URL
    bind_added_devices: bool = False
    storage_dir: str = DEFAULT_STORAGE_DIR
    websocket: WebSocketConfig = Field(default_factory=WebSocketConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(extra="forbid")

    @field_validator("access_point")
    @classmethod
    def _normalize_access_point(cls, value: str) -> str:
        normalized = value.replace("-", "").strip().upper()
        if not normalized:
            raise ValueError("access_point must be a non-empty string")
        return normalized

    @property
    def storage_path(self) -> Path:
        return Path(self.storage_dir).expanduser()


def resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${VAR_NAME}`` references in config values.

    Raises
    ------
    ConfigError
        If a referenced environment variable is not set.
    """
    if isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [resolve_env_vars(item) for item in value]

    if isinstance(value, str):
        return _resolve_string(value)

    return value


def _resolve_string(s: str) -> str:
    missing: list[str] = []

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            missing.append(var_name)
            return match.group(0)
        return env_value

    result = _ENV_VAR_PATTERN.sub(_replace, s)

    if missing:
        raise ConfigError(
            f"Unresolved environment variable(s) in config value: {', '.join(missing)}"
        )

    return result


def load_config(config_path: Path) -> HmIPConfig:
    """Load and validate ``hmip.toml``.

    Parameters
    ----------
    config_path:
        Either the TOML file itself or a directory containing ``hmip.toml``.

    Raises
    ------
    ConfigError
        If the file is missing, contains invalid TOML, or fails validation.
    """
    config_path = Path(config_path)
    toml_path = config_path / CONFIG_FILENAME if config_path.is_dir() else config_path

    if not toml_path.exists():
        raise ConfigError(f"Config file not found: {toml_path}")

    try:
        data = tomllib.loads(toml_path.read_text())
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {toml_path}: {exc}") from exc

    data = resolve_env_vars(data)

    section = data.get("hmip")
    if not isinstance(section, dict):
        raise ConfigError("Missing [hmip] section in config")

    try:
        return HmIPConfig.model_validate(section)
    except ValidationError as exc:
        raise ConfigError(f"Invalid [hmip] configuration in {toml_path}: {exc}") from exc
