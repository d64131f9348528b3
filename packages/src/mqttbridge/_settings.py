"""Configuration via pydantic-settings, loaded from a YAML document.

The configuration file is read once at startup and never reloaded.
Its shape::

    mqtt:
      host: broker.local
      username: bridge
      password: secret
      instance_name: livingroom     # optional, defaults to the host name
    actions:
      - name: Open Gate
        command: /usr/local/bin/gate open
        icon: mdi:gate               # optional
    logging:                         # optional
      level: INFO
      format: text

Values missing from the file may be supplied through environment
variables with the ``MQTTBRIDGE_`` prefix and ``__`` as the nesting
delimiter, e.g. ``MQTTBRIDGE_MQTT__PASSWORD=secret``.  Values present in
the file win over the environment.

The broker port is not configurable: the bridge always speaks plain
MQTT on 1883.
"""

from __future__ import annotations

import os
import socket
from pathlib import Path
from typing import Annotated, Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from mqttbridge._errors import ConfigError

CONFIG_FILENAME = "mqttbridge.yaml"

# -------------------------------------------------------------------
# Sub-models
# -------------------------------------------------------------------


class MqttSettings(BaseModel):
    """Broker connection and instance identity."""

    model_config = ConfigDict(extra="forbid")

    host: str = Field(description="MQTT broker hostname or IP address.")
    username: str = Field(description="MQTT authentication username.")
    password: SecretStr = Field(description="MQTT authentication password.")
    instance_name: str = Field(
        default_factory=socket.gethostname,
        min_length=1,
        description=(
            "Label folded into every topic name. "
            "Defaults to the machine's host name."
        ),
    )


class ActionSettings(BaseModel):
    """One configured action."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, description="Display label.")
    command: str = Field(
        description="Command line, shell-word-split at execution time.",
    )
    icon: str | None = Field(
        default=None,
        description="Optional Home Assistant icon, e.g. 'mdi:gate'.",
    )


class LoggingSettings(BaseModel):
    """Logging configuration.

    ``format`` selects ``"json"`` (one JSON object per line, for
    journald/container log collectors) or ``"text"`` (timestamped
    human-readable lines).  When ``file`` is set, logs are also written
    to a size-rotated file.
    """

    model_config = ConfigDict(extra="forbid")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Root log level.",
    )
    format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format.",
    )
    file: str | None = Field(
        default=None,
        description="Optional log file path. ``None`` means stderr only.",
    )
    max_file_size_mb: Annotated[int, Field(ge=1)] = Field(
        default=10,
        description="Maximum log file size in megabytes before rotation.",
    )
    backup_count: Annotated[int, Field(ge=0)] = Field(
        default=3,
        description="Number of rotated log files to keep.",
    )


# -------------------------------------------------------------------
# Root settings
# -------------------------------------------------------------------


class Settings(BaseSettings):
    """Root configuration: broker, actions, logging."""

    model_config = SettingsConfigDict(
        env_prefix="MQTTBRIDGE_",
        env_nested_delimiter="__",
        extra="forbid",
    )

    mqtt: MqttSettings
    actions: list[ActionSettings] = Field(
        default_factory=list,
        description="Actions in registration order.",
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration.",
    )


# -------------------------------------------------------------------
# Loading
# -------------------------------------------------------------------


def default_config_path() -> Path:
    """Return ``$XDG_CONFIG_HOME/mqttbridge.yaml`` (``~/.config`` fallback)."""
    base = Path(os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config")))
    return base / CONFIG_FILENAME


def read_document(path: Path) -> dict[str, Any]:
    """Read and parse the YAML document at *path*.

    Raises:
        ConfigError: If the file is missing, unreadable, not valid
            YAML, not a mapping at the top level, or has a top-level
            key that is not a plain string field name.
    """
    if not path.is_file():
        msg = f"no config file found at {path}"
        raise ConfigError(msg)
    try:
        with path.open(encoding="utf-8") as fh:
            document = yaml.safe_load(fh)
    except OSError as exc:
        msg = f"cannot read {path}: {exc}"
        raise ConfigError(msg) from exc
    except yaml.YAMLError as exc:
        msg = f"malformed YAML in {path}: {exc}"
        raise ConfigError(msg) from exc

    if document is None:
        document = {}
    if not isinstance(document, dict):
        msg = f"{path} must contain a mapping, got {type(document).__name__}"
        raise ConfigError(msg)
    for key in document:
        if not isinstance(key, str) or key.startswith("_"):
            msg = f"unknown top-level key {key!r} in {path}"
            raise ConfigError(msg)
    return document


def load_settings(path: Path) -> Settings:
    """Load and validate the configuration file at *path*.

    Raises:
        ConfigError: On any read, parse, or validation failure.
    """
    document = read_document(path)
    try:
        return Settings(**document)
    except ValidationError as exc:
        msg = f"invalid configuration in {path}: {_summarise(exc)}"
        raise ConfigError(msg) from exc


def _summarise(exc: ValidationError) -> str:
    """Collapse a pydantic error into one line."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "<root>"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)
