"""Configuration management for panerelay.

Loads settings from a YAML configuration file with environment variable
overrides. The access token is generated on first use and written back
to the configuration file so that paired clients keep working across
restarts.
"""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "panerelay" / "config.yaml"


class ServerConfig(BaseModel):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=9876, ge=1, le=65535)
    token: SecretStr = Field(default=SecretStr(""))
    tmux_socket: str | None = Field(
        default=None, description="Alternate tmux control socket (tmux -S)"
    )
    poll_interval: float = Field(
        default=0.2, gt=0, description="Seconds between subscription polls"
    )


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for the panerelay service.

    Loads from YAML file and supports environment variable overrides
    (``PANERELAY_SERVER__PORT=9000`` and friends).
    """

    model_config = {
        "env_prefix": "PANERELAY_",
        "env_nested_delimiter": "__",
        "extra": "ignore",
    }

    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + environment variables.

    Priority: unprefixed env vars (HOST, PORT, TOKEN, TMUX_SOCKET) >
    YAML file > PANERELAY_-prefixed env vars > defaults. If no token is configured
    anywhere a new one is generated and persisted to the YAML file.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    yaml_data: dict = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    settings = Settings(**yaml_data)
    if not settings.server.token.get_secret_value():
        token = uuid.uuid4().hex
        settings.server.token = SecretStr(token)
        try:
            save_token(path, token)
            logger.info("Generated new access token and saved it to %s", path)
        except OSError as e:
            logger.warning("Could not persist generated token to %s: %s", path, e)
    return settings


def save_token(path: Path, token: str) -> None:
    """Write ``token`` into the YAML file at ``path``.

    Other keys in the file are preserved. An already configured token is
    never overwritten.
    """
    data: dict = {}
    if path.exists():
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    server = data.setdefault("server", {})
    if server.get("token"):
        return
    server["token"] = token
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.safe_dump(data, f, default_flow_style=False)


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply unprefixed environment variable overrides."""
    server = yaml_data.get("server")
    if not isinstance(server, dict):
        server = {}
        yaml_data["server"] = server

    host = os.environ.get("HOST", "")
    port = os.environ.get("PORT", "")
    token = os.environ.get("TOKEN", "")
    socket = os.environ.get("TMUX_SOCKET", "")

    if host:
        server["host"] = host
    if port.isdigit():
        server["port"] = int(port)
    if token:
        server["token"] = token
    if socket:
        server["tmux_socket"] = socket
