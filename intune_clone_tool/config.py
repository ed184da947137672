"""
Configuration loading and merge utilities.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .graph_client import GRAPH_ENVIRONMENTS


class ConfigError(Exception):
    """Raised when configuration cannot be loaded or is invalid."""


@dataclass
class Config:
    environment: str = "Global"
    tenant_id: Optional[str] = None
    client_id: Optional[str] = None
    config_path: Optional[Path] = None
    timeout: int = 30  # Seconds per Graph request
    confirm: bool = False  # Ask before each clone


def load_config(cli_environment: Optional[str] = None, config_file: Optional[str] = None) -> Config:
    """
    Load configuration from CLI, environment, and optional YAML file.

    Precedence: CLI > environment > config file > defaults.
    Client secrets are never read from the config file; use AZURE_CLIENT_SECRET.
    """
    env_environment = os.environ.get("INTUNE_CLONE_TOOL_ENVIRONMENT")
    env_config = os.environ.get("INTUNE_CLONE_TOOL_CONFIG")
    config_path = Path(config_file or env_config or Path.home() / ".intune_clone_tool.yml").expanduser()

    file_data: Dict[str, Any] = {}
    if config_path.exists():
        try:
            with config_path.open("r", encoding="utf-8") as handle:
                loaded = yaml.safe_load(handle) or {}
                if not isinstance(loaded, dict):
                    raise ConfigError("Configuration file must contain a mapping.")
                file_data = loaded
        except OSError as exc:
            raise ConfigError(f"Failed to read config file {config_path}") from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in config file {config_path}") from exc

    if "client_secret" in file_data:
        raise ConfigError("client_secret must not be stored in the config file; set AZURE_CLIENT_SECRET instead.")

    environment = cli_environment or env_environment or file_data.get("environment") or "Global"
    if environment not in GRAPH_ENVIRONMENTS:
        raise ConfigError(
            f"Unknown environment '{environment}'. Expected one of: {', '.join(GRAPH_ENVIRONMENTS)}"
        )

    timeout = file_data.get("timeout", 30)
    if not isinstance(timeout, int) or timeout <= 0:
        raise ConfigError(f"timeout must be a positive integer, got {timeout!r}")

    return Config(
        environment=environment,
        tenant_id=file_data.get("tenant_id"),
        client_id=file_data.get("client_id"),
        config_path=config_path if config_path.exists() else None,
        timeout=timeout,
        confirm=bool(file_data.get("confirm", False)),
    )
