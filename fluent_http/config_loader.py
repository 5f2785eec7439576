"""Config Loader - Loads request options from YAML files.

Handles ${ENV_VAR} substitution so secrets (tokens in default headers) can
stay out of the file.

Example file:

    timeout: 5
    retry_count: 2
    headers:
      Authorization: Bearer ${API_TOKEN}
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

from fluent_http.errors import FluentHttpError
from fluent_http.models import DEFAULT_RETRY_COUNT, DEFAULT_TIMEOUT, RequestOptions


class ConfigError(FluentHttpError):
    """Raised when configuration loading fails."""


class OptionsFile(BaseModel):
    """Top-level structure of an options file."""

    model_config = ConfigDict(extra="forbid")

    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0, description="Timeout in seconds")
    retry_count: int = Field(default=DEFAULT_RETRY_COUNT, ge=0, description="Extra attempts")
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Headers added to every request (supports ${ENV_VAR} substitution)",
    )

    def to_options(self) -> RequestOptions:
        return RequestOptions(timeout=self.timeout, retry_count=self.retry_count)


def load_options_file(config_path: Path) -> OptionsFile:
    """Load an options file from YAML with ${ENV_VAR} substitution."""
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}") from e

    # An empty file means "all defaults"
    if raw_config is None:
        raw_config = {}
    if not isinstance(raw_config, dict):
        raise ConfigError("Config file must be a YAML mapping")

    raw_config = _substitute_env_vars(raw_config)

    try:
        return OptionsFile.model_validate(raw_config)
    except Exception as e:
        raise ConfigError(f"Invalid config structure: {e}") from e


def load_request_options(config_path: Path) -> RequestOptions:
    """Load only the transport options (timeout, retry_count) from a file."""
    return load_options_file(config_path).to_options()


def _substitute_env_vars(data: Any) -> Any:
    """Recursively substitute ${ENV_VAR} patterns in strings within data."""
    if isinstance(data, str):
        return _substitute_string(data)
    elif isinstance(data, dict):
        return {k: _substitute_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars(item) for item in data]
    return data


_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _substitute_string(s: str) -> str:
    """Substitute ${ENV_VAR} patterns. Raises ConfigError if env var is not set."""

    def replacer(match: re.Match) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(f"Environment variable '{var_name}' is not set")
        return value

    return _ENV_VAR_PATTERN.sub(replacer, s)
