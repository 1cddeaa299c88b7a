"""Config Loader - Loads Ghost Admin client configuration from YAML.

A config file describes one Ghost site:

    base_url: https://blog.example.com
    timeout: 10
    headers:
      Authorization: Ghost ${GHOST_ADMIN_TOKEN}

${ENV_VAR} references are expanded in every string value so the Admin API
token can stay out of the file. The base address is validated while
loading, so a bad site URL is reported against the file it came from.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ghost_admin.client import parse_base_url
from ghost_admin.errors import ConfigError
from ghost_admin.models import ClientConfig

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def load_client_config(config_path: Path) -> ClientConfig:
    """Load a site's client configuration.

    Raises:
        ConfigError: If the file is missing or unreadable, is not a YAML
            mapping, references an unset variable, or describes an invalid
            client (unknown keys, bad timeout, non-https base_url, ...).
    """
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {config_path}: {e.strerror or e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError(f"Config file {config_path} must be a YAML mapping with at least base_url")

    raw_config = _expand(raw_config, "")

    try:
        config = ClientConfig.model_validate(raw_config)
    except ValidationError as e:
        raise ConfigError(f"Invalid config structure in {config_path}: {_describe(e)}") from e

    try:
        parse_base_url(config.base_url)
    except ConfigError as e:
        raise ConfigError(f"base_url in {config_path}: {e}") from e

    return config


def _expand(data: Any, key_path: str) -> Any:
    """Expand ${ENV_VAR} in every string, remembering where each one sits."""
    if isinstance(data, str):
        return _expand_string(data, key_path)
    if isinstance(data, dict):
        return {k: _expand(v, f"{key_path}.{k}" if key_path else str(k)) for k, v in data.items()}
    if isinstance(data, list):
        return [_expand(item, f"{key_path}[{i}]") for i, item in enumerate(data)]
    return data


def _expand_string(s: str, key_path: str) -> str:
    def replacer(match: re.Match) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(f"Environment variable '{var_name}' used by {key_path} is not set")
        return value

    return _ENV_VAR_PATTERN.sub(replacer, s)


def _describe(error: ValidationError) -> str:
    # One "field: reason" entry per problem, e.g. "timeout: Input should be greater than 0"
    problems = []
    for detail in error.errors():
        field = ".".join(str(part) for part in detail["loc"]) or "config"
        problems.append(f"{field}: {detail['msg']}")
    return "; ".join(problems)
