# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Config loader — reads YAML from disk and produces a validated, frozen
ReleasePipelineConfig.

The loading pipeline is linear:
  1. Read the file as text
  2. Parse as YAML into a plain dict
  3. Hand the dict to pydantic for schema validation
  4. Return the frozen config object

Anything that goes wrong fails immediately with a clear error. A broken
config should stop the pipeline before the first build starts.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from hippo_release.config.exceptions import ConfigLoadError, ConfigValidationError
from hippo_release.config.schema import ReleasePipelineConfig

DEFAULT_CONFIG_VERSION = "1.0.0"


def _read_yaml_file(config_path: Path) -> dict[str, Any]:
    """
    Read a YAML file and return the parsed dict.

    Raises:
        ConfigLoadError: If the file doesn't exist, isn't readable, or isn't valid YAML.
    """
    if not config_path.exists():
        raise ConfigLoadError(f"Config file not found: {config_path}")

    if not config_path.is_file():
        raise ConfigLoadError(f"Config path is not a file: {config_path}")

    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except OSError as err:
        raise ConfigLoadError(f"Cannot read config file {config_path}: {err}") from err

    try:
        parsed = yaml.safe_load(raw_text)
    except yaml.YAMLError as err:
        raise ConfigLoadError(f"Invalid YAML in {config_path}: {err}") from err

    if not isinstance(parsed, dict):
        raise ConfigLoadError(
            f"Config file must contain a YAML mapping (dict), got {type(parsed).__name__}"
        )

    return parsed


def load_config(config_path: Path) -> ReleasePipelineConfig:
    """
    Load, validate, and freeze a config file into a ReleasePipelineConfig.

    This is the single entry point for config loading. After it returns the
    config is structurally valid, type-safe and immutable.

    Args:
        config_path: Path to a YAML config file.

    Returns:
        A fully validated, frozen ReleasePipelineConfig instance.

    Raises:
        ConfigLoadError: File I/O or YAML parse failures.
        ConfigValidationError: Schema violations (missing fields, wrong types, unknown keys).
    """
    raw_data = _read_yaml_file(config_path)

    try:
        config = ReleasePipelineConfig.model_validate(raw_data)
    except ValidationError as err:
        raise ConfigValidationError(
            f"Config validation failed for {config_path}:\n{err}"
        ) from err

    return config


def default_config() -> ReleasePipelineConfig:
    """The built-in configuration: stock three-platform matrix, cargo backend."""
    return ReleasePipelineConfig.model_validate(
        {"global": {"config_version": DEFAULT_CONFIG_VERSION}}
    )
