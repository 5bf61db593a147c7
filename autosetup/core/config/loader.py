"""
Configuration loader — reads autosetup.yml into domain models.

This is the primary entry point for loading provisioning configuration.
It reads YAML, validates against Pydantic schemas, and returns a typed
AutosetupConfig.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from autosetup.core.data import DEFAULT_CONFIG_PATH
from autosetup.core.models.deployment import AutosetupConfig

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "AUTOSETUP_CONFIG"
SYSTEM_CONFIG_FILE = Path("/etc/podman-autosetup/autosetup.yml")


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""


def find_config_file(explicit: Path | None = None) -> Path:
    """Resolve which configuration file a run uses.

    Order: explicit path, ``$AUTOSETUP_CONFIG``, the system-wide file,
    then the bundled default. An explicit or environment path is
    returned as given even if missing, so the error names it.
    """
    if explicit is not None:
        return Path(explicit)

    from_env = os.environ.get(CONFIG_ENV_VAR)
    if from_env:
        return Path(from_env)

    if SYSTEM_CONFIG_FILE.is_file():
        return SYSTEM_CONFIG_FILE

    return DEFAULT_CONFIG_PATH


def load_config(path: Path | None = None) -> AutosetupConfig:
    """Load and validate configuration.

    Args:
        path: Explicit path to autosetup.yml. If None, resolved via
            ``find_config_file``.

    Returns:
        Validated AutosetupConfig model.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    path = find_config_file(path)

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        config = AutosetupConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.debug("Loaded %d target(s) from %s", len(config.targets), path)
    return config
