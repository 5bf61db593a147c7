"""
Config check use case — validate autosetup.yml and report issues.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from autosetup.core.config.loader import ConfigError, find_config_file, load_config
from autosetup.core.models.deployment import AutosetupConfig


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    config: AutosetupConfig | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "targets": [t.name for t in self.config.targets] if self.config else [],
            "package_count": len(self.config.host.packages) if self.config else 0,
        }


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate configuration and report issues.

    Args:
        config_path: Optional explicit path to autosetup.yml.

    Returns:
        ConfigCheckResult with validation status and any issues.
    """
    result = ConfigCheckResult()
    result.config_path = find_config_file(config_path)

    try:
        config = load_config(result.config_path)
        result.config = config
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    # Semantic checks
    if not config.targets:
        result.warnings.append("No targets defined. Nothing will be deployed.")

    if not os.environ.get(config.token_env):
        result.warnings.append(
            f"{config.token_env} is not set. Private repositories will fail to sync."
        )

    # Two targets publishing the same filename would overwrite each other's link
    owners: dict[str, str] = {}
    for target in config.targets:
        for unit in target.units:
            if unit in owners:
                result.errors.append(
                    f"Unit '{unit}' is published by both '{owners[unit]}' and '{target.name}'"
                )
            else:
                owners[unit] = target.name

    for target in config.targets:
        if "@" in target.repository.split("://", 1)[-1].split("/", 1)[0]:
            result.warnings.append(
                f"Target '{target.name}' repository URL embeds credentials; "
                f"use {config.token_env} instead."
            )
        if target.services is not None and not target.services:
            result.warnings.append(f"Target '{target.name}' starts no services.")

    # Result
    result.valid = len(result.errors) == 0
    return result
