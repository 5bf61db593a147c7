"""Bundled data files."""

from pathlib import Path

DEFAULT_CONFIG_PATH = Path(__file__).parent / "default.yml"
