"""Adapters — tool bindings for external integrations.

Public re-exports for convenient access.
"""

from autosetup.adapters.base import Adapter
from autosetup.adapters.registry import AdapterRegistry
from autosetup.adapters.shell.command import CommandRunner

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "CommandRunner",
]
