"""
Adapter registry — central lookup for all adapters of a run.

Preflight checks and the ``doctor`` command ask the registry which
tools are present; use cases fetch adapters from it by name instead of
constructing them ad hoc.
"""

from __future__ import annotations

import logging
from typing import Any

from autosetup.adapters.base import Adapter

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Name → adapter mapping with availability reporting."""

    def __init__(self) -> None:
        self._adapters: dict[str, Adapter] = {}

    def register(self, adapter: Adapter) -> None:
        """Register an adapter.

        Args:
            adapter: The adapter instance to register.
        """
        name = adapter.name
        if name in self._adapters:
            logger.warning("Overwriting existing adapter: %s", name)
        self._adapters[name] = adapter
        logger.debug("Registered adapter: %s", name)

    def require(self, name: str) -> Adapter:
        """Look up an adapter that must exist (KeyError otherwise)."""
        adapter = self._adapters.get(name)
        if adapter is None:
            raise KeyError(f"No adapter registered for '{name}'")
        return adapter

    def list_adapters(self) -> list[str]:
        """List all registered adapter names."""
        return list(self._adapters.keys())

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Get availability status of all registered adapters."""
        status = {}
        for name, adapter in self._adapters.items():
            try:
                available = adapter.is_available()
            except Exception:
                available = False
            status[name] = {
                "name": name,
                "available": available,
                "type": adapter.__class__.__name__,
            }
        return status
