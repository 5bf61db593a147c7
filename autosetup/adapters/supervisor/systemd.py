"""
Systemd adapter — the supervisor bridge.

After unit files are published, systemd must re-run the Quadlet
generator (``daemon-reload``) before the generated services exist.
Services are then started, or enabled and started, by name.

Deployments evolve: a service named in configuration may no longer be
generated by the current unit sources. Such names are skipped with a
recorded warning instead of counting as failures.
"""

from __future__ import annotations

import logging

from autosetup.adapters.base import Adapter
from autosetup.core.models.action import Receipt

logger = logging.getLogger(__name__)

_UNKNOWN_LOAD_STATES = {"", "not-found"}


class SystemdAdapter(Adapter):
    """systemctl operations returning receipts."""

    def __init__(self, runner, binary: str = "systemctl"):
        super().__init__(runner)
        self._binary = binary

    @property
    def name(self) -> str:
        return "systemd"

    def is_available(self) -> bool:
        return self._which(self._binary)

    # ── Queries ─────────────────────────────────────────────────

    def load_state(self, service: str) -> str:
        """systemd LoadState of a unit ('loaded', 'not-found', …; '' if unknown)."""
        receipt = self.runner.probe(
            [self._binary, "show", "--property=LoadState", "--value", service],
            adapter=self.name,
        )
        return receipt.output.strip() if receipt.ok else ""

    def is_known(self, service: str) -> bool:
        """Whether the supervisor knows a unit by this name."""
        return self.load_state(service) not in _UNKNOWN_LOAD_STATES

    def is_active(self, service: str) -> str:
        """``systemctl is-active`` state ('active', 'inactive', …, or 'unknown')."""
        receipt = self.runner.probe([self._binary, "is-active", service], adapter=self.name)
        return receipt.output.strip() or "unknown"

    # ── Operations ──────────────────────────────────────────────

    def reload(self) -> Receipt:
        """Re-read all unit definitions (re-runs unit generators)."""
        return self.runner.run(
            "systemctl daemon-reload",
            [self._binary, "daemon-reload"],
            adapter=self.name,
        )

    def start(self, service: str) -> Receipt:
        if not self._check_known(service):
            return self._skip_unknown(service)
        return self.runner.run(
            f"Start: {service}",
            [self._binary, "start", service],
            adapter=self.name,
        )

    def restart(self, service: str) -> Receipt:
        if not self._check_known(service):
            return self._skip_unknown(service)
        return self.runner.run(
            f"Restart: {service}",
            [self._binary, "restart", service],
            adapter=self.name,
        )

    def enable_now(self, *services: str) -> Receipt:
        """Enable for future boots and start now, in one systemctl call.

        Unknown names are skipped individually; the remaining names are
        enabled together.
        """
        known = []
        for service in services:
            if self._check_known(service):
                known.append(service)
            else:
                self._skip_unknown(service)

        if not known:
            return Receipt.skip(
                adapter=self.name,
                operation=f"Enable --now: {' '.join(services)}",
                reason="no known units",
            )

        return self.runner.run(
            f"Enable --now: {' '.join(known)}",
            [self._binary, "enable", "--now", *known],
            adapter=self.name,
        )

    # ── Helpers ─────────────────────────────────────────────────

    def _check_known(self, service: str) -> bool:
        # Dry runs never reloaded, so freshly published units can't be known yet.
        if self.runner.dry_run:
            return True
        return self.is_known(service)

    def _skip_unknown(self, service: str) -> Receipt:
        description = f"Unit {service} not found (skip)"
        self.ledger.warn(description)
        return Receipt.skip(adapter=self.name, operation=description, reason="unit not found")
