"""
Package adapter — RPM package installation through dnf (or yum).

Installs are idempotent: ``rpm -q`` is consulted first and packages
already present are recorded as such without invoking the package
manager.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable

from autosetup.adapters.base import Adapter
from autosetup.core.models.action import Receipt

logger = logging.getLogger(__name__)

PACKAGE_MANAGERS = ("dnf", "yum")


def detect_package_manager() -> str | None:
    """First available of dnf, yum — or None."""
    for candidate in PACKAGE_MANAGERS:
        if shutil.which(candidate):
            return candidate
    return None


class PackageAdapter(Adapter):
    """dnf/yum + rpm operations."""

    def __init__(self, runner, binary: str | None = None, rpm: str = "rpm"):
        super().__init__(runner)
        self._binary = binary or detect_package_manager() or "dnf"
        self._rpm = rpm

    @property
    def name(self) -> str:
        return "packages"

    @property
    def binary(self) -> str:
        return self._binary

    def is_available(self) -> bool:
        return self._which(self._binary)

    def is_installed(self, package: str) -> bool:
        return self.runner.probe([self._rpm, "-q", package], adapter=self.name).ok

    def makecache(self) -> Receipt:
        """Refresh repository metadata; failure is a warning (repo/network)."""
        return self.runner.run(
            f"Repo makecache ({self._binary})",
            [self._binary, "-y", "makecache"],
            tolerate=True,
            adapter=self.name,
        )

    def install(self, package: str, *, tolerate: bool = False) -> Receipt:
        """Install one package unless already present."""
        if self.is_installed(package):
            description = f"Package already present: {package}"
            self.ledger.record(description, True)
            return Receipt.skip(adapter=self.name, operation=description, reason="installed")
        return self.runner.run(
            f"Install package: {package}",
            [self._binary, "-y", "install", package],
            tolerate=tolerate,
            adapter=self.name,
        )

    def install_all(self, packages: Iterable[str]) -> list[Receipt]:
        """Install each package independently."""
        return [self.install(p) for p in packages]

    def install_first_available(self, alternatives: list[str]) -> Receipt:
        """Install the first installable of several equivalent packages.

        None installable is a warning, not a failure.
        """
        for package in alternatives:
            if self.is_installed(package):
                description = f"Package already present: {package}"
                self.ledger.record(description, True)
                return Receipt.skip(adapter=self.name, operation=description, reason="installed")

        for package in alternatives:
            receipt = self.install(package, tolerate=True)
            if receipt.ok:
                return receipt

        description = f"None of {'/'.join(alternatives)} could be installed (skip)"
        self.ledger.warn(description)
        return Receipt.skip(adapter=self.name, operation=description, reason="unavailable")
