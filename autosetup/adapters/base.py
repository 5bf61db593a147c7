"""
Adapter base — the contract between the engine and host tools.

Each adapter binds one external tool (git, podman, systemctl, dnf, the
filesystem) and exposes typed operations that return Receipts. The
engine only talks to tools through adapters; adapters only run
commands through the shared CommandRunner, so every side effect is
captured in the transcript and recorded in the ledger.
"""

from __future__ import annotations

import shutil
from abc import ABC, abstractmethod

from autosetup.adapters.shell.command import CommandRunner
from autosetup.core.engine.ledger import ExecutionLedger


class Adapter(ABC):
    """Abstract base class for all adapters.

    Adapters perform external side effects and return receipts.
    They NEVER raise for operational failures — failures are captured
    in the Receipt and recorded in the ledger.

    To create a new adapter:
        1. Subclass Adapter
        2. Implement name and is_available
        3. Register it in the AdapterRegistry
    """

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'git', 'podman', 'systemd')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this adapter's underlying tool is available.

        Should be fast and never raise.
        """

    @property
    def ledger(self) -> ExecutionLedger:
        return self.runner.ledger

    @staticmethod
    def _which(binary: str) -> bool:
        return shutil.which(binary) is not None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
