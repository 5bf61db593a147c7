"""
Git adapter — keep deployment working copies in sync with their remote.

Uses the git CLI. A working copy is cloned when absent and rebased onto
the remote when present. Network or authentication failures are
recorded and returned, never raised: the deployment continues with
whatever is already on disk.
"""

from __future__ import annotations

import logging
from pathlib import Path

from autosetup.adapters.base import Adapter
from autosetup.core.models.action import Receipt
from autosetup.core.models.deployment import redact_url

logger = logging.getLogger(__name__)

# Never block on an interactive credential prompt.
_GIT_ENV = {"GIT_TERMINAL_PROMPT": "0"}


class GitAdapter(Adapter):
    """Repository synchronizer backed by the git CLI."""

    def __init__(self, runner, binary: str = "git"):
        super().__init__(runner)
        self._binary = binary

    @property
    def name(self) -> str:
        return "git"

    def is_available(self) -> bool:
        return self._which(self._binary)

    @staticmethod
    def is_repository(path: Path) -> bool:
        """Whether ``path`` already holds version-control metadata."""
        return (Path(path) / ".git").exists()

    def sync(self, remote_url: str, local_path: Path) -> Receipt:
        """Clone ``remote_url`` into ``local_path`` or update it in place.

        The credential portion of ``remote_url`` never appears in the
        description, the console or the transcript.
        """
        local_path = Path(local_path)
        if self.is_repository(local_path):
            return self._pull(local_path)
        return self._clone(remote_url, local_path)

    def _clone(self, remote_url: str, local_path: Path) -> Receipt:
        description = f"Git clone {redact_url(remote_url)} -> {local_path}"
        if not self.runner.dry_run:
            try:
                local_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                self.ledger.record(description, False, detail=str(e))
                return Receipt.failure(adapter=self.name, operation=description, error=str(e))

        return self.runner.run(
            description,
            [self._binary, "clone", "--progress", remote_url, str(local_path)],
            stream=True,
            env=_GIT_ENV,
            adapter=self.name,
        )

    def _pull(self, local_path: Path) -> Receipt:
        return self.runner.run(
            f"Git pull {local_path}",
            [self._binary, "-C", str(local_path), "pull", "--rebase"],
            stream=True,
            env=_GIT_ENV,
            adapter=self.name,
        )

    def head(self, local_path: Path) -> str | None:
        """Current commit of a working copy, or None."""
        receipt = self.runner.probe(
            [self._binary, "-C", str(local_path), "rev-parse", "HEAD"],
            adapter=self.name,
        )
        if not receipt.ok or not receipt.output:
            return None
        return receipt.output
