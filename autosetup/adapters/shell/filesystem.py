"""
Filesystem adapter — recorded, dry-run aware file operations.

Publishes unit definitions into the supervisor scan directory and
writes the handful of host configuration files a run owns. Every
operation records its outcome in the ledger like a command would.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from autosetup.adapters.base import Adapter
from autosetup.core.models.action import Receipt

logger = logging.getLogger(__name__)


class FilesystemAdapter(Adapter):
    """File, directory and symlink operations with receipts."""

    @property
    def name(self) -> str:
        return "filesystem"

    def is_available(self) -> bool:
        return True  # filesystem is always available

    # ── Publishing ──────────────────────────────────────────────

    def publish(self, source: Path, destination: Path) -> Receipt:
        """Point a symlink at ``destination`` to ``source``.

        An existing link or file at ``destination`` is replaced
        atomically. A missing source is a failure and leaves no link.
        """
        source = Path(source).absolute()
        destination = Path(destination)
        description = f"Symlink: {destination} -> {source}"

        # Dry runs never cloned, so the source may legitimately be absent.
        if self.runner.dry_run:
            return self._dry_run(description)

        if not source.is_file():
            return self._fail(description, f"source not found: {source}")

        tmp = destination.with_name(f".{destination.name}.tmp-{os.getpid()}")
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            if tmp.is_symlink() or tmp.exists():
                tmp.unlink()
            os.symlink(source, tmp)
            os.replace(tmp, destination)
        except OSError as e:
            if tmp.is_symlink():
                tmp.unlink()
            return self._fail(description, str(e))

        self.ledger.record(description, True)
        return Receipt.success(
            adapter=self.name,
            operation=description,
            metadata={"source": str(source), "destination": str(destination)},
        )

    def publish_units(self, unit_dir: Path, units: list[str], scan_dir: Path) -> list[Receipt]:
        """Publish each named unit from ``unit_dir`` into ``scan_dir``."""
        return [self.publish(Path(unit_dir) / unit, Path(scan_dir) / unit) for unit in units]

    # ── Host configuration files ────────────────────────────────

    def ensure_directory(self, path: Path) -> Receipt:
        path = Path(path)
        description = f"Directory ready: {path}"
        if self.runner.dry_run:
            return self._dry_run(description)
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return self._fail(description, str(e))
        self.ledger.record(description, True)
        return Receipt.success(adapter=self.name, operation=description)

    def write_file(self, path: Path, content: str, description: str | None = None) -> Receipt:
        """Replace ``path`` with ``content``."""
        path = Path(path)
        description = description or f"Write {path}"
        if self.runner.dry_run:
            return self._dry_run(description)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            return self._fail(description, str(e))
        self.ledger.record(description, True)
        return Receipt.success(
            adapter=self.name,
            operation=description,
            output=f"Written {len(content)} bytes to {path}",
            metadata={"path": str(path), "size": len(content)},
        )

    def append_line_once(self, path: Path, line: str, description: str | None = None) -> Receipt:
        """Append ``line`` to ``path`` unless an identical line is present."""
        path = Path(path)
        description = description or f"Ensure line in {path}"
        try:
            existing = path.read_text(encoding="utf-8") if path.is_file() else ""
        except OSError as e:
            return self._fail(description, str(e))

        if line in existing.splitlines():
            self.ledger.record(f"{description} (already present)", True)
            return Receipt.skip(adapter=self.name, operation=description, reason="already present")

        if self.runner.dry_run:
            return self._dry_run(description)

        prefix = "" if not existing or existing.endswith("\n") else "\n"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as f:
                f.write(f"{prefix}{line}\n")
        except OSError as e:
            return self._fail(description, str(e))
        self.ledger.record(description, True)
        return Receipt.success(adapter=self.name, operation=description)

    def list_directory(self, path: Path) -> list[str]:
        """``name -> target`` for links, plain names otherwise (sorted)."""
        path = Path(path)
        if not path.is_dir():
            return []
        entries = []
        for entry in sorted(path.iterdir()):
            if entry.is_symlink():
                entries.append(f"{entry.name} -> {os.readlink(entry)}")
            else:
                entries.append(entry.name)
        return entries

    # ── Helpers ─────────────────────────────────────────────────

    def _fail(self, description: str, error: str) -> Receipt:
        self.ledger.record(description, False, detail=error)
        return Receipt.failure(adapter=self.name, operation=description, error=error)

    def _dry_run(self, description: str) -> Receipt:
        self.ledger.record(f"[dry-run] {description}", True)
        return Receipt.skip(
            adapter=self.name,
            operation=description,
            reason=f"[dry-run] {description}",
            metadata={"dry_run": True},
        )
