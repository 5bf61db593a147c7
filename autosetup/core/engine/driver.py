"""
Deployment driver — reconcile one target at a time.

Each target walks a fixed sequence of phases:

    SYNCING → RESOLVING_IMAGES → PREFETCHING → PUBLISHING
            → RELOADING → STARTING → DONE

A failing phase never short-circuits the rest: a failed git pull still
publishes and starts whatever is already on disk, a failed image pull
still starts the services (systemd pulls on demand). Every unit of a
target is published and the supervisor reloaded once before any of
its services is started.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from autosetup.adapters.containers.podman import PodmanAdapter
from autosetup.adapters.shell.filesystem import FilesystemAdapter
from autosetup.adapters.supervisor.systemd import SystemdAdapter
from autosetup.adapters.vcs.git import GitAdapter
from autosetup.core.engine.ledger import ExecutionLedger
from autosetup.core.models.action import Receipt
from autosetup.core.models.deployment import Target, authenticated_url
from autosetup.core.services.unit_images import resolve_unit_images

logger = logging.getLogger(__name__)


class EngineUnavailable(Exception):
    """The container engine is missing; nothing can be deployed."""


class DeployPhase(str, Enum):
    SYNCING = "syncing"
    RESOLVING_IMAGES = "resolving_images"
    PREFETCHING = "prefetching"
    PUBLISHING = "publishing"
    RELOADING = "reloading"
    STARTING = "starting"
    DONE = "done"


@dataclass
class TargetReport:
    """What happened to one target during a run."""

    target: str
    phases: list[DeployPhase] = field(default_factory=list)
    images: list[str] = field(default_factory=list)
    receipts: dict[DeployPhase, list[Receipt]] = field(default_factory=dict)
    failures: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def add(self, phase: DeployPhase, receipt: Receipt | list[Receipt]) -> None:
        items = receipt if isinstance(receipt, list) else [receipt]
        self.receipts.setdefault(phase, []).extend(items)

    def to_dict(self) -> dict:
        return {
            "target": self.target,
            "ok": self.ok,
            "phases": [p.value for p in self.phases],
            "images": self.images,
            "receipts": {
                phase.value: [r.model_dump(mode="json") for r in receipts]
                for phase, receipts in self.receipts.items()
            },
            "failures": self.failures,
        }


class DeploymentDriver:
    """Compose sync, image resolution, prefetch, publish and start."""

    def __init__(
        self,
        *,
        git: GitAdapter,
        podman: PodmanAdapter,
        systemd: SystemdAdapter,
        filesystem: FilesystemAdapter,
        ledger: ExecutionLedger,
        scan_dir: Path,
        token_env: str = "GITHUB_TOKEN",
    ):
        self._git = git
        self._podman = podman
        self._systemd = systemd
        self._filesystem = filesystem
        self._ledger = ledger
        self._scan_dir = Path(scan_dir)
        self._token_env = token_env
        self._token_checked = False
        self._token: str | None = None

    # ── Credentials ─────────────────────────────────────────────

    def _credential(self) -> str | None:
        """Token from the environment, looked up (and warned about) once."""
        if not self._token_checked:
            self._token_checked = True
            self._token = os.environ.get(self._token_env) or None
            if self._token is None:
                self._ledger.warn(
                    f"{self._token_env} is not set; private repositories will fail to sync"
                )
        return self._token

    # ── Reconciliation ──────────────────────────────────────────

    def deploy(self, target: Target) -> TargetReport:
        """Bring one target to its desired state."""
        report = TargetReport(target=target.name)
        failures_before = len(self._ledger.failures)
        logger.info("🚀 Deploy: %s", target.display_name)

        # SYNCING
        report.phases.append(DeployPhase.SYNCING)
        remote = authenticated_url(target.repository, self._credential())
        report.add(DeployPhase.SYNCING, self._git.sync(remote, target.workdir))

        # RESOLVING_IMAGES
        report.phases.append(DeployPhase.RESOLVING_IMAGES)
        report.images = resolve_unit_images(target.unit_path, self._ledger)

        # PREFETCHING
        report.phases.append(DeployPhase.PREFETCHING)
        report.add(DeployPhase.PREFETCHING, self._podman.prefetch_all(report.images))

        # PUBLISHING
        report.phases.append(DeployPhase.PUBLISHING)
        report.add(
            DeployPhase.PUBLISHING,
            self._filesystem.publish_units(target.unit_path, target.units, self._scan_dir),
        )

        # RELOADING
        report.phases.append(DeployPhase.RELOADING)
        report.add(DeployPhase.RELOADING, self._systemd.reload())

        # STARTING
        report.phases.append(DeployPhase.STARTING)
        for service in target.service_names():
            if target.activation == "enable":
                receipt = self._systemd.enable_now(service)
            else:
                receipt = self._systemd.start(service)
            report.add(DeployPhase.STARTING, receipt)

        report.phases.append(DeployPhase.DONE)
        report.failures = list(self._ledger.failures[failures_before:])

        if report.ok:
            logger.info("Deploy finished: %s", target.display_name)
        else:
            logger.warning(
                "Deploy finished with %d failure(s): %s",
                len(report.failures),
                target.display_name,
            )
        return report

    def require_engine(self) -> None:
        """Stop before any target is touched when podman is missing.

        Raises:
            EngineUnavailable: The container engine binary is absent.
        """
        if self._podman.runner.dry_run or self._podman.is_available():
            return
        description = f"Container engine not found: {self._podman.binary}"
        self._ledger.record(description, False)
        raise EngineUnavailable(description)

    def deploy_all(self, targets: list[Target]) -> list[TargetReport]:
        """Reconcile targets sequentially, in the order given.

        Raises:
            EngineUnavailable: See ``require_engine``.
        """
        if targets:
            self.require_engine()
        return [self.deploy(target) for target in targets]
