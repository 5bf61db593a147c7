"""
Run context — everything one provisioning run shares.

Built ONCE by the entry point and passed explicitly to every use case:
the configuration, the ledger, the transcript, the command runner and
the adapters bound to it. There is no module-level run state; tests
build their own context around a tmp_path.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

from autosetup.adapters.containers.podman import PodmanAdapter
from autosetup.adapters.packages.dnf import PackageAdapter
from autosetup.adapters.registry import AdapterRegistry
from autosetup.adapters.shell.command import CommandRunner
from autosetup.adapters.shell.filesystem import FilesystemAdapter
from autosetup.adapters.supervisor.systemd import SystemdAdapter
from autosetup.adapters.vcs.git import GitAdapter
from autosetup.core.engine.ledger import ExecutionLedger
from autosetup.core.models.deployment import AutosetupConfig
from autosetup.core.observability.log_sink import LogSink
from autosetup.core.observability.progress import ProgressObserver, select_progress


def generate_run_id() -> str:
    """Generate a unique run ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"run-{now}-{short}"


@dataclass
class RunContext:
    """Shared state of a single run, passed by reference."""

    config: AutosetupConfig
    ledger: ExecutionLedger
    sink: LogSink
    runner: CommandRunner
    registry: AdapterRegistry
    run_id: str = field(default_factory=generate_run_id)
    started_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    @property
    def dry_run(self) -> bool:
        return self.runner.dry_run

    @property
    def git(self) -> GitAdapter:
        return self.registry.require("git")  # type: ignore[return-value]

    @property
    def podman(self) -> PodmanAdapter:
        return self.registry.require("podman")  # type: ignore[return-value]

    @property
    def systemd(self) -> SystemdAdapter:
        return self.registry.require("systemd")  # type: ignore[return-value]

    @property
    def packages(self) -> PackageAdapter:
        return self.registry.require("packages")  # type: ignore[return-value]

    @property
    def filesystem(self) -> FilesystemAdapter:
        return self.registry.require("filesystem")  # type: ignore[return-value]


def build_context(
    config: AutosetupConfig,
    *,
    dry_run: bool = False,
    progress: ProgressObserver | None = None,
    sink: LogSink | None = None,
) -> RunContext:
    """Wire ledger, transcript, runner and adapters for one run."""
    ledger = ExecutionLedger()
    sink = sink if sink is not None else LogSink(config.log_file)
    progress = progress if progress is not None else select_progress()
    runner = CommandRunner(ledger, sink, progress, dry_run=dry_run)

    tools = config.tools
    registry = AdapterRegistry()
    registry.register(FilesystemAdapter(runner))
    registry.register(GitAdapter(runner, binary=tools.git))
    registry.register(
        PodmanAdapter(runner, binary=tools.podman, local_prefix=config.local_image_prefix)
    )
    registry.register(SystemdAdapter(runner, binary=tools.systemctl))
    registry.register(PackageAdapter(runner, binary=tools.package_manager, rpm=tools.rpm))

    return RunContext(
        config=config,
        ledger=ledger,
        sink=sink,
        runner=runner,
        registry=registry,
    )
