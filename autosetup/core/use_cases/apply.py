"""
Apply use case — provision the host and reconcile deployments.

This is the top-level orchestrator: preflight, host provisioning,
per-target deployment, post-run summary and the audit journal entry.
The full vertical slice from ``podman-autosetup apply`` to an exit
status.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from autosetup.core.config.loader import ConfigError
from autosetup.core.context import RunContext
from autosetup.core.engine.driver import DeploymentDriver, EngineUnavailable, TargetReport
from autosetup.core.engine.ledger import ExecutionLedger
from autosetup.core.models.deployment import Target
from autosetup.core.persistence.audit import AuditEntry, AuditWriter
from autosetup.core.services.host_setup import (
    HostProvisioner,
    PreflightError,
    require_package_manager,
    require_root,
)
from autosetup.core.use_cases.status import StatusReport, collect_status

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ABORTED = 1
EXIT_WITH_FAILURES = 2


def exit_status(ledger: ExecutionLedger, aborted: bool = False) -> int:
    """0 clean, 2 when any step failed, 1 when the run was cut short."""
    if aborted:
        return EXIT_ABORTED
    return EXIT_WITH_FAILURES if ledger.has_failures else EXIT_OK


@dataclass
class ApplyResult:
    """Result of one provisioning run."""

    run_id: str
    command: str
    dry_run: bool = False
    targets: list[TargetReport] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    outcomes_total: int = 0
    summary: StatusReport | None = None
    error: str | None = None
    exit_code: int = EXIT_OK
    duration_ms: int = 0

    @property
    def status(self) -> str:
        if self.exit_code == EXIT_ABORTED:
            return "aborted"
        return "partial" if self.failures else "ok"

    def to_dict(self) -> dict:
        result: dict = {
            "run_id": self.run_id,
            "command": self.command,
            "dry_run": self.dry_run,
            "status": self.status,
            "exit_code": self.exit_code,
            "outcomes_total": self.outcomes_total,
            "failures": self.failures,
            "warnings": self.warnings,
            "targets": [t.to_dict() for t in self.targets],
            "duration_ms": self.duration_ms,
        }
        if self.error:
            result["error"] = self.error
        if self.summary is not None:
            result["summary"] = self.summary.to_dict()
        return result


def select_targets(ctx: RunContext, names: list[str] | None) -> list[Target]:
    """Configured targets, or the named subset in the order given.

    Raises:
        ConfigError: A name matches no configured target.
    """
    if not names:
        return list(ctx.config.targets)
    selected = []
    for name in names:
        target = ctx.config.get_target(name)
        if target is None:
            known = ", ".join(t.name for t in ctx.config.targets) or "none"
            raise ConfigError(f"Unknown target '{name}' (configured: {known})")
        selected.append(target)
    return selected


def preflight(ctx: RunContext, *, host: bool) -> None:
    """Refuse to start on a host that cannot be provisioned.

    Dry runs change nothing and skip the privilege check.

    Raises:
        PreflightError: Not root, or no package manager for host setup.
    """
    if not ctx.dry_run:
        require_root()
    if host:
        require_package_manager(ctx.packages)


def build_driver(ctx: RunContext) -> DeploymentDriver:
    return DeploymentDriver(
        git=ctx.git,
        podman=ctx.podman,
        systemd=ctx.systemd,
        filesystem=ctx.filesystem,
        ledger=ctx.ledger,
        scan_dir=ctx.config.scan_dir,
        token_env=ctx.config.token_env,
    )


def build_provisioner(ctx: RunContext) -> HostProvisioner:
    return HostProvisioner(
        ctx.config.host,
        packages=ctx.packages,
        podman=ctx.podman,
        systemd=ctx.systemd,
        filesystem=ctx.filesystem,
        ledger=ctx.ledger,
        scan_dir=ctx.config.scan_dir,
        chronyc=ctx.config.tools.chronyc,
    )


def run_apply(
    ctx: RunContext,
    *,
    host: bool = True,
    deploy: bool = True,
    target_names: list[str] | None = None,
    command: str = "apply",
    summary: bool = True,
) -> ApplyResult:
    """Provision the host and/or deploy targets, then summarize.

    Configuration and preflight errors are raised before anything is
    touched; a preflight refusal is still journaled. Once work has
    started the run always completes and reports, except for a missing
    container engine which aborts it.

    Raises:
        ConfigError: Unknown target name.
        PreflightError: See ``preflight``.
    """
    targets = select_targets(ctx, target_names) if deploy else []
    result = ApplyResult(run_id=ctx.run_id, command=command, dry_run=ctx.dry_run)
    try:
        preflight(ctx, host=host)
    except PreflightError as e:
        result.error = str(e)
        result.exit_code = EXIT_ABORTED
        _write_audit(ctx, result, targets)
        raise

    start = time.monotonic()
    logger.info("🧾 Starting %s (run %s). Log: %s", command, ctx.run_id, ctx.sink.path)

    aborted = False
    try:
        if host:
            build_provisioner(ctx).run()
        if deploy:
            if not targets:
                ctx.ledger.warn("No deployment targets configured")
            result.targets = build_driver(ctx).deploy_all(targets)
    except EngineUnavailable as e:
        aborted = True
        result.error = str(e)
        logger.error("❌ Aborted: %s", e)

    if summary and not aborted:
        result.summary = collect_status(ctx, targets)

    result.duration_ms = int((time.monotonic() - start) * 1000)
    result.failures = ctx.ledger.summary()
    result.warnings = [o.description for o in ctx.ledger.warnings]
    result.outcomes_total = len(ctx.ledger)
    result.exit_code = exit_status(ctx.ledger, aborted)

    _write_audit(ctx, result, targets)
    return result


def run_deploy(
    ctx: RunContext,
    target_names: list[str] | None = None,
    *,
    summary: bool = True,
) -> ApplyResult:
    """Deployments only; the host is assumed provisioned."""
    return run_apply(
        ctx,
        host=False,
        deploy=True,
        target_names=target_names,
        command="deploy",
        summary=summary,
    )


def run_host_setup(ctx: RunContext, *, summary: bool = True) -> ApplyResult:
    """Host provisioning only."""
    return run_apply(ctx, host=True, deploy=False, command="host", summary=summary)


def _write_audit(ctx: RunContext, result: ApplyResult, targets: list[Target]) -> None:
    writer = AuditWriter(state_dir=ctx.config.state_dir)
    entry = AuditEntry(
        run_id=result.run_id,
        command=result.command,
        dry_run=result.dry_run,
        targets=[t.name for t in targets],
        status=result.status,
        exit_code=result.exit_code,
        outcomes_total=result.outcomes_total,
        warnings=len(result.warnings),
        duration_ms=result.duration_ms,
        failures=result.failures,
        context={"log_file": str(ctx.sink.path)},
    )
    if result.error:
        entry.context["error"] = result.error
    writer.write(entry)
