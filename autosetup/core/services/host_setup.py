"""
Host provisioner — OS-level setup that precedes any deployment.

Installs base and container packages, then configures Cockpit, bash
completion, SNMP, chrony and the SSH login banner. Every step records
its own outcomes and the run continues past failures; the single hard
stop is a missing container engine after the container stack install.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from autosetup.adapters.containers.podman import PodmanAdapter
from autosetup.adapters.packages.dnf import PackageAdapter
from autosetup.adapters.shell.filesystem import FilesystemAdapter
from autosetup.adapters.supervisor.systemd import SystemdAdapter
from autosetup.core.engine.driver import EngineUnavailable
from autosetup.core.engine.ledger import ExecutionLedger
from autosetup.core.models.action import Receipt
from autosetup.core.models.deployment import (
    ChronySettings,
    HostSettings,
    SnmpSettings,
)

logger = logging.getLogger(__name__)

EPEL_PACKAGE = "epel-release"
COCKPIT_SOCKET = "cockpit.socket"
SNMP_SERVICE = "snmpd.service"
CHRONY_SERVICE = "chronyd.service"
SSH_SERVICE = "sshd"

_POOL_LINE = re.compile(r"^pool\b")
_BANNER_LINE = re.compile(r"^\s*Banner\s+")


class PreflightError(Exception):
    """The host cannot be provisioned at all (not root, no package manager)."""


def require_root() -> None:
    if os.geteuid() != 0:
        raise PreflightError("Must be run as root (try: sudo -i)")


def require_package_manager(packages: PackageAdapter) -> None:
    if not packages.is_available():
        raise PreflightError("dnf/yum not found")


# ── Pure renderers ──────────────────────────────────────────────


def render_snmpd_conf(settings: SnmpSettings) -> str:
    """SNMP v2c read-only agent configuration."""
    return (
        f"com2sec readonly  default         {settings.community}\n"
        "group   MyROGroup v2c             readonly\n"
        "view    all    included  .1                               80\n"
        'access  MyROGroup ""      v2c    noauth  exact  all    none   none\n'
        f"syslocation {settings.location}\n"
        f"syscontact {settings.contact}\n"
    )


def rewrite_chrony_pools(text: str, servers: list[str]) -> str:
    """Replace ``pool`` directives with one ``server … iburst`` per server.

    The server lines take the place of the first ``pool`` line; further
    ``pool`` lines are dropped. Text without ``pool`` lines is returned
    unchanged, so applying this twice is the same as applying it once.
    """
    out: list[str] = []
    replaced = False
    for line in text.splitlines(keepends=True):
        if _POOL_LINE.match(line):
            if not replaced:
                out.extend(f"server {server} iburst\n" for server in servers)
                replaced = True
            continue
        out.append(line)
    return "".join(out)


def set_banner_directive(text: str, issue_path: Path) -> str:
    """Point every ``Banner`` directive at ``issue_path``, or append one."""
    directive = f"Banner {issue_path}"
    lines = text.splitlines()
    found = False
    for i, line in enumerate(lines):
        if _BANNER_LINE.match(line):
            lines[i] = directive
            found = True
    if not found:
        lines.append(directive)
    return "\n".join(lines) + "\n"


# ── Provisioner ─────────────────────────────────────────────────


class HostProvisioner:
    """Run the host provisioning steps in their fixed order."""

    def __init__(
        self,
        settings: HostSettings,
        *,
        packages: PackageAdapter,
        podman: PodmanAdapter,
        systemd: SystemdAdapter,
        filesystem: FilesystemAdapter,
        ledger: ExecutionLedger,
        scan_dir: Path,
        chronyc: str = "chronyc",
    ):
        self._settings = settings
        self._packages = packages
        self._podman = podman
        self._systemd = systemd
        self._fs = filesystem
        self._ledger = ledger
        self._scan_dir = Path(scan_dir)
        self._chronyc = chronyc

    @property
    def runner(self):
        return self._packages.runner

    def run(self) -> None:
        """All steps, in order.

        Raises:
            EngineUnavailable: The container engine is missing after the
                container stack was installed.
        """
        self.install_base_packages()
        self.install_container_stack()
        if self._settings.cockpit:
            self.enable_cockpit()
        self.configure_bash_completion()
        self.configure_snmp()
        self.configure_chrony()
        self.configure_ssh_banner()

    # ── Packages ────────────────────────────────────────────────

    def install_base_packages(self) -> None:
        logger.info("📦 Base packages")
        self._packages.makecache()
        self._packages.install(EPEL_PACKAGE, tolerate=True)
        self._packages.install_all(self._settings.packages)
        for group in self._settings.package_alternatives:
            if group:
                self._packages.install_first_available(group)

    def install_container_stack(self) -> None:
        logger.info("🐳 Container stack")
        self._packages.install_all(self._settings.container_packages)

        if self._podman.is_available():
            version = self._podman.version() or self._podman.binary
            self._ledger.record(f"Container engine: {version}", True)
        elif self.runner.dry_run:
            self._ledger.warn(f"[dry-run] Container engine not installed yet: {self._podman.binary}")
        else:
            description = f"Container engine not found after install: {self._podman.binary}"
            self._ledger.record(description, False)
            raise EngineUnavailable(description)

        self._fs.ensure_directory(self._scan_dir)

    # ── Services ────────────────────────────────────────────────

    def enable_cockpit(self) -> Receipt:
        logger.info("🧩 Cockpit")
        return self._systemd.enable_now(COCKPIT_SOCKET)

    def configure_bash_completion(self) -> Receipt:
        logger.info("⌨️  Bash completion")
        settings = self._settings.bash_completion
        if not settings.profile_script.is_file():
            description = f"{settings.profile_script} not found (skip bash completion)"
            self._ledger.warn(description)
            return Receipt.skip(adapter="host", operation=description, reason="not installed")
        return self._fs.append_line_once(
            settings.bashrc,
            f"source {settings.profile_script}",
            description=f"Bash completion in {settings.bashrc}",
        )

    def configure_snmp(self) -> Receipt:
        logger.info("📡 SNMP v2c")
        settings = self._settings.snmp
        written = self._fs.write_file(
            settings.config_path,
            render_snmpd_conf(settings),
            description=f"Write {settings.config_path}",
        )
        if written.failed:
            return written
        return self._systemd.enable_now(SNMP_SERVICE)

    def configure_chrony(self) -> Receipt:
        logger.info("🕒 Chrony (NTP)")
        settings: ChronySettings = self._settings.chrony
        path = settings.config_path
        if not path.is_file():
            description = f"{path} not found"
            self._ledger.record(description, False)
            return Receipt.failure(adapter="host", operation=description, error="missing")

        try:
            current = path.read_text(encoding="utf-8")
        except OSError as e:
            description = f"Read {path}"
            self._ledger.record(description, False, detail=str(e))
            return Receipt.failure(adapter="host", operation=description, error=str(e))

        updated = rewrite_chrony_pools(current, settings.servers)
        if updated == current:
            self._ledger.record(f"NTP servers in {path} (already configured)", True)
        else:
            self._fs.write_file(path, updated, description=f"NTP servers in {path}")

        receipt = self._systemd.enable_now(CHRONY_SERVICE)
        self.runner.run(
            "chronyc sources -v",
            [self._chronyc, "sources", "-v"],
            tolerate=True,
            adapter="host",
        )
        return receipt

    def configure_ssh_banner(self) -> Receipt:
        logger.info("🛡️  SSH banner")
        settings = self._settings.ssh_banner
        self._fs.write_file(
            settings.issue_path,
            settings.text,
            description=f"Write {settings.issue_path}",
        )

        if not settings.sshd_config.is_file():
            description = f"{settings.sshd_config} not found"
            self._ledger.record(description, False)
            return Receipt.failure(adapter="host", operation=description, error="missing")

        try:
            current = settings.sshd_config.read_text(encoding="utf-8")
        except OSError as e:
            description = f"Read {settings.sshd_config}"
            self._ledger.record(description, False, detail=str(e))
            return Receipt.failure(adapter="host", operation=description, error=str(e))

        updated = set_banner_directive(current, settings.issue_path)
        if updated == current:
            self._ledger.record(f"Banner directive in {settings.sshd_config} (already set)", True)
        else:
            self._fs.write_file(
                settings.sshd_config,
                updated,
                description=f"Banner directive in {settings.sshd_config}",
            )
        return self._systemd.restart(SSH_SERVICE)
