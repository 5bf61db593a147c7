"""
Status use case — what is running on this host right now.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from autosetup.core.context import RunContext
from autosetup.core.models.deployment import Target
from autosetup.core.services.unit_images import scan_unit_images

HOST_SERVICES = ("cockpit.socket", "snmpd", "chronyd", "sshd")


@dataclass
class StatusReport:
    """Engine version, service states and published units."""

    podman_version: str | None = None
    host_services: dict[str, str] = field(default_factory=dict)
    target_services: dict[str, dict[str, str]] = field(default_factory=dict)
    target_images: dict[str, dict[str, bool]] = field(default_factory=dict)
    scan_dir: Path | None = None
    published: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "podman_version": self.podman_version,
            "host_services": self.host_services,
            "target_services": self.target_services,
            "target_images": self.target_images,
            "scan_dir": str(self.scan_dir) if self.scan_dir else None,
            "published": self.published,
        }


def collect_status(ctx: RunContext, targets: list[Target] | None = None) -> StatusReport:
    """Query the engine and supervisor. Read-only; records nothing.

    Args:
        ctx: Run context.
        targets: Targets whose services to report (default: all configured).
    """
    if targets is None:
        targets = ctx.config.targets

    systemd = ctx.systemd
    report = StatusReport(
        podman_version=ctx.podman.version(),
        scan_dir=ctx.config.scan_dir,
        published=ctx.filesystem.list_directory(ctx.config.scan_dir),
    )
    report.host_services = {name: systemd.is_active(name) for name in HOST_SERVICES}
    for target in targets:
        report.target_services[target.name] = {
            service: systemd.is_active(service) for service in target.service_names()
        }
        report.target_images[target.name] = _local_images(ctx, target)
    return report


def _local_images(ctx: RunContext, target: Target) -> dict[str, bool]:
    """Image reference -> present in local storage, for a target's units."""
    if not target.unit_path.is_dir():
        return {}
    try:
        refs = scan_unit_images(target.unit_path)
    except OSError:
        return {}
    return {ref: ctx.podman.image_exists(ref) for ref in refs}
