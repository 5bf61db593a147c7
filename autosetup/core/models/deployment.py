"""
Deployment models — what this host should look like.

Loaded from autosetup.yml, these are the canonical description of the
packages, host services and Quadlet applications a run reconciles.
Per-target unit and service lists live here as data so that drift
between deployment repositories is absorbed by configuration, not code.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal
from urllib.parse import urlsplit, urlunsplit

from pydantic import BaseModel, Field, field_validator, model_validator

# Quadlet unit suffix → suffix appended to the base name of the
# generated systemd service.
_SERVICE_SUFFIXES: dict[str, str] = {
    ".container": ".service",
    ".kube": ".service",
    ".network": "-network.service",
    ".volume": "-volume.service",
    ".pod": "-pod.service",
    ".image": "-image.service",
    ".build": "-build.service",
}

CONTAINER_SUFFIX = ".container"


def service_name_for(unit_filename: str) -> str:
    """Map a Quadlet unit filename to the systemd service it generates.

    ``web.container`` → ``web.service``, ``app.network`` →
    ``app-network.service``, ``db.volume`` → ``db-volume.service``, and
    likewise for ``.pod``, ``.image``, ``.build`` and ``.kube``.

    Raises:
        ValueError: If the filename has no Quadlet unit suffix or an
            empty base name.
    """
    name = Path(unit_filename).name
    for suffix, service_suffix in _SERVICE_SUFFIXES.items():
        if name.endswith(suffix):
            base = name[: -len(suffix)]
            if not base:
                break
            return f"{base}{service_suffix}"
    raise ValueError(f"Not a Quadlet unit filename: {unit_filename!r}")


def is_unit_filename(name: str) -> bool:
    try:
        service_name_for(name)
    except ValueError:
        return False
    return True


def authenticated_url(url: str, token: str | None) -> str:
    """Embed a token as the userinfo of an http(s) URL.

    URLs that already carry credentials, non-http URLs and empty
    tokens are returned unchanged.
    """
    if not token:
        return url
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or "@" in parts.netloc:
        return url
    return urlunsplit(parts._replace(netloc=f"{token}@{parts.netloc}"))


def redact_url(url: str) -> str:
    """Replace the userinfo portion of a URL with ``***``."""
    parts = urlsplit(url)
    if "@" not in parts.netloc:
        return url
    host = parts.netloc.rsplit("@", 1)[1]
    return urlunsplit(parts._replace(netloc=f"***@{host}"))


class Target(BaseModel):
    """One deployable application: a repository of Quadlet units."""

    name: str
    title: str = ""
    repository: str
    workdir: Path
    unit_dir: str = "quadlet"
    units: list[str] = Field(min_length=1)
    services: list[str] | None = None
    activation: Literal["start", "enable"] = "start"

    @field_validator("units")
    @classmethod
    def _check_units(cls, units: list[str]) -> list[str]:
        for unit in units:
            if "/" in unit or not is_unit_filename(unit):
                raise ValueError(f"invalid unit filename: {unit!r}")
        if len(set(units)) != len(units):
            raise ValueError("unit filenames must be unique within a target")
        return units

    @property
    def display_name(self) -> str:
        return self.title or self.name

    @property
    def unit_path(self) -> Path:
        """Directory holding this target's unit files inside the workdir."""
        return self.workdir / self.unit_dir

    @property
    def container_units(self) -> list[str]:
        return [u for u in self.units if u.endswith(CONTAINER_SUFFIX)]

    def service_names(self) -> list[str]:
        """Services to bring up, in start order."""
        if self.services is not None:
            return list(self.services)
        return [service_name_for(u) for u in self.container_units]


class SnmpSettings(BaseModel):
    config_path: Path = Path("/etc/snmp/snmpd.conf")
    community: str = "public"
    location: str = "Jakarta, Indonesia"
    contact: str = "root@localhost"


class ChronySettings(BaseModel):
    config_path: Path = Path("/etc/chrony.conf")
    servers: list[str] = Field(
        default_factory=lambda: ["0.id.pool.ntp.org", "1.id.pool.ntp.org"]
    )


class SshBannerSettings(BaseModel):
    issue_path: Path = Path("/etc/issue.net")
    sshd_config: Path = Path("/etc/ssh/sshd_config")
    text: str = (
        "Warning: access to this system is monitored. All activity may be "
        "logged and audited.\n"
        "If you are not authorized, disconnect immediately.\n"
    )


class BashCompletionSettings(BaseModel):
    profile_script: Path = Path("/etc/profile.d/bash_completion.sh")
    bashrc: Path = Path("/root/.bashrc")


class HostSettings(BaseModel):
    """OS-level provisioning: packages and host service configuration."""

    packages: list[str] = Field(default_factory=list)
    package_alternatives: list[list[str]] = Field(default_factory=list)
    container_packages: list[str] = Field(default_factory=lambda: ["podman"])
    cockpit: bool = True
    bash_completion: BashCompletionSettings = Field(default_factory=BashCompletionSettings)
    snmp: SnmpSettings = Field(default_factory=SnmpSettings)
    chrony: ChronySettings = Field(default_factory=ChronySettings)
    ssh_banner: SshBannerSettings = Field(default_factory=SshBannerSettings)


class ToolPaths(BaseModel):
    """Executables invoked on the host (names resolved via PATH)."""

    git: str = "git"
    podman: str = "podman"
    systemctl: str = "systemctl"
    rpm: str = "rpm"
    chronyc: str = "chronyc"
    package_manager: str | None = None  # None = detect dnf, then yum


class AutosetupConfig(BaseModel):
    """Root configuration — loaded from autosetup.yml."""

    version: int = 1

    log_file: Path = Path("/var/log/podman-autosetup.log")
    state_dir: Path = Path("/var/lib/podman-autosetup")
    scan_dir: Path = Path("/etc/containers/systemd")
    local_image_prefix: str = "localhost/"
    token_env: str = "GITHUB_TOKEN"

    tools: ToolPaths = Field(default_factory=ToolPaths)
    host: HostSettings = Field(default_factory=HostSettings)
    targets: list[Target] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_target_names(self) -> AutosetupConfig:
        names = [t.name for t in self.targets]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate target names: {', '.join(duplicates)}")
        return self

    def get_target(self, name: str) -> Target | None:
        """Look up a target by name."""
        for target in self.targets:
            if target.name == name:
                return target
        return None
