"""
Shared test fixtures and configuration.

Host tools are replaced by small shell scripts in tmp_path that log
their arguments; git is real and talks to bare repositories on disk.
"""

from __future__ import annotations

import stat
import subprocess
import textwrap
from pathlib import Path

import pytest

from autosetup.adapters.shell.command import CommandRunner
from autosetup.core.engine.ledger import ExecutionLedger
from autosetup.core.observability.log_sink import LogSink
from autosetup.core.observability.progress import NullProgress

# ── Fake host tools ─────────────────────────────────────────────

_SYSTEMCTL = """\
#!/bin/sh
S="{state}"
echo "$*" >> "$S/systemctl.calls"
listed() {{ grep -qxF "$1" "$S/$2" 2>/dev/null; }}
case "$1" in
  show)
    if listed "$4" unknown; then echo not-found; else echo loaded; fi
    exit 0 ;;
  is-active)
    if listed "$2" failing; then echo failed; exit 3; fi
    echo active
    exit 0 ;;
  start|restart)
    if listed "$2" failing; then echo "Job for $2 failed." >&2; exit 1; fi
    exit 0 ;;
  enable)
    shift
    [ "$1" = "--now" ] && shift
    for u in "$@"; do
      if listed "$u" failing; then echo "Job for $u failed." >&2; exit 1; fi
    done
    exit 0 ;;
  daemon-reload)
    exit 0 ;;
esac
exit 0
"""

_PODMAN = """\
#!/bin/sh
S="{state}"
echo "$*" >> "$S/podman.calls"
case "$1" in
  --version)
    echo "podman version 5.2.2"
    exit 0 ;;
  pull)
    if grep -qxF "$2" "$S/pull_failing" 2>/dev/null; then
      echo "Error: initializing source docker://$2: unauthorized" >&2
      exit 125
    fi
    echo "$2" >> "$S/images"
    echo "Writing manifest to image destination"
    exit 0 ;;
  image)
    grep -qxF "$3" "$S/images" 2>/dev/null
    exit $? ;;
esac
exit 0
"""

_RPM = """\
#!/bin/sh
S="{state}"
echo "$*" >> "$S/rpm.calls"
grep -qxF "$2" "$S/installed" 2>/dev/null
exit $?
"""

_DNF = """\
#!/bin/sh
S="{state}"
echo "$*" >> "$S/dnf.calls"
if [ "$2" = "install" ]; then
  if grep -qxF "$3" "$S/unavailable" 2>/dev/null; then
    echo "No match for argument: $3" >&2
    exit 1
  fi
  echo "$3" >> "$S/installed"
fi
exit 0
"""

_CHRONYC = """\
#!/bin/sh
echo "MS Name/IP address         Stratum Poll Reach LastRx Last sample"
exit 0
"""


def write_script(path: Path, body: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


class FakeHost:
    """Scripted stand-ins for systemctl, podman, rpm, dnf and chronyc."""

    def __init__(self, root: Path):
        self.root = root
        self.state = root / "state"
        self.bin = root / "bin"
        self.state.mkdir(parents=True)
        self.systemctl = write_script(self.bin / "systemctl", _SYSTEMCTL.format(state=self.state))
        self.podman = write_script(self.bin / "podman", _PODMAN.format(state=self.state))
        self.rpm = write_script(self.bin / "rpm", _RPM.format(state=self.state))
        self.dnf = write_script(self.bin / "dnf", _DNF.format(state=self.state))
        self.chronyc = write_script(self.bin / "chronyc", _CHRONYC)

    def _append(self, name: str, *values: str) -> None:
        with (self.state / name).open("a") as f:
            for value in values:
                f.write(f"{value}\n")

    def mark_unknown(self, *units: str) -> None:
        self._append("unknown", *units)

    def mark_failing(self, *units: str) -> None:
        self._append("failing", *units)

    def fail_pull(self, *images: str) -> None:
        self._append("pull_failing", *images)

    def mark_installed(self, *packages: str) -> None:
        self._append("installed", *packages)

    def mark_unavailable(self, *packages: str) -> None:
        self._append("unavailable", *packages)

    def calls(self, tool: str) -> list[str]:
        path = self.state / f"{tool}.calls"
        if not path.is_file():
            return []
        return path.read_text().splitlines()


@pytest.fixture
def fake_host(tmp_path: Path) -> FakeHost:
    return FakeHost(tmp_path / "host")


# ── Engine plumbing ─────────────────────────────────────────────


@pytest.fixture
def ledger() -> ExecutionLedger:
    return ExecutionLedger()


@pytest.fixture
def sink(tmp_path: Path) -> LogSink:
    return LogSink(tmp_path / "log" / "podman-autosetup.log")


@pytest.fixture
def runner(ledger: ExecutionLedger, sink: LogSink) -> CommandRunner:
    return CommandRunner(ledger, sink, NullProgress())


@pytest.fixture
def dry_runner(ledger: ExecutionLedger, sink: LogSink) -> CommandRunner:
    return CommandRunner(ledger, sink, NullProgress(), dry_run=True)


# ── Git remotes ─────────────────────────────────────────────────

_GIT_IDENTITY = ["-c", "user.name=Test User", "-c", "user.email=test@test.com"]


def _git(*args: str) -> None:
    subprocess.run(["git", *_GIT_IDENTITY, *args], capture_output=True, check=True)


def commit_files(remote: Path, files: dict[str, str], message: str = "update") -> None:
    """Push a commit adding/replacing ``files`` to the bare repo ``remote``."""
    seed = remote.parent / f".seed-{remote.name}"
    if not (seed / ".git").exists():
        _git("clone", str(remote), str(seed))
    else:
        _git("-C", str(seed), "pull", "--rebase")
    for rel, content in files.items():
        path = seed / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content))
    _git("-C", str(seed), "add", ".")
    _git("-C", str(seed), "commit", "-m", message)
    _git("-C", str(seed), "push", "origin", "HEAD")


@pytest.fixture
def make_remote(tmp_path: Path):
    """Factory: bare repository seeded with ``files`` (path → content)."""

    def _make(name: str, files: dict[str, str]) -> Path:
        remote = tmp_path / "remotes" / f"{name}.git"
        remote.parent.mkdir(parents=True, exist_ok=True)
        _git("init", "--bare", str(remote))
        commit_files(remote, files, message="initial")
        return remote

    return _make


@pytest.fixture
def push_commit():
    """Add a commit to an existing bare repository."""
    return commit_files
