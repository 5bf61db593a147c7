"""
Tests for CLI commands — deploy, images, status, doctor, config check.
"""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from autosetup.main import cli


@pytest.fixture
def config_file(tmp_path: Path, fake_host, make_remote, monkeypatch) -> Path:
    """autosetup.yml with every path in tmp_path and fake host tools."""
    monkeypatch.setenv("GITHUB_TOKEN", "unused")
    remote = make_remote("web", {"quadlet/web.container": "[Container]\nImage=nginx:1\n"})
    data = {
        "log_file": str(tmp_path / "log" / "autosetup.log"),
        "state_dir": str(tmp_path / "state"),
        "scan_dir": str(tmp_path / "scan"),
        "tools": {
            "podman": str(fake_host.podman),
            "systemctl": str(fake_host.systemctl),
            "rpm": str(fake_host.rpm),
            "chronyc": str(fake_host.chronyc),
            "package_manager": str(fake_host.dnf),
        },
        "targets": [
            {
                "name": "web",
                "title": "Web",
                "repository": str(remote),
                "workdir": str(tmp_path / "opt" / "web"),
                "units": ["web.container"],
            }
        ],
    }
    path = tmp_path / "autosetup.yml"
    path.write_text(yaml.safe_dump(data))
    return path


@pytest.fixture
def as_root(monkeypatch):
    monkeypatch.setattr(os, "geteuid", lambda: 0)


class TestCLIGlobal:
    """Tests for global CLI behavior."""

    def test_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "provision a host" in result.output
        for command in ("apply", "host", "deploy", "images", "status", "doctor", "config"):
            assert command in result.output

    def test_version(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_bad_config_exits_one(self, tmp_path: Path):
        bad = tmp_path / "bad.yml"
        bad.write_text("targets: [unclosed\n")
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(bad), "deploy"])
        assert result.exit_code == 1
        assert "Invalid YAML" in result.output


@pytest.mark.integration
class TestDeployCommand:
    def test_clean_deploy(self, as_root, config_file: Path, tmp_path: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(config_file), "deploy"])
        assert result.exit_code == 0, result.output
        assert "Finished without errors" in result.output
        assert (tmp_path / "scan" / "web.container").is_symlink()
        assert (tmp_path / "log" / "autosetup.log").is_file()

    def test_failed_step_exits_two(self, as_root, config_file: Path, fake_host):
        fake_host.mark_failing("web.service")
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(config_file), "deploy"])
        assert result.exit_code == 2
        assert "1 step(s) failed" in result.output
        assert "Start: web.service" in result.output

    def test_json(self, as_root, config_file: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["-q", "--config", str(config_file), "deploy", "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["command"] == "deploy"
        assert data["status"] == "ok"
        assert data["targets"][0]["phases"][-1] == "done"
        assert data["summary"]["target_services"] == {"web": {"web.service": "active"}}

    def test_unknown_target(self, as_root, config_file: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(config_file), "deploy", "nope"])
        assert result.exit_code == 1
        assert "Unknown target 'nope'" in result.output

    def test_requires_root(self, monkeypatch, config_file: Path):
        monkeypatch.setattr(os, "geteuid", lambda: 1000)
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(config_file), "deploy"])
        assert result.exit_code == 1
        assert "root" in result.output

    def test_dry_run(self, monkeypatch, config_file: Path, tmp_path: Path):
        monkeypatch.setattr(os, "geteuid", lambda: 1000)
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(config_file), "deploy", "--dry-run"])
        assert result.exit_code == 0, result.output
        assert "[dry-run]" in result.output
        assert not (tmp_path / "opt" / "web").exists()

    def test_log_file_override(self, as_root, config_file: Path, tmp_path: Path):
        log = tmp_path / "custom.log"
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(config_file), "--log-file", str(log), "deploy"])
        assert result.exit_code == 0, result.output
        assert "clone" in log.read_text()


class TestImagesCommand:
    def test_lists_images(self, config_file: Path, tmp_path: Path):
        units = tmp_path / "units"
        units.mkdir()
        (units / "b.container").write_text("[Container]\nImage=img-b\n")
        (units / "a.container").write_text("[Container]\nImage=img-a\n")
        runner = CliRunner()
        result = runner.invoke(cli, ["-q", "--config", str(config_file), "images", str(units), "--json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["images"] == ["img-a", "img-b"]

    def test_pull(self, config_file: Path, fake_host, tmp_path: Path):
        units = tmp_path / "units"
        units.mkdir()
        (units / "a.container").write_text("[Container]\nImage=img-a\n")
        fake_host.fail_pull("img-a")
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(config_file), "images", str(units), "--pull"])
        assert result.exit_code == 2
        assert fake_host.calls("podman") == ["pull img-a"]


class TestStatusCommand:
    def test_status_json(self, config_file: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["-q", "--config", str(config_file), "status", "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["podman_version"] == "podman version 5.2.2"
        assert data["host_services"]["sshd"] == "active"
        assert data["target_services"]["web"] == {"web.service": "active"}

    def test_status_text(self, config_file: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(config_file), "status"])
        assert result.exit_code == 0
        assert "Summary" in result.output
        assert "web.service" in result.output


class TestDoctorCommand:
    def test_healthy(self, as_root, config_file: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["-q", "--config", str(config_file), "doctor", "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["healthy"] is True
        assert set(data["adapters"]) == {"filesystem", "git", "podman", "systemd", "packages"}

    def test_missing_tool(self, as_root, config_file: Path, fake_host):
        fake_host.podman.unlink()
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(config_file), "doctor"])
        assert result.exit_code == 1
        assert "✗ podman" in result.output


class TestConfigCheckCommand:
    def test_valid(self, config_file: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(config_file), "config", "check"])
        assert result.exit_code == 0
        assert "Configuration is valid" in result.output
        assert "web" in result.output

    def test_invalid_json(self, tmp_path: Path):
        bad = tmp_path / "bad.yml"
        bad.write_text("targets:\n  - name: x\n")
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(bad), "config", "check", "--json"])
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["valid"] is False
        assert data["errors"]
