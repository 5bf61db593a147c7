"""
Tests for configuration loading and the config check use case.
"""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from autosetup.core.config.loader import (
    CONFIG_ENV_VAR,
    ConfigError,
    find_config_file,
    load_config,
)
from autosetup.core.data import DEFAULT_CONFIG_PATH
from autosetup.core.use_cases.config_check import check_config


def _write(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "autosetup.yml"
    path.write_text(textwrap.dedent(body))
    return path


class TestLoadConfig:
    def test_minimal(self, tmp_path: Path):
        path = _write(tmp_path, """\
            scan_dir: /tmp/scan
            targets:
              - name: web
                repository: https://github.com/example/web.git
                workdir: /opt/web
                units: [web.container]
        """)
        config = load_config(path)
        assert config.scan_dir == Path("/tmp/scan")
        assert config.targets[0].service_names() == ["web.service"]

    def test_empty_file_gives_defaults(self, tmp_path: Path):
        config = load_config(_write(tmp_path, ""))
        assert config.targets == []

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.yml")

    def test_invalid_yaml(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(_write(tmp_path, "targets: [unclosed\n"))

    def test_not_a_mapping(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="Expected a YAML mapping"):
            load_config(_write(tmp_path, "- a\n- b\n"))

    def test_invalid_unit_name(self, tmp_path: Path):
        path = _write(tmp_path, """\
            targets:
              - name: web
                repository: r
                workdir: /opt/web
                units: [web.service]
        """)
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(path)


class TestBundledDefault:
    def test_bundled_profile_is_valid(self):
        config = load_config(DEFAULT_CONFIG_PATH)
        names = [t.name for t in config.targets]
        assert names == ["web-haloeats", "web-fornet", "web-halss", "observium", "npm", "zabbix"]
        assert all("@" not in t.repository for t in config.targets)

    def test_observium_services(self):
        config = load_config(DEFAULT_CONFIG_PATH)
        observium = config.get_target("observium")
        assert observium.service_names() == ["observium-db.service", "observium-app.service"]

    def test_zabbix_is_enabled(self):
        zabbix = load_config(DEFAULT_CONFIG_PATH).get_target("zabbix")
        assert zabbix.activation == "enable"
        assert zabbix.service_names()[0] == "zabbix-db.service"
        assert len(zabbix.service_names()) == 6

    def test_host_packages(self):
        host = load_config(DEFAULT_CONFIG_PATH).host
        assert "cockpit" in host.packages
        assert host.package_alternatives == [["yum-utils", "dnf-utils"]]
        assert host.container_packages[0] == "podman"


class TestFindConfigFile:
    def test_explicit_wins(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "env.yml"))
        assert find_config_file(tmp_path / "x.yml") == tmp_path / "x.yml"

    def test_env_var(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "env.yml"))
        assert find_config_file() == tmp_path / "env.yml"

    def test_fallback_to_bundled(self, tmp_path: Path, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        monkeypatch.setattr(
            "autosetup.core.config.loader.SYSTEM_CONFIG_FILE", tmp_path / "absent.yml"
        )
        assert find_config_file() == DEFAULT_CONFIG_PATH


class TestConfigCheck:
    def test_valid(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "x")
        path = _write(tmp_path, """\
            targets:
              - name: web
                repository: https://github.com/example/web.git
                workdir: /opt/web
                units: [web.container]
        """)
        result = check_config(path)
        assert result.valid
        assert result.warnings == []
        assert result.to_dict()["targets"] == ["web"]

    def test_missing_token_warns(self, tmp_path: Path, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        path = _write(tmp_path, """\
            targets:
              - name: web
                repository: https://github.com/example/web.git
                workdir: /opt/web
                units: [web.container]
        """)
        result = check_config(path)
        assert result.valid
        assert any("GITHUB_TOKEN" in w for w in result.warnings)

    def test_shared_unit_filename_is_error(self, tmp_path: Path):
        path = _write(tmp_path, """\
            targets:
              - name: a
                repository: r
                workdir: /opt/a
                units: [app.container]
              - name: b
                repository: r
                workdir: /opt/b
                units: [app.container]
        """)
        result = check_config(path)
        assert not result.valid
        assert "published by both 'a' and 'b'" in result.errors[0]

    def test_embedded_credentials_warn(self, tmp_path: Path):
        path = _write(tmp_path, """\
            targets:
              - name: a
                repository: https://ghp_x@github.com/o/a.git
                workdir: /opt/a
                units: [a.container]
        """)
        result = check_config(path)
        assert any("embeds credentials" in w for w in result.warnings)

    def test_invalid(self, tmp_path: Path):
        result = check_config(tmp_path / "missing.yml")
        assert not result.valid
        assert result.errors
