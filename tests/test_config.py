"""Tests for configuration loading."""

import tempfile
from pathlib import Path

import yaml

from drivemap.config import DEFAULT_WORKBOOK, current_domain, load_config


def _write_yaml(directory: str, data: dict) -> Path:
    path = Path(directory) / "drivemap.yaml"
    path.write_text(yaml.dump(data))
    return path


def test_load_config_from_file(monkeypatch):
    monkeypatch.delenv("DRIVEMAP_LDAP_SERVER", raising=False)
    monkeypatch.delenv("DRIVEMAP_LDAP_PASSWORD", raising=False)
    monkeypatch.delenv("DRIVEMAP_LDAP_USER", raising=False)
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write_yaml(
            tmpdir,
            {
                "ldap": {"server": "dc01.corp.local", "user": "CORP\\svc", "use_ssl": True},
                "sysvol_root": "/mnt/sysvol/Policies",
                "workbook": "maps.xlsx",
            },
        )
        config = load_config(path)

    assert config.ldap.server == "dc01.corp.local"
    assert config.ldap.user == "CORP\\svc"
    assert config.ldap.use_ssl is True
    assert config.ldap.password == ""
    assert config.sysvol_root == "/mnt/sysvol/Policies"
    assert config.workbook == "maps.xlsx"
    assert config.sheet == "DriveMaps"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("DRIVEMAP_LDAP_PASSWORD", "s3cret")
    monkeypatch.setenv("DRIVEMAP_LDAP_SERVER", "dc02.corp.local")
    with tempfile.TemporaryDirectory() as tmpdir:
        config = load_config(_write_yaml(tmpdir, {"ldap": {"server": "dc01.corp.local"}}))
    assert config.ldap.password == "s3cret"
    assert config.ldap.server == "dc02.corp.local"


def test_defaults_without_file(monkeypatch):
    with tempfile.TemporaryDirectory() as tmpdir:
        monkeypatch.chdir(tmpdir)
        config = load_config()
    assert config.workbook == DEFAULT_WORKBOOK
    assert config.sysvol_root_for("corp.local") == "\\\\corp.local\\SYSVOL\\corp.local\\Policies"


def test_current_domain_from_environment(monkeypatch):
    monkeypatch.setenv("USERDNSDOMAIN", "CORP.LOCAL")
    assert current_domain() == "corp.local"
