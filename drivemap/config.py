"""Configuration — YAML file plus environment overrides.

Every key is optional. A minimal ``drivemap.yaml``::

    ldap:
      server: dc01.corp.example.com
      user: CORP\\svc-drivemap
      use_ssl: true
    sysvol_root: /mnt/sysvol/corp.example.com/Policies

The bind password is best left to ``DRIVEMAP_LDAP_PASSWORD``.

Policy files are always read and written under ``sysvol_root/<guid>``; the
``gPCFileSysPath`` stored on an existing policy object is not consulted, so
``sysvol_root`` must point at the same Policies folder the domain serves
(typically a mount of it). The default UNC root only resolves on Windows; on
POSIX hosts set ``sysvol_root`` to the mount point.
"""

from __future__ import annotations

import os
import socket
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from drivemap.directory.client import LdapSettings
from drivemap.sources.workbook import DEFAULT_SHEET

DEFAULT_CONFIG_FILE = "drivemap.yaml"
DEFAULT_WORKBOOK = "DriveMaps.xlsx"


@dataclass
class DriveMapConfig:
    ldap: LdapSettings = field(default_factory=lambda: LdapSettings(server=""))
    sysvol_root: str = ""
    workbook: str = DEFAULT_WORKBOOK
    sheet: str = DEFAULT_SHEET
    backup_dir: str = ""
    audit_dir: str = ""

    def sysvol_root_for(self, domain: str) -> str:
        """SYSVOL Policies folder; defaults to ``\\\\<domain>\\SYSVOL\\<domain>\\Policies``."""
        return self.sysvol_root or f"\\\\{domain}\\SYSVOL\\{domain}\\Policies"

    def backup_dir_path(self) -> Path:
        return Path(self.backup_dir) if self.backup_dir else Path.home() / ".drivemap" / "backups"


def current_domain() -> str:
    """DNS domain of the caller: ``USERDNSDOMAIN`` on Windows, else the host's FQDN suffix."""
    domain = os.environ.get("USERDNSDOMAIN", "")
    if domain:
        return domain.lower()
    _, _, suffix = socket.getfqdn().partition(".")
    return suffix.lower()


def load_config(path: str | Path | None = None) -> DriveMapConfig:
    """Load configuration from *path* (or ``drivemap.yaml`` if present)."""
    config_path = Path(path) if path else Path(DEFAULT_CONFIG_FILE)
    data: dict = {}
    if path or config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

    ldap_data = data.get("ldap", {}) or {}
    ldap = LdapSettings(
        server=os.environ.get("DRIVEMAP_LDAP_SERVER", ldap_data.get("server", "")),
        user=os.environ.get("DRIVEMAP_LDAP_USER", ldap_data.get("user", "")),
        password=os.environ.get("DRIVEMAP_LDAP_PASSWORD", ldap_data.get("password", "")),
        use_ssl=bool(ldap_data.get("use_ssl", False)),
        base_dn=ldap_data.get("base_dn", ""),
    )

    return DriveMapConfig(
        ldap=ldap,
        sysvol_root=data.get("sysvol_root", ""),
        workbook=data.get("workbook", DEFAULT_WORKBOOK),
        sheet=data.get("sheet", DEFAULT_SHEET),
        backup_dir=data.get("backup_dir", ""),
        audit_dir=data.get("audit_dir", ""),
    )
