"""Directory client — the LDAP reads and writes a drive-map run needs.

Wraps an ``ldap3.Connection``. Lookups that find nothing return None; any
protocol or socket failure is raised as DirectoryError so the run stops.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

from ldap3 import (
    ALL,
    BASE,
    LEVEL,
    MODIFY_ADD,
    MODIFY_DELETE,
    MODIFY_REPLACE,
    NTLM,
    SIMPLE,
    SUBTREE,
    Connection,
    Server,
)
from ldap3.core.exceptions import LDAPException
from ldap3.protocol.formatters.formatters import format_sid
from ldap3.utils.conv import escape_filter_chars

from drivemap.errors import DirectoryError

POLICY_ATTRIBUTES = [
    "cn",
    "displayName",
    "versionNumber",
    "gPCFileSysPath",
    "gPCUserExtensionNames",
    "gPCMachineExtensionNames",
]


def domain_to_dn(domain: str) -> str:
    """``corp.example.com`` -> ``DC=corp,DC=example,DC=com``."""
    return ",".join(f"DC={part}" for part in domain.split(".") if part)


@dataclass
class LdapSettings:
    server: str
    user: str = ""
    password: str = ""
    use_ssl: bool = False
    base_dn: str = ""


@dataclass
class PolicyObject:
    """A groupPolicyContainer as stored in the directory."""

    guid: str
    dn: str
    display_name: str
    version_number: int = 0
    file_sys_path: str = ""
    user_extension_names: str = ""
    machine_extension_names: str = ""


class DirectoryClient:
    """LDAP operations against one domain."""

    def __init__(self, connection: Connection, base_dn: str):
        self.connection = connection
        self.base_dn = base_dn

    @classmethod
    def connect(cls, settings: LdapSettings, domain: str) -> DirectoryClient:
        """Open and bind a connection; NTLM when the user is ``DOMAIN\\name``."""
        base_dn = settings.base_dn or domain_to_dn(domain)
        try:
            server = Server(settings.server or domain, use_ssl=settings.use_ssl, get_info=ALL)
            connection = Connection(
                server,
                user=settings.user or None,
                password=settings.password or None,
                authentication=NTLM if "\\" in settings.user else SIMPLE,
                auto_bind=True,
            )
        except LDAPException as e:
            raise DirectoryError(f"Could not connect to {settings.server or domain}: {e}") from e
        return cls(connection, base_dn=base_dn)

    @property
    def policies_dn(self) -> str:
        return f"CN=Policies,CN=System,{self.base_dn}"

    def close(self) -> None:
        self.connection.unbind()

    # -- lookups ------------------------------------------------------------

    def find_principal_sid(self, domain: str, name: str) -> Optional[str]:
        """Return the SID string of ``domain\\name``, or None if there is no such principal."""
        search_base = domain_to_dn(domain) if "." in domain else self.base_dn
        entries = self._search(
            search_base,
            f"(sAMAccountName={escape_filter_chars(name)})",
            SUBTREE,
            ["objectSid"],
        )
        if not entries or "objectSid" not in entries[0]:
            return None
        raw = entries[0]["objectSid"].raw_values
        if not raw:
            return None
        return str(format_sid(raw[0]))

    def find_org_unit(self, distinguished_name: str) -> Optional[str]:
        """Return the DN of the OU if it exists."""
        entries = self._search(distinguished_name, "(objectClass=organizationalUnit)", BASE, [])
        if not entries:
            return None
        return entries[0].entry_dn

    def find_policy(self, display_name: str) -> Optional[PolicyObject]:
        entries = self._search(
            self.policies_dn,
            f"(&(objectClass=groupPolicyContainer)(displayName={escape_filter_chars(display_name)}))",
            LEVEL,
            POLICY_ATTRIBUTES,
        )
        if not entries:
            return None
        return _policy_from_entry(entries[0])

    # -- writes -------------------------------------------------------------

    def create_policy(self, display_name: str, sysvol_root: str) -> PolicyObject:
        """Add a new groupPolicyContainer with its User and Machine children."""
        guid = "{" + str(uuid.uuid4()).upper() + "}"
        dn = f"CN={guid},{self.policies_dn}"
        file_sys_path = sysvol_root.rstrip("\\/") + "\\" + guid

        self._add(
            dn,
            ["top", "container", "groupPolicyContainer"],
            {
                "displayName": display_name,
                "gPCFileSysPath": file_sys_path,
                "gPCFunctionalityVersion": "2",
                "flags": "0",
                "versionNumber": "0",
            },
        )
        self._add(f"CN=User,{dn}", ["top", "container"], {})
        self._add(f"CN=Machine,{dn}", ["top", "container"], {})

        return PolicyObject(
            guid=guid,
            dn=dn,
            display_name=display_name,
            version_number=0,
            file_sys_path=file_sys_path,
        )

    def update_policy_version(
        self,
        policy: PolicyObject,
        version: int,
        user_extension_names: str,
        machine_extension_names: str = "",
        expected_version: Optional[int] = None,
    ) -> None:
        """Write the new version number and extension names.

        With *expected_version* the version is swapped in a single modify
        (delete old value, add new), so a concurrent writer makes it fail.
        """
        if expected_version is None:
            version_change = [(MODIFY_REPLACE, [str(version)])]
        else:
            version_change = [
                (MODIFY_DELETE, [str(expected_version)]),
                (MODIFY_ADD, [str(version)]),
            ]
        changes = {
            "versionNumber": version_change,
            "gPCUserExtensionNames": [(MODIFY_REPLACE, [user_extension_names])],
        }
        if machine_extension_names:
            changes["gPCMachineExtensionNames"] = [(MODIFY_REPLACE, [machine_extension_names])]

        try:
            ok = self.connection.modify(policy.dn, changes)
        except LDAPException as e:
            raise DirectoryError(f"Failed to update {policy.dn}: {e}") from e
        if not ok:
            raise DirectoryError(
                f"Failed to update {policy.dn}: {self.connection.result.get('description')}"
            )

        policy.version_number = version
        policy.user_extension_names = user_extension_names
        if machine_extension_names:
            policy.machine_extension_names = machine_extension_names

    # ======================================================================
    # Internal helpers
    # ======================================================================

    def _search(self, base: str, search_filter: str, scope, attributes: list[str]):
        try:
            found = self.connection.search(
                search_base=base,
                search_filter=search_filter,
                search_scope=scope,
                attributes=attributes,
                size_limit=1,
            )
        except LDAPException as e:
            raise DirectoryError(f"Directory search under {base} failed: {e}") from e
        if not found:
            return []
        return list(self.connection.entries)

    def _add(self, dn: str, object_class: list[str], attributes: dict) -> None:
        try:
            ok = self.connection.add(dn, object_class, attributes)
        except LDAPException as e:
            raise DirectoryError(f"Failed to add {dn}: {e}") from e
        if not ok:
            raise DirectoryError(f"Failed to add {dn}: {self.connection.result.get('description')}")


def _first(entry, attribute: str) -> str:
    if attribute not in entry:
        return ""
    value = entry[attribute].value
    if isinstance(value, list):
        value = value[0] if value else ""
    return "" if value is None else str(value)


def _policy_from_entry(entry) -> PolicyObject:
    version = _first(entry, "versionNumber")
    return PolicyObject(
        guid=_first(entry, "cn"),
        dn=entry.entry_dn,
        display_name=_first(entry, "displayName"),
        version_number=int(version) if version.isdigit() else 0,
        file_sys_path=_first(entry, "gPCFileSysPath"),
        user_extension_names=_first(entry, "gPCUserExtensionNames"),
        machine_extension_names=_first(entry, "gPCMachineExtensionNames"),
    )
