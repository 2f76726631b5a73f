"""Shared fixtures: an in-memory directory standing in for LDAP."""

from __future__ import annotations

import pytest

from drivemap.directory.client import PolicyObject
from drivemap.errors import DirectoryError


class FakeDirectory:
    """Directory with fixed principals, OUs and policies."""

    def __init__(self, principals=None, org_units=None, policies=None, fail_update=False):
        self.principals = principals or {}
        self.org_units = set(org_units or [])
        self.policies = {p.display_name: p for p in (policies or [])}
        self.fail_update = fail_update
        self.updates: list[dict] = []
        self.closed = False

    def find_principal_sid(self, domain, name):
        return self.principals.get(f"{domain}\\{name}".upper())

    def find_org_unit(self, distinguished_name):
        return distinguished_name if distinguished_name in self.org_units else None

    def find_policy(self, display_name):
        return self.policies.get(display_name)

    def create_policy(self, display_name, sysvol_root):
        policy = PolicyObject(
            guid="{11111111-2222-3333-4444-555555555555}",
            dn="CN={11111111-2222-3333-4444-555555555555},CN=Policies,CN=System,DC=corp,DC=local",
            display_name=display_name,
        )
        self.policies[display_name] = policy
        return policy

    def update_policy_version(
        self,
        policy,
        version,
        user_extension_names,
        machine_extension_names="",
        expected_version=None,
    ):
        if self.fail_update:
            raise DirectoryError("insufficientAccessRights")
        if expected_version is not None and expected_version != policy.version_number:
            raise DirectoryError("noSuchAttribute")
        self.updates.append(
            {
                "dn": policy.dn,
                "version": version,
                "user": user_extension_names,
                "machine": machine_extension_names,
                "expected": expected_version,
            }
        )
        policy.version_number = version

    def close(self):
        self.closed = True


@pytest.fixture
def directory():
    return FakeDirectory(
        principals={"CORP\\FINANCE-USERS": "S-1-5-21-1004336348-1177238915-682003330-1105"},
        org_units={"OU=Sales,DC=corp,DC=local"},
    )


@pytest.fixture
def make_directory():
    return FakeDirectory
