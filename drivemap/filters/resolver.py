"""Filter resolver — turn a free-text filter expression into targeting items.

Two patterns run independently over the same expression: one picks out
``DOMAIN\\name`` principals, the other ``OU=...,DC=...`` distinguished names.
Each token is then confirmed against the directory by its own type. Tokens
the directory does not know are dropped from the output; the outcome list
keeps a record of them.
"""

from __future__ import annotations

import re
from typing import Optional, Protocol

from drivemap.models.drive_map import (
    FilterGroup,
    FilterOrgUnit,
    FilterToken,
    OrgUnitRef,
    PrincipalRef,
    ResolutionOutcome,
)

PRINCIPAL_RE = re.compile(r"\w[-\w]*\\[-\w]+")

# One or more OU= components followed by one or more DC= components.
ORG_UNIT_RE = re.compile(
    r"(?:OU=(?:[^\W_]| )+,)+(?:DC=\w+,)*DC=\w+",
    re.IGNORECASE,
)


class DirectoryLookup(Protocol):
    """The directory reads the resolver needs."""

    def find_principal_sid(self, domain: str, name: str) -> Optional[str]: ...

    def find_org_unit(self, distinguished_name: str) -> Optional[str]: ...


def tokenize(expression: str | None) -> list[FilterToken]:
    """Extract every principal token, then every OU token, in text order."""
    if not expression:
        return []

    tokens: list[FilterToken] = []
    for match in PRINCIPAL_RE.finditer(expression):
        domain, name = match.group(0).strip().split("\\", 1)
        tokens.append(PrincipalRef(domain=domain, name=name))
    for match in ORG_UNIT_RE.finditer(expression):
        tokens.append(OrgUnitRef(distinguished_name=match.group(0).strip()))
    return tokens


class FilterResolver:
    """Resolves filter expressions against a directory."""

    def __init__(self, directory: DirectoryLookup):
        self.directory = directory

    def resolve(self, expression: str | None) -> tuple[list[FilterGroup], list[FilterOrgUnit]]:
        """Return the resolved principals and OUs; unresolved tokens are dropped."""
        principals, org_units, _ = self.resolve_with_outcomes(expression)
        return principals, org_units

    def resolve_with_outcomes(
        self, expression: str | None
    ) -> tuple[list[FilterGroup], list[FilterOrgUnit], list[ResolutionOutcome]]:
        """Like :meth:`resolve`, also returning one outcome per token."""
        principals: list[FilterGroup] = []
        org_units: list[FilterOrgUnit] = []
        outcomes: list[ResolutionOutcome] = []

        for token in tokenize(expression):
            if isinstance(token, PrincipalRef):
                group = self._resolve_principal(token)
                if group is not None:
                    principals.append(group)
                    outcomes.append(ResolutionOutcome(token, True, group.sid))
                else:
                    outcomes.append(ResolutionOutcome(token, False, "principal not found"))
            else:
                org_unit = self._resolve_org_unit(token)
                if org_unit is not None:
                    org_units.append(org_unit)
                    outcomes.append(ResolutionOutcome(token, True))
                else:
                    outcomes.append(ResolutionOutcome(token, False, "organizational unit not found"))

        return principals, org_units, outcomes

    def _resolve_principal(self, token: PrincipalRef) -> FilterGroup | None:
        sid = self.directory.find_principal_sid(token.domain, token.name)
        if not sid:
            return None
        return FilterGroup(name=token.display_name, sid=sid)

    def _resolve_org_unit(self, token: OrgUnitRef) -> FilterOrgUnit | None:
        dn = self.directory.find_org_unit(token.distinguished_name)
        if not dn:
            return None
        return FilterOrgUnit(name=token.display_name)


class OfflineDirectory:
    """Directory stand-in that knows nothing; every token stays unresolved."""

    def find_principal_sid(self, domain: str, name: str) -> Optional[str]:
        return None

    def find_org_unit(self, distinguished_name: str) -> Optional[str]:
        return None
