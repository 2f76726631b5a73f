"""Models for drive-mapping rows, filter tokens and compiled drive entries.

A run flows through these types in order:
1. MappingRow      — one record read from the workbook
2. FilterToken     — PrincipalRef / OrgUnitRef extracted from a filter expression
3. ResolvedFilter  — FilterGroup / FilterOrgUnit confirmed against the directory
4. DriveEntry      — one compiled <Drive> element of the preference document
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

# Class identifiers Group Policy Preferences uses to recognise the document.
DRIVES_CLSID = "{8FDDCC1A-0C3C-43cd-A6B4-71A6DF20DA8C}"
DRIVE_CLSID = "{935D1B74-9CB8-4e3c-9914-7DD559B7A417}"


class DriveAction(Enum):
    """How a client applies a drive entry."""

    REPLACE = "R"
    UPDATE = "U"

    @property
    def image(self) -> int:
        """Icon marker the preference editor shows for the action."""
        return 1 if self is DriveAction.REPLACE else 2


class RowStatus(Enum):
    COMPILED = "compiled"
    SKIPPED = "skipped"


@dataclass
class MappingRow:
    """One drive mapping as read from the workbook."""

    path: str = ""
    letter: str = ""
    label: str = ""
    filter_expression: str = ""
    row_number: int = 0

    @property
    def is_valid(self) -> bool:
        return bool(self.path.strip()) and bool(self.letter.strip())


# ── Filter tokens ────────────────────────────────────────────────────


@dataclass(frozen=True)
class PrincipalRef:
    """A ``DOMAIN\\name`` reference to a user or group."""

    domain: str
    name: str

    @property
    def display_name(self) -> str:
        return f"{self.domain}\\{self.name}"


@dataclass(frozen=True)
class OrgUnitRef:
    """An ``OU=...,DC=...`` reference to an organizational unit."""

    distinguished_name: str

    @property
    def display_name(self) -> str:
        return self.distinguished_name


FilterToken = Union[PrincipalRef, OrgUnitRef]


# ── Resolved filters ─────────────────────────────────────────────────


@dataclass
class FilterGroup:
    """Item-level targeting on membership of a principal."""

    name: str
    sid: str
    bool_op: str = "OR"
    negate: bool = False
    user_context: bool = True
    primary_group: bool = False
    local_group: bool = False


@dataclass
class FilterOrgUnit:
    """Item-level targeting on an organizational unit."""

    name: str
    bool_op: str = "OR"
    negate: bool = False
    user_context: bool = True
    direct_member: bool = False


ResolvedFilter = Union[FilterGroup, FilterOrgUnit]


@dataclass
class ResolutionOutcome:
    """What happened to a single token during resolution."""

    token: FilterToken
    resolved: bool
    detail: str = ""


# ── Compiled output ──────────────────────────────────────────────────


@dataclass
class DriveEntry:
    """A compiled drive mapping, ready to be rendered as a <Drive> element."""

    letter: str
    path: str
    uid: str
    changed: str
    action: DriveAction
    label: str = ""
    filters: list[ResolvedFilter] = field(default_factory=list)
    bypass_errors: bool = True
    user_context: bool = True

    @property
    def name(self) -> str:
        return f"{self.letter}:"

    @property
    def persistent(self) -> bool:
        return self.action is DriveAction.REPLACE

    @property
    def remove_policy(self) -> bool:
        return self.action is DriveAction.REPLACE


@dataclass
class DrivesDocument:
    """Ordered collection of drive entries (the Drives.xml root)."""

    entries: list[DriveEntry] = field(default_factory=list)
    clsid: str = DRIVES_CLSID


@dataclass
class RowReport:
    """Per-row result of a compile pass."""

    row: MappingRow
    status: RowStatus
    reason: str = ""
    outcomes: list[ResolutionOutcome] = field(default_factory=list)

    @property
    def unresolved(self) -> list[ResolutionOutcome]:
        return [o for o in self.outcomes if not o.resolved]


@dataclass
class CompileResult:
    """The compiled document together with what happened to every row."""

    document: DrivesDocument
    reports: list[RowReport] = field(default_factory=list)

    @property
    def compiled(self) -> list[RowReport]:
        return [r for r in self.reports if r.status == RowStatus.COMPILED]

    @property
    def skipped(self) -> list[RowReport]:
        return [r for r in self.reports if r.status == RowStatus.SKIPPED]
