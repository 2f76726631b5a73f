"""Drive-map compiler — mapping rows in, Drives.xml preference document out.

Rows are processed strictly in input order. Each row ends in exactly one of
two ways: it is compiled into a DriveEntry, or it is skipped because it lacks
a path or a drive letter. A skipped row never stops the run.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional
from xml.etree import ElementTree as ET

from drivemap.filters.resolver import FilterResolver
from drivemap.models.drive_map import (
    DRIVE_CLSID,
    CompileResult,
    DriveAction,
    DriveEntry,
    DrivesDocument,
    FilterGroup,
    FilterOrgUnit,
    MappingRow,
    RowReport,
    RowStatus,
)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
SKIP_REASON = "missing path or letter"

RowCallback = Callable[[RowReport], None]


def new_uid() -> str:
    return "{" + str(uuid.uuid4()).upper() + "}"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime(TIMESTAMP_FORMAT)


class DriveMapCompiler:
    """Compiles mapping rows into an ordered drives document.

    Parameters
    ----------
    resolver : FilterResolver
        Used once per valid row to turn its filter expression into
        targeting items.
    uid_factory, clock : callable, optional
        Sources of the per-entry uid and ``changed`` timestamp.
    """

    def __init__(
        self,
        resolver: FilterResolver,
        uid_factory: Callable[[], str] = new_uid,
        clock: Callable[[], str] = utc_timestamp,
    ) -> None:
        self.resolver = resolver
        self.uid_factory = uid_factory
        self.clock = clock

    def compile(
        self,
        rows: Iterable[MappingRow],
        replace_mode: bool,
        on_row: Optional[RowCallback] = None,
    ) -> CompileResult:
        """Compile *rows*; ``replace_mode`` selects Replace over Update."""
        action = DriveAction.REPLACE if replace_mode else DriveAction.UPDATE
        result = CompileResult(document=DrivesDocument())

        for row in rows:
            if not row.is_valid:
                report = RowReport(row=row, status=RowStatus.SKIPPED, reason=SKIP_REASON)
            else:
                entry, outcomes = self._compile_row(row, action)
                result.document.entries.append(entry)
                report = RowReport(row=row, status=RowStatus.COMPILED, outcomes=outcomes)

            result.reports.append(report)
            if on_row is not None:
                on_row(report)

        return result

    def _compile_row(self, row: MappingRow, action: DriveAction):
        principals, org_units, outcomes = self.resolver.resolve_with_outcomes(
            row.filter_expression
        )
        entry = DriveEntry(
            letter=row.letter.strip().upper(),
            path=row.path.strip().lower(),
            uid=self.uid_factory(),
            changed=self.clock(),
            action=action,
            label=(row.label or "").strip(),
            filters=[*principals, *org_units],
        )
        return entry, outcomes


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _flag(value: bool) -> str:
    return "1" if value else "0"


def _filter_element(parent: ET.Element, item) -> None:
    if isinstance(item, FilterGroup):
        ET.SubElement(
            parent,
            "FilterGroup",
            {
                "bool": item.bool_op,
                "not": _flag(item.negate),
                "name": item.name,
                "sid": item.sid,
                "userContext": _flag(item.user_context),
                "primaryGroup": _flag(item.primary_group),
                "localGroup": _flag(item.local_group),
            },
        )
    elif isinstance(item, FilterOrgUnit):
        ET.SubElement(
            parent,
            "FilterOrgUnit",
            {
                "bool": item.bool_op,
                "not": _flag(item.negate),
                "name": item.name,
                "userContext": _flag(item.user_context),
                "directMember": _flag(item.direct_member),
            },
        )
    else:
        raise TypeError(f"Unknown filter item: {item!r}")


def drive_element(entry: DriveEntry) -> ET.Element:
    """Build the <Drive> element for one entry."""
    attrs = {
        "clsid": DRIVE_CLSID,
        "name": entry.name,
        "status": entry.name,
        "image": str(entry.action.image),
        "changed": entry.changed,
        "uid": entry.uid,
        "userContext": _flag(entry.user_context),
        "bypassErrors": _flag(entry.bypass_errors),
    }
    if entry.remove_policy:
        attrs["removePolicy"] = "1"
    drive = ET.Element("Drive", attrs)

    props = {
        "action": entry.action.value,
        "thisDrive": "SHOW",
        "allDrives": "NOCHANGE",
        "path": entry.path,
    }
    if entry.label:
        props["label"] = entry.label
    props.update(
        {
            "persistent": _flag(entry.persistent),
            "useLetter": "1",
            "letter": entry.letter,
        }
    )
    ET.SubElement(drive, "Properties", props)

    if entry.filters:
        filters = ET.SubElement(drive, "Filters")
        for item in entry.filters:
            _filter_element(filters, item)

    return drive


def build_tree(document: DrivesDocument) -> ET.ElementTree:
    root = ET.Element("Drives", {"clsid": document.clsid})
    for entry in document.entries:
        root.append(drive_element(entry))
    return ET.ElementTree(root)


def render_drives_xml(document: DrivesDocument) -> bytes:
    """Serialize *document* as indented UTF-8 XML without a byte-order mark."""
    tree = build_tree(document)
    ET.indent(tree, space="  ")
    body = ET.tostring(tree.getroot(), encoding="unicode")
    return ('<?xml version="1.0" encoding="utf-8"?>\n' + body + "\n").encode("utf-8")
