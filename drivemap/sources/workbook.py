"""Workbook source — read mapping rows from the DriveMaps sheet."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

from openpyxl import load_workbook

from drivemap.errors import WorkbookError
from drivemap.models.drive_map import MappingRow

DEFAULT_SHEET = "DriveMaps"
FIRST_DATA_ROW = 2  # row 1 holds the headers


def _cell_text(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def read_rows(workbook_path: str | Path, sheet: str = DEFAULT_SHEET) -> list[MappingRow]:
    """Load every mapping row from *workbook_path*.

    Columns are path, letter, label, filter. Reading stops at the first row
    whose first cell is empty.

    Raises:
        WorkbookError: If the file or the sheet does not exist.
    """
    path = Path(workbook_path)
    if not path.is_file():
        raise WorkbookError(f"Workbook not found: {path}")

    wb = load_workbook(path, read_only=True, data_only=True)
    try:
        if sheet not in wb.sheetnames:
            raise WorkbookError(f"Sheet '{sheet}' not found in {path.name}")
        return list(_iter_rows(wb[sheet]))
    finally:
        wb.close()


def _iter_rows(ws) -> Iterator[MappingRow]:
    for number, values in enumerate(
        ws.iter_rows(min_row=FIRST_DATA_ROW, max_col=4, values_only=True),
        start=FIRST_DATA_ROW,
    ):
        cells = [_cell_text(v) for v in values] + [""] * (4 - len(values))
        if not cells[0]:
            return
        yield MappingRow(
            path=cells[0],
            letter=cells[1],
            label=cells[2],
            filter_expression=cells[3],
            row_number=number,
        )
