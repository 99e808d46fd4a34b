"""
Excel (.xlsx) tool bodies.

Workbooks live in ``excel/`` under the sandbox root. Client-supplied file names
are reduced to their base name before being joined to that directory.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from . import extractors
from .config import EXCEL_SUBDIR
from .errors import NotFound, UnsupportedFormat
from .sandbox import PathSandbox, safe_name
from .utils.a1_utils import (
    cell_value_to_string,
    parse_cell_a1,
    parse_range_a1,
    to_cell_value,
)
from .utils.sheet_utils import (
    DEFAULT_SHEET,
    MENU_SHEET,
    infer_sheet_name,
    resolve_sheet,
)

logger = logging.getLogger(__name__)

DEFAULT_READ_RANGE = "A1:F50"


def _to_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, indent=2)


class SpreadsheetTools:
    """Read/write helpers for workbooks under excel/."""

    def __init__(self, sandbox: PathSandbox) -> None:
        self.sandbox = sandbox

    def _workbook_path(self, file: str) -> tuple[Path, str]:
        name = safe_name(file)
        full = self.sandbox.resolve(f"{EXCEL_SUBDIR}/{name}")
        if full.suffix.lower() != ".xlsx":
            raise UnsupportedFormat("Only .xlsx is supported")
        return full, f"{EXCEL_SUBDIR}/{name}"

    def _load_existing(self, full: Path, shown: str):
        try:
            return extractors.load_workbook_strict(full)
        except FileNotFoundError as exc:
            raise NotFound(f"Workbook not found: {shown}") from exc

    def list_sheets(self, file: str) -> str:
        full, shown = self._workbook_path(file)
        wb = self._load_existing(full, shown)
        return _to_json({"file": shown, "sheets": wb.sheetnames})

    def read_range(
        self,
        file: str,
        sheet: str | None = None,
        cell_range: str | None = None,
        hint: str | None = None,
    ) -> str:
        """Read a rectangular range as a grid of strings.

        The sheet is inferred from ``hint`` when not given; an unmatched sheet
        returns the available names instead of failing.
        """
        full, shown = self._workbook_path(file)
        wb = self._load_existing(full, shown)

        desired = infer_sheet_name(sheet, hint)
        resolution = resolve_sheet(wb.sheetnames, desired)
        if not resolution.found:
            return _to_json(
                {
                    "error": "Sheet not found",
                    "requested": desired,
                    "availableSheets": resolution.available,
                }
            )
        logger.debug(
            f"Sheet {desired!r} resolved to {resolution.matched!r} ({resolution.strategy})"
        )

        ws = wb[resolution.matched]
        effective_range = cell_range or DEFAULT_READ_RANGE
        bounds = parse_range_a1(effective_range)

        values: list[list[str]] = []
        for r in range(bounds.r1, bounds.r2 + 1):
            values.append(
                [
                    cell_value_to_string(ws.cell(row=r, column=c).value)
                    for c in range(bounds.c1, bounds.c2 + 1)
                ]
            )

        return _to_json(
            {
                "file": shown,
                "sheet": resolution.matched,
                "range": effective_range,
                "values": values,
            }
        )

    def write_range(
        self,
        file: str,
        sheet: str,
        start_cell: str,
        values: list[list[Any]],
        create_sheet: bool = True,
    ) -> str:
        """Write a 2D grid starting at ``start_cell``; creates workbook/sheet as needed."""
        full, shown = self._workbook_path(file)
        start = parse_cell_a1(start_cell)
        wb = extractors.load_workbook_or_empty(full)

        if sheet in wb.sheetnames:
            ws = wb[sheet]
        elif create_sheet:
            ws = wb.create_sheet(title=sheet)
        else:
            raise NotFound(f"Sheet not found: {sheet}")

        for r, row in enumerate(values):
            for c, value in enumerate(row):
                # cell(value=None) leaves the old value in place; assign to clear it
                ws.cell(row=start.row + r, column=start.col + c).value = to_cell_value(
                    value
                )

        extractors.save_workbook(wb, full)
        cols = len(values[0]) if values else 0
        return f"Wrote {len(values)}x{cols} to {shown} sheet={sheet} start={start_cell}"

    def append_rows(
        self, file: str, rows: list[list[Any]], sheet: str | None = None
    ) -> str:
        """Append rows below the last used row of ``sheet`` (default LunchLog)."""
        sheet_name = sheet or DEFAULT_SHEET
        _, shown = self._append(file, sheet_name, rows)
        return f"Appended {len(rows)} rows to {shown} sheet={sheet_name}"

    def add_menu_item(
        self,
        file: str,
        menu: str,
        category: str,
        price_jpy: int,
        allergy_notes: str = "—",
        tips: str = "",
    ) -> str:
        _, shown = self._append(
            file, MENU_SHEET, [[menu, category, price_jpy, allergy_notes, tips]]
        )
        return (
            f"Added menu item to {shown} sheet={MENU_SHEET}: "
            f"{menu} / {category} / {price_jpy}円"
        )

    def add_lunchlog_entry(
        self,
        file: str,
        date: str,
        menu: str,
        category: str,
        price_jpy: int,
        rating: int,
        notes: str = "",
    ) -> str:
        _, shown = self._append(
            file, DEFAULT_SHEET, [[date, menu, category, price_jpy, rating, notes]]
        )
        return f"Added {DEFAULT_SHEET} row to {shown}: {date} / {menu} / rating={rating}"

    def _append(self, file: str, sheet_name: str, rows: list[list[Any]]):
        full, shown = self._workbook_path(file)
        wb = extractors.load_workbook_or_empty(full)
        ws = wb[sheet_name] if sheet_name in wb.sheetnames else wb.create_sheet(sheet_name)
        for row in rows:
            ws.append([to_cell_value(v) for v in row])
        extractors.save_workbook(wb, full)
        return full, shown
