from __future__ import annotations

import json
import re
from datetime import date, datetime, time
from typing import Any, NamedTuple

from ..errors import ValidationFailure

_CELL_RE = re.compile(r"^([A-Za-z]+)(\d+)$")


class CellRef(NamedTuple):
    row: int
    col: int


class RangeRef(NamedTuple):
    r1: int
    r2: int
    c1: int
    c2: int

    @property
    def rows(self) -> int:
        return self.r2 - self.r1 + 1

    @property
    def cols(self) -> int:
        return self.c2 - self.c1 + 1


def column_to_number(col: str) -> int:
    """Convert column letters to a 1-based index ("A" -> 1, "AA" -> 27)."""
    n = 0
    for ch in col.upper():
        n = n * 26 + (ord(ch) - ord("A") + 1)
    return n


def parse_cell_a1(a1: str) -> CellRef:
    """Parse an A1 reference such as "B12"."""
    m = _CELL_RE.match(a1.strip())
    if not m or int(m.group(2)) < 1:
        raise ValidationFailure(f"Invalid cell: {a1}")
    return CellRef(row=int(m.group(2)), col=column_to_number(m.group(1)))


def parse_range_a1(range_a1: str) -> RangeRef:
    """Parse "A1:C3"; the corners may be given in either order."""
    parts = [p.strip() for p in range_a1.split(":")]
    if len(parts) != 2:
        raise ValidationFailure(f"Invalid range: {range_a1}")
    a = parse_cell_a1(parts[0])
    b = parse_cell_a1(parts[1])
    return RangeRef(
        r1=min(a.row, b.row),
        r2=max(a.row, b.row),
        c1=min(a.col, b.col),
        c2=max(a.col, b.col),
    )


def cell_value_to_string(value: Any) -> str:
    """Render a cell value for JSON output; empty cells become ""."""
    if value is None:
        return ""
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (dict, list)):
        try:
            return json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError):
            return str(value)
    return str(value)


def to_cell_value(value: Any) -> Any:
    """Coerce a JSON value into something a worksheet cell accepts."""
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return value
