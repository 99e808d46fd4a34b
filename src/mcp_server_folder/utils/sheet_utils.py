from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_SHEET = "LunchLog"
MENU_SHEET = "Menu"

# hint keyword -> sheet name, checked in order
HINT_SHEETS: list[tuple[tuple[str, ...], str]] = [
    (("menu", "メニュー"), MENU_SHEET),
    (("log", "ログ"), DEFAULT_SHEET),
]


@dataclass
class SheetResolution:
    """Outcome of matching a requested sheet name against a workbook."""

    requested: str
    matched: str | None
    available: list[str] = field(default_factory=list)
    strategy: str | None = None

    @property
    def found(self) -> bool:
        return self.matched is not None


def infer_sheet_name(sheet: str | None, hint: str | None) -> str:
    """Pick the sheet to look for: explicit name, then hint keywords, then the default."""
    if sheet:
        return sheet
    h = (hint or "").lower()
    for keywords, name in HINT_SHEETS:
        if any(k in h for k in keywords):
            return name
    return DEFAULT_SHEET


def resolve_sheet(available: list[str], requested: str) -> SheetResolution:
    """Match ``requested`` against ``available``: exact, case-insensitive, then substring.

    Never raises; an unmatched request comes back with the candidate list so the
    caller can offer it to the user.
    """
    names = list(available)
    if requested in names:
        return SheetResolution(requested, requested, names, "exact")

    wanted = requested.lower()
    for name in names:
        if name.lower() == wanted:
            return SheetResolution(requested, name, names, "case-insensitive")
    for name in names:
        if wanted in name.lower():
            return SheetResolution(requested, name, names, "substring")

    return SheetResolution(requested, None, names, None)
