"""
Format extractors.

Thin wrappers over the document and spreadsheet libraries. Callers pass paths
that already went through the sandbox; any exception raised here surfaces as a
tool-level failure.
"""

from __future__ import annotations

from pathlib import Path

import docx
import pymupdf
from openpyxl import Workbook, load_workbook


def extract_docx_text(path: str | Path) -> str:
    """Return the paragraph text of a .docx file, one paragraph per line."""
    document = docx.Document(str(path))
    lines = [paragraph.text for paragraph in document.paragraphs]
    # Table cells are not paragraphs of the body; include them after the body text
    for table in document.tables:
        for row in table.rows:
            lines.append("\t".join(cell.text for cell in row.cells))
    return "\n".join(lines).strip()


def extract_pdf_text(path: str | Path) -> str:
    """Return the text of every page of a PDF, pages separated by blank lines."""
    with pymupdf.open(str(path)) as doc:
        pages = [page.get_text() for page in doc]
    return "\n\n".join(p.strip() for p in pages if p.strip())


def load_workbook_strict(path: str | Path) -> Workbook:
    """Load an existing workbook; FileNotFoundError propagates."""
    return load_workbook(filename=str(path))


def load_workbook_or_empty(path: str | Path) -> Workbook:
    """Load a workbook, or start an empty one (no sheets) when the file does not exist yet."""
    try:
        return load_workbook(filename=str(path))
    except FileNotFoundError:
        wb = Workbook()
        wb.remove(wb.active)
        return wb


def save_workbook(wb: Workbook, path: str | Path) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    wb.save(str(target))
