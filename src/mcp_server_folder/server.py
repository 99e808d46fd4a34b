import logging
import sys
from functools import partial
from typing import Annotated, Any, Callable

import anyio
from fastmcp import FastMCP
from pydantic import Field

from .config import MCP_PATH, get_settings
from .spreadsheet_tools import SpreadsheetTools
from .tools import FolderTools

logger = logging.getLogger("mcp_server_folder")

SERVER_NAME = "local-folder-mcp"


def configure_logging(debug: bool = False) -> None:
    """Attach a stdout handler to the package logger unless one is configured."""
    if not logger.handlers:
        _handler = logging.StreamHandler(sys.stdout)
        _formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
        _handler.setFormatter(_formatter)
        logger.addHandler(_handler)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)


async def run_tool(fn: Callable[..., str], *args: Any, **kwargs: Any) -> str:
    """Run a blocking tool body in a worker thread."""
    return await anyio.to_thread.run_sync(partial(fn, *args, **kwargs))


def build_server(folder: FolderTools, sheets: SpreadsheetTools) -> FastMCP:
    """Build the tool catalog served to one client session.

    Each tool's parameters, bounds and defaults are declared on its signature;
    FastMCP validates incoming arguments against that schema before the body
    runs, without coercing mistyped values, and reports failures as tool errors.
    """
    mcp = FastMCP(SERVER_NAME, strict_input_validation=True)

    # === files ===
    @mcp.tool(
        name="list_files",
        description="List files under BASE_DIR (optionally under a subfolder). "
        "Directories end with '/'.",
    )
    async def list_files(
        subdir: Annotated[str, Field(description="Subfolder relative to BASE_DIR")] = "",
        max_entries: Annotated[int, Field(ge=1, le=1000)] = 200,
    ) -> str:
        return await run_tool(folder.list_files, subdir, max_entries)

    @mcp.tool(
        name="read_text",
        description="Read a UTF-8 text file under BASE_DIR and return its content (size-limited).",
    )
    async def read_text(
        file: Annotated[str, Field(description="File path relative to BASE_DIR")],
        max_bytes: Annotated[int, Field(ge=1_000, le=2_000_000)] = 200_000,
    ) -> str:
        return await run_tool(folder.read_text, file, max_bytes)

    @mcp.tool(
        name="search_text",
        description="Search a keyword in .txt/.md/.csv/.json/.log files under BASE_DIR "
        "(simple recursive grep). Hits are 'path:line:content'.",
    )
    async def search_text(
        keyword: Annotated[str, Field(min_length=1)],
        subdir: str = "",
        max_hits: Annotated[int, Field(ge=1, le=200)] = 50,
    ) -> str:
        return await run_tool(folder.search_text, keyword, subdir, max_hits)

    @mcp.tool(
        name="upload_file",
        description="Upload a file into uploads/. Accepts base64 or content_bytes; "
        "filename can be omitted if name is provided.",
    )
    async def upload_file(
        name: str | None = None,
        content_bytes: Annotated[str | None, Field(description="Base64 payload")] = None,
        filename: str | None = None,
        base64: Annotated[str | None, Field(description="Base64 payload")] = None,
        subdir: str = "uploads",
        overwrite: bool = False,
        max_bytes: Annotated[int, Field(ge=1_000, le=10_000_000)] = 3_000_000,
    ) -> str:
        return await run_tool(
            folder.upload_file,
            name=name,
            content_bytes=content_bytes,
            filename=filename,
            base64=base64,
            subdir=subdir,
            overwrite=overwrite,
            max_bytes=max_bytes,
        )

    # === documents ===
    @mcp.tool(
        name="word_read_text",
        description="Read-only: extract plain text from a .docx under docs/ (cached). "
        "Use this to summarize or quote Word documents.",
    )
    async def word_read_text(
        file: Annotated[str, Field(description="'handbook.docx' or 'docs/handbook.docx'")],
        max_chars: Annotated[int, Field(ge=1_000, le=800_000)] = 150_000,
        use_cache: bool = True,
    ) -> str:
        return await run_tool(folder.word_read_text, file, max_chars, use_cache)

    @mcp.tool(
        name="pdf_read_text",
        description="Read-only: extract plain text from a .pdf under docs/ (cached).",
    )
    async def pdf_read_text(
        file: Annotated[str, Field(description="'report.pdf' or 'docs/report.pdf'")],
        max_chars: Annotated[int, Field(ge=1_000, le=800_000)] = 150_000,
        use_cache: bool = True,
    ) -> str:
        return await run_tool(folder.pdf_read_text, file, max_chars, use_cache)

    # === spreadsheets ===
    @mcp.tool(
        name="excel_list_sheets",
        description="List worksheet names in an .xlsx under excel/. Use when the sheet name is unknown.",
    )
    async def excel_list_sheets(file: str) -> str:
        return await run_tool(sheets.list_sheets, file)

    @mcp.tool(
        name="excel_read_range",
        description="Read an .xlsx range from excel/. sheet/range can be omitted; "
        "the server infers defaults (Menu/LunchLog, A1:F50).",
    )
    async def excel_read_range(
        file: str,
        sheet: str | None = None,
        range: Annotated[str | None, Field(description="A1 range such as 'A1:C10'")] = None,
        hint: Annotated[
            str | None, Field(description="Natural-language hint, e.g. 'menu' or 'log'")
        ] = None,
    ) -> str:
        return await run_tool(
            sheets.read_range, file, sheet=sheet, cell_range=range, hint=hint
        )

    @mcp.tool(
        name="excel_write_range",
        description="Write values (2D array) into an .xlsx in excel/ starting at start_cell "
        "(e.g. A1). Creates the file/sheet if missing.",
    )
    async def excel_write_range(
        file: str,
        sheet: str,
        start_cell: str,
        values: list[list[Any]],
        create_sheet: bool = True,
    ) -> str:
        return await run_tool(
            sheets.write_range, file, sheet, start_cell, values, create_sheet
        )

    @mcp.tool(
        name="excel_append_rows",
        description="Append rows to the bottom of a sheet in excel/. sheet defaults to LunchLog.",
    )
    async def excel_append_rows(
        file: str,
        rows: list[list[Any]],
        sheet: str | None = None,
    ) -> str:
        return await run_tool(sheets.append_rows, file, rows, sheet=sheet)

    @mcp.tool(
        name="excel_add_menu_item",
        description="Add one menu item row into the 'Menu' sheet of an .xlsx in excel/.",
    )
    async def excel_add_menu_item(
        file: str,
        menu: Annotated[str, Field(min_length=1)],
        category: Annotated[str, Field(min_length=1)],
        price_jpy: Annotated[int, Field(ge=0)],
        allergy_notes: str = "—",
        tips: str = "",
    ) -> str:
        return await run_tool(
            sheets.add_menu_item, file, menu, category, price_jpy, allergy_notes, tips
        )

    @mcp.tool(
        name="excel_add_lunchlog_entry",
        description="Append one log row into the 'LunchLog' sheet of an .xlsx in excel/.",
    )
    async def excel_add_lunchlog_entry(
        file: str,
        date: Annotated[str, Field(min_length=1, description="e.g. 2026-02-12")],
        menu: Annotated[str, Field(min_length=1)],
        category: Annotated[str, Field(min_length=1)],
        price_jpy: Annotated[int, Field(ge=0)],
        rating: Annotated[int, Field(ge=1, le=5)],
        notes: str = "",
    ) -> str:
        return await run_tool(
            sheets.add_lunchlog_entry,
            file,
            date,
            menu,
            category,
            price_jpy,
            rating,
            notes,
        )

    return mcp


# === MAIN ENTRY POINT ===
def main():
    """Main entry point: serve the Streamable-HTTP endpoint with uvicorn."""
    import uvicorn

    from .http_app import create_app

    settings = get_settings()
    configure_logging(settings.debug)
    app = create_app(settings)

    logger.info(f"✅ MCP Server listening: http://{settings.host}:{settings.port}{MCP_PATH}")
    logger.info(f"   BASE_DIR = {settings.base_dir}")
    logger.info(f"   API_KEY  = {'enabled' if settings.api_key else 'disabled'}")
    logger.info(f"   DEBUG    = {'enabled' if settings.debug else 'disabled'}")

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
