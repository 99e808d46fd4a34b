"""
Unit Tests for the tool catalog

Drives the FastMCP catalog through an in-memory client so that argument
validation and error reporting go through the same path a remote client sees.
"""

import base64
import json
import logging

import pytest
from fastmcp import Client
from fastmcp.exceptions import ToolError

from mcp_server_folder.server import SERVER_NAME, build_server, configure_logging

pytestmark = pytest.mark.anyio

EXPECTED_TOOLS = {
    "list_files",
    "read_text",
    "search_text",
    "upload_file",
    "word_read_text",
    "pdf_read_text",
    "excel_list_sheets",
    "excel_read_range",
    "excel_write_range",
    "excel_append_rows",
    "excel_add_menu_item",
    "excel_add_lunchlog_entry",
}


@pytest.fixture
def catalog(folder_tools, sheets):
    return build_server(folder_tools, sheets)


def text_of(result) -> str:
    return result.content[0].text


class TestCatalog:
    """Catalog shape."""

    async def test_lists_every_tool(self, catalog):
        async with Client(catalog) as client:
            tools = await client.list_tools()
        assert {t.name for t in tools} == EXPECTED_TOOLS

    async def test_schema_bounds_are_published(self, catalog):
        """Test that numeric limits appear in the advertised input schema."""
        async with Client(catalog) as client:
            tools = {t.name: t for t in await client.list_tools()}
        props = tools["list_files"].inputSchema["properties"]
        assert props["max_entries"]["minimum"] == 1
        assert props["max_entries"]["maximum"] == 1000
        assert tools["excel_read_range"].inputSchema["required"] == ["file"]

    def test_server_name(self, catalog):
        assert catalog.name == SERVER_NAME

    def test_each_build_is_independent(self, folder_tools, sheets):
        assert build_server(folder_tools, sheets) is not build_server(folder_tools, sheets)


class TestToolCalls:
    """Calls through the protocol, including failures."""

    async def test_list_files(self, catalog, base_dir):
        (base_dir / "uploads" / "a.txt").write_text("x")
        async with Client(catalog) as client:
            result = await client.call_tool("list_files", {"subdir": "uploads"})
        assert text_of(result) == "a.txt"

    async def test_upload_and_read_back(self, catalog):
        payload = base64.b64encode(b"hello").decode()
        async with Client(catalog) as client:
            saved = await client.call_tool(
                "upload_file", {"filename": "h.txt", "base64": payload}
            )
            read = await client.call_tool("read_text", {"file": "uploads/h.txt"})
        assert text_of(saved) == "Saved: uploads/h.txt (5 bytes)"
        assert text_of(read) == "hello"

    async def test_excel_range_argument_name(self, catalog):
        """Test that the wire name 'range' reaches the range reader."""
        async with Client(catalog) as client:
            await client.call_tool(
                "excel_write_range",
                {"file": "t.xlsx", "sheet": "S", "start_cell": "A1", "values": [[1, 2]]},
            )
            result = await client.call_tool(
                "excel_read_range", {"file": "t.xlsx", "sheet": "S", "range": "A1:B1"}
            )
        assert json.loads(text_of(result))["values"] == [["1", "2"]]

    async def test_traversal_is_a_tool_error(self, catalog):
        async with Client(catalog) as client:
            with pytest.raises(ToolError, match="path traversal"):
                await client.call_tool("read_text", {"file": "../../etc/passwd"})

    async def test_missing_file_is_a_tool_error(self, catalog):
        async with Client(catalog) as client:
            with pytest.raises(ToolError, match="Not found"):
                await client.call_tool("read_text", {"file": "nope.txt"})

    @pytest.mark.parametrize(
        "name,arguments",
        [
            ("list_files", {"max_entries": 0}),
            ("list_files", {"max_entries": 1001}),
            ("read_text", {"file": "a.txt", "max_bytes": 999}),
            ("search_text", {"keyword": ""}),
            ("excel_add_lunchlog_entry", {
                "file": "l.xlsx", "date": "2024-01-01", "menu": "m",
                "category": "c", "price_jpy": 100, "rating": 6,
            }),
            ("excel_add_menu_item", {
                "file": "l.xlsx", "menu": "m", "category": "c", "price_jpy": -1,
            }),
            ("read_text", {}),
            ("list_files", {"max_entries": "5"}),
            ("list_files", {"max_entries": 2.5}),
        ],
    )
    async def test_out_of_range_arguments_are_rejected(self, catalog, base_dir, name, arguments):
        """Test that schema violations fail before the tool body runs."""
        async with Client(catalog) as client:
            with pytest.raises(ToolError):
                await client.call_tool(name, arguments)
        assert not (base_dir / "excel" / "l.xlsx").exists()

    async def test_mistyped_flag_does_not_overwrite(self, catalog, base_dir):
        """Test a string where a boolean is expected is rejected, not read as true."""
        existing = base_dir / "uploads" / "d.bin"
        existing.write_bytes(b"old")
        async with Client(catalog) as client:
            with pytest.raises(ToolError):
                await client.call_tool(
                    "upload_file",
                    {"name": "d.bin", "base64": "bmV3", "overwrite": "yes"},
                )
        assert existing.read_bytes() == b"old"


class TestConfigureLogging:
    def test_level_follows_debug_flag(self):
        logger = logging.getLogger("mcp_server_folder")
        configure_logging(debug=True)
        assert logger.level == logging.DEBUG
        configure_logging(debug=False)
        assert logger.level == logging.INFO
        assert len(logger.handlers) == 1
