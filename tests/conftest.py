"""Shared pytest fixtures for folder server tests."""

import pytest

from mcp_server_folder.config import Settings
from mcp_server_folder.content_cache import ContentCache
from mcp_server_folder.sandbox import PathSandbox
from mcp_server_folder.spreadsheet_tools import SpreadsheetTools
from mcp_server_folder.tools import FolderTools


class FakeClock:
    """Manually advanced time source for TTL tests."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def base_dir(tmp_path):
    """Sandbox root with the standard subdirectories."""
    root = tmp_path / "data"
    for sub in (".cache", "docs", "excel", "uploads"):
        (root / sub).mkdir(parents=True)
    return root.resolve()


@pytest.fixture
def sandbox(base_dir):
    return PathSandbox(base_dir)


@pytest.fixture
def content_cache(base_dir):
    cache = ContentCache(base_dir / ".cache")
    yield cache
    cache.close()


@pytest.fixture
def folder_tools(sandbox, content_cache):
    return FolderTools(sandbox, content_cache, max_upload_bytes=10_000_000)


@pytest.fixture
def sheets(sandbox):
    return SpreadsheetTools(sandbox)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def make_settings(base_dir):
    """Build Settings isolated from the process environment and .env files."""

    def _make(**overrides):
        values = {
            "base_dir": base_dir,
            "api_key": "",
            "debug": False,
            "require_key_for_reads": False,
            "session_ttl_seconds": 1800,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make
