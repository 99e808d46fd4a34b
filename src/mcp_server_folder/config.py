"""
Configuration management using Pydantic settings.

All configuration values are loaded from environment variables or .env file.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MCP_PATH = "/mcp"
CACHE_SUBDIR = ".cache"
DOCS_SUBDIR = "docs"
EXCEL_SUBDIR = "excel"
UPLOADS_SUBDIR = "uploads"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server Configuration
    host: str = "127.0.0.1"
    port: int = 3110

    # Sandbox root; every file operation stays inside it
    base_dir: Path = Path("data")

    # Shared secret for mutating requests; empty disables the check
    api_key: str = ""
    require_key_for_reads: bool = False

    # Session Management
    session_ttl_seconds: int = 30 * 60

    # Limits
    max_upload_bytes: int = 10_000_000
    cache_size_limit: Optional[int] = None

    # Logging
    debug: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("api_key", mode="before")
    @classmethod
    def _strip_api_key(cls, value: object) -> object:
        # Trailing whitespace or newlines from .env files must not become part of the key
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("base_dir")
    @classmethod
    def _absolute_base_dir(cls, value: Path) -> Path:
        return value.expanduser().resolve()


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Singleton Settings instance loaded from environment.

    Note:
        Uses lru_cache to ensure settings are loaded only once.
        To reload settings (e.g., in tests), call get_settings.cache_clear()
    """
    return Settings()
